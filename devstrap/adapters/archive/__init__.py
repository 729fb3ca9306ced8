"""Archive adapters — single-member extraction."""

from devstrap.adapters.archive.unpack import ArchiveAdapter

__all__ = ["ArchiveAdapter"]
