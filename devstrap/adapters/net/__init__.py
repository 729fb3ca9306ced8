"""Network adapters — release metadata and downloads."""

from devstrap.adapters.net.http import HttpAdapter

__all__ = ["HttpAdapter"]
