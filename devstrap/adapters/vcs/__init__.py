"""VCS adapters — git clones."""

from devstrap.adapters.vcs.git import GitAdapter

__all__ = ["GitAdapter"]
