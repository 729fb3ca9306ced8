"""Shell adapters — commands and filesystem operations."""

from devstrap.adapters.shell.command import ShellCommandAdapter
from devstrap.adapters.shell.filesystem import FilesystemAdapter

__all__ = ["FilesystemAdapter", "ShellCommandAdapter"]
