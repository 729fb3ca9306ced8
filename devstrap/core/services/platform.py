"""
Platform detection — read-only facts about the host.

    is_wsl          kernel version text mentions the Windows subsystem
    release_arch    machine architecture in release-asset naming
"""

from __future__ import annotations

import logging
import platform

from devstrap.adapters.registry import AdapterRegistry
from devstrap.core.models.settings import ClipboardSettings

logger = logging.getLogger(__name__)

# uname -m → architecture suffix used by Go-built release archives
# (goreleaser "Linux_<arch>" naming, as lazygit publishes).
_RELEASE_ARCH_MAP: dict[str, str] = {
    "x86_64": "x86_64",
    "amd64": "x86_64",
    "AMD64": "x86_64",      # Windows / WSL2
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "armv6",
    "armv6l": "armv6",
    "i686": "32-bit",
    "i386": "32-bit",
}


def is_wsl(registry: AdapterRegistry, clipboard: ClipboardSettings) -> bool:
    """Whether the kernel version text identifies a WSL host.

    Matching is a case-sensitive substring test against each configured
    pattern. An unreadable kernel version file means "not WSL".
    """
    text = registry.read_text(clipboard.kernel_version_path)
    if text is None:
        logger.debug("Cannot read %s — assuming not WSL", clipboard.kernel_version_path)
        return False
    matched = [p for p in clipboard.patterns if p in text]
    logger.debug("Kernel version patterns matched: %s", matched)
    return bool(matched)


def release_arch(machine: str | None = None) -> str:
    """Map ``platform.machine()`` to release-asset architecture naming."""
    machine = machine or platform.machine()
    return _RELEASE_ARCH_MAP.get(machine, machine)
