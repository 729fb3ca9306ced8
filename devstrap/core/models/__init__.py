"""
Domain models — Pydantic types for provisioning.

All models are re-exported here for convenient access:

    from devstrap.core.models import Action, Receipt, Settings
"""

from devstrap.core.models.action import Action, Receipt
from devstrap.core.models.settings import (
    PLACEHOLDER_DOTFILES_REPO,
    ClipboardSettings,
    DotfilesSettings,
    EditorSettings,
    MultiplexerSettings,
    PackageSettings,
    Settings,
    ShellPlugin,
    ShellSettings,
)

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # settings.py
    "PLACEHOLDER_DOTFILES_REPO",
    "ClipboardSettings",
    "DotfilesSettings",
    "EditorSettings",
    "MultiplexerSettings",
    "PackageSettings",
    "Settings",
    "ShellPlugin",
    "ShellSettings",
]
