"""
Config check use case — validate settings and report issues.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from devstrap.core.config.loader import ConfigError, find_config_file, load_settings
from devstrap.core.models.settings import Settings


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    settings: Settings | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        s = self.settings
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "dotfiles_repo": s.dotfiles.repo if s else None,
            "frontend": s.packages.frontend if s else None,
            "utilities": len(s.packages.utilities) if s else 0,
            "plugins": [p.name for p in s.shell.plugins] if s else [],
        }


def check_config(
    config_path: Path | None = None,
    dotfiles_repo: str | None = None,
    env: Mapping[str, str] | None = None,
) -> ConfigCheckResult:
    """Validate settings and report issues.

    Args:
        config_path: Optional explicit path to config.yml.
        dotfiles_repo: Dotfiles repository override, as the CLI would pass it.
        env: Environment mapping (default ``os.environ``).

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    try:
        result.config_path = config_path or find_config_file(env)
        settings = load_settings(result.config_path, env=env, dotfiles_repo=dotfiles_repo)
        result.settings = settings
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    if result.config_path is None:
        result.warnings.append("No config file found; using built-in defaults.")

    # Semantic checks
    if settings.dotfiles.is_placeholder:
        result.warnings.append(
            f"dotfiles.repo is the placeholder {settings.dotfiles.repo}; "
            "the dotfiles clone will fail until it is set."
        )

    if not settings.clipboard.patterns:
        result.warnings.append("clipboard.patterns is empty; WSL will never be detected.")

    names = [p.name for p in settings.shell.plugins]
    dupes = {n for n in names if names.count(n) > 1}
    if dupes:
        result.errors.append(f"Duplicate shell plugin names: {', '.join(sorted(dupes))}")

    if not settings.packages.frontend:
        result.errors.append("packages.frontend must name a package manager front-end.")

    for link, binary in settings.packages.compat_links.items():
        if not link or "/" in link:
            result.errors.append(f"Invalid compatibility link name: {link!r} -> {binary}")

    result.valid = len(result.errors) == 0
    return result
