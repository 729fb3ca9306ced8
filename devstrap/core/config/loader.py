"""
Configuration loader — reads config.yml into the Settings model.

Resolution order for the file:

    --config PATH  >  $DEVSTRAP_CONFIG  >  ~/.config/devstrap/config.yml

No file at all is fine: every setting has a default. After the file is
validated, the dotfiles repository may still be overridden by the
``--dotfiles-repo`` flag or ``$DEVSTRAP_DOTFILES_REPO``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import ValidationError

from devstrap.core.models.settings import Settings

logger = logging.getLogger(__name__)

CONFIG_FILE = "config.yml"
DEFAULT_CONFIG_DIR = Path("~/.config/devstrap")

ENV_CONFIG = "DEVSTRAP_CONFIG"
ENV_DOTFILES_REPO = "DEVSTRAP_DOTFILES_REPO"


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""


def find_config_file(env: Mapping[str, str] | None = None) -> Path | None:
    """Locate the settings file from the environment or the default path.

    Returns:
        Path to the file, or None when neither source names one that exists.

    Raises:
        ConfigError: If $DEVSTRAP_CONFIG points at a missing file.
    """
    env = os.environ if env is None else env

    explicit = env.get(ENV_CONFIG)
    if explicit:
        path = Path(explicit).expanduser()
        if not path.is_file():
            raise ConfigError(f"{ENV_CONFIG} points to a missing file: {path}")
        return path

    candidate = (DEFAULT_CONFIG_DIR / CONFIG_FILE).expanduser()
    if candidate.is_file():
        return candidate
    return None


def load_settings(
    path: Path | None = None,
    env: Mapping[str, str] | None = None,
    dotfiles_repo: str | None = None,
) -> Settings:
    """Load and validate settings.

    Args:
        path: Explicit config file (``--config``). If None, searched for.
        env: Environment mapping (default ``os.environ``).
        dotfiles_repo: Repository URL from the CLI; beats everything.

    Returns:
        Validated Settings model.

    Raises:
        ConfigError: If the file is missing, unreadable, or invalid.
    """
    env = os.environ if env is None else env

    if path is None:
        path = find_config_file(env)
    elif not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    data: dict = {}
    if path is not None:
        data = _read_yaml(path)
    else:
        logger.debug("No config file found, using built-in defaults")

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path or 'defaults'}: {e}") from e

    repo = dotfiles_repo or env.get(ENV_DOTFILES_REPO)
    if repo:
        settings.dotfiles.repo = repo
        logger.debug("Dotfiles repository overridden: %s", repo)

    return settings


def _read_yaml(path: Path) -> dict:
    logger.debug("Loading settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data
