"""
Shared test fixtures and configuration.

Most tests provision a ``FakeMachine``: an in-memory Ubuntu host with
``apt-get`` and the coreutils the pipeline calls, serving the release
downloads the stages fetch.
"""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from devstrap.adapters.fake import FakeMachine
from devstrap.core.models.settings import (
    ClipboardSettings,
    DotfilesSettings,
    EditorSettings,
    Settings,
    ShellSettings,
)

HOME = "/home/dev"
DOTFILES_REPO = "https://github.com/dev/dotfiles.git"

LAZYGIT_VERSION = "0.44.1"
LAZYGIT_API = "https://api.github.com/repos/jesseduffield/lazygit/releases/latest"
LAZYGIT_ARCHIVE = (
    "https://github.com/jesseduffield/lazygit/releases/latest/download/"
    f"lazygit_{LAZYGIT_VERSION}_Linux_x86_64.tar.gz"
)
OMZ_INSTALLER = ShellSettings().installer_url
WIN32YANK_URL = ClipboardSettings().url

WSL_KERNEL = "Linux version 5.15.153.1-microsoft-standard-WSL2 (gcc 11.2.0)"


def make_machine(kernel_version: str = "Linux version 6.8.0-45-generic") -> FakeMachine:
    """A fresh Ubuntu host with every release download available."""
    machine = FakeMachine(home=HOME, kernel_version=kernel_version)
    for tool in ("apt-get", "chsh", "install", "mv"):
        machine.add_binary(tool)
    machine.serve_json(OMZ_INSTALLER, "#!/bin/sh\necho installing oh-my-zsh\n")
    machine.serve_json(LAZYGIT_API, {"tag_name": f"v{LAZYGIT_VERSION}", "name": "v0.44.1"})
    machine.serve_archive(
        LAZYGIT_ARCHIVE,
        {"LICENSE": "MIT", "README.md": "# lazygit", "lazygit": "\x7fELF lazygit"},
    )
    machine.serve_archive(WIN32YANK_URL, {"README.md": "# win32yank", "win32yank.exe": "MZ win32yank"})
    return machine


def make_settings(tmp_path: Path | None = None, **overrides) -> Settings:
    """Settings pointing at the fake home, with a real dotfiles repository."""
    data: dict = {
        "home": HOME,
        "editor": EditorSettings(arch="x86_64"),
        "dotfiles": DotfilesSettings(repo=DOTFILES_REPO),
    }
    if tmp_path is not None:
        data["state_dir"] = str(tmp_path / "state")
    data.update(overrides)
    return Settings(**data)


@pytest.fixture
def machine() -> FakeMachine:
    return make_machine()


@pytest.fixture
def wsl_machine() -> FakeMachine:
    return make_machine(kernel_version=WSL_KERNEL)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A config.yml for the fake home with its state dir under tmp_path."""
    path = tmp_path / "config.yml"
    path.write_text(textwrap.dedent(f"""\
        home: {HOME}
        state_dir: {tmp_path / "state"}
        editor:
          arch: x86_64
        dotfiles:
          repo: {DOTFILES_REPO}
    """))
    return path


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Isolate config discovery from the developer's real environment."""
    for name in (
        "DEVSTRAP_CONFIG",
        "DEVSTRAP_DOTFILES_REPO",
        "DEVSTRAP_LOG_LEVEL",
        "DEVSTRAP_LOG_FILE",
        "DEVSTRAP_LOG_FILE_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home
