"""
Settings model — the declared desired state of the machine.

Everything a stage needs to plan its actions lives here: package
lists, install locations, download URLs, and the dotfiles repository.
Loaded from YAML by ``devstrap.core.config.loader``; every field has a
default so an empty (or missing) config file is valid.

Paths that start with ``~`` are expanded against ``home``, never against
the real ``$HOME`` directly, so tests can point the whole plan at a
temporary directory.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

PLACEHOLDER_DOTFILES_REPO = "https://github.com/your-username/your-dotfiles-repo.git"


class PackageSettings(BaseModel):
    """Core utilities installed through the package-manager front-end."""

    frontend: str = "nala"
    utilities: list[str] = Field(
        default_factory=lambda: [
            "build-essential",
            "git",
            "unzip",
            "tree",
            "ripgrep",
            "fd-find",
            "eza",
            "curl",
            "wget",
        ]
    )
    # link name -> binary the distribution actually ships
    compat_links: dict[str, str] = Field(default_factory=lambda: {"fd": "fdfind"})


class ShellPlugin(BaseModel):
    name: str
    url: str


class ShellSettings(BaseModel):
    """Login shell, its configuration framework, and framework plugins."""

    package: str = "zsh"
    framework_dir: str = "~/.oh-my-zsh"
    custom_dir: str = ""  # empty = <framework_dir>/custom
    installer_url: str = (
        "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"
    )
    plugins: list[ShellPlugin] = Field(
        default_factory=lambda: [
            ShellPlugin(
                name="zsh-autosuggestions",
                url="https://github.com/zsh-users/zsh-autosuggestions",
            ),
            ShellPlugin(
                name="zsh-syntax-highlighting",
                url="https://github.com/zsh-users/zsh-syntax-highlighting.git",
            ),
        ]
    )

    @property
    def effective_custom_dir(self) -> str:
        return self.custom_dir or f"{self.framework_dir.rstrip('/')}/custom"


class EditorSettings(BaseModel):
    """Editor (snap) and the lazygit release download."""

    snap: str = "nvim"
    lazygit_repo: str = "jesseduffield/lazygit"
    lazygit_binary: str = "lazygit"
    arch: str = ""  # empty = detect from the running machine


class MultiplexerSettings(BaseModel):
    """Terminal multiplexer (snap), its config dump, and the shell hook."""

    snap: str = "zellij"
    config_path: str = "~/.config/zellij/config.kdl"
    rc_file: str = "~/.zshrc"
    init_line: str = 'eval "$(zellij setup --init zsh)"'
    dedupe_startup_hook: bool = True
    overwrite_config: bool = True


class ClipboardSettings(BaseModel):
    """WSL clipboard bridge."""

    kernel_version_path: str = "/proc/version"
    patterns: list[str] = Field(default_factory=lambda: ["Microsoft", "WSL"])
    url: str = (
        "https://github.com/equalsraf/win32yank/releases/latest/download/win32yank-x64.zip"
    )
    member: str = "win32yank.exe"


class DotfilesSettings(BaseModel):
    repo: str = PLACEHOLDER_DOTFILES_REPO
    path: str = "~/dotfiles"

    @property
    def is_placeholder(self) -> bool:
        return not self.repo or self.repo == PLACEHOLDER_DOTFILES_REPO


class Settings(BaseModel):
    """Root settings model."""

    home: str = Field(default_factory=lambda: str(Path.home()))
    bin_dir: str = "/usr/local/bin"
    local_bin_dir: str = "~/.local/bin"
    tmp_dir: str = "/tmp"
    state_dir: str = "~/.local/state/devstrap"

    packages: PackageSettings = Field(default_factory=PackageSettings)
    shell: ShellSettings = Field(default_factory=ShellSettings)
    editor: EditorSettings = Field(default_factory=EditorSettings)
    multiplexer: MultiplexerSettings = Field(default_factory=MultiplexerSettings)
    clipboard: ClipboardSettings = Field(default_factory=ClipboardSettings)
    dotfiles: DotfilesSettings = Field(default_factory=DotfilesSettings)

    def expand(self, path: str) -> str:
        """Expand a leading ``~`` against ``home``."""
        if path == "~":
            return self.home
        if path.startswith("~/"):
            return f"{self.home.rstrip('/')}/{path[2:]}"
        return path

    def tmp(self, name: str) -> str:
        """Path of a temporary artifact inside ``tmp_dir``."""
        return f"{self.tmp_dir.rstrip('/')}/{name}"
