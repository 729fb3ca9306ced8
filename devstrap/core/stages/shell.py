"""
Shell setup — zsh as login shell, Oh My Zsh, and two plugins.

The framework install is skipped when its directory exists; plugin
clones are skipped when their directory exists and tolerated when they
fail. The shell's startup file is never edited: plugin registration is
left to the user's dotfiles, and the stage only prints a reminder.
"""

from __future__ import annotations

from devstrap.adapters.registry import AdapterRegistry
from devstrap.core.engine.executor import StagePlan
from devstrap.core.models.action import Action
from devstrap.core.models.settings import Settings
from devstrap.core.stages.base import Stage, command, filesystem, install_packages, which

NAME = "shell"

INSTALLER_FILE = "ohmyzsh-install.sh"


def plan(settings: Settings, registry: AdapterRegistry) -> StagePlan:
    shell = settings.shell
    framework = settings.expand(shell.framework_dir)
    custom = settings.expand(shell.effective_custom_dir)
    installer = settings.tmp(INSTALLER_FILE)

    actions: list[Action] = [
        install_packages(NAME, "package", settings.packages.frontend, [shell.package]),
        which(NAME, "locate-shell", shell.package, register_as="shell_path"),
        command(
            NAME,
            "chsh",
            ["chsh", "-s", "{shell_path}"],
            name=f"chsh -s {shell.package}",
            interactive=True,
            templated=["command"],
        ),
        # ── Framework ────────────────────────────────────────────
        Action(
            id=f"{NAME}:framework-download",
            name="Download Oh My Zsh installer",
            adapter="http",
            params={"operation": "download", "url": shell.installer_url, "dest": installer},
            creates=framework,
        ),
        command(
            NAME,
            "framework-install",
            ["sh", installer, "--unattended"],
            name="Run Oh My Zsh installer (unattended)",
            env={"ZSH": framework},
            creates=framework,
        ),
        filesystem(NAME, "framework-cleanup", "remove", installer, always=True),
    ]

    # ── Plugins ──────────────────────────────────────────────────
    for plugin in shell.plugins:
        dest = f"{custom.rstrip('/')}/plugins/{plugin.name}"
        actions.append(
            Action(
                id=f"{NAME}:plugin-{plugin.name}",
                name=f"git clone {plugin.name}",
                adapter="git",
                params={"operation": "clone", "url": plugin.url, "dest": dest},
                creates=dest,
                ignore_errors=True,
            )
        )

    notes = []
    if shell.plugins:
        names = " and ".join(f"'{p.name}'" for p in shell.plugins)
        notes.append(f"Remember to add {names} to the plugins array in your .zshrc!")

    return StagePlan(
        stage=NAME,
        title="Installing and configuring Zsh with Oh My Zsh...",
        actions=actions,
        notes=notes,
    )


STAGE = Stage(
    name=NAME,
    description="Install zsh, make it the login shell, add Oh My Zsh and plugins",
    planner=plan,
)
