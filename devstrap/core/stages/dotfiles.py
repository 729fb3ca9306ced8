"""
Dotfiles — initial clone of the operator's dotfiles repository.

Bootstrap only: an existing directory is never pulled or touched, so
local edits to a previous clone are safe across re-runs.
"""

from __future__ import annotations

from devstrap.adapters.registry import AdapterRegistry
from devstrap.core.engine.executor import StagePlan
from devstrap.core.models.action import Action
from devstrap.core.models.settings import Settings
from devstrap.core.stages.base import Stage

NAME = "dotfiles"


def plan(settings: Settings, registry: AdapterRegistry) -> StagePlan:
    dotfiles = settings.dotfiles
    dest = settings.expand(dotfiles.path)
    title = f"Cloning dotfiles from {dotfiles.repo}..."

    warnings = []
    if dotfiles.is_placeholder:
        warnings.append(
            "dotfiles.repo is still the placeholder URL; set it in the config file, "
            "DEVSTRAP_DOTFILES_REPO, or --dotfiles-repo"
        )

    if registry.path_exists(dest):
        return StagePlan(
            stage=NAME,
            title=title,
            skip_reason=f"{dotfiles.path} directory already exists. Skipping clone.",
        )

    return StagePlan(
        stage=NAME,
        title=title,
        actions=[
            Action(
                id=f"{NAME}:clone",
                name=f"git clone {dotfiles.repo}",
                adapter="git",
                params={"operation": "clone", "url": dotfiles.repo, "dest": dest},
                creates=dest,
            )
        ],
        notes=[f"Dotfiles cloned into {dotfiles.path}. You can now symlink them into place."],
        warnings=warnings,
    )


STAGE = Stage(
    name=NAME,
    description="Clone the dotfiles repository (first run only)",
    planner=plan,
)
