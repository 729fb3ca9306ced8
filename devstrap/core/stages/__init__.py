"""Provisioning stages, in the fixed order the pipeline runs them."""

from devstrap.core.stages import (
    clipboard,
    core_utils,
    dotfiles,
    editor,
    multiplexer,
    shell,
    system_update,
)
from devstrap.core.stages.base import Stage

ALL_STAGES: tuple[Stage, ...] = (
    system_update.STAGE,
    core_utils.STAGE,
    shell.STAGE,
    editor.STAGE,
    multiplexer.STAGE,
    clipboard.STAGE,
    dotfiles.STAGE,
)


def get_stage(name: str) -> Stage | None:
    for stage in ALL_STAGES:
        if stage.name == name:
            return stage
    return None


__all__ = ["ALL_STAGES", "Stage", "get_stage"]
