"""
Clipboard bridge — win32yank on WSL hosts only.

Not being on WSL is the expected branch on most machines: the plan is
empty, carries a skip reason, and nothing is downloaded.
"""

from __future__ import annotations

from devstrap.adapters.registry import AdapterRegistry
from devstrap.core.engine.executor import StagePlan
from devstrap.core.models.action import Action
from devstrap.core.models.settings import Settings
from devstrap.core.services.platform import is_wsl
from devstrap.core.stages.base import Stage, command, filesystem

NAME = "clipboard"


def plan(settings: Settings, registry: AdapterRegistry) -> StagePlan:
    clip = settings.clipboard

    if not is_wsl(registry, clip):
        return StagePlan(
            stage=NAME,
            title="Checking for WSL clipboard support...",
            skip_reason="Not in WSL. Skipping win32yank installation.",
        )

    archive = settings.tmp("win32yank.zip")
    binary = settings.tmp(clip.member)

    return StagePlan(
        stage=NAME,
        title="WSL detected. Installing win32yank for clipboard support...",
        actions=[
            Action(
                id=f"{NAME}:download",
                name="Download win32yank",
                adapter="http",
                params={"operation": "download", "url": clip.url, "dest": archive},
            ),
            Action(
                id=f"{NAME}:extract",
                name=f"Extract {clip.member}",
                adapter="archive",
                params={"operation": "extract", "archive": archive, "member": clip.member, "dest": binary},
            ),
            filesystem(NAME, "chmod", "chmod", binary, name=f"chmod +x {clip.member}", mode=0o755),
            command(
                NAME,
                "install",
                ["mv", binary, f"{settings.bin_dir.rstrip('/')}/"],
                name=f"Move {clip.member} into {settings.bin_dir}",
                sudo=True,
            ),
            filesystem(NAME, "cleanup-archive", "remove", archive, always=True),
            filesystem(NAME, "cleanup-binary", "remove", binary, always=True),
        ],
        notes=[f"{clip.member} installed."],
    )


STAGE = Stage(
    name=NAME,
    description="Install the win32yank clipboard bridge (WSL only)",
    planner=plan,
)
