"""System update — refresh package indices, then upgrade everything.

Both steps are fatal: an inconsistent package index halts the pipeline.
"""

from __future__ import annotations

from devstrap.adapters.registry import AdapterRegistry
from devstrap.core.engine.executor import StagePlan
from devstrap.core.models.settings import Settings
from devstrap.core.stages.base import Stage, command

NAME = "system-update"


def plan(settings: Settings, registry: AdapterRegistry) -> StagePlan:
    return StagePlan(
        stage=NAME,
        title="Updating and upgrading system packages...",
        actions=[
            command(
                NAME,
                "apt-update",
                ["apt-get", "update"],
                name="apt-get update",
                sudo=True,
                interactive=True,
            ),
            command(
                NAME,
                "apt-upgrade",
                ["apt-get", "upgrade", "-y"],
                name="apt-get upgrade -y",
                sudo=True,
                interactive=True,
            ),
        ],
    )


STAGE = Stage(name=NAME, description="Refresh package indices and upgrade packages", planner=plan)
