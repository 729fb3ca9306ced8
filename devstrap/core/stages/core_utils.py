"""
Core utilities — the package-manager front-end and everyday CLI tools.

Also creates compatibility links for tools the distribution ships under
another name (Ubuntu packages ``fd`` as ``fdfind``). Linking is
best-effort: an existing link, or a binary that cannot be found, is
recorded and tolerated so a re-run never fails here.
"""

from __future__ import annotations

from devstrap.adapters.registry import AdapterRegistry
from devstrap.core.engine.executor import StagePlan
from devstrap.core.models.action import Action
from devstrap.core.models.settings import Settings
from devstrap.core.stages.base import (
    Stage,
    filesystem,
    install_packages,
    variable_name,
    which,
)

NAME = "core-utils"


def plan(settings: Settings, registry: AdapterRegistry) -> StagePlan:
    pkgs = settings.packages
    actions: list[Action] = [
        install_packages(NAME, "frontend", "apt-get", [pkgs.frontend]),
        install_packages(NAME, "utilities", pkgs.frontend, list(pkgs.utilities)),
    ]

    local_bin = settings.expand(settings.local_bin_dir)
    if pkgs.compat_links:
        actions.append(
            filesystem(
                NAME,
                "local-bin",
                "mkdir",
                local_bin,
                name=f"mkdir -p {settings.local_bin_dir}",
                ignore_errors=True,
            )
        )

    for link, binary in pkgs.compat_links.items():
        var = f"{variable_name(binary)}_path"
        link_path = f"{local_bin.rstrip('/')}/{link}"
        actions.append(which(NAME, f"locate-{binary}", binary, register_as=var, ignore_errors=True))
        actions.append(
            filesystem(
                NAME,
                f"link-{link}",
                "symlink",
                link_path,
                name=f"ln -s {binary} {link_path}",
                target=f"{{{var}}}",
                templated=["target"],
                creates=link_path,
                ignore_errors=True,
            )
        )

    return StagePlan(
        stage=NAME,
        title=f"Installing {pkgs.frontend.capitalize()} and core utilities...",
        actions=actions,
    )


STAGE = Stage(
    name=NAME,
    description="Install the package front-end, core CLI tools and compatibility links",
    planner=plan,
)
