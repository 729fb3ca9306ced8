"""
Multiplexer setup — zellij from snap, default config, shell hook.

The config dump overwrites an existing file unless
``multiplexer.overwrite_config`` is false. The startup hook is appended
to the rc file; with ``multiplexer.dedupe_startup_hook`` (default) the
append is skipped when the exact line is already there, otherwise every
run adds another copy.
"""

from __future__ import annotations

import posixpath

from devstrap.adapters.registry import AdapterRegistry
from devstrap.core.engine.executor import StagePlan
from devstrap.core.models.settings import Settings
from devstrap.core.stages.base import Stage, command, ensure_snapd, filesystem, snap_install

NAME = "multiplexer"


def plan(settings: Settings, registry: AdapterRegistry) -> StagePlan:
    mux = settings.multiplexer
    config_path = settings.expand(mux.config_path)
    rc_file = settings.expand(mux.rc_file)

    dump_policy = {} if mux.overwrite_config else {"creates": config_path}

    return StagePlan(
        stage=NAME,
        title=f"Installing {mux.snap.capitalize()}...",
        actions=[
            ensure_snapd(NAME, settings.packages.frontend),
            snap_install(NAME, mux.snap),
            filesystem(
                NAME,
                "config-dir",
                "mkdir",
                posixpath.dirname(config_path),
                name=f"mkdir -p {posixpath.dirname(mux.config_path)}",
            ),
            command(
                NAME,
                "config-dump",
                [mux.snap, "setup", "--dump-config"],
                name=f"Write default config to {mux.config_path}",
                stdout_path=config_path,
                **dump_policy,
            ),
            filesystem(
                NAME,
                "startup-hook",
                "append_line",
                rc_file,
                name=f"Register startup hook in {mux.rc_file}",
                line=mux.init_line,
                unique=mux.dedupe_startup_hook,
            ),
        ],
        notes=[f"{mux.snap.capitalize()} will now start automatically with new Zsh shells."],
    )


STAGE = Stage(
    name=NAME,
    description="Install zellij, dump its default config, hook it into zsh",
    planner=plan,
)
