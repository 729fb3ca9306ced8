"""
Stage base — a named planner plus small builders for its actions.

A stage never touches the machine. ``Stage.plan`` turns settings (and
read-only probes through the registry) into a ``StagePlan``; the engine
executes it.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from devstrap.adapters.registry import AdapterRegistry
from devstrap.core.engine.executor import StagePlan
from devstrap.core.models.action import Action
from devstrap.core.models.settings import Settings

PlanFn = Callable[[Settings, AdapterRegistry], StagePlan]


@dataclass(frozen=True)
class Stage:
    """One provisioning step with its own responsibility and guards."""

    name: str
    description: str
    planner: PlanFn

    def plan(self, settings: Settings, registry: AdapterRegistry) -> StagePlan:
        return self.planner(settings, registry)


# ── Action builders ─────────────────────────────────────────────


def command(
    stage: str,
    step: str,
    argv: list[str],
    *,
    name: str = "",
    sudo: bool = False,
    stdout_path: str | None = None,
    env: dict[str, str] | None = None,
    interactive: bool = False,
    **policy: Any,
) -> Action:
    """A shell command action.

    ``interactive`` commands share the terminal (password and dpkg
    prompts reach the user) instead of having their output captured.
    """
    params: dict[str, Any] = {"operation": "run", "command": argv, "sudo": sudo}
    if interactive:
        params["interactive"] = True
    if stdout_path:
        params["stdout_path"] = stdout_path
    if env:
        params["env"] = env
    return Action(id=f"{stage}:{step}", name=name, adapter="shell", params=params, **policy)


def which(stage: str, step: str, binary: str, register_as: str, **policy: Any) -> Action:
    """Resolve ``binary`` on PATH and register its absolute path."""
    return Action(
        id=f"{stage}:{step}",
        name=f"Locate {binary}",
        adapter="shell",
        params={"operation": "which", "binary": binary},
        register_as=register_as,
        **policy,
    )


def filesystem(
    stage: str, step: str, operation: str, path: str, *, name: str = "", **params: Any
) -> Action:
    """A filesystem action; policy keys are split out of ``params``."""
    policy = {k: params.pop(k) for k in _POLICY_KEYS if k in params}
    return Action(
        id=f"{stage}:{step}",
        name=name,
        adapter="filesystem",
        params={"operation": operation, "path": path, **params},
        **policy,
    )


def install_packages(
    stage: str, step: str, manager: str, packages: list[str], **policy: Any
) -> Action:
    """``sudo <manager> install -y <packages>``."""
    return command(
        stage,
        step,
        [manager, "install", "-y", *packages],
        name=f"{manager} install {' '.join(packages)}",
        sudo=True,
        interactive=True,
        **policy,
    )


def ensure_snapd(stage: str, frontend: str) -> Action:
    """Install snapd through the front-end unless ``snap`` is already on PATH."""
    return install_packages(stage, "snapd", frontend, ["snapd"], unless_command="snap")


def snap_install(stage: str, snap: str) -> Action:
    return command(
        stage,
        f"snap-{snap}",
        ["snap", "install", snap, "--classic"],
        name=f"snap install {snap}",
        sudo=True,
        interactive=True,
    )


def variable_name(text: str) -> str:
    """A ``{placeholder}``-safe variable name derived from ``text``."""
    return re.sub(r"[^a-z0-9_]", "_", text.lower()).lstrip("0123456789") or "var"


_POLICY_KEYS = (
    "creates",
    "unless_command",
    "ignore_errors",
    "always",
    "register_as",
    "templated",
)
