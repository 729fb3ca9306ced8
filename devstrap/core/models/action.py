"""
Action and Receipt models — the execution contract.

Actions represent requested operations. Receipts represent results.
This is the fundamental I/O contract between the engine and adapters:
the engine sends Actions, adapters return Receipts. Never exceptions.

Besides the adapter params, an Action carries its own execution policy
(guards, tolerated failure, cleanup) so that a stage plan is plain data
that can be printed, dry-run, or replayed against a fake machine.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


_PLACEHOLDER_RE = re.compile(r"\{([a-z_][a-z0-9_]*)\}")


class Action(BaseModel):
    """A requested operation to be executed by an adapter.

    Actions are produced by stage planners and dispatched through the
    adapter registry by the stage executor.
    """

    id: str                         # unique action identifier (stage:step)
    name: str = ""                  # human-readable name
    adapter: str                    # which adapter handles this
    params: dict[str, Any] = Field(default_factory=dict)

    # ── Execution policy ─────────────────────────────────────────
    creates: str | None = None          # skip when this path exists
    unless_command: str | None = None   # skip when this binary is on PATH
    ignore_errors: bool = False         # failure is recorded, not fatal
    always: bool = False                # runs even after a failure (cleanup)
    register_as: str | None = None      # store output under this variable
    templated: list[str] = Field(default_factory=list)  # params that take {var} values

    @property
    def label(self) -> str:
        return self.name or self.id

    def render(self, variables: dict[str, str], strict: bool = True) -> Action:
        """Return a copy with ``{name}`` placeholders substituted.

        Only the params listed in ``templated`` are substituted; every
        other param is passed through verbatim, so user text such as
        ``${VAR}`` in a shell hook is never mistaken for a variable.
        The display name is always rendered leniently.

        Args:
            variables: Values registered by earlier actions.
            strict: If True, an unknown placeholder in a templated param
                raises KeyError. If False, it is left in place (dry-run).
        """

        def _substitute(strict_keys: bool):
            def _sub(value: str) -> str:
                def _replace(m: re.Match[str]) -> str:
                    key = m.group(1)
                    if key in variables:
                        return variables[key]
                    if strict_keys:
                        raise KeyError(key)
                    return m.group(0)

                return _PLACEHOLDER_RE.sub(_replace, value)

            return _sub

        params = dict(self.params)
        for key in self.templated:
            if key in params:
                params[key] = _map_strings(params[key], _substitute(strict))

        return self.model_copy(
            update={"params": params, "name": _substitute(False)(self.name)}
        )


def _map_strings(value: Any, fn) -> Any:
    if isinstance(value, str):
        return fn(value)
    if isinstance(value, dict):
        return {k: _map_strings(v, fn) for k, v in value.items()}
    if isinstance(value, list):
        return [_map_strings(v, fn) for v in value]
    return value


class Receipt(BaseModel):
    """Result of an adapter execution.

    Receipts capture the full outcome of an action. The adapter
    NEVER raises exceptions — failures are captured here.
    """

    adapter: str
    action_id: str
    status: Literal["ok", "skipped", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    ended_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the action succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the action failed."""
        return self.status == "failed"

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @property
    def return_code(self) -> int | None:
        """Exit status of the underlying command, if there was one."""
        code = self.metadata.get("return_code")
        return code if isinstance(code, int) else None

    @classmethod
    def success(
        cls,
        adapter: str,
        action_id: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        action_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="failed",
            error=error,
            **kwargs,
        )

    @classmethod
    def skip(
        cls,
        adapter: str,
        action_id: str,
        reason: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a skip receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="skipped",
            output=reason,
            **kwargs,
        )
