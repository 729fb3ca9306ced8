"""
Mock adapter — a bare host that accepts every change.

``devstrap run --mock`` routes every action through this adapter. It
answers the registry's read-only probes as a fresh machine would
(nothing exists, nothing is on PATH, nothing can be read), so a mock
run walks the full install path of every stage. Every planned action
succeeds without touching anything.

Tests use it as a recording double: individual action ids can be given
canned receipts or failures.
"""

from __future__ import annotations

from devstrap.adapters.base import PROBE_PREFIX, Adapter, ExecutionContext
from devstrap.core.models.action import Receipt

# Version reported for release lookups on the mock host
MOCK_RELEASE = "0.0.0"


class MockAdapter(Adapter):
    """Simulated bare host with a call log and canned responses."""

    def __init__(self, adapter_name: str = "mock"):
        self._name = adapter_name
        self._responses: dict[str, Receipt] = {}
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def is_available(self) -> bool:
        return True

    def set_response(self, action_id: str, receipt: Receipt) -> None:
        """Return ``receipt`` whenever ``action_id`` is executed."""
        self._responses[action_id] = receipt

    def set_failure(
        self, action_id: str, error: str = "Mock failure", return_code: int | None = None
    ) -> None:
        metadata = {"return_code": return_code} if return_code is not None else {}
        self._responses[action_id] = Receipt.failure(
            adapter=self._name,
            action_id=action_id,
            error=error,
            metadata=metadata,
        )

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)
        action = context.action

        if action.id in self._responses:
            return self._responses[action.id]

        adapter = action.adapter
        operation = context.operation
        meta = {"mock": True}

        # ── Probes: a fresh machine has nothing yet ──────────────
        probe = action.id.startswith(PROBE_PREFIX)
        if probe and operation == "exists":
            return Receipt.success(
                adapter=adapter, action_id=action.id, metadata={**meta, "exists": False}
            )
        if probe and operation == "which":
            return Receipt.failure(
                adapter=adapter,
                action_id=action.id,
                error=f"{context.params.get('binary')} not found on PATH",
                metadata=meta,
            )
        if probe and operation == "read":
            return Receipt.failure(
                adapter=adapter,
                action_id=action.id,
                error=f"File not found: {context.params.get('path')}",
                metadata=meta,
            )

        # ── Changes: accepted, nothing touched ───────────────────
        if operation == "which":
            binary = context.params.get("binary")
            return Receipt.success(
                adapter=adapter, action_id=action.id, output=f"/usr/bin/{binary}", metadata=meta
            )
        if operation == "release_field":
            return Receipt.success(
                adapter=adapter, action_id=action.id, output=MOCK_RELEASE, metadata=meta
            )
        return Receipt.success(
            adapter=adapter,
            action_id=action.id,
            output=f"[mock] {action.label}",
            metadata={**meta, "return_code": 0} if adapter == "shell" else meta,
        )

    def reset(self) -> None:
        """Clear the call log and canned responses."""
        self._call_log.clear()
        self._responses.clear()
