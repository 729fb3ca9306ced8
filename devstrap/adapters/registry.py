"""
Adapter registry — central dispatch for all adapter operations.

The registry is the single point of adapter management. It handles
registration, lookup, mock mode, and action execution. The engine
never talks to adapters directly — always through the registry.
"""

from __future__ import annotations

import logging
import time

from devstrap.adapters.base import PROBE_PREFIX, Adapter, ExecutionContext
from devstrap.adapters.mock import MockAdapter
from devstrap.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Central registry and dispatcher for adapters.

    Features:
        - Register adapters by name
        - Mock mode: route every action to a simulated bare host
        - Execute actions through the appropriate adapter
        - Read-only probes used by stage planners
    """

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._mock_mode = mock_mode
        self._mock_adapter: Adapter = MockAdapter()

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def set_mock_mode(self, enabled: bool, mock_adapter: Adapter | None = None) -> None:
        """Enable or disable mock mode.

        Args:
            enabled: Whether to use mock mode.
            mock_adapter: Optional custom mock adapter. If None, a fresh
                MockAdapter is used.
        """
        self._mock_mode = enabled
        self._mock_adapter = mock_adapter or MockAdapter()

    def register(self, adapter: Adapter) -> None:
        """Register an adapter."""
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def execute_action(self, action: Action, dry_run: bool = False) -> Receipt:
        """Execute an action through the appropriate adapter.

        This is the main dispatch method. It:
        1. Resolves the adapter (or mock)
        2. Validates the action
        3. Executes (or dry-runs)
        4. Returns a Receipt (never raises)

        Args:
            action: The action to execute.
            dry_run: If True, validate but don't execute.

        Returns:
            Receipt with execution results.
        """
        start_time = time.monotonic()
        context = ExecutionContext(action=action, dry_run=dry_run)

        # Resolve adapter
        adapter: Adapter | None
        if self._mock_mode:
            adapter = self._mock_adapter
        else:
            adapter = self._adapters.get(action.adapter)

        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        # Validate
        try:
            is_valid, error_msg = adapter.validate(context)
            if not is_valid:
                return Receipt.failure(
                    adapter=action.adapter,
                    action_id=action.id,
                    error=f"Validation failed: {error_msg}",
                )
        except Exception as e:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Validation error: {e}",
            )

        # Dry run — validated but not executed
        if dry_run:
            return Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason=f"[dry-run] Would execute {action.label}",
                metadata={"dry_run": True},
            )

        # Execute
        try:
            receipt = adapter.execute(context)
        except Exception as e:
            # Adapters must not raise; anything that escapes becomes a failure
            logger.error("Adapter %s raised during execution: %s", action.adapter, e)
            receipt = Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unexpected error: {e}",
            )

        if not receipt.duration_ms:
            receipt.duration_ms = int((time.monotonic() - start_time) * 1000)

        return receipt

    # ── Read-only probes ─────────────────────────────────────────

    def path_exists(self, path: str) -> bool:
        """Ask the filesystem adapter whether ``path`` exists.

        Probes are read-only, so they run even during a dry-run.
        """
        receipt = self.execute_action(
            Action(
                id=f"{PROBE_PREFIX}exists:{path}",
                adapter="filesystem",
                params={"operation": "exists", "path": path},
            )
        )
        return receipt.ok and bool(receipt.metadata.get("exists"))

    def which(self, binary: str) -> str | None:
        """Ask the shell adapter for the path of ``binary`` on PATH."""
        receipt = self.execute_action(
            Action(
                id=f"{PROBE_PREFIX}which:{binary}",
                adapter="shell",
                params={"operation": "which", "binary": binary},
            )
        )
        return receipt.output if receipt.ok and receipt.output else None

    def read_text(self, path: str) -> str | None:
        """Read a text file through the filesystem adapter, or None."""
        receipt = self.execute_action(
            Action(
                id=f"{PROBE_PREFIX}read:{path}",
                adapter="filesystem",
                params={"operation": "read", "path": path},
            )
        )
        return receipt.output if receipt.ok else None
