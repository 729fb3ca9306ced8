"""
Adapter base — the protocol contract between engine and machine.

This defines the abstract interface that every adapter must implement.
The engine only talks to adapters through this protocol, never
directly to the package manager, the network, or the filesystem.

Swapping the concrete adapters (real OS, mock, in-memory fake) is what
makes a provisioning run testable and dry-runnable.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from devstrap.core.models.action import Action, Receipt

# Action-id prefix of the registry's read-only probes
PROBE_PREFIX = "probe:"


class ExecutionContext(BaseModel):
    """Everything an adapter needs to execute an action."""

    action: Action
    dry_run: bool = False

    @property
    def params(self) -> dict[str, Any]:
        return self.action.params

    @property
    def operation(self) -> str:
        return str(self.action.params.get("operation", ""))


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform external side effects and return receipts.
    They NEVER raise exceptions — failures are captured in the Receipt.

    To create a new adapter:
        1. Subclass Adapter
        2. Implement name, is_available, validate, execute
        3. Register it in the AdapterRegistry
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'shell', 'filesystem', 'http')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available.

        Should be fast and never raise.
        """

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the action can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the action and return a receipt.

        MUST never raise exceptions. All failures are captured
        in the Receipt with status='failed'.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
