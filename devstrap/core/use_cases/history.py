"""History use case — recent runs from the ledger."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from devstrap.core.config.loader import ConfigError, load_settings
from devstrap.core.persistence.audit import AuditEntry
from devstrap.core.use_cases.provision import ledger_for


@dataclass
class HistoryResult:
    entries: list[AuditEntry] = field(default_factory=list)
    total: int = 0
    ledger_path: Path | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        return {
            "ledger_path": str(self.ledger_path) if self.ledger_path else None,
            "total": self.total,
            "entries": [e.model_dump(mode="json") for e in self.entries],
        }


def get_history(
    config_path: Path | None = None,
    limit: int = 10,
    env: Mapping[str, str] | None = None,
) -> HistoryResult:
    result = HistoryResult()
    try:
        settings = load_settings(config_path, env=env)
    except ConfigError as e:
        result.error = str(e)
        return result

    ledger = ledger_for(settings)
    result.ledger_path = ledger.path
    result.total = ledger.entry_count()
    result.entries = ledger.read_recent(limit)
    return result
