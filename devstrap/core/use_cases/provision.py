"""
Provision use case — load settings, run the pipeline, record the run.

This is the top-level orchestrator behind ``devstrap``, ``devstrap run``
and ``devstrap plan``: the full vertical slice from config file to an
audited pipeline run.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from devstrap.adapters.registry import AdapterRegistry
from devstrap.core.config.loader import ConfigError, load_settings
from devstrap.core.engine.pipeline import PipelineReport, run_pipeline
from devstrap.core.models.settings import Settings
from devstrap.core.observability.banner import Emitter, banner
from devstrap.core.persistence.audit import AuditEntry, AuditWriter

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Result of a provisioning run."""

    report: PipelineReport | None = None
    settings: Settings | None = None
    ledger_path: Path | None = None
    mock_mode: bool = False
    messages: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error:
            return 1
        return self.report.exit_code if self.report else 0

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["mock_mode"] = self.mock_mode
        result["ledger_path"] = str(self.ledger_path) if self.ledger_path else None
        result["messages"] = self.messages
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def build_registry(mock_mode: bool = False) -> AdapterRegistry:
    """The adapter registry for a real machine."""
    from devstrap.adapters.archive.unpack import ArchiveAdapter
    from devstrap.adapters.net.http import HttpAdapter
    from devstrap.adapters.shell.command import ShellCommandAdapter
    from devstrap.adapters.shell.filesystem import FilesystemAdapter
    from devstrap.adapters.vcs.git import GitAdapter

    registry = AdapterRegistry(mock_mode=mock_mode)
    registry.register(ShellCommandAdapter())
    registry.register(FilesystemAdapter())
    registry.register(HttpAdapter())
    registry.register(ArchiveAdapter())
    registry.register(GitAdapter())
    return registry


def ledger_for(settings: Settings) -> AuditWriter:
    return AuditWriter(state_dir=Path(settings.expand(settings.state_dir)))


def provision(
    config_path: Path | None = None,
    dotfiles_repo: str | None = None,
    dry_run: bool = False,
    mock_mode: bool = False,
    registry: AdapterRegistry | None = None,
    settings: Settings | None = None,
    emit: Emitter | None = None,
    env: Mapping[str, str] | None = None,
    record: bool = True,
) -> ProvisionResult:
    """Provision the machine (or plan it, with ``dry_run``).

    Args:
        config_path: Optional explicit path to config.yml.
        dotfiles_repo: Dotfiles repository override (``--dotfiles-repo``).
        dry_run: If True, evaluate guards but mutate nothing.
        mock_mode: If True, use mock adapter responses.
        registry: Optional pre-configured adapter registry.
        settings: Optional pre-loaded settings (skips the loader).
        emit: Banner sink. Messages are always also collected on the result.
        env: Environment mapping for config resolution.
        record: If False, don't append the run to the ledger.

    Returns:
        ProvisionResult with the pipeline report.
    """
    result = ProvisionResult(mock_mode=mock_mode)

    # ── Load settings ────────────────────────────────────────────
    if settings is None:
        try:
            settings = load_settings(config_path, env=env, dotfiles_repo=dotfiles_repo)
        except ConfigError as e:
            result.error = str(e)
            return result
    result.settings = settings

    # ── Set up adapter registry ──────────────────────────────────
    if registry is None:
        registry = build_registry(mock_mode=mock_mode)
    elif mock_mode:
        registry.set_mock_mode(True)

    sink = emit if emit is not None else banner

    def _emit(message: str) -> None:
        result.messages.append(message)
        sink(message)

    # ── Run ──────────────────────────────────────────────────────
    report = run_pipeline(settings, registry, dry_run=dry_run, emit=_emit)
    result.report = report

    # ── Persist ──────────────────────────────────────────────────
    if record:
        ledger = ledger_for(settings)
        ledger.write(
            AuditEntry(
                run_id=report.run_id,
                status=report.status,
                dry_run=dry_run,
                stages_total=report.stages_total,
                stages_completed=report.stages_completed,
                failed_stage=report.failed_stage,
                exit_code=report.exit_code,
                duration_ms=report.duration_ms,
                errors=[report.error] if report.error else [],
                context={"mock": mock_mode, "dotfiles_repo": settings.dotfiles.repo},
            )
        )
        result.ledger_path = ledger.path

    return result
