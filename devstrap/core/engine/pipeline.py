"""
Provisioning pipeline — runs the stages in order, fail-fast.

For every stage:

    plan (probes see earlier stages' effects) → banner(title)
        → skip reason?  → banner(reason), next stage
        → execute       → failed? stop; no later stage is planned
        → notes         → banner(note) for each

A completed run ends with the completion banner. The pipeline never
rolls back: a failed run leaves earlier stages' effects in place, and
re-running is safe because every stage is guarded.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from devstrap.adapters.registry import AdapterRegistry
from devstrap.core.engine.executor import StageReport, execute_stage
from devstrap.core.models.settings import Settings
from devstrap.core.observability.banner import Emitter, banner
from devstrap.core.stages import ALL_STAGES, Stage

logger = logging.getLogger(__name__)

COMPLETION_MESSAGE = (
    "✅ Setup complete! Please restart your terminal or log out and back in "
    "to apply all changes."
)
DRY_RUN_MESSAGE = "Dry run complete. No changes were made."


@dataclass
class PipelineReport:
    """Outcome of one pipeline run."""

    run_id: str
    dry_run: bool = False
    stages: list[StageReport] = field(default_factory=list)
    stages_total: int = 0
    failed_stage: str | None = None
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.failed_stage is None

    @property
    def status(self) -> str:
        return "ok" if self.ok else "failed"

    @property
    def exit_code(self) -> int:
        for report in self.stages:
            if report.status == "failed":
                return report.exit_code
        return 0

    @property
    def error(self) -> str | None:
        for report in self.stages:
            if report.failed_receipt is not None:
                return report.failed_receipt.error
        return None

    @property
    def stages_completed(self) -> int:
        return sum(1 for r in self.stages if r.status != "failed")

    def get_stage(self, name: str) -> StageReport | None:
        for report in self.stages:
            if report.stage == name:
                return report
        return None

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "dry_run": self.dry_run,
            "status": self.status,
            "exit_code": self.exit_code,
            "failed_stage": self.failed_stage,
            "error": self.error,
            "stages_total": self.stages_total,
            "stages_completed": self.stages_completed,
            "duration_ms": self.duration_ms,
            "stages": [r.to_dict() for r in self.stages],
        }


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"run-{now}-{short}"


def run_pipeline(
    settings: Settings,
    registry: AdapterRegistry,
    stages: Sequence[Stage] = ALL_STAGES,
    dry_run: bool = False,
    emit: Emitter = banner,
    run_id: str | None = None,
) -> PipelineReport:
    """Run ``stages`` in order against ``registry``.

    Args:
        settings: Desired machine state.
        registry: Adapter registry (real, fake, or mock).
        stages: Stages to run, in order.
        dry_run: If True, plan and evaluate guards but mutate nothing.
        emit: Banner sink for operator-facing progress messages.
        run_id: Optional run ID (generated if not provided).

    Returns:
        PipelineReport; ``failed_stage`` names the stage that stopped it.
    """
    report = PipelineReport(
        run_id=run_id or generate_run_id(),
        dry_run=dry_run,
        stages_total=len(stages),
    )
    start = time.monotonic()
    logger.info("Pipeline %s starting (%d stages, dry_run=%s)", report.run_id, len(stages), dry_run)

    for stage in stages:
        plan = stage.plan(settings, registry)
        emit(plan.title)
        for warning in plan.warnings:
            logger.warning("%s: %s", stage.name, warning)

        if plan.skip_reason:
            emit(plan.skip_reason)

        stage_report = execute_stage(plan, registry, dry_run=dry_run)
        report.stages.append(stage_report)

        if stage_report.status == "failed":
            report.failed_stage = stage.name
            logger.error(
                "Stage '%s' failed: %s",
                stage.name,
                stage_report.failed_receipt.error if stage_report.failed_receipt else "unknown error",
            )
            break

        if not dry_run:
            for note in plan.notes:
                emit(note)

    report.duration_ms = int((time.monotonic() - start) * 1000)

    if report.ok:
        emit(DRY_RUN_MESSAGE if dry_run else COMPLETION_MESSAGE)

    logger.info(
        "Pipeline %s finished: %s (%d/%d stages, %dms)",
        report.run_id,
        report.status,
        report.stages_completed,
        report.stages_total,
        report.duration_ms,
    )
    return report
