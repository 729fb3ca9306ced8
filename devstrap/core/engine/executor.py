"""
Stage executor — runs one stage plan through the adapter registry.

A stage plan is an ordered list of Actions. The executor walks it,
applying each action's execution policy before dispatch:

    render templated {vars} → creates / unless_command guard → dispatch → tolerate? → register

The first failed receipt that is not tolerated fails the stage. After
that only ``always`` actions (temp-file cleanup) still run; nothing is
rolled back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from devstrap.adapters.registry import AdapterRegistry
from devstrap.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


@dataclass
class StagePlan:
    """What a stage intends to do, computed from settings and probes."""

    stage: str
    title: str
    actions: list[Action] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    skip_reason: str = ""

    @property
    def total_actions(self) -> int:
        return len(self.actions)


@dataclass
class StageReport:
    """Result of executing a stage plan."""

    stage: str
    title: str = ""
    receipts: list[Receipt] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    skip_reason: str = ""
    failed_receipt: Receipt | None = None

    @property
    def total(self) -> int:
        return len(self.receipts)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.receipts if r.ok)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.receipts if r.skipped)

    @property
    def tolerated(self) -> int:
        return sum(1 for r in self.receipts if r.metadata.get("tolerated"))

    @property
    def status(self) -> str:
        if self.failed_receipt is not None:
            return "failed"
        if self.skip_reason:
            return "skipped"
        return "ok"

    @property
    def exit_code(self) -> int:
        """0 unless failed; then the failing command's code (or 1)."""
        if self.failed_receipt is None:
            return 0
        return self.failed_receipt.return_code or 1

    def to_dict(self) -> dict:
        return {
            "stage": self.stage,
            "title": self.title,
            "status": self.status,
            "skip_reason": self.skip_reason,
            "total": self.total,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "tolerated": self.tolerated,
            "exit_code": self.exit_code,
            "error": self.failed_receipt.error if self.failed_receipt else None,
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }


def execute_stage(
    plan: StagePlan,
    registry: AdapterRegistry,
    dry_run: bool = False,
) -> StageReport:
    """Execute every action of a stage plan, fail-fast.

    Args:
        plan: The stage plan.
        registry: Adapter registry for dispatch.
        dry_run: If True, evaluate guards but don't execute.

    Returns:
        StageReport with all receipts.
    """
    report = StageReport(
        stage=plan.stage,
        title=plan.title,
        notes=list(plan.notes),
        skip_reason=plan.skip_reason,
    )
    variables: dict[str, str] = {}

    for action in plan.actions:
        if report.failed_receipt is not None and not action.always:
            continue

        label = action.render(variables, strict=False).label
        receipt = run_action(action, registry, variables, dry_run=dry_run)
        report.receipts.append(receipt)

        status_marker = "✓" if receipt.ok else "✗" if receipt.failed else "⊘"
        logger.info("%s %s:%s → %s", status_marker, plan.stage, label, receipt.status)

        if receipt.failed and report.failed_receipt is None:
            report.failed_receipt = receipt

    return report


def run_action(
    action: Action,
    registry: AdapterRegistry,
    variables: dict[str, str],
    dry_run: bool = False,
) -> Receipt:
    """Apply one action's policy and dispatch it.

    ``variables`` is updated in place when the action registers output.
    """
    try:
        action = action.render(variables, strict=not dry_run)
    except KeyError as e:
        return _tolerate(
            action,
            Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"Unresolved variable {{{e.args[0]}}} (an earlier step did not produce it)",
            ),
        )

    # ── Idempotence guards (read-only, evaluated in dry-run too) ─
    if action.creates and registry.path_exists(action.creates):
        return Receipt.skip(
            adapter=action.adapter,
            action_id=action.id,
            reason=f"{action.creates} already exists",
            metadata={"guard": "creates"},
        )
    if action.unless_command:
        found = registry.which(action.unless_command)
        if found:
            return Receipt.skip(
                adapter=action.adapter,
                action_id=action.id,
                reason=f"{action.unless_command} already installed at {found}",
                metadata={"guard": "unless_command"},
            )

    receipt = registry.execute_action(action, dry_run=dry_run)

    if receipt.ok and action.register_as:
        variables[action.register_as] = receipt.output.strip()

    return _tolerate(action, receipt)


def _tolerate(action: Action, receipt: Receipt) -> Receipt:
    """Downgrade a failure to a recorded skip for ``ignore_errors`` actions."""
    if not receipt.failed or not action.ignore_errors:
        return receipt
    logger.debug("Tolerated failure in %s: %s", action.id, receipt.error)
    return Receipt.skip(
        adapter=receipt.adapter,
        action_id=receipt.action_id,
        reason=f"tolerated: {receipt.error}",
        started_at=receipt.started_at,
        duration_ms=receipt.duration_ms,
        metadata={**receipt.metadata, "tolerated": True, "error": receipt.error},
    )
