"""
Filesystem adapter — file and directory operations.

Provides a receipt-returning interface for the filesystem mutations a
provisioning run makes (directories, symlinks, the shell startup hook,
temp cleanup) so the engine can audit and dry-run them.

Only paths owned by the invoking user are touched here; anything under
a system directory goes through the shell adapter with ``sudo``.
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from devstrap.adapters.base import Adapter, ExecutionContext
from devstrap.core.models.action import Receipt

logger = logging.getLogger(__name__)

VALID_OPERATIONS = frozenset(
    {"exists", "read", "write", "append_line", "mkdir", "symlink", "chmod", "remove"}
)


class FilesystemAdapter(Adapter):
    """File and directory operations with receipts.

    Action params:
        operation (str): One of VALID_OPERATIONS.
        path (str): Target path (absolute).
        content (str): Content to write (for 'write').
        line (str): Line to append (for 'append_line').
        unique (bool): Skip 'append_line' when the line is already present.
        target (str): Link target (for 'symlink').
        mode (int): Permission bits (for 'chmod', default 0o755).
    """

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True  # filesystem is always available

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.operation
        if not operation:
            return False, "Missing required param: 'operation'"

        if operation not in VALID_OPERATIONS:
            return False, (
                f"Unknown operation '{operation}'. Valid: {', '.join(sorted(VALID_OPERATIONS))}"
            )

        if not context.params.get("path"):
            return False, "Missing required param: 'path'"

        if operation == "write" and "content" not in context.params:
            return False, "Missing required param: 'content' for write operation"
        if operation == "append_line" and not context.params.get("line"):
            return False, "Missing required param: 'line' for append_line operation"
        if operation == "symlink" and not context.params.get("target"):
            return False, "Missing required param: 'target' for symlink operation"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.operation
        target = Path(context.params["path"])

        handler = getattr(self, f"_{operation}")
        try:
            return handler(context, target)
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Filesystem error: {e}",
                metadata={"operation": operation, "path": str(target)},
            )

    def _exists(self, ctx: ExecutionContext, target: Path) -> Receipt:
        # lexists: a dangling compatibility link still counts as present
        exists = os.path.lexists(target)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=str(exists),
            metadata={"exists": exists, "is_dir": target.is_dir(), "path": str(target)},
        )

    def _read(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if not target.is_file():
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"File not found: {target}",
            )
        content = target.read_text(encoding="utf-8", errors="replace")
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=content,
            metadata={"path": str(target), "size": len(content)},
        )

    def _write(self, ctx: ExecutionContext, target: Path) -> Receipt:
        content = ctx.params["content"]
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content, encoding="utf-8")
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Written {len(content)} bytes to {target}",
            metadata={"path": str(target), "size": len(content)},
        )

    def _append_line(self, ctx: ExecutionContext, target: Path) -> Receipt:
        line = ctx.params["line"]
        existing = target.read_text(encoding="utf-8") if target.is_file() else ""

        if ctx.params.get("unique") and line in existing.splitlines():
            return Receipt.skip(
                adapter=self.name,
                action_id=ctx.action.id,
                reason=f"Line already present in {target}",
                metadata={"path": str(target)},
            )

        prefix = "" if not existing or existing.endswith("\n") else "\n"
        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open("a", encoding="utf-8") as f:
            f.write(f"{prefix}{line}\n")
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Appended to {target}",
            metadata={"path": str(target)},
        )

    def _mkdir(self, ctx: ExecutionContext, target: Path) -> Receipt:
        target.mkdir(parents=True, exist_ok=True)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Directory created: {target}",
            metadata={"path": str(target)},
        )

    def _symlink(self, ctx: ExecutionContext, target: Path) -> Receipt:
        link_target = ctx.params["target"]
        target.symlink_to(link_target)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Linked {target} -> {link_target}",
            metadata={"path": str(target), "target": link_target},
        )

    def _chmod(self, ctx: ExecutionContext, target: Path) -> Receipt:
        mode = int(ctx.params.get("mode", 0o755))
        target.chmod(mode)
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Mode {oct(mode)} set on {target}",
            metadata={"path": str(target), "mode": mode},
        )

    def _remove(self, ctx: ExecutionContext, target: Path) -> Receipt:
        if target.is_dir() and not target.is_symlink():
            shutil.rmtree(target)
        elif os.path.lexists(target):
            target.unlink()
        else:
            return Receipt.skip(
                adapter=self.name,
                action_id=ctx.action.id,
                reason=f"Nothing to remove at {target}",
            )
        return Receipt.success(
            adapter=self.name,
            action_id=ctx.action.id,
            output=f"Removed {target}",
            metadata={"path": str(target)},
        )
