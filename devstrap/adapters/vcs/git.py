"""
Git adapter — repository clones.

Provisioning only ever performs initial clones (framework plugins, the
dotfiles repository). Updating an existing clone is not an
operation: a re-run must never discard local edits.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import time

from devstrap.adapters.base import Adapter, ExecutionContext
from devstrap.core.models.action import Receipt

logger = logging.getLogger(__name__)


class GitAdapter(Adapter):
    """Git clone operations.

    Action params:
        operation (str): 'clone'.
        url (str): Repository URL.
        dest (str): Target directory.
        depth (int): Optional shallow-clone depth.
        timeout (int): Timeout in seconds (default: none).
    """

    @property
    def name(self) -> str:
        return "git"

    def is_available(self) -> bool:
        return shutil.which("git") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.operation
        if operation != "clone":
            return False, f"Unknown operation '{operation}'. Valid: clone"
        if not context.params.get("url"):
            return False, "Missing required param: 'url'"
        if not context.params.get("dest"):
            return False, "Missing required param: 'dest'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        url = context.params["url"]
        dest = context.params["dest"]
        args = ["clone"]
        if context.params.get("depth"):
            args += ["--depth", str(context.params["depth"])]
        args += [url, dest]
        return self._run_git(context, args)

    # ── Helpers ─────────────────────────────────────────────────

    def _run_git(self, ctx: ExecutionContext, args: list[str]) -> Receipt:
        """Run a git command and wrap the outcome in a receipt."""
        timeout = ctx.params.get("timeout")
        command = ["git", *args]
        logger.debug("Executing: %s", " ".join(command))
        start = time.monotonic()
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error=f"Command timed out after {timeout}s",
                metadata={"command": command},
            )
        except FileNotFoundError:
            return Receipt.failure(
                adapter=self.name,
                action_id=ctx.action.id,
                error="git is not installed",
                metadata={"command": command, "return_code": 127},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        if result.returncode == 0:
            # git clone reports progress on stderr
            return Receipt.success(
                adapter=self.name,
                action_id=ctx.action.id,
                output=(result.stdout or result.stderr).strip(),
                duration_ms=elapsed_ms,
                metadata={"command": command, "return_code": 0},
            )
        return Receipt.failure(
            adapter=self.name,
            action_id=ctx.action.id,
            error=result.stderr.strip() or f"Command exited with code {result.returncode}",
            duration_ms=elapsed_ms,
            metadata={"command": command, "return_code": result.returncode},
        )
