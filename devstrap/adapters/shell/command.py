"""
Shell command adapter — execute commands, captured or on the terminal.

This is the most fundamental adapter: every package-manager call,
``chsh``, ``snap install`` and ``sudo install`` goes through it.

Commands are argument lists, never shell strings. Elevated commands are
prefixed with ``sudo`` unless the process already runs as root; sudo
prompts on the controlling terminal, so no password ever passes through
this process.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from pathlib import Path

from devstrap.adapters.base import Adapter, ExecutionContext
from devstrap.core.models.action import Receipt

logger = logging.getLogger(__name__)

# Receipts keep the tail of long outputs (apt upgrade can be huge)
_OUTPUT_TAIL = 2000


class ShellCommandAdapter(Adapter):
    """Execute commands and capture output.

    Action params:
        operation (str): 'run' (default) or 'which'.
        command (list[str]): The argv to execute (for 'run').
        binary (str): Binary name to resolve on PATH (for 'which').
        sudo (bool): Run with elevated privilege (default: False).
        stdout_path (str): Write the command's stdout to this file.
        interactive (bool): Inherit the terminal instead of capturing
            output, so prompts (sudo, PAM, dpkg conffiles) reach the user.
        timeout (int): Timeout in seconds (default: none).
        cwd (str): Working directory.
        env (dict): Extra environment variables.
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.operation or "run"
        if operation == "which":
            if not context.params.get("binary"):
                return False, "Missing required param: 'binary'"
            return True, ""

        if operation != "run":
            return False, f"Unknown operation '{operation}'. Valid: run, which"

        command = context.params.get("command")
        if not command or not isinstance(command, list):
            return False, "Missing required param: 'command' (argument list)"

        if context.params.get("interactive") and context.params.get("stdout_path"):
            return False, "'interactive' and 'stdout_path' are mutually exclusive"

        cwd = context.params.get("cwd")
        if cwd and not Path(cwd).is_dir():
            return False, f"Working directory does not exist: {cwd}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        if context.operation == "which":
            return self._which(context)
        return self._run(context)

    def _which(self, context: ExecutionContext) -> Receipt:
        binary = context.params["binary"]
        found = shutil.which(binary)
        if found is None:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"{binary} not found on PATH",
            )
        return Receipt.success(adapter=self.name, action_id=context.action.id, output=found)

    def _run(self, context: ExecutionContext) -> Receipt:
        params = context.params
        command = [str(part) for part in params["command"]]
        if params.get("sudo") and os.geteuid() != 0:
            command = ["sudo"] + command
        timeout = params.get("timeout")
        stdout_path = params.get("stdout_path")
        interactive = bool(params.get("interactive"))

        env = None
        if params.get("env"):
            env = os.environ.copy()
            env.update({k: str(v) for k, v in params["env"].items()})

        logger.debug("Executing: %s", " ".join(command))
        start = time.monotonic()

        try:
            result = subprocess.run(
                command,
                cwd=params.get("cwd"),
                env=env,
                capture_output=not interactive,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command timed out after {timeout}s",
                metadata={"command": command, "timeout": timeout},
            )
        except FileNotFoundError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command not found: {e.filename or command[0]}",
                metadata={"command": command, "return_code": 127},
            )
        except Exception as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command execution error: {e}",
                metadata={"command": command},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = result.stdout or ""
        stderr = (result.stderr or "").strip()

        if result.returncode != 0:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=stderr or f"Command exited with code {result.returncode}",
                duration_ms=elapsed_ms,
                metadata={
                    "command": command,
                    "return_code": result.returncode,
                    "stdout": stdout.strip()[-_OUTPUT_TAIL:],
                },
            )

        if stdout_path:
            try:
                target = Path(stdout_path)
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(stdout, encoding="utf-8")
            except OSError as e:
                return Receipt.failure(
                    adapter=self.name,
                    action_id=context.action.id,
                    error=f"Cannot write output to {stdout_path}: {e}",
                    metadata={"command": command},
                )
            output = f"Wrote {len(stdout)} bytes to {stdout_path}"
        else:
            output = stdout.strip()[-_OUTPUT_TAIL:]

        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=output,
            duration_ms=elapsed_ms,
            metadata={
                "command": command,
                "return_code": result.returncode,
                "stderr": stderr[-_OUTPUT_TAIL:],
            },
        )
