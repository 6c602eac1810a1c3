"""
Command runner — execute host commands and capture output.

This is the most fundamental seam: backend adapters and system probes
run every external tool through it and get a CommandResult back.
Tests swap in MockCommandRunner and never touch the host.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from collections.abc import Mapping, Sequence
from pathlib import Path

from adjoin.core.models.command import CommandResult

logger = logging.getLogger(__name__)

REDACTED = "******"


def redact_command(command: Sequence[str], secrets: Sequence[str]) -> list[str]:
    """Copy of *command* with every secret argument masked."""
    masked = []
    for arg in command:
        for secret in secrets:
            if secret and secret in arg:
                arg = arg.replace(secret, REDACTED)
        masked.append(arg)
    return masked


class CommandRunner:
    """Run commands without a shell and capture their output.

    Never raises for process-level problems: a missing binary, a
    timeout or an OS error become a CommandResult with ``error`` set.
    """

    def __init__(self, default_timeout: float = 300):
        self.default_timeout = default_timeout

    def which(self, name: str) -> str | None:
        """Resolve a command name (or absolute path) to an executable path."""
        path = Path(name)
        if path.is_absolute():
            return str(path) if path.is_file() and os.access(path, os.X_OK) else None
        return shutil.which(name)

    def run(
        self,
        command: Sequence[str],
        timeout: float | None = None,
        input_text: str | None = None,
        env: Mapping[str, str] | None = None,
        secrets: Sequence[str] = (),
    ) -> CommandResult:
        """Run *command* and return its result.

        Args:
            command: argv list; never passed through a shell.
            timeout: Seconds before the process is killed.
            input_text: Optional text written to stdin.
            env: Extra environment variables layered over os.environ.
            secrets: Strings masked in logs and in the returned command.
        """
        timeout = timeout if timeout is not None else self.default_timeout
        argv = [str(c) for c in command]
        shown = redact_command(argv, secrets)
        pretty = " ".join(shown)

        run_env = None
        if env:
            run_env = {**os.environ, **env}

        logger.debug("Executing: %s (timeout=%ss)", pretty, timeout)
        start = time.monotonic()

        try:
            proc = subprocess.run(
                argv,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=run_env,
            )
        except FileNotFoundError:
            return CommandResult.not_run(shown, error=f"Command not found: {argv[0]}")
        except subprocess.TimeoutExpired:
            return CommandResult.not_run(
                shown,
                error=f"Command timed out after {timeout}s",
                duration_ms=int((time.monotonic() - start) * 1000),
            )
        except OSError as e:
            return CommandResult.not_run(shown, error=f"Command execution error: {e}")

        elapsed_ms = int((time.monotonic() - start) * 1000)
        result = CommandResult(
            command=shown,
            return_code=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            duration_ms=elapsed_ms,
        )
        if not result.ok:
            logger.debug("  ↳ exited %s: %s", proc.returncode, pretty)
        return result
