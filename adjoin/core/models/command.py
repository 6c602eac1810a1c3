"""
CommandResult — the outcome of one external command.

Every adapter and probe talks to the host through the command runner,
and the runner hands back one of these.  Never exceptions: a missing
binary, a timeout and a non-zero exit are all captured here.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class CommandResult(BaseModel):
    """Result of running a single command.

    ``return_code`` is None when the process never produced an exit
    status (binary not found, timeout, OS error); ``error`` then says why.
    """

    command: list[str] = Field(default_factory=list)
    return_code: int | None = None

    stdout: str = ""
    stderr: str = ""
    error: str | None = None

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the command ran and exited 0."""
        return self.return_code == 0 and self.error is None

    @property
    def output(self) -> str:
        """Combined stdout and stderr, stripped."""
        return "\n".join(s for s in (self.stdout.strip(), self.stderr.strip()) if s)

    def describe_failure(self) -> str:
        """One-line reason suitable for an error message."""
        if self.error:
            return self.error
        stderr = self.stderr.strip()
        if stderr:
            return stderr.splitlines()[-1]
        return f"exited with code {self.return_code}"

    @classmethod
    def success(cls, command: list[str], stdout: str = "", **kwargs: Any) -> CommandResult:
        """Create a successful result."""
        return cls(command=command, return_code=0, stdout=stdout, **kwargs)

    @classmethod
    def failure(
        cls,
        command: list[str],
        return_code: int = 1,
        stderr: str = "",
        **kwargs: Any,
    ) -> CommandResult:
        """Create a result for a command that exited non-zero."""
        return cls(command=command, return_code=return_code, stderr=stderr, **kwargs)

    @classmethod
    def not_run(cls, command: list[str], error: str, **kwargs: Any) -> CommandResult:
        """Create a result for a command that never produced an exit status."""
        return cls(command=command, return_code=None, error=error, **kwargs)
