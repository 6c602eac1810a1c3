"""
Mock adapters — test doubles for backends and the command runner.

Used to simulate success, failure and absence without touching a real
host or a real domain.  Both doubles keep a call log so tests can
assert what was (and was not) invoked.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from adjoin.adapters.base import BackendAdapter
from adjoin.adapters.shell.command import CommandRunner, redact_command
from adjoin.core.errors import InstallError, JoinError
from adjoin.core.models.command import CommandResult
from adjoin.core.models.domain import Backend, BackendStatus, DomainContext


class MockBackendAdapter(BackendAdapter):
    """Configurable backend double.

    By default artifacts are present and install/join succeed.
    """

    def __init__(
        self,
        backend: Backend,
        artifacts: bool = True,
        installed: bool = False,
        install_error: str | None = None,
        join_error: str | None = None,
        service_active: bool = True,
    ):
        super().__init__(runner=MockCommandRunner())
        self._backend = backend
        self._artifacts = artifacts
        self._installed = installed
        self._joined = False
        self._install_error = install_error
        self._join_error = join_error
        self._service_active = service_active
        self._call_log: list[str] = []

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def call_log(self) -> list[str]:
        """Names of every adapter method called, in order."""
        return self._call_log

    def calls(self, method: str) -> int:
        return self._call_log.count(method)

    @property
    def call_count(self) -> int:
        """Number of mutating calls (install + join)."""
        return self.calls("install") + self.calls("join")

    def prerequisites_present(self) -> bool:
        self._call_log.append("prerequisites_present")
        return self._artifacts

    def is_installed(self) -> bool:
        return self._installed

    def install(self, ctx: DomainContext) -> None:
        self._call_log.append("install")
        if self._install_error:
            raise InstallError(self._install_error)
        self._installed = True

    def join(self, ctx: DomainContext) -> str:
        self._call_log.append("join")
        if self._join_error:
            raise JoinError(self._join_error)
        self._joined = True
        return f"[mock] joined {ctx.domain_name}"

    def status(self, ctx: DomainContext) -> BackendStatus:
        self._call_log.append("status")
        return BackendStatus(
            backend=self._backend,
            installed=self._installed,
            joined=self._installed and self._joined,
            service_active=self._installed and self._service_active,
            detail="[mock] status",
        )

    def mark_joined(self) -> None:
        """Pretend a previous run joined this backend."""
        self._installed = True
        self._joined = True

    def reset(self) -> None:
        self._call_log.clear()


class MockCommandRunner(CommandRunner):
    """Command runner that never executes anything.

    Responses are matched by argv prefix: the longest registered prefix
    of the command wins.  Unmatched commands succeed with empty output.
    ``which`` answers from an explicit set of available commands.
    """

    def __init__(
        self,
        available: Sequence[str] = (),
        default_ok: bool = True,
    ):
        super().__init__()
        self._available = set(available)
        self._default_ok = default_ok
        self._responses: dict[tuple[str, ...], CommandResult] = {}
        self._call_log: list[list[str]] = []
        self._inputs: list[str | None] = []

    # ── configuration ─────────────────────────────────────────────

    def set_available(self, *names: str) -> None:
        self._available.update(names)

    def set_unavailable(self, *names: str) -> None:
        self._available.difference_update(names)

    def set_response(self, prefix: Sequence[str], result: CommandResult) -> None:
        self._responses[tuple(prefix)] = result

    def set_output(self, prefix: Sequence[str], stdout: str, return_code: int = 0) -> None:
        self.set_response(
            prefix,
            CommandResult(command=list(prefix), return_code=return_code, stdout=stdout),
        )

    def set_failure(self, prefix: Sequence[str], stderr: str = "mock failure", return_code: int = 1) -> None:
        self.set_response(prefix, CommandResult.failure(list(prefix), return_code, stderr))

    # ── inspection ────────────────────────────────────────────────

    @property
    def call_log(self) -> list[list[str]]:
        return self._call_log

    @property
    def inputs(self) -> list[str | None]:
        """stdin passed to each call, parallel to call_log."""
        return self._inputs

    def called(self, *prefix: str) -> bool:
        return any(tuple(c[: len(prefix)]) == prefix for c in self._call_log)

    # ── CommandRunner interface ───────────────────────────────────

    def which(self, name: str) -> str | None:
        return name if name in self._available else None

    def run(
        self,
        command: Sequence[str],
        timeout: float | None = None,
        input_text: str | None = None,
        env: Mapping[str, str] | None = None,
        secrets: Sequence[str] = (),
    ) -> CommandResult:
        argv = [str(c) for c in command]
        self._call_log.append(redact_command(argv, secrets))
        self._inputs.append(input_text)

        best: tuple[str, ...] | None = None
        for prefix in self._responses:
            if tuple(argv[: len(prefix)]) == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        if best is not None:
            return self._responses[best].model_copy(update={"command": argv})

        if self._default_ok:
            return CommandResult.success(argv)
        return CommandResult.failure(argv, stderr="mock failure")
