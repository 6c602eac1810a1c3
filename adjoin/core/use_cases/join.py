"""
Join use case — the full vertical slice of ``adjoin join``.

    preconditions → host lock → select/install → krb5.conf → join → configure → audit

Nothing on the host is touched until root, platform and configuration
checks pass.  Any fatal error stops the run where it happened; the
post-join configurator only runs after a successful join.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from adjoin.adapters.registry import AdapterRegistry, build_registry
from adjoin.adapters.shell.command import CommandRunner
from adjoin.core.config.loader import load_context, load_policy, resolve_config_path
from adjoin.core.engine.configurator import ConfigureReport, PostJoinConfigurator
from adjoin.core.engine.kerberos import write_krb5_conf
from adjoin.core.engine.orchestrator import JoinOrchestrator
from adjoin.core.errors import AdjoinError
from adjoin.core.models.domain import Backend, DomainContext, JoinOutcome
from adjoin.core.models.policy import JoinPolicy
from adjoin.core.observability.logging_config import register_secret
from adjoin.core.persistence.audit import (
    AuditEntry,
    AuditWriter,
    default_state_dir,
    generate_run_id,
)
from adjoin.core.persistence.lock import HostLock
from adjoin.core.services.platform import PlatformInfo, detect_platform, require_root

logger = logging.getLogger(__name__)


@dataclass
class JoinResult:
    """Result of a join run."""

    run_id: str = ""
    ctx: DomainContext | None = None
    backend: Backend | None = None
    outcome: JoinOutcome | None = None
    prepared: list[str] = field(default_factory=list)
    configure: ConfigureReport | None = None
    states: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    duration_ms: int = 0
    error: str | None = None
    error_type: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.outcome is not None and self.outcome.joined

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "run_id": self.run_id,
            "ok": self.ok,
            "domain": self.ctx.domain_name if self.ctx else None,
            "backend": self.backend.value if self.backend else None,
            "states": self.states,
            "prepared": self.prepared,
            "warnings": self.warnings,
            "duration_ms": self.duration_ms,
        }
        if self.outcome:
            result["outcome"] = self.outcome.model_dump(mode="json")
        if self.configure:
            result["configure"] = self.configure.to_dict()
        if self.error:
            result["error"] = self.error
            result["error_type"] = self.error_type
        return result


def check_preconditions() -> PlatformInfo:
    """Root and a supported platform, or PreconditionError."""
    require_root()
    return detect_platform()


def _fail(result: JoinResult, error: AdjoinError) -> JoinResult:
    result.error = str(error)
    result.error_type = type(error).__name__
    logger.debug("Join run stopped: %s", result.error_type)
    return result


def run_join(
    config_path: Path | None = None,
    policy_path: Path | None = None,
    backend: Backend | None = None,
    registry: AdapterRegistry | None = None,
    runner: CommandRunner | None = None,
    state_dir: Path | None = None,
) -> JoinResult:
    """Join this host to the configured domain.

    Args:
        config_path: Explicit network-config.env path.
        policy_path: Explicit adjoin.yml path.
        backend: Operator-forced backend; None selects by availability.
        registry: Pre-built adapter registry (tests inject mocks here).
        runner: Command runner shared by adapters and the configurator.
        state_dir: Where the lock and audit ledger live.

    Returns:
        JoinResult; ``error`` is set when the run stopped on a fatal error.
    """
    result = JoinResult(run_id=generate_run_id("join"))
    start = time.monotonic()

    # ── Configuration ────────────────────────────────────────────
    try:
        env_path = resolve_config_path(config_path)
        ctx = load_context(env_path)
        policy = load_policy(policy_path, search_dir=env_path.parent)
    except AdjoinError as e:
        return _fail(result, e)

    result.ctx = ctx
    if ctx.admin.has_password:
        register_secret(ctx.admin.secret())

    # ── Preconditions ────────────────────────────────────────────
    try:
        platform = check_preconditions()
    except AdjoinError as e:
        return _fail(result, e)

    runner = runner or CommandRunner(default_timeout=policy.command_timeout)
    if registry is None:
        registry = build_registry(runner, policy, platform)

    state_dir = state_dir or default_state_dir()
    lock = HostLock(state_dir)
    try:
        lock.acquire()
    except AdjoinError as e:
        return _fail(result, e)

    try:
        _join_locked(result, ctx, policy, registry, runner, backend)
    finally:
        lock.release()
        result.duration_ms = int((time.monotonic() - start) * 1000)
        _audit(result, state_dir)

    return result


def _join_locked(
    result: JoinResult,
    ctx: DomainContext,
    policy: JoinPolicy,
    registry: AdapterRegistry,
    runner: CommandRunner,
    backend: Backend | None,
) -> None:
    def prepare(_selected: Backend, join_ctx: DomainContext) -> None:
        if policy.kerberos.manage and write_krb5_conf(join_ctx, policy):
            result.prepared.append(policy.kerberos.config_path)

    orchestrator = JoinOrchestrator(registry, before_join=prepare)
    try:
        result.outcome = orchestrator.run(ctx, forced=backend)
    except AdjoinError as e:
        _fail(result, e)
        return
    finally:
        result.backend = orchestrator.backend
        result.states = [s.value for s in orchestrator.history]
        result.warnings.extend(orchestrator.warnings)

    configurator = PostJoinConfigurator(runner, policy)
    try:
        result.configure = configurator.apply(result.outcome, ctx)
    except AdjoinError as e:
        _fail(result, e)
        return
    result.warnings.extend(result.configure.warnings)


def _audit(result: JoinResult, state_dir: Path) -> None:
    ctx = result.ctx
    entry = AuditEntry(
        run_id=result.run_id,
        operation="join",
        domain=ctx.domain_name if ctx else "",
        host=ctx.host.fqdn if ctx else "",
        backend=result.backend.value if result.backend else None,
        status="joined" if result.ok else "failed",
        detail=result.outcome.detail if result.outcome else "",
        duration_ms=result.duration_ms,
        warnings=result.warnings,
        errors=[result.error] if result.error else [],
        context={
            "states": result.states,
            "changed": result.prepared + (result.configure.changed if result.configure else []),
        },
    )
    AuditWriter(state_dir=state_dir).write(entry)
