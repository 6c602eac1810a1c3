"""
Verify use case — run the check battery and record the verdict.
"""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from pathlib import Path

from adjoin.adapters.registry import AdapterRegistry, build_registry
from adjoin.adapters.shell.command import CommandRunner
from adjoin.core.config.loader import load_context, load_policy, resolve_config_path
from adjoin.core.engine.verifier import VerificationEngine
from adjoin.core.errors import AdjoinError
from adjoin.core.models.check import VerificationReport
from adjoin.core.observability.logging_config import register_secret
from adjoin.core.persistence.audit import (
    AuditEntry,
    AuditWriter,
    default_state_dir,
    generate_run_id,
)

logger = logging.getLogger(__name__)


@dataclass
class VerifyResult:
    """Result of a verification run."""

    run_id: str = ""
    report: VerificationReport | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"run_id": self.run_id, "error": self.error}
        result = {"run_id": self.run_id}
        if self.report:
            result.update(self.report.to_dict())
        return result


def run_verify(
    config_path: Path | None = None,
    policy_path: Path | None = None,
    hostname: str | None = None,
    registry: AdapterRegistry | None = None,
    runner: CommandRunner | None = None,
    state_dir: Path | None = None,
) -> VerifyResult:
    """Verify this host's domain join.

    Args:
        hostname: Label for the report header; defaults to this host's FQDN.

    Returns:
        VerifyResult; ``error`` is set only when configuration is unusable.
        Check failures are part of the report, never an error.
    """
    result = VerifyResult(run_id=generate_run_id("verify"))

    try:
        env_path = resolve_config_path(config_path)
        ctx = load_context(env_path)
        policy = load_policy(policy_path, search_dir=env_path.parent)
    except AdjoinError as e:
        result.error = str(e)
        return result

    if ctx.admin.has_password:
        register_secret(ctx.admin.secret())

    runner = runner or CommandRunner()
    if registry is None:
        registry = build_registry(runner, policy)

    engine = VerificationEngine(registry, runner, policy)
    target = hostname or ctx.host.fqdn or socket.getfqdn()
    report = engine.run(ctx, target=target)
    result.report = report

    AuditWriter(state_dir=state_dir or default_state_dir()).write(AuditEntry(
        run_id=result.run_id,
        operation="verify",
        domain=ctx.domain_name,
        host=target,
        status=report.verdict.value,
        detail=report.verdict.message,
        passed=report.passed,
        failed=report.failed,
        skipped=report.skipped,
        context={"success_rate": round(report.success_rate, 4)},
    ))
    return result
