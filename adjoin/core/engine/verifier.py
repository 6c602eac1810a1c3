"""
Verification engine — run the catalog, collect results, build the report.

Checks run one after another.  A check that raises is recorded as a
Fail carrying the exception text; it never stops the run.  The engine
returns a VerificationReport and never prints anything.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from adjoin.adapters.registry import AdapterRegistry
from adjoin.adapters.shell.command import CommandRunner
from adjoin.core.engine.catalog import (
    CategoryDefinition,
    CheckContext,
    CheckDefinition,
    build_catalog,
)
from adjoin.core.models.check import CheckResult, VerificationReport
from adjoin.core.models.domain import DomainContext
from adjoin.core.models.policy import JoinPolicy
from adjoin.core.services.probes import SystemProbe

logger = logging.getLogger(__name__)


class VerificationEngine:
    """Run an ordered check catalog against one host."""

    def __init__(
        self,
        registry: AdapterRegistry,
        runner: CommandRunner,
        policy: JoinPolicy | None = None,
        catalog: Sequence[CategoryDefinition] | None = None,
    ):
        self.registry = registry
        self.runner = runner
        self.policy = policy or JoinPolicy()
        self.catalog = tuple(catalog) if catalog is not None else build_catalog(self.policy)

    def run(self, ctx: DomainContext, target: str = "") -> VerificationReport:
        cc = CheckContext(
            ctx=ctx,
            policy=self.policy,
            probe=SystemProbe(self.runner, timeout=self.policy.verify.probe_timeout),
            registry=self.registry,
            runner=self.runner,
        )
        results: list[CheckResult] = []

        for category in self.catalog:
            logger.debug("Running category %s", category.name)
            unmet = self._unmet(category, cc)
            for check in category.checks:
                if unmet is not None:
                    result = CheckResult.skipped(check.name, category.name, unmet)
                else:
                    result = self._run_check(check, category, cc)
                results.append(result)

        report = VerificationReport.from_results(
            results, target=target or ctx.host.fqdn, domain=ctx.domain_name,
        )
        logger.info(
            "Verification finished: %d passed, %d failed, %d skipped (%s)",
            report.passed, report.failed, report.skipped, report.verdict.value,
        )
        return report

    @staticmethod
    def _unmet(category: CategoryDefinition, cc: CheckContext) -> str | None:
        """Skip reason when the category's prerequisite does not hold."""
        if category.prerequisite is None:
            return None
        try:
            if category.prerequisite(cc):
                return None
        except Exception as e:
            logger.debug("Prerequisite for %s raised: %s", category.name, e)
            return f"{category.unmet or 'prerequisite unavailable'} ({e})"
        return category.unmet or "prerequisite not met"

    @staticmethod
    def _run_check(
        check: CheckDefinition,
        category: CategoryDefinition,
        cc: CheckContext,
    ) -> CheckResult:
        try:
            outcome = check.run(cc)
        except Exception as e:
            logger.debug("Check %r raised", check.name, exc_info=True)
            return CheckResult.failed(check.name, category.name, f"error: {e}")
        logger.debug("%s: %s %s", check.name, outcome.status.value, outcome.detail)
        return CheckResult(
            name=check.name,
            category=category.name,
            status=outcome.status,
            detail=outcome.detail,
        )
