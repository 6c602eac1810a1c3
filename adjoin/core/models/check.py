"""
Check results and the verification report.

The report is an explicit accumulator: the verification engine builds
it once from the ordered results and the reporter only renders it.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Failure counts at or below this band are tolerated as environment noise.
PARTIAL_MAX_FAILURES = 2


class CheckStatus(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    SKIP = "skip"


class Verdict(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"

    @property
    def message(self) -> str:
        return _VERDICT_MESSAGES[self]


_VERDICT_MESSAGES = {
    Verdict.SUCCESS: "All tests passed! AD join appears successful.",
    Verdict.PARTIAL: "Most tests passed. Review failed tests above.",
    Verdict.FAILURE: "Multiple tests failed. AD join may have issues.",
}


class CheckResult(BaseModel):
    """Outcome of one named check."""

    model_config = ConfigDict(frozen=True)

    name: str
    category: str
    status: CheckStatus
    detail: str = ""

    @classmethod
    def passed(cls, name: str, category: str, detail: str = "") -> CheckResult:
        return cls(name=name, category=category, status=CheckStatus.PASS, detail=detail)

    @classmethod
    def failed(cls, name: str, category: str, detail: str = "") -> CheckResult:
        return cls(name=name, category=category, status=CheckStatus.FAIL, detail=detail)

    @classmethod
    def skipped(cls, name: str, category: str, detail: str = "") -> CheckResult:
        return cls(name=name, category=category, status=CheckStatus.SKIP, detail=detail)


def classify(failed: int) -> Verdict:
    """Map a failure count onto its verdict band."""
    if failed == 0:
        return Verdict.SUCCESS
    if failed <= PARTIAL_MAX_FAILURES:
        return Verdict.PARTIAL
    return Verdict.FAILURE


class VerificationReport(BaseModel):
    """Aggregate of a verification run. Computed once, never mutated."""

    model_config = ConfigDict(frozen=True)

    target: str = ""
    domain: str = ""
    generated_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())

    results: tuple[CheckResult, ...] = ()
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    success_rate: float = 0.0
    verdict: Verdict = Verdict.SUCCESS

    @classmethod
    def from_results(
        cls,
        results: list[CheckResult] | tuple[CheckResult, ...],
        target: str = "",
        domain: str = "",
    ) -> VerificationReport:
        """Aggregate an ordered result sequence into a report."""
        passed = failed = skipped = 0
        for result in results:
            if result.status is CheckStatus.PASS:
                passed += 1
            elif result.status is CheckStatus.FAIL:
                failed += 1
            else:
                skipped += 1

        attempted = passed + failed
        rate = passed / attempted if attempted else 0.0

        return cls(
            target=target,
            domain=domain,
            results=tuple(results),
            passed=passed,
            failed=failed,
            skipped=skipped,
            success_rate=rate,
            verdict=classify(failed),
        )

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success_percent(self) -> int:
        """Success rate as a truncated whole percentage."""
        return int(self.success_rate * 100)

    def by_category(self) -> dict[str, list[CheckResult]]:
        """Results grouped by category, preserving run order."""
        grouped: dict[str, list[CheckResult]] = {}
        for result in self.results:
            grouped.setdefault(result.category, []).append(result)
        return grouped

    def to_dict(self) -> dict[str, Any]:
        return {
            "target": self.target,
            "domain": self.domain,
            "generated_at": self.generated_at,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "total": self.total,
            "success_rate": round(self.success_rate, 4),
            "verdict": self.verdict.value,
            "results": [r.model_dump(mode="json") for r in self.results],
        }
