"""
Console rendering — status tags, the verification report, join results.

Rendering only: nothing here computes a count or a verdict.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime

import click

from adjoin.core.models.check import CheckResult, CheckStatus, Verdict, VerificationReport

RULE = "=" * 42
SECTION_RULE = "-" * 40

_STATUS_TAGS = {
    CheckStatus.PASS: ("[PASS]", "green"),
    CheckStatus.FAIL: ("[FAIL]", "red"),
    CheckStatus.SKIP: ("[SKIP]", "yellow"),
}

_VERDICT_COLORS = {
    Verdict.SUCCESS: "green",
    Verdict.PARTIAL: "yellow",
    Verdict.FAILURE: "red",
}


# ── Status tags ─────────────────────────────────────────────────


def status(message: str) -> None:
    click.secho("[*] ", fg="green", nl=False)
    click.echo(message)


def warning(message: str) -> None:
    click.secho("[!] ", fg="yellow", nl=False)
    click.echo(message)


def error(message: str) -> None:
    click.secho("[x] ", fg="red", nl=False, err=True)
    click.echo(message, err=True)


def info(message: str) -> None:
    click.secho("[i] ", fg="blue", nl=False)
    click.echo(message)


# ── Verification report ─────────────────────────────────────────


def render_header(report: VerificationReport) -> None:
    click.echo()
    click.echo(RULE)
    click.echo("  Active Directory Join Verification")
    click.echo(RULE)
    click.echo()
    click.echo(f"Hostname:    {report.target}")
    click.echo(f"Date:        {_local_time(report.generated_at)}")
    click.echo(f"Domain:      {report.domain}")
    click.echo()


def render_result(result: CheckResult, verbose: bool = False) -> None:
    tag, color = _STATUS_TAGS[result.status]
    click.secho(f"{tag} ", fg=color, nl=False)
    click.echo(result.name)
    if result.detail and (verbose or result.status is not CheckStatus.PASS):
        click.secho(f"       {result.detail}", dim=True)


def render_sections(
    report: VerificationReport,
    titles: Mapping[str, str] | None = None,
    verbose: bool = False,
) -> None:
    titles = titles or {}
    for category, results in report.by_category().items():
        click.echo(SECTION_RULE)
        click.echo(f"{titles.get(category, category)} Tests")
        click.echo(SECTION_RULE)
        for result in results:
            render_result(result, verbose=verbose)
        click.echo()


def render_summary(report: VerificationReport) -> None:
    click.echo(RULE)
    click.echo("          Verification Summary")
    click.echo(RULE)
    click.echo()
    click.echo("Tests Passed:  ", nl=False)
    click.secho(str(report.passed), fg="green")
    click.echo("Tests Failed:  ", nl=False)
    click.secho(str(report.failed), fg="red")
    click.echo("Tests Skipped: ", nl=False)
    click.secho(str(report.skipped), fg="yellow")
    click.echo()
    if report.passed + report.failed:
        click.echo(f"Success Rate: {report.success_percent}%")
        click.echo()
    click.secho(report.verdict.message, fg=_VERDICT_COLORS[report.verdict], bold=True)
    click.echo()


def render_report(
    report: VerificationReport,
    titles: Mapping[str, str] | None = None,
    verbose: bool = False,
) -> None:
    render_header(report)
    render_sections(report, titles, verbose=verbose)
    render_summary(report)


def _local_time(iso: str) -> str:
    try:
        return datetime.fromisoformat(iso).astimezone().strftime("%a %b %d %H:%M:%S %Z %Y")
    except ValueError:
        return iso
