"""
adjoin — CLI entrypoint.

Usage:
    adjoin --help
    adjoin join [--backend auto|primary|fallback]
    adjoin verify [HOSTNAME] [--json] [--strict]
    adjoin config check
    adjoin backends
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from adjoin import __version__
from adjoin.core.observability.logging_config import setup_logging
from adjoin.ui.cli import report

_BACKEND_CHOICES = {
    "auto": None,
    "primary": "primary-agent",
    "fallback": "fallback-broker",
}


@click.group()
@click.version_option(version=__version__, prog_name="adjoin")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to network-config.env (default: auto-detect).",
)
@click.option(
    "--policy",
    "policy_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to adjoin.yml site policy (default: next to the env file).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
    policy_path: str | None,
) -> None:
    """adjoin — join Linux hosts to Active Directory and verify the result."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None
    ctx.obj["policy_path"] = Path(policy_path) if policy_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("ADJOIN_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("ADJOIN_LOG_FILE"),
        log_file_level=os.environ.get("ADJOIN_LOG_FILE_LEVEL"),
    )


# ── join ────────────────────────────────────────────────────────


@cli.command()
@click.option(
    "--backend",
    type=click.Choice(list(_BACKEND_CHOICES)),
    default="auto",
    show_default=True,
    help="Force a backend instead of selecting by package availability.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def join(ctx: click.Context, backend: str, as_json: bool) -> None:
    """Join this host to the configured Active Directory domain."""
    from adjoin.core.models.domain import Backend
    from adjoin.core.use_cases.join import run_join

    choice = _BACKEND_CHOICES[backend]
    forced = Backend(choice) if choice else None
    quiet = ctx.obj.get("quiet", False)

    if not as_json and not quiet:
        report.status("Starting Active Directory join...")

    result = run_join(
        config_path=ctx.obj.get("config_path"),
        policy_path=ctx.obj.get("policy_path"),
        backend=forced,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else 1)

    if result.backend and not quiet:
        report.info(f"Backend: {result.backend.label}")
    for warn in result.warnings:
        report.warning(warn)

    if result.error:
        report.error(result.error)
        sys.exit(1)

    assert result.outcome is not None  # guaranteed when no error
    report.status(result.outcome.detail)
    if not quiet:
        for path in result.prepared:
            report.info(f"Updated {path}")
    if result.configure and not quiet:
        for path in result.configure.changed:
            report.info(f"Updated {path}")
        for action in result.configure.actions:
            report.info(f"Ran {action}")
        for unit in result.configure.restarted:
            report.info(f"Restarted {unit}")
    if not quiet:
        report.status("Join complete. Run 'adjoin verify' to check the result.")


# ── verify ──────────────────────────────────────────────────────


@cli.command()
@click.argument("hostname", required=False)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--strict", is_flag=True, help="Exit 1 when the verdict is failure.")
@click.pass_context
def verify(ctx: click.Context, hostname: str | None, as_json: bool, strict: bool) -> None:
    """Verify that this host is properly joined to the domain."""
    from adjoin.core.engine.catalog import category_titles
    from adjoin.core.models.check import Verdict
    from adjoin.core.use_cases.verify import run_verify

    result = run_verify(
        config_path=ctx.obj.get("config_path"),
        policy_path=ctx.obj.get("policy_path"),
        hostname=hostname,
    )

    if result.error:
        if as_json:
            click.echo(json.dumps(result.to_dict(), indent=2))
        else:
            report.error(result.error)
        sys.exit(1)

    verification = result.report
    assert verification is not None  # guaranteed when no error

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        report.render_report(
            verification, titles=category_titles(), verbose=ctx.obj.get("verbose", False),
        )

    if strict and verification.verdict is Verdict.FAILURE:
        sys.exit(1)


# ── config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate network-config.env and adjoin.yml."""
    from adjoin.core.use_cases.config_check import check_config

    result = check_config(
        config_path=ctx.obj.get("config_path"),
        policy_path=ctx.obj.get("policy_path"),
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)

    if result.valid:
        assert result.ctx is not None  # guaranteed when valid
        report.status(f"Configuration is valid: {result.config_path}")
        report.info(f"Domain:  {result.ctx.domain_name} (realm {result.ctx.realm})")
        report.info(f"DC:      {result.ctx.dc_fqdn} ({result.ctx.dc_ip})")
        report.info(f"OU:      {result.ctx.ou}")
        report.info(f"Admin:   {result.ctx.admin.user}")
    else:
        for err in result.errors:
            report.error(err)

    for warn in result.warnings:
        report.warning(warn)

    if not result.valid:
        sys.exit(1)


# ── backends ────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def backends(ctx: click.Context, as_json: bool) -> None:
    """Show which identity backends are available on this host."""
    from adjoin.adapters.registry import build_registry
    from adjoin.core.config.loader import ConfigError, load_policy
    from adjoin.core.errors import PreconditionError
    from adjoin.core.services.platform import detect_platform

    try:
        policy = load_policy(ctx.obj.get("policy_path"))
    except ConfigError as e:
        report.error(str(e))
        sys.exit(1)

    try:
        platform = detect_platform()
    except PreconditionError as e:
        platform = None
        if not as_json:
            report.warning(str(e))

    registry = build_registry(policy=policy, platform=platform)
    status = registry.adapter_status()

    if as_json:
        click.echo(json.dumps(status, indent=2))
        return

    for name, info in status.items():
        available = "available" if info["prerequisites_present"] else "unavailable"
        installed = "installed" if info["installed"] else "not installed"
        report.info(f"{info['label']} ({name}): {available}, {installed}")


if __name__ == "__main__":
    cli()
