"""
Post-join configurator — SSH, sudo and home-directory creation.

Backend-agnostic: it runs once a backend reports itself joined and
edits the same host files whichever product did the join.

Every step is idempotent.  Directives are substituted in place,
inserted lines are guarded, and files are rewritten only when their
content changes, so a second run leaves every file byte-identical.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from adjoin.adapters.shell.command import CommandRunner
from adjoin.adapters.shell.filesystem import (
    apply_directives,
    ensure_line,
    has_directive,
    insert_block,
    read_text,
    write_if_changed,
)
from adjoin.core.errors import ConfigureError
from adjoin.core.models.domain import DomainContext, JoinOutcome
from adjoin.core.models.policy import JoinPolicy

logger = logging.getLogger(__name__)

# sshd applies the first value it sees; a Match block ends the global section.
MATCH_BLOCK = r"^\s*Match\s"
SUDOERS_MODE = 0o440


@dataclass
class ConfigureReport:
    """What a configurator run changed."""

    changed: list[str] = field(default_factory=list)
    actions: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    restarted: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "changed": self.changed,
            "actions": self.actions,
            "warnings": self.warnings,
            "restarted": self.restarted,
        }


class PostJoinConfigurator:
    """Apply SSH, sudo and PAM adjustments after a successful join."""

    def __init__(self, runner: CommandRunner, policy: JoinPolicy | None = None):
        self.runner = runner
        self.policy = policy or JoinPolicy()

    def apply(self, outcome: JoinOutcome, ctx: DomainContext) -> ConfigureReport:
        """Run every step.

        Raises:
            ConfigureError: not joined, a host file is unreadable or
                unwritable, or a sudo drop-in failed validation.
        """
        if not outcome.joined:
            raise ConfigureError("Refusing to configure a host that is not joined")

        report = ConfigureReport()
        self.configure_ssh(ctx, report)
        self.configure_sudo(ctx, report)
        self.configure_mkhomedir(report)
        return report

    def _warn(self, report: ConfigureReport, message: str) -> None:
        logger.warning(message)
        report.warnings.append(message)

    def _ad_name(self, ctx: DomainContext, name: str) -> str:
        if self.policy.qualify_names and name not in self.policy.ssh.local_groups:
            return ctx.qualify(name)
        return name

    # ── SSH ──────────────────────────────────────────────────────

    def render_sshd_config(self, text: str, ctx: DomainContext) -> str:
        """sshd_config *text* with AD login settings applied."""
        directives = {
            "PasswordAuthentication": "PasswordAuthentication yes",
            "KbdInteractiveAuthentication": "KbdInteractiveAuthentication yes",
            "ChallengeResponseAuthentication": "ChallengeResponseAuthentication yes",
            "UsePAM": "UsePAM yes",
        }
        if self.policy.ssh.gssapi:
            directives["GSSAPIAuthentication"] = "GSSAPIAuthentication yes"

        text = apply_directives(text, directives, stop_at=MATCH_BLOCK)

        groups = self.policy.ssh.allow_groups
        if groups and not has_directive(text, "AllowGroups"):
            names = " ".join(self._ad_name(ctx, g) for g in groups)
            text = insert_block(
                text, f"# AD Groups allowed to SSH\nAllowGroups {names}", stop_at=MATCH_BLOCK,
            )
        return text

    def configure_ssh(self, ctx: DomainContext, report: ConfigureReport) -> bool:
        path = Path(self.policy.ssh.config_path)
        current = _read(path)
        if current is None:
            self._warn(report, f"{path} not found — skipping SSH configuration")
            return False

        try:
            changed = write_if_changed(path, self.render_sshd_config(current, ctx))
        except (OSError, UnicodeError) as e:
            raise ConfigureError(f"Cannot write {path}: {e}") from e

        if changed:
            report.changed.append(str(path))
            self._restart_sshd(report)
        return changed

    def _restart_sshd(self, report: ConfigureReport) -> None:
        for unit in self.policy.ssh.services:
            result = self.runner.run(["systemctl", "restart", unit], timeout=60)
            if result.ok:
                logger.info("Restarted %s", unit)
                report.restarted.append(unit)
                return
        self._warn(
            report,
            f"Could not restart SSH ({' / '.join(self.policy.ssh.services)}); "
            "restart it manually to apply the new settings",
        )

    # ── sudo ─────────────────────────────────────────────────────

    def render_sudoers(self, ctx: DomainContext) -> str:
        lines: list[str] = []
        for group in self.policy.sudo.groups:
            name = _sudoers_escape(self._ad_name(ctx, group))
            lines += [f"# Allow AD {group} group to run sudo", f"%{name}    ALL=(ALL)    ALL", ""]
        for user in self.policy.sudo.nopasswd_users:
            name = _sudoers_escape(self._ad_name(ctx, user))
            lines += ["# Allow specific admin user", f"{name}    ALL=(ALL)    NOPASSWD: ALL", ""]
        return "\n".join(lines).rstrip("\n") + "\n"

    def configure_sudo(self, ctx: DomainContext, report: ConfigureReport) -> bool:
        path = Path(self.policy.sudo.dropin_path)
        try:
            changed = write_if_changed(path, self.render_sudoers(ctx), mode=SUDOERS_MODE)
        except (OSError, UnicodeError) as e:
            raise ConfigureError(f"Cannot write {path}: {e}") from e

        if not changed:
            return False

        if self.policy.sudo.validate_with_visudo and self.runner.which("visudo"):
            check = self.runner.run(["visudo", "-cf", str(path)], timeout=30)
            if not check.ok:
                path.unlink(missing_ok=True)
                raise ConfigureError(
                    f"visudo rejected {path} (removed): {check.describe_failure()}"
                )

        report.changed.append(str(path))
        return True

    # ── Home directories ─────────────────────────────────────────

    def configure_mkhomedir(self, report: ConfigureReport) -> bool:
        """Enable home-directory creation at first login."""
        for tool, command in (
            ("pam-auth-update", ["pam-auth-update", "--enable", "mkhomedir"]),
            ("authselect", ["authselect", "enable-feature", "with-mkhomedir"]),
            ("authconfig", ["authconfig", "--enablemkhomedir", "--update"]),
        ):
            if not self.runner.which(tool):
                continue
            result = self.runner.run(command, timeout=60)
            if result.ok:
                report.actions.append(" ".join(command))
                return True
            self._warn(report, f"{tool} failed ({result.describe_failure()}); editing PAM directly")
            break

        path = Path(self.policy.pam.session_file)
        current = _read(path) or ""
        updated = ensure_line(current, self.policy.pam.mkhomedir_line, present_if=r"pam_mkhomedir\.so")
        try:
            changed = write_if_changed(path, updated)
        except (OSError, UnicodeError) as e:
            raise ConfigureError(f"Cannot write {path}: {e}") from e
        if changed:
            report.changed.append(str(path))
        return changed


def _sudoers_escape(name: str) -> str:
    return name.replace(" ", "\\ ")


def _read(path: Path) -> str | None:
    try:
        return read_text(path)
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigureError(f"Cannot read {path}: {e}") from e
