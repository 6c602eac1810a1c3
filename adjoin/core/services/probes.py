"""
System probes — single, bounded checks against the host and the domain.

Each probe returns a ProbeOutcome (pass / fail / skip + detail) and
never raises: tool absence is a Skip, a negative answer is a Fail.
Everything that shells out goes through the CommandRunner, so tests
drive probes with MockCommandRunner.

Parsing of tool output (host, dig, timedatectl, realm, getent ...)
stays in this module.
"""

from __future__ import annotations

import logging
import socket
from pathlib import Path
from typing import NamedTuple

from adjoin.adapters.shell.command import CommandRunner
from adjoin.core.models.check import CheckStatus

logger = logging.getLogger(__name__)

# Private in-memory credential cache: the ticket probe must not touch
# the operator's own cache.
PRIVATE_CCACHE = "MEMORY:"


class ProbeOutcome(NamedTuple):
    status: CheckStatus
    detail: str = ""

    @classmethod
    def ok(cls, detail: str = "") -> ProbeOutcome:
        return cls(CheckStatus.PASS, detail)

    @classmethod
    def fail(cls, detail: str = "") -> ProbeOutcome:
        return cls(CheckStatus.FAIL, detail)

    @classmethod
    def skip(cls, detail: str = "") -> ProbeOutcome:
        return cls(CheckStatus.SKIP, detail)


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return ""


class SystemProbe:
    """Probe primitives bound to one runner and one timeout."""

    def __init__(self, runner: CommandRunner, timeout: float = 3.0):
        self.runner = runner
        self.timeout = timeout

    # ── DNS ──────────────────────────────────────────────────────

    def resolve(self, hostname: str) -> ProbeOutcome:
        """Forward lookup through the system resolver."""
        try:
            infos = socket.getaddrinfo(hostname, None)
        except (socket.gaierror, UnicodeError) as e:
            return ProbeOutcome.fail(f"{hostname}: {e}")
        addresses = sorted({info[4][0] for info in infos})
        return ProbeOutcome.ok(f"{hostname} → {', '.join(addresses)}")

    def srv_record(self, name: str) -> ProbeOutcome:
        """SRV lookup with ``host`` or ``dig``; Skip when neither exists."""
        if self.runner.which("host"):
            result = self.runner.run(["host", "-t", "SRV", name], timeout=self.timeout)
            if result.ok and "has SRV record" in result.stdout:
                return ProbeOutcome.ok(_first_line(result.stdout))
            return ProbeOutcome.fail(result.output or f"no SRV record for {name}")

        if self.runner.which("dig"):
            result = self.runner.run(["dig", "+short", name, "SRV"], timeout=self.timeout)
            records = [
                line.strip() for line in result.stdout.splitlines()
                if line.strip() and not line.startswith(";")
            ]
            if result.ok and records:
                return ProbeOutcome.ok(records[0])
            return ProbeOutcome.fail(f"no SRV record for {name}")

        return ProbeOutcome.skip("neither host nor dig is installed")

    # ── Network ──────────────────────────────────────────────────

    def ping(self, address: str) -> ProbeOutcome:
        if not self.runner.which("ping"):
            return ProbeOutcome.skip("ping not installed")
        wait = str(max(1, int(self.timeout)))
        result = self.runner.run(
            ["ping", "-c", "1", "-W", wait, address], timeout=self.timeout + 2,
        )
        if result.ok:
            return ProbeOutcome.ok(f"{address} answered")
        return ProbeOutcome.fail(f"{address}: {result.describe_failure()}")

    def tcp_port(self, address: str, port: int) -> ProbeOutcome:
        """Open (and immediately close) a TCP connection."""
        try:
            with socket.create_connection((address, port), timeout=self.timeout):
                pass
        except OSError as e:
            return ProbeOutcome.fail(f"{address}:{port} {e}")
        return ProbeOutcome.ok(f"{address}:{port} open")

    # ── Time ─────────────────────────────────────────────────────

    def ntp_synchronized(self) -> ProbeOutcome:
        if not self.runner.which("timedatectl"):
            return ProbeOutcome.skip("timedatectl not installed")
        result = self.runner.run(
            ["timedatectl", "show", "--property=NTPSynchronized", "--value"],
            timeout=self.timeout,
        )
        value = result.stdout.strip().lower()
        if not result.ok or value not in ("yes", "no"):
            return ProbeOutcome.skip("NTP synchronization status unknown")
        if value == "yes":
            return ProbeOutcome.ok("NTPSynchronized=yes")
        return ProbeOutcome.fail("NTPSynchronized=no; Kerberos needs clocks within 5 minutes")

    # ── Membership ───────────────────────────────────────────────

    def realm_membership(self, domain: str) -> ProbeOutcome:
        result = self.runner.run(["realm", "list"], timeout=self.timeout * 5)
        if not result.ok:
            return ProbeOutcome.fail(f"realm list: {result.describe_failure()}")
        listed = result.stdout.strip()
        if not listed:
            return ProbeOutcome.fail("realm list reports no joined realm")
        if domain.lower() not in listed.lower():
            return ProbeOutcome.fail(f"joined realm is not {domain}: {_first_line(listed)}")
        return ProbeOutcome.ok(_first_line(listed))

    def service_active(self, *units: str) -> ProbeOutcome:
        """Pass if any of *units* is active."""
        for unit in units:
            result = self.runner.run(
                ["systemctl", "is-active", "--quiet", unit], timeout=self.timeout,
            )
            if result.ok:
                return ProbeOutcome.ok(f"{unit} is active")
        return ProbeOutcome.fail(f"{' / '.join(units)} not running")

    # ── Kerberos ─────────────────────────────────────────────────

    def kerberos_ticket(self, principal: str, password: str) -> ProbeOutcome:
        """Obtain and release a ticket in a private credential cache.

        Without a password the caller's existing ticket, if any, is
        accepted instead.
        """
        if not password:
            if self.runner.which("klist") and self.runner.run(["klist", "-s"], timeout=self.timeout).ok:
                return ProbeOutcome.ok("valid Kerberos ticket already in cache")
            return ProbeOutcome.skip("no administrator password provided")
        if not self.runner.which("kinit"):
            return ProbeOutcome.skip("kinit not installed")

        env = {"KRB5CCNAME": PRIVATE_CCACHE}
        result = self.runner.run(
            ["kinit", principal],
            timeout=self.timeout * 5,
            input_text=f"{password}\n",
            env=env,
            secrets=[password],
        )
        if not result.ok:
            return ProbeOutcome.fail(f"kinit {principal}: {result.describe_failure()}")

        self.runner.run(["kdestroy"], timeout=self.timeout, env=env)
        return ProbeOutcome.ok(f"obtained ticket for {principal}")

    # ── Identity ─────────────────────────────────────────────────

    def user_lookup(self, *names: str) -> ProbeOutcome:
        """Pass if ``id`` resolves any of *names* (short, then qualified)."""
        for name in names:
            result = self.runner.run(["id", name], timeout=self.timeout)
            if result.ok:
                return ProbeOutcome.ok(_first_line(result.stdout) or name)
        return ProbeOutcome.fail(f"no such user: {' / '.join(names)}")

    def group_lookup(self, *names: str) -> ProbeOutcome:
        for name in names:
            result = self.runner.run(["getent", "group", name], timeout=self.timeout)
            if result.ok and result.stdout.strip():
                return ProbeOutcome.ok(_first_line(result.stdout))
        return ProbeOutcome.fail(f"no such group: {' / '.join(names)}")

    # ── Files ────────────────────────────────────────────────────

    def pam_module(self, pam_dir: Path, modules: list[str]) -> ProbeOutcome:
        """Pass if any file in *pam_dir* references one of *modules*."""
        if not pam_dir.is_dir():
            return ProbeOutcome.fail(f"{pam_dir} does not exist")
        for path in sorted(pam_dir.iterdir()):
            if not path.is_file():
                continue
            try:
                text = path.read_text(encoding="utf-8", errors="replace")
            except OSError:
                continue
            for module in modules:
                if module in text:
                    return ProbeOutcome.ok(f"{module} referenced in {path.name}")
        return ProbeOutcome.fail(f"no AD PAM module ({', '.join(modules)}) in {pam_dir}")

    def nonempty_file(self, path: Path) -> ProbeOutcome:
        if not path.is_file():
            return ProbeOutcome.fail(f"{path} not found")
        try:
            rules = [
                line for line in path.read_text(encoding="utf-8").splitlines()
                if line.strip() and not line.lstrip().startswith("#")
            ]
        except OSError as e:
            return ProbeOutcome.fail(f"{path}: {e}")
        if not rules:
            return ProbeOutcome.fail(f"{path} is empty")
        return ProbeOutcome.ok(f"{path} ({len(rules)} rule(s))")
