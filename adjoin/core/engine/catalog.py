"""
Verification catalog — the fixed, ordered battery of post-join checks.

Categories run in the order listed here and checks run in order within
a category.  A category may carry a prerequisite (e.g. "SSSD is
installed"); when it is unmet, every check in the category is reported
as Skip without being run.

    dns              DC hostname, _ldap._tcp SRV, _kerberos._tcp SRV
    network          ping DC, TCP 389, TCP 88
    time             NTP synchronized
    realm            realm membership             (realmd installed)
    primary-agent    membership, service          (agent installed)
    fallback-broker  membership, service          (SSSD installed)
    kerberos         ticket acquisition
    identity         admin account, test account
    groups           admin group, built-in group
    ssh              sshd running, AD PAM module
    sudo             AD sudo drop-in
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from adjoin.adapters.registry import AdapterRegistry
from adjoin.adapters.shell.command import CommandRunner
from adjoin.core.models.check import CheckStatus
from adjoin.core.models.domain import Backend, BackendStatus, DomainContext
from adjoin.core.models.policy import JoinPolicy
from adjoin.core.services.probes import ProbeOutcome, SystemProbe

LDAP_PORT = 389
KERBEROS_PORT = 88


@dataclass
class CheckContext:
    """Everything a check may look at. One instance per verification run."""

    ctx: DomainContext
    policy: JoinPolicy
    probe: SystemProbe
    registry: AdapterRegistry
    runner: CommandRunner
    _status: dict[Backend, BackendStatus] = field(default_factory=dict)

    def backend_status(self, backend: Backend) -> BackendStatus:
        """Adapter status, queried once per run."""
        if backend not in self._status:
            self._status[backend] = self.registry.require(backend).status(self.ctx)
        return self._status[backend]

    def backend_installed(self, backend: Backend) -> bool:
        adapter = self.registry.get(backend)
        return adapter is not None and adapter.is_installed()

    def names(self, name: str) -> tuple[str, str]:
        """Short and domain-qualified forms, preferred form first."""
        qualified = self.ctx.qualify(name.lower())
        if self.policy.qualify_names:
            return qualified, name
        return name, qualified


CheckFn = Callable[[CheckContext], ProbeOutcome]


@dataclass(frozen=True)
class CheckDefinition:
    name: str
    run: CheckFn


@dataclass(frozen=True)
class CategoryDefinition:
    name: str
    title: str
    checks: tuple[CheckDefinition, ...]
    prerequisite: Callable[[CheckContext], bool] | None = None
    unmet: str = ""


# ── Check implementations ───────────────────────────────────────


def _membership(backend: Backend) -> CheckFn:
    def check(cc: CheckContext) -> ProbeOutcome:
        status = cc.backend_status(backend)
        if status.joined:
            return ProbeOutcome.ok(_summary(status.detail))
        return ProbeOutcome.fail(_summary(status.detail) or "not joined")
    return check


def _service(backend: Backend, unit: str) -> CheckFn:
    def check(cc: CheckContext) -> ProbeOutcome:
        if cc.backend_status(backend).service_active:
            return ProbeOutcome.ok(f"{unit} is active")
        return ProbeOutcome.fail(f"{unit} is not running")
    return check


def _summary(detail: str) -> str:
    lines = [line.strip() for line in detail.splitlines() if line.strip()]
    return lines[0] if lines else ""


def _optional_group(name: str) -> CheckFn:
    def check(cc: CheckContext) -> ProbeOutcome:
        outcome = cc.probe.group_lookup(*cc.names(name))
        if outcome.status is CheckStatus.FAIL:
            return ProbeOutcome.skip(f"{name} group not found (may be expected)")
        return outcome
    return check


def build_catalog(policy: JoinPolicy) -> tuple[CategoryDefinition, ...]:
    """The ordered catalog, with account and group names from *policy*."""
    verify = policy.verify
    primary_service = policy.primary.service
    fallback_service = policy.fallback.service

    return (
        CategoryDefinition("dns", "DNS Resolution", (
            CheckDefinition("DC hostname resolves", lambda cc: cc.probe.resolve(cc.ctx.dc_fqdn)),
            CheckDefinition(
                "LDAP SRV record",
                lambda cc: cc.probe.srv_record(f"_ldap._tcp.{cc.ctx.domain_name}"),
            ),
            CheckDefinition(
                "Kerberos SRV record",
                lambda cc: cc.probe.srv_record(f"_kerberos._tcp.{cc.ctx.domain_name}"),
            ),
        )),
        CategoryDefinition("network", "Network Connectivity", (
            CheckDefinition("DC reachable via ping", lambda cc: cc.probe.ping(cc.ctx.dc_ip)),
            CheckDefinition(
                f"LDAP port {LDAP_PORT} open",
                lambda cc: cc.probe.tcp_port(cc.ctx.dc_ip, LDAP_PORT),
            ),
            CheckDefinition(
                f"Kerberos port {KERBEROS_PORT} open",
                lambda cc: cc.probe.tcp_port(cc.ctx.dc_ip, KERBEROS_PORT),
            ),
        )),
        CategoryDefinition("time", "Time Synchronization", (
            CheckDefinition("NTP synchronization", lambda cc: cc.probe.ntp_synchronized()),
        )),
        CategoryDefinition(
            "realm", "Domain Membership (realm)",
            (CheckDefinition(
                "Domain-joined (realm)",
                lambda cc: cc.probe.realm_membership(cc.ctx.domain_name),
            ),),
            prerequisite=lambda cc: cc.runner.which("realm") is not None,
            unmet="realmd not installed",
        ),
        CategoryDefinition(
            Backend.PRIMARY_AGENT.value, "Centrify Status",
            (
                CheckDefinition("Domain-joined (Centrify)", _membership(Backend.PRIMARY_AGENT)),
                CheckDefinition(
                    "Centrify service running",
                    _service(Backend.PRIMARY_AGENT, primary_service),
                ),
            ),
            prerequisite=lambda cc: cc.backend_installed(Backend.PRIMARY_AGENT),
            unmet="Centrify not installed",
        ),
        CategoryDefinition(
            Backend.FALLBACK_BROKER.value, "SSSD Status",
            (
                CheckDefinition("Domain online (SSSD)", _membership(Backend.FALLBACK_BROKER)),
                CheckDefinition(
                    "SSSD service running",
                    _service(Backend.FALLBACK_BROKER, fallback_service),
                ),
            ),
            prerequisite=lambda cc: cc.backend_installed(Backend.FALLBACK_BROKER),
            unmet="SSSD not installed",
        ),
        CategoryDefinition("kerberos", "Kerberos Authentication", (
            CheckDefinition(
                "Kerberos ticket acquisition",
                lambda cc: cc.probe.kerberos_ticket(cc.ctx.principal, cc.ctx.admin.secret()),
            ),
        )),
        CategoryDefinition("identity", "User Lookup", (
            CheckDefinition(
                f"{verify.admin_account} user found",
                lambda cc: cc.probe.user_lookup(*cc.names(verify.admin_account)),
            ),
            CheckDefinition(
                f"{verify.test_account} user found",
                lambda cc: cc.probe.user_lookup(*cc.names(verify.test_account)),
            ),
        )),
        CategoryDefinition("groups", "Group Lookup", (
            CheckDefinition(
                f"{verify.admin_group} group found",
                lambda cc: cc.probe.group_lookup(*cc.names(verify.admin_group)),
            ),
            CheckDefinition(f"{verify.builtin_group} group found", _optional_group(verify.builtin_group)),
        )),
        CategoryDefinition("ssh", "SSH Configuration", (
            CheckDefinition(
                "SSH service running",
                lambda cc: cc.probe.service_active(*cc.policy.ssh.services),
            ),
            CheckDefinition(
                "PAM configured for AD authentication",
                lambda cc: cc.probe.pam_module(Path(cc.policy.pam.pam_dir), cc.policy.pam.ad_modules),
            ),
        )),
        CategoryDefinition("sudo", "Sudo Configuration", (
            CheckDefinition(
                "AD admin sudoers file",
                lambda cc: cc.probe.nonempty_file(Path(cc.policy.sudo.dropin_path)),
            ),
        )),
    )


def category_titles(policy: JoinPolicy | None = None) -> dict[str, str]:
    """Section titles keyed by category name, in catalog order."""
    return {c.name: c.title for c in build_catalog(policy or JoinPolicy())}
