"""
realmd/SSSD adapter — the open-source fallback broker.

Always installable from distribution repositories, which is why it is
the fallback when the primary agent's packages are absent.

Action surface:
    install  → apt-get/yum install of sssd, realmd, adcli, ...
    join     → realm discover + realm join, then sssd.conf and restart
    status   → sssctl domain-status + sssd service
"""

from __future__ import annotations

import logging
from pathlib import Path

from adjoin.adapters.base import BackendAdapter
from adjoin.adapters.shell.filesystem import write_if_changed
from adjoin.core.errors import InstallError, JoinError
from adjoin.core.models.domain import Backend, BackendStatus, DomainContext

logger = logging.getLogger(__name__)

PACKAGES: dict[str, list[str]] = {
    "debian": [
        "sssd", "sssd-ad", "sssd-tools", "realmd", "adcli", "krb5-user",
        "packagekit", "samba-common", "samba-common-bin", "samba-libs",
        "oddjob", "oddjob-mkhomedir",
    ],
    "rhel": [
        "sssd", "sssd-ad", "sssd-tools", "realmd", "adcli", "krb5-workstation",
        "samba-common", "samba-common-tools", "oddjob", "oddjob-mkhomedir",
    ],
}

SSSD_BINARIES = ("/usr/sbin/sssd", "sssd")


class SssdAdapter(BackendAdapter):
    """Drive realmd/SSSD through install and join."""

    @property
    def backend(self) -> Backend:
        return Backend.FALLBACK_BROKER

    def prerequisites_present(self) -> bool:
        # Repositories provide the packages; a package manager is all we need.
        return any(self.runner.which(pm) for pm in ("apt-get", "yum", "dnf"))

    def is_installed(self) -> bool:
        return any(self.runner.which(b) for b in SSSD_BINARIES)

    # ── Install / join ───────────────────────────────────────────

    def install(self, ctx: DomainContext) -> None:
        if self.platform is None:
            raise InstallError("Platform not detected; cannot choose a package manager")

        packages = PACKAGES[self.platform.family]
        logger.info("Installing SSSD packages: %s", " ".join(packages))
        result = self.runner.run(
            self.platform.install_command(packages),
            timeout=self.policy.command_timeout,
            env=self.platform.package_env,
        )
        if not result.ok:
            raise InstallError(f"SSSD install failed: {result.describe_failure()}")

    def join(self, ctx: DomainContext) -> str:
        timeout = self.policy.command_timeout

        discover = self.runner.run(["realm", "discover", ctx.domain_name], timeout=timeout)
        if not discover.ok:
            logger.warning(
                "Domain discovery failed (%s). Attempting join anyway...",
                discover.describe_failure(),
            )

        password = ctx.admin.secret()
        result = self.runner.run(
            [
                "realm", "join",
                f"--user={ctx.admin.user}",
                f"--computer-ou={ctx.ou}",
                ctx.domain_name,
            ],
            timeout=timeout,
            input_text=f"{password}\n" if password else None,
            secrets=[password],
        )
        if not result.ok:
            raise JoinError(f"realm join failed: {result.describe_failure()}")

        self.write_config(ctx)

        for command in (["systemctl", "enable", self.policy.fallback.service],
                        ["systemctl", "restart", self.policy.fallback.service]):
            svc = self.runner.run(command, timeout=timeout)
            if not svc.ok:
                raise JoinError(f"{' '.join(command)} failed: {svc.describe_failure()}")

        return f"Joined {ctx.domain_name} using realmd/SSSD"

    def render_config(self, ctx: DomainContext) -> str:
        """sssd.conf content for *ctx*."""
        fb = self.policy.fallback
        domain = ctx.domain_name
        return f"""\
[sssd]
services = nss, pam, ssh, sudo
config_file_version = 2
domains = {domain}

[domain/{domain}]
ad_domain = {domain}
krb5_realm = {ctx.realm}
realmd_tags = manages-system joined-with-adcli
cache_credentials = True
id_provider = ad
access_provider = ad
auth_provider = ad
chpass_provider = ad

use_fully_qualified_names = {fb.use_fully_qualified_names}
fallback_homedir = {fb.fallback_homedir}
default_shell = {fb.default_shell}

ldap_id_mapping = True
ldap_schema = ad
ldap_idmap_range_min = 200000
ldap_idmap_range_max = 2000200000
ldap_idmap_range_size = 200000

enumerate = False
ldap_referrals = False

ad_gpo_access_control = {fb.gpo_access_control}

debug_level = {fb.debug_level}

[nss]
filter_groups = root
filter_users = root

[pam]
offline_credentials_expiration = 7

[sudo]
"""

    def write_config(self, ctx: DomainContext) -> bool:
        """Write sssd.conf (mode 0600). Returns True if it changed."""
        path = Path(self.policy.fallback.sssd_conf)
        try:
            return write_if_changed(path, self.render_config(ctx), mode=0o600)
        except OSError as e:
            raise JoinError(f"Cannot write {path}: {e}") from e

    # ── Status ───────────────────────────────────────────────────

    def status(self, ctx: DomainContext) -> BackendStatus:
        status = BackendStatus(backend=self.backend)
        try:
            if not self.is_installed():
                status.detail = "SSSD not installed"
                return status
            status.installed = True

            status.joined, status.detail = self._membership(ctx)

            svc = self.runner.run(
                ["systemctl", "is-active", "--quiet", self.policy.fallback.service],
                timeout=self.policy.verify.probe_timeout,
            )
            status.service_active = svc.ok
        except Exception as e:
            logger.debug("SSSD status probe raised: %s", e)
            status.detail = f"status error: {e}"
        return status

    def _membership(self, ctx: DomainContext) -> tuple[bool, str]:
        """Domain membership, trying sssctl, sssd.conf, then ``realm list``.

        sssctl and the 0600 sssd.conf both need root; ``realm list``
        answers for unprivileged users.
        """
        timeout = self.policy.verify.probe_timeout * 5

        if self.runner.which("sssctl"):
            domain = self.runner.run(["sssctl", "domain-status", ctx.domain_name], timeout=timeout)
            if domain.ok:
                return "Online status: Online" in domain.stdout, domain.stdout.strip()
            logger.debug("sssctl domain-status failed: %s", domain.describe_failure())

        conf = Path(self.policy.fallback.sssd_conf)
        try:
            text = conf.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("Cannot read %s: %s", conf, e)
        else:
            return f"[domain/{ctx.domain_name}]" in text, f"{ctx.domain_name} configured in {conf}"

        listed = self.runner.run(["realm", "list"], timeout=timeout)
        if listed.ok and ctx.domain_name.lower() in listed.stdout.lower():
            return True, f"realm list: {ctx.domain_name} joined"
        if not listed.ok:
            return False, f"realm list: {listed.describe_failure()}"
        return False, f"{ctx.domain_name} not listed by realm list"
