"""
Centrify DirectControl adapter — the primary enterprise agent.

Packages are licensed and cannot be fetched automatically: the
operator drops CentrifyDC packages into the artifact directory.  Their
presence is what makes this backend selectable.

Action surface:
    install  → dpkg -i / yum localinstall of the dropped packages
    join     → /usr/sbin/adjoin --zone ... --container <OU> <domain>
    status   → adinfo ("Joined to domain") + centrifydc service
"""

from __future__ import annotations

import logging
from pathlib import Path

from adjoin.adapters.base import BackendAdapter
from adjoin.core.errors import InstallError, JoinError
from adjoin.core.models.domain import Backend, BackendStatus, DomainContext

logger = logging.getLogger(__name__)

JOINED_MARKER = "Joined to domain"


class CentrifyAdapter(BackendAdapter):
    """Drive Centrify DirectControl through install and join."""

    @property
    def backend(self) -> Backend:
        return Backend.PRIMARY_AGENT

    # ── Artifacts ────────────────────────────────────────────────

    def artifacts(self) -> list[Path]:
        """Vendor packages present in the artifact directory."""
        directory = Path(self.policy.primary.artifact_dir)
        if not directory.is_dir():
            return []
        suffixes = (".deb", ".rpm")
        if self.platform is not None:
            suffixes = (self.platform.package_suffix,)
        try:
            return sorted(
                p for p in directory.glob(self.policy.primary.package_glob)
                if p.is_file() and p.suffix in suffixes
            )
        except OSError:
            return []

    def prerequisites_present(self) -> bool:
        found = self.artifacts()
        if found:
            logger.debug("Found Centrify packages: %s", ", ".join(p.name for p in found))
        return bool(found)

    def is_installed(self) -> bool:
        return self.runner.which("adinfo") is not None

    # ── Install / join ───────────────────────────────────────────

    def install(self, ctx: DomainContext) -> None:
        if self.platform is None:
            raise InstallError("Platform not detected; cannot choose a package manager")

        packages = [str(p) for p in self.artifacts()]
        if not packages:
            raise InstallError(
                f"Centrify packages not found in {self.policy.primary.artifact_dir}"
            )

        logger.info("Installing Centrify from %d package(s)", len(packages))
        timeout = self.policy.command_timeout
        env = self.platform.package_env
        result = self.runner.run(
            self.platform.local_install_command(packages), timeout=timeout, env=env,
        )

        if not result.ok and self.platform.family == "debian":
            # dpkg leaves unmet dependencies behind; let apt resolve them.
            logger.warning("dpkg reported errors, resolving dependencies with apt-get")
            result = self.runner.run(
                ["apt-get", "install", "-f", "-y"], timeout=timeout, env=env,
            )

        if not result.ok:
            raise InstallError(f"Centrify install failed: {result.describe_failure()}")

    def join(self, ctx: DomainContext) -> str:
        adjoin = self.policy.primary.adjoin_path
        if self.runner.which(adjoin) is None:
            raise JoinError(f"Centrify join utility not found: {adjoin}")

        password = ctx.admin.secret()
        command = [
            adjoin,
            "--zone", self.policy.primary.zone,
            "--container", ctx.ou,
            "--user", ctx.admin.user,
        ]
        if password:
            command += ["--password", password]
        command.append(ctx.domain_name)

        logger.info("Joining %s using Centrify (zone %r)", ctx.domain_name, self.policy.primary.zone)
        result = self.runner.run(
            command, timeout=self.policy.command_timeout, secrets=[password],
        )
        if not result.ok:
            raise JoinError(f"Centrify join failed: {result.describe_failure()}")

        return f"Joined {ctx.domain_name} using Centrify"

    # ── Status ───────────────────────────────────────────────────

    def status(self, ctx: DomainContext) -> BackendStatus:
        status = BackendStatus(backend=self.backend)
        try:
            if not self.is_installed():
                status.detail = "Centrify not installed"
                return status
            status.installed = True

            info = self.runner.run(["adinfo"], timeout=self.policy.verify.probe_timeout * 5)
            status.joined = info.ok and JOINED_MARKER in info.stdout
            status.detail = info.stdout.strip() or info.describe_failure()

            svc = self.runner.run(
                ["systemctl", "is-active", "--quiet", self.policy.primary.service],
                timeout=self.policy.verify.probe_timeout,
            )
            status.service_active = svc.ok
        except Exception as e:
            logger.debug("Centrify status probe raised: %s", e)
            status.detail = f"status error: {e}"
        return status
