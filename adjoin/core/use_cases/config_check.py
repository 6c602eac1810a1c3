"""
Config check use case — validate network-config.env and adjoin.yml.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from adjoin.core.config.loader import (
    ConfigError,
    load_context,
    load_policy,
    resolve_config_path,
)
from adjoin.core.models.domain import DomainContext
from adjoin.core.models.policy import JoinPolicy


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    ctx: DomainContext | None = None
    policy: JoinPolicy | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        data: dict = {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
        }
        if self.ctx:
            data["domain"] = {
                "name": self.ctx.domain_name,
                "realm": self.ctx.realm,
                "netbios": self.ctx.netbios,
                "dc_ip": self.ctx.dc_ip,
                "dc_fqdn": self.ctx.dc_fqdn,
                "ou": self.ctx.ou,
                "admin_user": self.ctx.admin.user,
                "admin_password_set": self.ctx.admin.has_password,
                "host": self.ctx.host.model_dump(),
            }
        return data


def check_config(
    config_path: Path | None = None,
    policy_path: Path | None = None,
) -> ConfigCheckResult:
    """Validate configuration and report issues without touching the host."""
    result = ConfigCheckResult()

    try:
        result.config_path = resolve_config_path(config_path)
        result.ctx = load_context(result.config_path)
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    try:
        result.policy = load_policy(policy_path, search_dir=result.config_path.parent)
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    ctx, policy = result.ctx, result.policy

    # Semantic checks
    if not ctx.admin.has_password:
        result.warnings.append(
            "No administrator password (DOMAIN_ADMIN_PASS / DOMAIN_ADMIN_PASS_FILE): "
            "the join will prompt or fail, and the Kerberos check will be skipped."
        )

    if not ctx.dc_fqdn.lower().endswith("." + ctx.domain_name):
        result.warnings.append(
            f"DC_FQDN {ctx.dc_fqdn} is not inside domain {ctx.domain_name}."
        )

    if not ctx.host.ip:
        result.warnings.append("Host IP not set (HOST_IP or <TARGET_HOST>_IP).")

    artifact_dir = Path(policy.primary.artifact_dir)
    if not artifact_dir.is_dir():
        result.warnings.append(
            f"Primary agent artifact directory {artifact_dir} does not exist; "
            "join will use the fallback broker."
        )

    if not policy.ssh.allow_groups:
        result.warnings.append("ssh.allow_groups is empty; no AllowGroups directive will be added.")

    result.valid = len(result.errors) == 0
    return result
