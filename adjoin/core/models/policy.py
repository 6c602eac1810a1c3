"""
JoinPolicy — site policy read from adjoin.yml.

Everything the lab scripts hard-coded (artifact locations, group names,
the accounts the verifier looks up) lives here with the same defaults,
so a missing policy file reproduces the stock behavior.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class PrimaryAgentPolicy(BaseModel):
    """Centrify DirectControl install and join settings."""

    artifact_dir: str = "/tmp/centrify-install"
    package_glob: str = "CentrifyDC*"
    zone: str = "Auto Zone"
    adjoin_path: str = "/usr/sbin/adjoin"
    service: str = "centrifydc"

    @field_validator("adjoin_path")
    @classmethod
    def _absolute_adjoin(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError(f"adjoin_path must be an absolute path, got {v!r}")
        return v


class FallbackBrokerPolicy(BaseModel):
    """realmd/SSSD settings."""

    sssd_conf: str = "/etc/sssd/sssd.conf"
    use_fully_qualified_names: bool = False
    fallback_homedir: str = "/home/%u"
    default_shell: str = "/bin/bash"
    gpo_access_control: str = "permissive"
    debug_level: int = 3
    service: str = "sssd"


class SshPolicy(BaseModel):
    config_path: str = "/etc/ssh/sshd_config"
    gssapi: bool = True
    allow_groups: list[str] = Field(
        default_factory=lambda: ["root", "sudo", "linux-admins", "linux-users"]
    )
    # Groups that are local accounts and never domain-qualified.
    local_groups: list[str] = Field(default_factory=lambda: ["root", "sudo", "wheel"])
    services: list[str] = Field(default_factory=lambda: ["sshd", "ssh"])


class SudoPolicy(BaseModel):
    dropin_path: str = "/etc/sudoers.d/ad-admins"
    groups: list[str] = Field(default_factory=lambda: ["linux-admins", "sudo-users"])
    nopasswd_users: list[str] = Field(default_factory=lambda: ["linuxadmin"])
    validate_with_visudo: bool = True


class PamPolicy(BaseModel):
    session_file: str = "/etc/pam.d/common-session"
    pam_dir: str = "/etc/pam.d"
    mkhomedir_line: str = "session required pam_mkhomedir.so skel=/etc/skel/ umask=0077"
    # PAM modules that indicate AD-aware authentication.
    ad_modules: list[str] = Field(
        default_factory=lambda: ["pam_sss", "pam_centrifydc", "pam_lsass"]
    )


class KerberosPolicy(BaseModel):
    """krb5.conf written before the join; off leaves the distribution's file alone."""

    manage: bool = True
    config_path: str = "/etc/krb5.conf"
    ticket_lifetime: str = "24h"
    renew_lifetime: str = "7d"


class VerifyPolicy(BaseModel):
    admin_account: str = "Administrator"
    test_account: str = "testuser1"
    admin_group: str = "linux-admins"
    builtin_group: str = "Domain Users"
    probe_timeout: float = 3.0


class JoinPolicy(BaseModel):
    """Root of adjoin.yml."""

    qualify_names: bool = False
    command_timeout: int = 1800
    primary: PrimaryAgentPolicy = Field(default_factory=PrimaryAgentPolicy)
    fallback: FallbackBrokerPolicy = Field(default_factory=FallbackBrokerPolicy)
    kerberos: KerberosPolicy = Field(default_factory=KerberosPolicy)
    ssh: SshPolicy = Field(default_factory=SshPolicy)
    sudo: SudoPolicy = Field(default_factory=SudoPolicy)
    pam: PamPolicy = Field(default_factory=PamPolicy)
    verify: VerifyPolicy = Field(default_factory=VerifyPolicy)
