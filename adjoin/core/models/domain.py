"""
Domain models — what we join, with which backend, and how it went.

DomainContext is built once from the environment file at process start
and is frozen: nothing downstream may mutate it.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator


class Backend(str, Enum):
    """The mutually exclusive identity-integration products."""

    PRIMARY_AGENT = "primary-agent"
    FALLBACK_BROKER = "fallback-broker"

    @property
    def label(self) -> str:
        return _BACKEND_LABELS[self]


_BACKEND_LABELS = {
    Backend.PRIMARY_AGENT: "Centrify DirectControl",
    Backend.FALLBACK_BROKER: "realmd/SSSD",
}


class AdminCredential(BaseModel):
    """Domain administrator used for joins and ticket checks."""

    model_config = ConfigDict(frozen=True)

    user: str = "Administrator"
    password: SecretStr | None = None

    @property
    def has_password(self) -> bool:
        return self.password is not None and bool(self.password.get_secret_value())

    def secret(self) -> str:
        """Plain-text password, or an empty string."""
        return self.password.get_secret_value() if self.password else ""


class HostIdentity(BaseModel):
    """The host being joined."""

    model_config = ConfigDict(frozen=True)

    ip: str = ""
    fqdn: str = ""
    hostname: str = ""


class DomainContext(BaseModel):
    """Immutable description of the target domain and host."""

    model_config = ConfigDict(frozen=True)

    domain_name: str
    realm: str = ""
    netbios: str = ""
    dc_ip: str
    dc_fqdn: str
    dc_hostname: str = ""
    admin: AdminCredential = Field(default_factory=AdminCredential)
    ou: str = ""
    host: HostIdentity = Field(default_factory=HostIdentity)

    @model_validator(mode="before")
    @classmethod
    def _derive_defaults(cls, data: object) -> object:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        domain = str(data.get("domain_name") or "").strip().lower()
        if domain:
            data["domain_name"] = domain
        realm = str(data.get("realm") or "").strip()
        data["realm"] = (realm or domain).upper()
        if not data.get("netbios") and domain:
            data["netbios"] = domain.split(".")[0].upper()
        if not data.get("dc_hostname") and data.get("dc_fqdn"):
            data["dc_hostname"] = str(data["dc_fqdn"]).split(".")[0]
        if not data.get("ou") and domain:
            data["ou"] = default_ou(domain)
        return data

    def qualify(self, name: str) -> str:
        """Domain-qualified form of a user or group name."""
        return f"{name}@{self.domain_name}"

    @property
    def principal(self) -> str:
        """Kerberos principal of the administrator."""
        return f"{self.admin.user}@{self.realm}"


def default_ou(domain_name: str) -> str:
    """Computer OU the original lab used: ``OU=Linux Servers`` under the domain root."""
    dcs = ",".join(f"DC={label}" for label in domain_name.split(".") if label)
    return f"OU=Linux Servers,{dcs}"


class JoinOutcome(BaseModel):
    """Terminal result of driving one backend to a joined state."""

    model_config = ConfigDict(frozen=True)

    backend: Backend
    joined: bool
    detail: str = ""


class BackendStatus(BaseModel):
    """An adapter's own view of its post-join state. Never raises."""

    backend: Backend
    installed: bool = False
    joined: bool = False
    service_active: bool = False
    detail: str = ""
