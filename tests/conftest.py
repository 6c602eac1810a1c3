"""
Shared test fixtures and configuration.

Nothing here touches the real host: every host file lives under
tmp_path, commands go through MockCommandRunner, and network probes
are stubbed by the ``offline_network`` fixture where a test needs it.
"""

import socket
import textwrap
from pathlib import Path

import pytest

from adjoin.adapters.mock import MockBackendAdapter, MockCommandRunner
from adjoin.adapters.registry import AdapterRegistry
from adjoin.core.models.domain import AdminCredential, Backend, DomainContext, HostIdentity
from adjoin.core.models.policy import JoinPolicy
from adjoin.core.services.platform import PlatformInfo

ADMIN_PASSWORD = "S3cret!pw"

SSHD_CONFIG = textwrap.dedent("""\
    # sample sshd_config
    Port 22
    #PasswordAuthentication yes
    KbdInteractiveAuthentication no
    UsePAM yes
    #GSSAPIAuthentication no
    X11Forwarding yes

    Match User backup
        PasswordAuthentication no
""")

ENV_FILE = textwrap.dedent("""\
    # lab domain
    DOMAIN_NAME=lab.local
    DOMAIN_REALM=LAB.LOCAL
    DC_IP=10.0.0.10
    DC_FQDN=dc1.lab.local
    DOMAIN_ADMIN_USER=Administrator
    DOMAIN_ADMIN_PASS='S3cret!pw'
    HOST_IP=10.0.0.21
    HOST_FQDN=ubuntu1.lab.local
    HOST_NAME=ubuntu1
""")


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch):
    """Keep adjoin's environment lookups inside the test."""
    for var in (
        "ADJOIN_CONFIG", "ADJOIN_POLICY", "ADJOIN_LOG_FILE", "ADJOIN_LOG_LEVEL",
        "DOMAIN_ADMIN_PASS", "DOMAIN_ADMIN_PASS_FILE",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("ADJOIN_STATE_DIR", str(tmp_path / "state"))


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for the lock and audit ledger."""
    state_dir = tmp_path / "state"
    state_dir.mkdir(exist_ok=True)
    return state_dir


@pytest.fixture
def domain_ctx() -> DomainContext:
    return DomainContext(
        domain_name="lab.local",
        dc_ip="10.0.0.10",
        dc_fqdn="dc1.lab.local",
        admin=AdminCredential(user="Administrator", password=ADMIN_PASSWORD),
        host=HostIdentity(ip="10.0.0.21", fqdn="ubuntu1.lab.local", hostname="ubuntu1"),
    )


@pytest.fixture
def host_root(tmp_path: Path) -> Path:
    """A fake /etc with the files the configurator and probes touch."""
    root = tmp_path / "host"
    (root / "ssh").mkdir(parents=True)
    (root / "ssh" / "sshd_config").write_text(SSHD_CONFIG)
    (root / "pam.d").mkdir()
    (root / "pam.d" / "common-session").write_text("session required pam_unix.so\n")
    (root / "sudoers.d").mkdir()
    (root / "sssd").mkdir()
    (root / "centrify-install").mkdir()
    return root


@pytest.fixture
def policy(host_root: Path) -> JoinPolicy:
    """Default policy with every host path redirected under host_root."""
    return JoinPolicy.model_validate({
        "primary": {"artifact_dir": str(host_root / "centrify-install")},
        "fallback": {"sssd_conf": str(host_root / "sssd" / "sssd.conf")},
        "kerberos": {"config_path": str(host_root / "krb5.conf")},
        "ssh": {"config_path": str(host_root / "ssh" / "sshd_config")},
        "sudo": {"dropin_path": str(host_root / "sudoers.d" / "ad-admins")},
        "pam": {
            "session_file": str(host_root / "pam.d" / "common-session"),
            "pam_dir": str(host_root / "pam.d"),
        },
        "verify": {"probe_timeout": 0.5},
    })


@pytest.fixture
def policy_file(tmp_path: Path, policy: JoinPolicy) -> Path:
    import yaml

    path = tmp_path / "adjoin.yml"
    path.write_text(yaml.safe_dump({"policy": policy.model_dump()}))
    return path


@pytest.fixture
def env_file(tmp_path: Path) -> Path:
    path = tmp_path / "network-config.env"
    path.write_text(ENV_FILE)
    return path


@pytest.fixture
def mock_runner() -> MockCommandRunner:
    return MockCommandRunner()


@pytest.fixture
def debian() -> PlatformInfo:
    return PlatformInfo(distro="ubuntu", version="22.04", family="debian", arch="x86_64")


@pytest.fixture
def make_registry():
    """Build a registry from mock adapters; defaults succeed with artifacts present."""

    def _make(
        primary: MockBackendAdapter | None = None,
        fallback: MockBackendAdapter | None = None,
    ) -> AdapterRegistry:
        registry = AdapterRegistry()
        registry.register(primary or MockBackendAdapter(Backend.PRIMARY_AGENT))
        registry.register(fallback or MockBackendAdapter(Backend.FALLBACK_BROKER))
        return registry

    return _make


@pytest.fixture
def offline_network(monkeypatch):
    """Answer DNS and TCP probes locally: every name resolves, every port is open."""

    class _Conn:
        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

    def fake_getaddrinfo(host, port, *args, **kwargs):
        return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.0.0.10", 0))]

    monkeypatch.setattr(socket, "getaddrinfo", fake_getaddrinfo)
    monkeypatch.setattr(socket, "create_connection", lambda *a, **kw: _Conn())
