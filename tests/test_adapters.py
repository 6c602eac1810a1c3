"""
Tests for the command runner, adapter registry, mocks, and the
Centrify and SSSD backend adapters.
"""

import stat
from pathlib import Path

import pytest

from adjoin.adapters.identity.centrify import CentrifyAdapter
from adjoin.adapters.identity.sssd import SssdAdapter
from adjoin.adapters.mock import MockBackendAdapter, MockCommandRunner
from adjoin.adapters.registry import AdapterRegistry, build_registry
from adjoin.adapters.shell.command import REDACTED, CommandRunner, redact_command
from adjoin.core.errors import InstallError, JoinError
from adjoin.core.models.command import CommandResult
from adjoin.core.models.domain import Backend

# ── Command runner ───────────────────────────────────────────────────


class TestCommandRunner:
    def test_success(self):
        result = CommandRunner().run(["sh", "-c", "echo hello"])
        assert result.ok
        assert result.stdout.strip() == "hello"
        assert result.duration_ms >= 0

    def test_nonzero_exit(self):
        result = CommandRunner().run(["sh", "-c", "echo oops >&2; exit 3"])
        assert not result.ok
        assert result.return_code == 3
        assert result.describe_failure() == "oops"

    def test_stdin(self):
        result = CommandRunner().run(["cat"], input_text="piped\n")
        assert result.stdout == "piped\n"

    def test_env_layered(self):
        result = CommandRunner().run(["sh", "-c", "echo $ADJOIN_TEST_VAR"], env={"ADJOIN_TEST_VAR": "x1"})
        assert result.stdout.strip() == "x1"

    def test_missing_binary(self):
        result = CommandRunner().run(["definitely-not-a-real-binary-xyz"])
        assert not result.ok
        assert result.return_code is None
        assert "not found" in result.error

    def test_timeout(self):
        result = CommandRunner().run(["sleep", "5"], timeout=0.2)
        assert not result.ok
        assert "timed out" in result.error

    def test_secrets_redacted_in_result(self):
        result = CommandRunner().run(["echo", "--password", "hunter2"], secrets=["hunter2"])
        assert result.command == ["echo", "--password", REDACTED]

    def test_which_absolute(self, tmp_path: Path):
        script = tmp_path / "tool"
        script.write_text("#!/bin/sh\n")
        assert CommandRunner().which(str(script)) is None
        script.chmod(0o755)
        assert CommandRunner().which(str(script)) == str(script)


class TestRedact:
    def test_masks_inside_arguments(self):
        assert redact_command(["--pw=abc", "x"], ["abc"]) == [f"--pw={REDACTED}", "x"]

    def test_ignores_empty_secret(self):
        assert redact_command(["a"], [""]) == ["a"]


# ── Mocks ────────────────────────────────────────────────────────────


class TestMockCommandRunner:
    def test_default_success(self, mock_runner):
        assert mock_runner.run(["anything"]).ok
        assert mock_runner.called("anything")

    def test_longest_prefix_wins(self, mock_runner):
        mock_runner.set_output(["systemctl"], "generic")
        mock_runner.set_failure(["systemctl", "restart", "sshd"], "boom")
        assert mock_runner.run(["systemctl", "status"]).stdout == "generic"
        assert not mock_runner.run(["systemctl", "restart", "sshd"]).ok

    def test_default_fail(self):
        runner = MockCommandRunner(default_ok=False)
        assert not runner.run(["x"]).ok

    def test_which(self, mock_runner):
        assert mock_runner.which("realm") is None
        mock_runner.set_available("realm")
        assert mock_runner.which("realm") == "realm"
        mock_runner.set_unavailable("realm")
        assert mock_runner.which("realm") is None

    def test_records_inputs_and_redacts(self, mock_runner):
        mock_runner.run(["kinit", "--pw", "pw1"], input_text="pw1\n", secrets=["pw1"])
        assert mock_runner.call_log == [["kinit", "--pw", REDACTED]]
        assert mock_runner.inputs == ["pw1\n"]


class TestMockBackendAdapter:
    def test_call_log(self, domain_ctx):
        adapter = MockBackendAdapter(Backend.PRIMARY_AGENT)
        adapter.install(domain_ctx)
        adapter.join(domain_ctx)
        assert adapter.call_log == ["install", "join"]
        assert adapter.call_count == 2
        assert adapter.status(domain_ctx).joined

    def test_errors(self, domain_ctx):
        adapter = MockBackendAdapter(Backend.FALLBACK_BROKER, install_error="no repo", join_error="denied")
        with pytest.raises(InstallError, match="no repo"):
            adapter.install(domain_ctx)
        with pytest.raises(JoinError, match="denied"):
            adapter.join(domain_ctx)


# ── Registry ─────────────────────────────────────────────────────────


class TestAdapterRegistry:
    def test_register_and_get(self):
        registry = AdapterRegistry()
        adapter = MockBackendAdapter(Backend.PRIMARY_AGENT)
        registry.register(adapter)
        assert registry.get(Backend.PRIMARY_AGENT) is adapter
        assert registry.get(Backend.FALLBACK_BROKER) is None
        assert registry.list_backends() == [Backend.PRIMARY_AGENT]

    def test_require_missing(self):
        with pytest.raises(KeyError, match="fallback-broker"):
            AdapterRegistry().require(Backend.FALLBACK_BROKER)

    def test_one_adapter_per_backend(self):
        registry = AdapterRegistry()
        registry.register(MockBackendAdapter(Backend.PRIMARY_AGENT))
        replacement = MockBackendAdapter(Backend.PRIMARY_AGENT, artifacts=False)
        registry.register(replacement)
        assert registry.require(Backend.PRIMARY_AGENT) is replacement
        assert len(registry.list_backends()) == 1

    def test_unregister(self):
        registry = AdapterRegistry()
        registry.register(MockBackendAdapter(Backend.PRIMARY_AGENT))
        registry.unregister(Backend.PRIMARY_AGENT)
        assert registry.list_backends() == []

    def test_adapter_status(self):
        registry = AdapterRegistry()
        registry.register(MockBackendAdapter(Backend.PRIMARY_AGENT, artifacts=False, installed=True))
        status = registry.adapter_status()
        assert status["primary-agent"]["prerequisites_present"] is False
        assert status["primary-agent"]["installed"] is True
        assert status["primary-agent"]["type"] == "MockBackendAdapter"

    def test_build_registry(self, mock_runner):
        registry = build_registry(mock_runner)
        assert isinstance(registry.require(Backend.PRIMARY_AGENT), CentrifyAdapter)
        assert isinstance(registry.require(Backend.FALLBACK_BROKER), SssdAdapter)


# ── Centrify ─────────────────────────────────────────────────────────


class TestCentrifyAdapter:
    def _adapter(self, runner, policy, platform=None):
        return CentrifyAdapter(runner, policy, platform)

    def test_no_artifacts(self, mock_runner, policy, debian):
        adapter = self._adapter(mock_runner, policy, debian)
        assert not adapter.prerequisites_present()

    def test_artifacts_filtered_by_platform(self, mock_runner, policy, debian, host_root):
        drop = host_root / "centrify-install"
        (drop / "CentrifyDC-5.9.1-rhel6.x86_64.rpm").write_text("")
        adapter = self._adapter(mock_runner, policy, debian)
        assert not adapter.prerequisites_present()
        (drop / "CentrifyDC-5.9.1-deb9-x86_64.deb").write_text("")
        assert [p.name for p in adapter.artifacts()] == ["CentrifyDC-5.9.1-deb9-x86_64.deb"]

    def test_missing_artifact_dir(self, mock_runner, policy, host_root):
        (host_root / "centrify-install").rmdir()
        assert not self._adapter(mock_runner, policy).prerequisites_present()

    def test_install_repairs_dependencies_on_debian(self, mock_runner, policy, debian, host_root, domain_ctx):
        (host_root / "centrify-install" / "CentrifyDC-5.9.1.deb").write_text("")
        mock_runner.set_failure(["dpkg", "-i"], "dependency problems")
        self._adapter(mock_runner, policy, debian).install(domain_ctx)
        assert mock_runner.called("apt-get", "install", "-f", "-y")

    def test_install_failure_raises(self, mock_runner, policy, debian, host_root, domain_ctx):
        (host_root / "centrify-install" / "CentrifyDC-5.9.1.deb").write_text("")
        mock_runner.set_failure(["dpkg", "-i"], "corrupt package")
        mock_runner.set_failure(["apt-get", "install", "-f"], "unmet dependencies")
        with pytest.raises(InstallError, match="unmet dependencies"):
            self._adapter(mock_runner, policy, debian).install(domain_ctx)

    def test_install_without_packages(self, mock_runner, policy, debian, domain_ctx):
        with pytest.raises(InstallError, match="not found"):
            self._adapter(mock_runner, policy, debian).install(domain_ctx)

    def test_join_command_and_redaction(self, mock_runner, policy, domain_ctx):
        mock_runner.set_available("/usr/sbin/adjoin")
        detail = self._adapter(mock_runner, policy).join(domain_ctx)
        assert "lab.local" in detail
        command = mock_runner.call_log[-1]
        assert command[0] == "/usr/sbin/adjoin"
        assert command[command.index("--zone") + 1] == "Auto Zone"
        assert command[command.index("--container") + 1] == "OU=Linux Servers,DC=lab,DC=local"
        assert command[command.index("--password") + 1] == REDACTED
        assert command[-1] == "lab.local"
        assert all("S3cret!pw" not in arg for arg in command)

    def test_join_failure_raises(self, mock_runner, policy, domain_ctx):
        mock_runner.set_available("/usr/sbin/adjoin")
        mock_runner.set_failure(["/usr/sbin/adjoin"], "license is invalid")
        with pytest.raises(JoinError, match="license is invalid"):
            self._adapter(mock_runner, policy).join(domain_ctx)

    def test_join_without_utility(self, mock_runner, policy, domain_ctx):
        with pytest.raises(JoinError, match="not found"):
            self._adapter(mock_runner, policy).join(domain_ctx)

    def test_status_joined(self, mock_runner, policy, domain_ctx):
        mock_runner.set_available("adinfo")
        mock_runner.set_output(["adinfo"], "Local host name:   ubuntu1\nJoined to domain:  lab.local\n")
        status = self._adapter(mock_runner, policy).status(domain_ctx)
        assert status.installed and status.joined and status.service_active

    def test_status_not_installed(self, mock_runner, policy, domain_ctx):
        status = self._adapter(mock_runner, policy).status(domain_ctx)
        assert not status.installed
        assert not status.joined


# ── SSSD ─────────────────────────────────────────────────────────────


class TestSssdAdapter:
    def test_prerequisites_need_package_manager(self, mock_runner, policy):
        adapter = SssdAdapter(mock_runner, policy)
        assert not adapter.prerequisites_present()
        mock_runner.set_available("apt-get")
        assert adapter.prerequisites_present()

    def test_install_packages(self, mock_runner, policy, debian, domain_ctx):
        SssdAdapter(mock_runner, policy, debian).install(domain_ctx)
        command = mock_runner.call_log[-1]
        assert command[:3] == ["apt-get", "install", "-y"]
        assert {"sssd", "realmd", "adcli", "krb5-user"} <= set(command)

    def test_install_failure(self, mock_runner, policy, debian, domain_ctx):
        mock_runner.set_failure(["apt-get", "install"], "E: Unable to locate package")
        with pytest.raises(InstallError):
            SssdAdapter(mock_runner, policy, debian).install(domain_ctx)

    def test_join_flow(self, mock_runner, policy, domain_ctx):
        SssdAdapter(mock_runner, policy).join(domain_ctx)
        log = mock_runner.call_log
        assert log[0] == ["realm", "discover", "lab.local"]
        assert log[1] == [
            "realm", "join", "--user=Administrator",
            "--computer-ou=OU=Linux Servers,DC=lab,DC=local", "lab.local",
        ]
        assert mock_runner.inputs[1] == "S3cret!pw\n"
        assert log[2] == ["systemctl", "enable", "sssd"]
        assert log[3] == ["systemctl", "restart", "sssd"]

    def test_discovery_failure_is_not_fatal(self, mock_runner, policy, domain_ctx):
        mock_runner.set_failure(["realm", "discover"], "No such realm found")
        SssdAdapter(mock_runner, policy).join(domain_ctx)
        assert mock_runner.called("realm", "join")

    def test_join_failure(self, mock_runner, policy, domain_ctx):
        mock_runner.set_failure(["realm", "join"], "Insufficient permissions")
        with pytest.raises(JoinError, match="Insufficient permissions"):
            SssdAdapter(mock_runner, policy).join(domain_ctx)
        assert not Path(policy.fallback.sssd_conf).exists()

    def test_restart_failure_is_fatal(self, mock_runner, policy, domain_ctx):
        mock_runner.set_failure(["systemctl", "restart", "sssd"], "Job failed")
        with pytest.raises(JoinError, match="restart"):
            SssdAdapter(mock_runner, policy).join(domain_ctx)

    def test_writes_config_0600(self, mock_runner, policy, domain_ctx):
        SssdAdapter(mock_runner, policy).join(domain_ctx)
        conf = Path(policy.fallback.sssd_conf)
        text = conf.read_text()
        assert "[domain/lab.local]" in text
        assert "krb5_realm = LAB.LOCAL" in text
        assert "use_fully_qualified_names = False" in text
        assert stat.S_IMODE(conf.stat().st_mode) == 0o600

    def test_write_config_idempotent(self, mock_runner, policy, domain_ctx):
        adapter = SssdAdapter(mock_runner, policy)
        assert adapter.write_config(domain_ctx) is True
        assert adapter.write_config(domain_ctx) is False

    def test_status_online(self, mock_runner, policy, domain_ctx):
        mock_runner.set_available("sssd", "sssctl")
        mock_runner.set_output(["sssctl", "domain-status"], "Online status: Online\n")
        status = SssdAdapter(mock_runner, policy).status(domain_ctx)
        assert status.installed and status.joined and status.service_active

    def test_status_offline_service_down(self, mock_runner, policy, domain_ctx):
        mock_runner.set_available("sssd", "sssctl")
        mock_runner.set_output(["sssctl", "domain-status"], "Online status: Offline\n")
        mock_runner.set_response(
            ["systemctl", "is-active"], CommandResult.failure(["systemctl"], 3),
        )
        status = SssdAdapter(mock_runner, policy).status(domain_ctx)
        assert not status.joined
        assert not status.service_active

    def test_status_reads_config_without_sssctl(self, mock_runner, policy, domain_ctx):
        mock_runner.set_available("sssd")
        adapter = SssdAdapter(mock_runner, policy)
        adapter.write_config(domain_ctx)
        assert adapter.status(domain_ctx).joined

    def test_status_unprivileged_falls_back_to_realm_list(self, mock_runner, policy, domain_ctx):
        mock_runner.set_available("sssd", "sssctl")
        mock_runner.set_failure(["sssctl", "domain-status"], "sssctl must be run as root")
        mock_runner.set_output(["realm", "list"], "lab.local\n  type: kerberos\n")
        status = SssdAdapter(mock_runner, policy).status(domain_ctx)
        assert status.joined
        assert mock_runner.called("realm", "list")

    def test_status_realm_list_without_domain(self, mock_runner, policy, domain_ctx):
        mock_runner.set_available("sssd", "sssctl")
        mock_runner.set_failure(["sssctl", "domain-status"], "sssctl must be run as root")
        status = SssdAdapter(mock_runner, policy).status(domain_ctx)
        assert not status.joined
        assert "not listed" in status.detail
