"""
Tests for system probes — tri-state outcomes from host tools and sockets.
"""

import socket
from pathlib import Path

import pytest

from adjoin.core.models.check import CheckStatus
from adjoin.core.models.command import CommandResult
from adjoin.core.services.probes import SystemProbe

PASS, FAIL, SKIP = CheckStatus.PASS, CheckStatus.FAIL, CheckStatus.SKIP


@pytest.fixture
def probe(mock_runner) -> SystemProbe:
    return SystemProbe(mock_runner, timeout=0.5)


class TestDns:
    def test_resolve_localhost(self, probe):
        assert probe.resolve("localhost").status is PASS

    def test_resolve_failure(self, probe, monkeypatch):
        def fail(*args, **kwargs):
            raise socket.gaierror(-2, "Name or service not known")

        monkeypatch.setattr(socket, "getaddrinfo", fail)
        outcome = probe.resolve("dc1.lab.local")
        assert outcome.status is FAIL
        assert "dc1.lab.local" in outcome.detail

    def test_srv_with_host(self, probe, mock_runner):
        mock_runner.set_available("host")
        mock_runner.set_output(
            ["host", "-t", "SRV"],
            "_ldap._tcp.lab.local has SRV record 0 100 389 dc1.lab.local.\n",
        )
        outcome = probe.srv_record("_ldap._tcp.lab.local")
        assert outcome.status is PASS
        assert "389" in outcome.detail

    def test_srv_missing_with_host(self, probe, mock_runner):
        mock_runner.set_available("host")
        mock_runner.set_failure(["host", "-t", "SRV"], "Host _ldap._tcp.lab.local not found: 3(NXDOMAIN)")
        assert probe.srv_record("_ldap._tcp.lab.local").status is FAIL

    def test_srv_with_dig(self, probe, mock_runner):
        mock_runner.set_available("dig")
        mock_runner.set_output(["dig", "+short"], "0 100 88 dc1.lab.local.\n")
        assert probe.srv_record("_kerberos._tcp.lab.local").status is PASS

    def test_srv_dig_empty_answer(self, probe, mock_runner):
        mock_runner.set_available("dig")
        mock_runner.set_output(["dig", "+short"], "")
        assert probe.srv_record("_kerberos._tcp.lab.local").status is FAIL

    def test_srv_without_tools(self, probe):
        assert probe.srv_record("_ldap._tcp.lab.local").status is SKIP


class TestNetwork:
    def test_tcp_open(self, probe):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server:
            server.bind(("127.0.0.1", 0))
            server.listen(1)
            port = server.getsockname()[1]
            assert probe.tcp_port("127.0.0.1", port).status is PASS

    def test_tcp_closed(self, probe):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("127.0.0.1", 0))
            port = s.getsockname()[1]
        # Nothing listens on the released port.
        assert probe.tcp_port("127.0.0.1", port).status is FAIL

    def test_ping(self, probe, mock_runner):
        mock_runner.set_available("ping")
        assert probe.ping("10.0.0.10").status is PASS
        assert mock_runner.call_log[-1] == ["ping", "-c", "1", "-W", "1", "10.0.0.10"]

    def test_ping_unreachable(self, probe, mock_runner):
        mock_runner.set_available("ping")
        mock_runner.set_failure(["ping"], "", return_code=1)
        assert probe.ping("10.0.0.10").status is FAIL

    def test_ping_missing(self, probe):
        assert probe.ping("10.0.0.10").status is SKIP


class TestTime:
    @pytest.mark.parametrize("value,status", [("yes\n", PASS), ("no\n", FAIL), ("\n", SKIP)])
    def test_ntp(self, probe, mock_runner, value, status):
        mock_runner.set_available("timedatectl")
        mock_runner.set_output(["timedatectl"], value)
        assert probe.ntp_synchronized().status is status

    def test_ntp_tool_missing(self, probe):
        assert probe.ntp_synchronized().status is SKIP

    def test_ntp_tool_error(self, probe, mock_runner):
        mock_runner.set_available("timedatectl")
        mock_runner.set_failure(["timedatectl"], "Failed to connect to bus")
        assert probe.ntp_synchronized().status is SKIP


class TestMembership:
    def test_realm_joined(self, probe, mock_runner):
        mock_runner.set_output(["realm", "list"], "lab.local\n  type: kerberos\n  configured: kerberos-member\n")
        outcome = probe.realm_membership("lab.local")
        assert outcome.status is PASS
        assert outcome.detail == "lab.local"

    def test_realm_empty(self, probe, mock_runner):
        mock_runner.set_output(["realm", "list"], "")
        assert probe.realm_membership("lab.local").status is FAIL

    def test_realm_other_domain(self, probe, mock_runner):
        mock_runner.set_output(["realm", "list"], "corp.example.com\n")
        assert probe.realm_membership("lab.local").status is FAIL

    def test_service_any_unit(self, probe, mock_runner):
        mock_runner.set_response(["systemctl", "is-active", "--quiet", "sshd"], CommandResult.failure(["x"], 3))
        outcome = probe.service_active("sshd", "ssh")
        assert outcome.status is PASS
        assert outcome.detail == "ssh is active"

    def test_service_none_running(self, probe, mock_runner):
        mock_runner.set_failure(["systemctl", "is-active"], "", return_code=3)
        assert probe.service_active("sshd", "ssh").status is FAIL


class TestKerberos:
    def test_no_password_no_ticket(self, probe):
        assert probe.kerberos_ticket("Administrator@LAB.LOCAL", "").status is SKIP

    def test_no_password_existing_ticket(self, probe, mock_runner):
        mock_runner.set_available("klist")
        assert probe.kerberos_ticket("Administrator@LAB.LOCAL", "").status is PASS

    def test_obtain_and_release(self, probe, mock_runner):
        mock_runner.set_available("kinit")
        outcome = probe.kerberos_ticket("Administrator@LAB.LOCAL", "S3cret!pw")
        assert outcome.status is PASS
        assert mock_runner.call_log == [["kinit", "Administrator@LAB.LOCAL"], ["kdestroy"]]
        assert mock_runner.inputs[0] == "S3cret!pw\n"

    def test_kinit_failure(self, probe, mock_runner):
        mock_runner.set_available("kinit")
        mock_runner.set_failure(["kinit"], "kinit: Preauthentication failed while getting initial credentials")
        outcome = probe.kerberos_ticket("Administrator@LAB.LOCAL", "wrong")
        assert outcome.status is FAIL
        assert "Preauthentication failed" in outcome.detail
        assert not mock_runner.called("kdestroy")

    def test_kinit_missing(self, probe):
        assert probe.kerberos_ticket("Administrator@LAB.LOCAL", "pw").status is SKIP


class TestIdentity:
    def test_user_short_name(self, probe, mock_runner):
        mock_runner.set_output(["id", "Administrator"], "uid=1500(administrator) gid=1513\n")
        assert probe.user_lookup("Administrator", "administrator@lab.local").status is PASS

    def test_user_qualified_fallback(self, probe, mock_runner):
        mock_runner.set_failure(["id", "testuser1"], "id: 'testuser1': no such user")
        mock_runner.set_output(["id", "testuser1@lab.local"], "uid=1600(testuser1@lab.local)\n")
        outcome = probe.user_lookup("testuser1", "testuser1@lab.local")
        assert outcome.status is PASS
        assert "testuser1@lab.local" in outcome.detail

    def test_user_missing(self, probe, mock_runner):
        mock_runner.set_failure(["id"], "no such user")
        assert probe.user_lookup("ghost", "ghost@lab.local").status is FAIL

    def test_group_empty_output_is_fail(self, probe, mock_runner):
        mock_runner.set_output(["getent", "group"], "")
        assert probe.group_lookup("linux-admins").status is FAIL

    def test_group_found(self, probe, mock_runner):
        mock_runner.set_output(["getent", "group", "linux-admins"], "linux-admins:*:1800:alice\n")
        assert probe.group_lookup("linux-admins").status is PASS


class TestFiles:
    def test_pam_module_found(self, probe, tmp_path: Path):
        (tmp_path / "common-auth").write_text("auth [success=1 default=ignore] pam_sss.so use_first_pass\n")
        outcome = probe.pam_module(tmp_path, ["pam_sss", "pam_centrifydc"])
        assert outcome.status is PASS
        assert "common-auth" in outcome.detail

    def test_pam_module_missing(self, probe, tmp_path: Path):
        (tmp_path / "common-auth").write_text("auth required pam_unix.so\n")
        assert probe.pam_module(tmp_path, ["pam_sss"]).status is FAIL

    def test_pam_dir_missing(self, probe, tmp_path: Path):
        assert probe.pam_module(tmp_path / "absent", ["pam_sss"]).status is FAIL

    def test_nonempty_file(self, probe, tmp_path: Path):
        path = tmp_path / "ad-admins"
        path.write_text("# header\n%linux-admins ALL=(ALL) ALL\n")
        assert probe.nonempty_file(path).status is PASS

    def test_comment_only_file_is_empty(self, probe, tmp_path: Path):
        path = tmp_path / "ad-admins"
        path.write_text("# nothing here\n\n")
        assert probe.nonempty_file(path).status is FAIL

    def test_missing_file(self, probe, tmp_path: Path):
        assert probe.nonempty_file(tmp_path / "ad-admins").status is FAIL
