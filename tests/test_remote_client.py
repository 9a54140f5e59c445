"""Tests for the WinRM remote client and reachability probe."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from adsweep.config import WinRMConfig
from adsweep.remote.client import RemoteCommandError, WinRMClient, ping_host


def winrm_result(status_code=0, std_out=b"", std_err=b""):
    result = MagicMock()
    result.status_code = status_code
    result.std_out = std_out
    result.std_err = std_err
    return result


@pytest.fixture
def config():
    return WinRMConfig(username="CORP\\ops", password="pw")


class TestWinRMClient:

    def test_session_parameters(self, config):
        with patch("adsweep.remote.client.winrm.Session") as session_cls:
            session_cls.return_value.run_ps.return_value = winrm_result(std_out=b"SRV01\r\n")

            output = WinRMClient(config).run_powershell("srv01.corp.local", "hostname")

        assert output == "SRV01\r\n"
        session_cls.assert_called_once_with(
            target="http://srv01.corp.local:5985/wsman",
            auth=("CORP\\ops", "pw"),
            transport="ntlm",
            server_cert_validation="validate",
        )
        session_cls.return_value.run_ps.assert_called_once_with("hostname")

    def test_https_endpoint(self):
        config = WinRMConfig(username="ops", password="pw", use_ssl=True)
        with patch("adsweep.remote.client.winrm.Session") as session_cls:
            session_cls.return_value.run_ps.return_value = winrm_result()
            WinRMClient(config).run_powershell("srv01", "hostname")

        kwargs = session_cls.call_args.kwargs
        assert kwargs["target"] == "https://srv01:5986/wsman"
        assert kwargs["server_cert_validation"] == "ignore"

    def test_nonzero_exit(self, config):
        with patch("adsweep.remote.client.winrm.Session") as session_cls:
            session_cls.return_value.run_ps.return_value = winrm_result(
                status_code=1, std_err=b"Get-LocalGroupMember : Access denied"
            )
            with pytest.raises(RemoteCommandError, match="exit code 1"):
                WinRMClient(config).run_powershell("srv01", "Get-LocalGroupMember")

    def test_transport_failure(self, config):
        with patch("adsweep.remote.client.winrm.Session") as session_cls:
            session_cls.return_value.run_ps.side_effect = ConnectionRefusedError("refused")
            with pytest.raises(RemoteCommandError) as exc_info:
                WinRMClient(config).run_powershell("srv01", "hostname")

        assert exc_info.value.host == "srv01"

    def test_missing_credentials(self, monkeypatch):
        monkeypatch.delenv("WINRM_USERNAME", raising=False)
        monkeypatch.delenv("WINRM_PASSWORD", raising=False)

        with patch("adsweep.remote.client.winrm.Session") as session_cls:
            with pytest.raises(RemoteCommandError, match="credentials"):
                WinRMClient(WinRMConfig()).run_powershell("srv01", "hostname")
        session_cls.assert_not_called()


class TestPingHost:

    def test_reply(self):
        with patch("adsweep.remote.client.subprocess.run") as run:
            run.return_value = MagicMock(returncode=0)
            assert ping_host("srv01")
        assert run.call_args.args[0][-1] == "srv01"

    def test_no_reply(self):
        with patch("adsweep.remote.client.subprocess.run") as run:
            run.return_value = MagicMock(returncode=1)
            assert not ping_host("srv01")

    def test_timeout(self):
        with patch("adsweep.remote.client.subprocess.run",
                   side_effect=subprocess.TimeoutExpired("ping", 6)):
            assert not ping_host("srv01")
