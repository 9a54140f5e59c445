"""
Remote Management Client
========================

Reachability probe and remote PowerShell execution for the machine
inventories.

Design Decisions:
-----------------
1. RemoteClient is the interface the probes depend on; tests substitute an
   in-memory implementation
2. Reachability is a single ICMP echo through the system ping binary
3. Remote execution uses pywinrm; any transport, authentication or
   non-zero exit failure becomes RemoteCommandError
"""

import subprocess
import sys
from abc import ABC, abstractmethod
from typing import Optional

import winrm

from ..config import WinRMConfig


class RemoteCommandError(Exception):
    """A remote management call to a reachable host failed."""

    def __init__(self, host: str, message: str):
        super().__init__(f"{host}: {message}")
        self.host = host
        self.message = message


def ping_host(host: str, timeout: int = 1) -> bool:
    """Send one ICMP echo request.

    Args:
        host: Host name or IP address
        timeout: Reply timeout in seconds

    Returns:
        True if the host answered
    """
    ping_flag = '-n' if sys.platform == 'win32' else '-c'
    timeout_flag = '-w' if sys.platform == 'win32' else '-W'
    # Windows -w is in milliseconds, Linux -W is in seconds
    timeout_val = str(timeout * 1000) if sys.platform == 'win32' else str(timeout)

    try:
        result = subprocess.run(
            ['ping', ping_flag, '1', timeout_flag, timeout_val, host],
            capture_output=True, text=True, timeout=timeout + 5
        )
    except (subprocess.TimeoutExpired, OSError):
        return False
    return result.returncode == 0


class RemoteClient(ABC):
    """Interface to remote machines."""

    @abstractmethod
    def is_reachable(self, host: str) -> bool:
        """Lightweight network probe."""

    @abstractmethod
    def run_powershell(self, host: str, script: str) -> str:
        """Run script on host and return stdout.

        Raises:
            RemoteCommandError: on any connection or execution failure
        """


class WinRMClient(RemoteClient):
    """pywinrm-backed remote client.

    Usage:
        client = WinRMClient(WinRMConfig(username="CORP\\\\admin", password="..."))
        if client.is_reachable("srv01.corp.local"):
            print(client.run_powershell("srv01.corp.local", "hostname"))
    """

    def __init__(self, config: Optional[WinRMConfig] = None):
        self.config = config or WinRMConfig()

    def is_reachable(self, host: str) -> bool:
        return ping_host(host, timeout=self.config.ping_timeout)

    def _endpoint(self, host: str) -> str:
        protocol = "https" if self.config.use_ssl else "http"
        return f"{protocol}://{host}:{self.config.port}/wsman"

    def _session(self, host: str) -> "winrm.Session":
        if not self.config.username or not self.config.password:
            raise RemoteCommandError(
                host,
                "WinRM credentials not configured. Set WINRM_USERNAME and WINRM_PASSWORD "
                "environment variables or pass --winrm-user / --winrm-password."
            )
        return winrm.Session(
            target=self._endpoint(host),
            auth=(self.config.username, self.config.password),
            transport=self.config.transport,
            server_cert_validation="ignore" if self.config.use_ssl else "validate",
        )

    def run_powershell(self, host: str, script: str) -> str:
        session = self._session(host)
        try:
            result = session.run_ps(script)
        except Exception as e:
            # pywinrm surfaces transport, auth and protocol failures as
            # unrelated exception types (requests, WinRMError, ...)
            raise RemoteCommandError(host, f"WinRM call failed: {e}") from e

        stdout = result.std_out.decode("utf-8", errors="replace")
        if result.status_code != 0:
            stderr = result.std_err.decode("utf-8", errors="replace")
            raise RemoteCommandError(
                host, f"exit code {result.status_code}: {stderr.strip()[:200]}"
            )
        return stdout
