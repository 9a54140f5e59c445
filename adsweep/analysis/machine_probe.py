"""
Machine Probes
==============

Per-machine inventories over the remote management boundary.

Every machine ends in exactly one of three states:
- Online: reachable and the remote query succeeded
- Offline: the reachability probe failed; no remote call was attempted
- Unreachable: reachable, but the remote query failed

Machines are processed one at a time; each produces one report row
regardless of outcome.

Inventories:
- UptimeInventory: last boot time and uptime
- LocalAdminInventory: members of the local Administrators group
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from ldap3.utils.conv import escape_filter_chars

from ..directory.client import DirectoryClient
from ..model.schemas import MachineRecord, MachineStatus
from ..remote.client import RemoteClient, RemoteCommandError
from ..reporting.csv_report import CsvReport


BOOT_TIME_SCRIPT = (
    "(Get-CimInstance -ClassName Win32_OperatingSystem).LastBootUpTime"
    ".ToUniversalTime().ToString('yyyy-MM-ddTHH:mm:ss')"
)

LOCAL_ADMINS_SCRIPT = (
    "Get-LocalGroupMember -SID 'S-1-5-32-544' | ForEach-Object { $_.Name }"
)

BOOT_TIME_FORMAT = "%Y-%m-%dT%H:%M:%S"


def computer_filter(name_filter: str = "*", enabled_only: bool = True) -> str:
    """Build the LDAP filter selecting computers with a DNS host name.

    name_filter is a cn pattern; '*' stays a wildcard, everything else is
    escaped.
    """
    pattern = "*".join(escape_filter_chars(part) for part in (name_filter or "*").split("*"))
    parts = [
        "(objectClass=computer)",
        f"(cn={pattern})",
        "(dNSHostName=*)",
    ]
    if enabled_only:
        # ACCOUNTDISABLE bit via the bitwise AND matching rule
        parts.append("(!(userAccountControl:1.2.840.113556.1.4.803:=2))")
    return f"(&{''.join(parts)})"


def list_computers(
    client: DirectoryClient,
    search_base: str,
    name_filter: str = "*",
    enabled_only: bool = True
) -> list[str]:
    """Return DNS host names of matching computers, sorted."""
    records = client.search(search_base, computer_filter(name_filter, enabled_only), ['dNSHostName'])
    hosts = []
    for record in records:
        names = record['attributes'].get('dNSHostName') or []
        if names:
            hosts.append(str(names[0]))
    return sorted(hosts, key=str.lower)


def parse_boot_time(output: str) -> datetime:
    """Parse the UTC boot time printed by BOOT_TIME_SCRIPT."""
    return datetime.strptime(output.strip(), BOOT_TIME_FORMAT).replace(tzinfo=timezone.utc)


def parse_member_list(output: str) -> list[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


class MachineInventory(ABC):
    """Base class: reachability gate, remote query, one row per machine.

    Subclasses implement query() and row().
    """

    COLUMNS: list[str] = []

    def __init__(
        self,
        remote: RemoteClient,
        report: Optional[CsvReport] = None,
        verbose: bool = True,
        progress_callback: Optional[Callable[[str], None]] = None
    ):
        self.remote = remote
        self.report = report
        self.verbose = verbose
        self.progress_callback = progress_callback

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)
        if self.progress_callback:
            self.progress_callback(message)

    @abstractmethod
    def query(self, record: MachineRecord) -> None:
        """Fill record from the remote host; raise RemoteCommandError on failure."""

    @abstractmethod
    def row(self, record: MachineRecord) -> dict:
        """Project record onto this inventory's report columns."""

    def probe(self, host: str) -> MachineRecord:
        """Probe one machine and classify the outcome."""
        record = MachineRecord(computer=host)

        if not self.remote.is_reachable(host):
            record.status = MachineStatus.OFFLINE
            self._log(f"[!] {host}: offline")
            return record

        try:
            self.query(record)
        except RemoteCommandError as e:
            record.status = MachineStatus.UNREACHABLE
            self._log(f"[!] {host}: remote query failed: {e.message}")
            return record

        record.status = MachineStatus.ONLINE
        return record

    def run(self, hosts: Iterable[str]) -> list[MachineRecord]:
        records = []
        for host in hosts:
            record = self.probe(host)
            records.append(record)
            if self.report:
                self.report.append(self.row(record))

        online = sum(1 for r in records if r.status == MachineStatus.ONLINE)
        self._log(f"[+] Probed {len(records)} machines, {online} online")
        return records


class UptimeInventory(MachineInventory):
    """Collects last boot time and uptime.

    Usage:
        inventory = UptimeInventory(WinRMClient(cfg), report=CsvReport(...))
        records = inventory.run(["srv01.corp.local", "srv02.corp.local"])
    """

    COLUMNS = MachineRecord.UPTIME_COLUMNS

    def __init__(self, remote: RemoteClient, report: Optional[CsvReport] = None,
                 clock: Optional[Callable[[], datetime]] = None, **kwargs):
        super().__init__(remote, report, **kwargs)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def query(self, record: MachineRecord) -> None:
        output = self.remote.run_powershell(record.computer, BOOT_TIME_SCRIPT)
        try:
            record.boot_time = parse_boot_time(output)
        except ValueError as e:
            raise RemoteCommandError(record.computer, f"unexpected boot time output {output.strip()!r}") from e
        record.uptime = self.clock() - record.boot_time
        self._log(f"[+] {record.computer}: up since {record.boot_time:%Y-%m-%d %H:%M:%S} UTC")

    def row(self, record: MachineRecord) -> dict:
        return record.to_uptime_row()


class LocalAdminInventory(MachineInventory):
    """Collects local Administrators group membership."""

    COLUMNS = MachineRecord.LOCAL_ADMIN_COLUMNS

    def query(self, record: MachineRecord) -> None:
        output = self.remote.run_powershell(record.computer, LOCAL_ADMINS_SCRIPT)
        record.local_admins = parse_member_list(output)
        self._log(f"[+] {record.computer}: {len(record.local_admins)} local administrators")

    def row(self, record: MachineRecord) -> dict:
        return record.to_local_admin_row()
