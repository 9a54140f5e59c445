"""
Pipeline Module
===============

High-level entry points for each command.

Each entry point orchestrates one run:
1. Report pre-flight (abort before touching the network if the output
   file exists and overwrite is off)
2. Directory connection (unless a client is injected)
3. One-time domain facts
4. The command's sequential loop
5. Disconnect

Design Decisions:
-----------------
1. One function per command, returning the structured result
2. Directory and remote clients may be injected; otherwise they are built
   from configuration and owned (closed) by the entry point
3. Progress updates via callback, as everywhere else
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, Optional

from .analysis.group_audit import GroupAudit
from .analysis.machine_probe import LocalAdminInventory, UptimeInventory, list_computers
from .analysis.orphan_sweep import OrphanSweep
from .config import ADSweepConfig
from .directory.client import DirectoryClient, LDAPDirectoryClient, build_domain_context
from .model.schemas import GroupMembership, MachineRecord, OrphanFinding, SweepSummary
from .remote.client import RemoteClient, WinRMClient
from .reporting.csv_report import CsvReport


def _prepare_report(config: ADSweepConfig, columns: list[str]) -> Optional[CsvReport]:
    if not config.output.output_path:
        return None
    report = CsvReport(config.output.output_path, columns, overwrite=config.output.overwrite)
    report.preflight()
    return report


@contextmanager
def _directory(
    config: ADSweepConfig,
    client: Optional[DirectoryClient],
    progress_callback: Optional[Callable[[str], None]]
) -> Iterator[DirectoryClient]:
    """Yield the injected client, or a connected LDAP client closed on exit."""
    if client is not None:
        yield client
        return

    ldap_client = LDAPDirectoryClient(
        config=config.ldap,
        verbose=config.verbose,
        progress_callback=progress_callback
    )
    if not ldap_client.connect():
        raise ConnectionError(f"Failed to connect to LDAP server {config.ldap.server}")
    try:
        yield ldap_client
    finally:
        ldap_client.disconnect()


def run_orphan_sweep(
    config: ADSweepConfig,
    client: Optional[DirectoryClient] = None,
    progress_callback: Optional[Callable[[str], None]] = None
) -> SweepSummary:
    """Sweep the configured search root for orphaned owners and ACEs.

    Raises:
        ReportExistsError: output file exists and overwrite is off
        ConnectionError: directory connection failed
        DirectoryError: substitute owner could not be resolved
    """
    report = _prepare_report(config, OrphanFinding.COLUMNS)

    with _directory(config, client, progress_callback) as directory:
        sweep_config = config.sweep
        context = build_domain_context(
            directory,
            substitute_owner=sweep_config.substitute_owner,
            resolve_owner=sweep_config.fix_owner
        )
        roots = directory.resolve_search_roots(sweep_config.search_root)

        sweep = OrphanSweep(
            directory,
            context,
            sweep_config,
            report=report,
            verbose=config.verbose,
            debug=config.debug,
            progress_callback=progress_callback
        )
        return sweep.run(roots)


def _computer_hosts(config: ADSweepConfig, directory: DirectoryClient) -> list[str]:
    machines = config.machines
    base = machines.search_base or directory.get_naming_contexts()['domain']
    return list_computers(directory, base, machines.name_filter, machines.enabled_only)


def run_uptime_inventory(
    config: ADSweepConfig,
    client: Optional[DirectoryClient] = None,
    remote: Optional[RemoteClient] = None,
    clock: Optional[Callable[[], datetime]] = None,
    progress_callback: Optional[Callable[[str], None]] = None
) -> list[MachineRecord]:
    """Probe every selected computer for its last boot time."""
    report = _prepare_report(config, MachineRecord.UPTIME_COLUMNS)

    with _directory(config, client, progress_callback) as directory:
        hosts = _computer_hosts(config, directory)

    inventory = UptimeInventory(
        remote or WinRMClient(config.winrm),
        report=report,
        clock=clock,
        verbose=config.verbose,
        progress_callback=progress_callback
    )
    return inventory.run(hosts)


def run_local_admin_inventory(
    config: ADSweepConfig,
    client: Optional[DirectoryClient] = None,
    remote: Optional[RemoteClient] = None,
    progress_callback: Optional[Callable[[str], None]] = None
) -> list[MachineRecord]:
    """Collect local Administrators membership of every selected computer."""
    report = _prepare_report(config, MachineRecord.LOCAL_ADMIN_COLUMNS)

    with _directory(config, client, progress_callback) as directory:
        hosts = _computer_hosts(config, directory)

    inventory = LocalAdminInventory(
        remote or WinRMClient(config.winrm),
        report=report,
        verbose=config.verbose,
        progress_callback=progress_callback
    )
    return inventory.run(hosts)


def run_group_audit(
    config: ADSweepConfig,
    client: Optional[DirectoryClient] = None,
    progress_callback: Optional[Callable[[str], None]] = None
) -> list[GroupMembership]:
    """List direct user/computer members of security groups."""
    report = _prepare_report(config, GroupMembership.COLUMNS)

    with _directory(config, client, progress_callback) as directory:
        domain_nc = directory.get_naming_contexts()['domain']
        audit = GroupAudit(
            directory,
            config.groups.search_base or domain_nc,
            scopes=config.groups.scopes,
            report=report,
            member_base=domain_nc,
            verbose=config.verbose,
            progress_callback=progress_callback
        )
        return audit.run()
