"""
Orphan Sweep
============

Walks one or more subtrees and reports owners and ACEs that reference
orphaned domain SIDs, optionally repairing them.

Pipeline per object:
    walker -> inspector -> remediator (when enabled) -> console / CSV

Each orphaned identity is reported once per object, however many ACEs
reference it; removal still acts on every one of those ACEs.
"""

from typing import Callable, Iterable, Optional

from ..config import SweepConfig
from ..directory.client import DirectoryClient
from ..directory.descriptor import format_rights
from ..directory.sids import SidResolver
from ..directory.walker import TreeWalker
from ..model.schemas import DomainContext, InspectionResult, OrphanFinding, SweepSummary
from ..reporting.csv_report import CsvReport
from .inspector import AclInspector
from .remediator import Remediator


class OrphanSweep:
    """Runs the orphaned SID sweep.

    Usage:
        sweep = OrphanSweep(client, context, SweepConfig(remove_orphans=True))
        summary = sweep.run(["OU=Sales,DC=corp,DC=local"])
        print(summary.entries_removed)
    """

    def __init__(
        self,
        client: DirectoryClient,
        context: DomainContext,
        config: Optional[SweepConfig] = None,
        report: Optional[CsvReport] = None,
        verbose: bool = True,
        debug: bool = False,
        progress_callback: Optional[Callable[[str], None]] = None
    ):
        """Initialize the sweep.

        Args:
            client: Connected directory client
            context: Domain facts (domain SID, substitute owner)
            config: Sweep switches
            report: Optional CSV report receiving one row per finding
            verbose: Whether to print progress messages
            debug: Whether to print skipped subtrees
            progress_callback: Optional callback for progress updates
        """
        self.client = client
        self.context = context
        self.config = config or SweepConfig()
        self.report = report
        self.verbose = verbose
        self.progress_callback = progress_callback

        self.resolver = SidResolver(client)
        self.walker = TreeWalker(
            client,
            containers_only=self.config.containers_only,
            debug=debug,
            progress_callback=progress_callback
        )
        self.inspector = AclInspector(
            client, context, self.resolver,
            verbose=verbose, progress_callback=progress_callback
        )
        self.remediator = Remediator(
            client, context,
            verbose=verbose, progress_callback=progress_callback
        )
        self.summary = SweepSummary()

    def _log(self, message: str) -> None:
        """Log a message to console and/or callback."""
        if self.verbose:
            print(message)
        if self.progress_callback:
            self.progress_callback(message)

    def run(self, roots: Iterable[str]) -> SweepSummary:
        """Sweep every root and its descendants.

        Returns:
            SweepSummary with counters and findings
        """
        self.summary = SweepSummary()
        for root in roots:
            self._log(f"[*] Sweeping {root}")
            self.process(root)
            for dn in self.walker.walk(root):
                self.process(dn)

        s = self.summary
        self._log(
            f"[+] Sweep complete: {s.objects_visited} objects, {s.objects_skipped} unreadable, "
            f"{s.orphaned_owners} orphaned owners, {s.orphaned_identities} orphaned identities"
        )
        return s

    def process(self, dn: str) -> Optional[InspectionResult]:
        """Inspect, report and (when enabled) repair one object."""
        self.summary.objects_visited += 1
        if self.config.show_all_objects:
            self._log(f"[*] {dn}")

        read = self.inspector.read(dn)
        if read is None:
            self.summary.objects_skipped += 1
            return None
        descriptor, result = read

        if self.config.show_permissions:
            self._show_permissions(result)

        if result.owner_orphaned:
            self._handle_owner(dn, descriptor, result)

        if result.orphaned_identities:
            self._handle_entries(dn, descriptor, result)

        return result

    def _show_permissions(self, result: InspectionResult) -> None:
        self._log(f"    Owner: {result.owner_identity}")
        for entry in result.entries:
            self._log(
                f"    {entry.identity} | {entry.access_type} | "
                f"Inherited: {entry.inherited} | {format_rights(entry.rights)}"
            )

    def _handle_owner(self, dn, descriptor, result: InspectionResult) -> None:
        self.summary.orphaned_owners += 1
        self._log(f"[!] {dn}: owner is orphaned SID {result.owner_identity}")

        action = "Reported"
        if self.config.fix_owner:
            if self.remediator.fix_owner(dn, descriptor, result):
                self.summary.owners_fixed += 1
                action = "Owner reset"
            else:
                self.summary.persist_failures += 1
                action = "Failed"

        self._record(OrphanFinding(
            distinguished_name=dn,
            kind="Owner",
            identity=result.owner_identity,
            action=action,
        ))

    def _handle_entries(self, dn, descriptor, result: InspectionResult) -> None:
        identities = result.orphaned_identities
        counts = {identity: len(result.entries_for(identity)) for identity in identities}

        for identity in identities:
            self.summary.orphaned_identities += 1
            self._log(f"[!] {dn}: orphaned ACE {identity} ({counts[identity]} entries)")

        actions = {identity: "Reported" for identity in identities}
        if self.config.remove_orphans:
            # Identities after a failed write are never attempted
            actions = {identity: "Skipped" for identity in identities}
            for identity, removed, persisted in self.remediator.remove_orphans(dn, descriptor, result):
                if persisted:
                    self.summary.entries_removed += removed
                    actions[identity] = "Removed"
                else:
                    self.summary.persist_failures += 1
                    actions[identity] = "Failed"

        for identity in identities:
            self._record(OrphanFinding(
                distinguished_name=dn,
                kind="ACE",
                identity=identity,
                entry_count=counts[identity],
                action=actions[identity],
            ))

    def _record(self, finding: OrphanFinding) -> None:
        self.summary.findings.append(finding)
        if self.report:
            self.report.append(finding.to_row())
