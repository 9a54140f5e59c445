"""
Remediator
==========

Repairs orphaned references found by the inspector.

Two independent operations, each enabled by its own switch:
- Owner fix-up: replace an orphaned owner with the substitute owner
- Entry removal: drop every ACE of each orphaned identity

Persistence granularity:
The DACL is written once per distinct orphaned identity, after all of that
identity's entries have been removed. If a write fails, the remaining
identities of that object are left untouched and the object is abandoned;
identities written before the failure stay removed.
"""

from typing import Callable, Optional

from ..directory.client import DirectoryClient, DirectoryError
from ..directory.descriptor import SecurityDescriptor
from ..model.schemas import DomainContext, InspectionResult


class Remediator:
    """Applies owner fix-up and orphaned ACE removal to one object at a time.

    Usage:
        remediator = Remediator(client, context)
        remediator.fix_owner(dn, descriptor, result)
        for identity, removed, ok in remediator.remove_orphans(dn, descriptor, result):
            ...
    """

    def __init__(
        self,
        client: DirectoryClient,
        context: DomainContext,
        verbose: bool = True,
        progress_callback: Optional[Callable[[str], None]] = None
    ):
        self.client = client
        self.context = context
        self.verbose = verbose
        self.progress_callback = progress_callback

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)
        if self.progress_callback:
            self.progress_callback(message)

    def fix_owner(self, dn: str, descriptor: SecurityDescriptor, result: InspectionResult) -> Optional[bool]:
        """Reset an orphaned owner to the substitute owner.

        Returns:
            None if the owner was not orphaned, otherwise whether the new
            owner was persisted
        """
        if not result.owner_orphaned:
            return None

        new_owner = self.context.substitute_owner_sid
        if not new_owner:
            self._log(f"[!] {dn}: substitute owner {self.context.substitute_owner} is not resolved")
            return False

        descriptor.set_owner(new_owner)
        try:
            self.client.write_security(dn, descriptor, owner=True)
        except DirectoryError as e:
            self._log(f"[!] {dn}: failed to set owner: {e.message}")
            return False

        self._log(f"[+] {dn}: owner {result.owner_identity} replaced by {self.context.substitute_owner}")
        return True

    def remove_orphans(
        self,
        dn: str,
        descriptor: SecurityDescriptor,
        result: InspectionResult
    ) -> list[tuple[str, int, bool]]:
        """Remove every ACE of every orphaned identity of dn.

        Returns:
            (identity, entries_removed, persisted) per attempted identity;
            identities after a failed write are not attempted
        """
        outcomes = []
        for identity in result.orphaned_identities:
            removed = descriptor.remove_aces(identity)
            try:
                self.client.write_security(dn, descriptor, owner=False)
            except DirectoryError as e:
                self._log(f"[!] {dn}: failed to remove ACEs of {identity}: {e.message}")
                outcomes.append((identity, removed, False))
                break
            self._log(f"[+] {dn}: removed {removed} ACE(s) of {identity}")
            outcomes.append((identity, removed, True))
        return outcomes
