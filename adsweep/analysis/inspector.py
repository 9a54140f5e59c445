"""
Access-Control Inspector
========================

Reads the owner and DACL of one directory object and classifies every
reference as resolved or orphaned.

An identity is orphaned when it did not resolve to a principal name and
therefore is still a raw SID carrying the domain SID prefix. Well-known and
foreign-domain SIDs never match the prefix.
"""

from typing import Callable, Optional

from ..directory.client import DirectoryClient, DirectoryError
from ..directory.descriptor import SecurityDescriptor
from ..directory.sids import SidResolver, is_orphaned_identity
from ..model.schemas import AccessEntry, DomainContext, InspectionResult


class AclInspector:
    """Classifies owner and ACEs of directory objects.

    Usage:
        inspector = AclInspector(client, context)
        result = inspector.inspect("OU=Sales,DC=corp,DC=local")
        if result and result.has_findings:
            print(result.orphaned_identities)
    """

    def __init__(
        self,
        client: DirectoryClient,
        context: DomainContext,
        resolver: Optional[SidResolver] = None,
        verbose: bool = True,
        progress_callback: Optional[Callable[[str], None]] = None
    ):
        self.client = client
        self.context = context
        self.resolver = resolver or SidResolver(client)
        self.verbose = verbose
        self.progress_callback = progress_callback

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)
        if self.progress_callback:
            self.progress_callback(message)

    def read(self, dn: str) -> Optional[tuple[SecurityDescriptor, InspectionResult]]:
        """Read and classify dn, keeping the descriptor for remediation.

        Returns:
            (descriptor, result), or None when the object cannot be read
        """
        try:
            descriptor = self.client.read_security(dn)
            result = self.classify(dn, descriptor)
        except DirectoryError as e:
            self._log(f"[!] Cannot read {dn}: {e.message}")
            return None
        return descriptor, result

    def inspect(self, dn: str) -> Optional[InspectionResult]:
        """Read-only classification of dn; None if it cannot be read."""
        read = self.read(dn)
        return read[1] if read else None

    def classify(self, dn: str, descriptor: SecurityDescriptor) -> InspectionResult:
        domain_sid = self.context.domain_sid
        result = InspectionResult(distinguished_name=dn)

        owner_sid = descriptor.owner_sid
        if owner_sid:
            result.owner_sid = owner_sid
            result.owner_identity = self.resolver.resolve(owner_sid)
            result.owner_orphaned = is_orphaned_identity(result.owner_identity, domain_sid)

        for sid, inherited, access_type, mask in descriptor.aces():
            identity = self.resolver.resolve(sid)
            result.entries.append(AccessEntry(
                sid=sid,
                identity=identity,
                inherited=inherited,
                access_type=access_type,
                rights=mask,
                orphaned=is_orphaned_identity(identity, domain_sid),
            ))
        return result
