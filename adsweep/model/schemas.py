"""
adsweep Data Schemas
====================

Typed dataclasses representing directory objects, access-control entries,
machine probe results and report rows.

Design Decisions:
-----------------
1. Enums carry the exact strings that end up in reports
2. Inspection results keep every ACE; deduplication happens in a view
   (orphaned_identities) so removal can still act on each entry
3. DomainContext is frozen: it is computed once and only ever read
4. Every report-producing record has a to_row() projection keyed by the
   CSV column names

Schema Overview:
- DirectoryObject: a child returned by a directory listing
- AccessEntry / InspectionResult: classified security descriptor contents
- OrphanFinding / SweepSummary: orphan sweep output
- MachineRecord: uptime / local administrator probe output
- GroupMembership: group audit output
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional


class ObjectClass(Enum):
    """Coarse classification of a directory object."""
    CONTAINER = "container"
    ORGANIZATIONAL_UNIT = "organizationalUnit"
    USER = "user"
    COMPUTER = "computer"
    GROUP = "group"
    OTHER = "other"

    @classmethod
    def from_object_classes(cls, object_classes) -> "ObjectClass":
        """Classify an LDAP objectClass value list.

        computer is checked before user because computer objects also carry
        the user class.
        """
        if isinstance(object_classes, str):
            object_classes = [object_classes]
        lowered = {str(c).lower() for c in object_classes or []}

        if "computer" in lowered:
            return cls.COMPUTER
        if "user" in lowered:
            return cls.USER
        if "group" in lowered:
            return cls.GROUP
        if "organizationalunit" in lowered:
            return cls.ORGANIZATIONAL_UNIT
        if "container" in lowered:
            return cls.CONTAINER
        return cls.OTHER

    @property
    def is_container(self) -> bool:
        return self in (ObjectClass.CONTAINER, ObjectClass.ORGANIZATIONAL_UNIT)


class MachineStatus(Enum):
    """Outcome of a machine probe.

    ONLINE: reachable and the remote query succeeded
    OFFLINE: reachability probe failed, no remote call was made
    UNREACHABLE: reachable, but the remote management call failed
    """
    ONLINE = "Online"
    OFFLINE = "Offline"
    UNREACHABLE = "Unreachable"


class GroupScope(Enum):
    """Group scope decoded from the groupType attribute."""
    BUILTIN_LOCAL = "BuiltinLocal"
    GLOBAL = "Global"
    DOMAIN_LOCAL = "DomainLocal"
    UNIVERSAL = "Universal"
    UNKNOWN = "Unknown"

    @classmethod
    def from_group_type(cls, group_type: int) -> "GroupScope":
        """Convert a groupType value to its scope."""
        if group_type & 0x00000001:
            return cls.BUILTIN_LOCAL
        if group_type & 0x00000002:
            return cls.GLOBAL
        if group_type & 0x00000004:
            return cls.DOMAIN_LOCAL
        if group_type & 0x00000008:
            return cls.UNIVERSAL
        return cls.UNKNOWN


# groupType bit marking security (as opposed to distribution) groups
SECURITY_ENABLED = 0x80000000


def is_security_group(group_type: int) -> bool:
    """Check the security-enabled bit of a groupType value.

    groupType is a signed 32-bit integer in the directory, so security
    groups arrive as negative numbers.
    """
    return bool((group_type & 0xFFFFFFFF) & SECURITY_ENABLED)


@dataclass
class DirectoryObject:
    """A directory object as returned by a child listing.

    Attributes:
        distinguished_name: Full LDAP DN
        object_class: Coarse classification
        object_classes: Raw objectClass values
    """
    distinguished_name: str
    object_class: ObjectClass = ObjectClass.OTHER
    object_classes: list = field(default_factory=list)

    @classmethod
    def from_classes(cls, dn: str, object_classes) -> "DirectoryObject":
        return cls(
            distinguished_name=dn,
            object_class=ObjectClass.from_object_classes(object_classes),
            object_classes=list(object_classes or []),
        )


@dataclass
class AccessEntry:
    """One access-control entry of a DACL.

    Attributes:
        sid: Trustee SID in canonical form
        identity: Resolved principal name, or the raw SID when unresolved
        inherited: Whether the ACE was inherited from a parent
        access_type: Allow, Deny or Other
        rights: Access mask
        orphaned: Whether identity is an unresolved SID of this domain
    """
    sid: str
    identity: str
    inherited: bool = False
    access_type: str = "Allow"
    rights: int = 0
    orphaned: bool = False


@dataclass
class InspectionResult:
    """Classified owner and DACL of one directory object."""
    distinguished_name: str
    owner_sid: Optional[str] = None
    owner_identity: Optional[str] = None
    owner_orphaned: bool = False
    entries: list[AccessEntry] = field(default_factory=list)

    @property
    def orphaned_identities(self) -> list[str]:
        """Distinct orphaned identifiers, in first-seen order."""
        seen = []
        for entry in self.entries:
            if entry.orphaned and entry.identity not in seen:
                seen.append(entry.identity)
        return seen

    def entries_for(self, identity: str) -> list[AccessEntry]:
        """Every entry whose identity matches, duplicates included."""
        return [e for e in self.entries if e.identity == identity]

    @property
    def has_findings(self) -> bool:
        return self.owner_orphaned or any(e.orphaned for e in self.entries)


@dataclass(frozen=True)
class DomainContext:
    """Read-only facts about the domain, computed once per run.

    Attributes:
        domain_sid: Domain SID used as the orphan prefix
        netbios_name: Short domain name used to qualify principal names
        dns_name: DNS domain name
        default_naming_context: Domain partition DN
        forest_root: Root domain naming context of the forest
        substitute_owner: Fully qualified owner name used by owner fix-up
        substitute_owner_sid: SID of substitute_owner (None if not resolved)
    """
    domain_sid: str
    netbios_name: str
    dns_name: str
    default_naming_context: str
    forest_root: str = ""
    substitute_owner: str = ""
    substitute_owner_sid: Optional[str] = None


@dataclass
class OrphanFinding:
    """A single orphan report line.

    Attributes:
        distinguished_name: Object carrying the orphaned reference
        kind: Owner or ACE
        identity: The orphaned SID
        entry_count: Number of ACEs referencing it (1 for owners)
        action: Reported, Removed, Owner reset, Failed or Skipped
    """
    distinguished_name: str
    kind: str
    identity: str
    entry_count: int = 1
    action: str = "Reported"

    COLUMNS = ["Object DN", "Finding", "Identity", "Entries", "Action"]

    def to_row(self) -> dict:
        return {
            "Object DN": self.distinguished_name,
            "Finding": self.kind,
            "Identity": self.identity,
            "Entries": self.entry_count,
            "Action": self.action,
        }


@dataclass
class SweepSummary:
    """Counters accumulated over one orphan sweep."""
    objects_visited: int = 0
    objects_skipped: int = 0
    orphaned_owners: int = 0
    orphaned_identities: int = 0
    entries_removed: int = 0
    owners_fixed: int = 0
    persist_failures: int = 0
    findings: list[OrphanFinding] = field(default_factory=list)


def format_uptime(uptime: Optional[timedelta]) -> str:
    """Render an uptime as 'D days, HH:MM:SS' without microseconds."""
    if uptime is None:
        return ""
    total = int(uptime.total_seconds())
    days, remainder = divmod(total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{days} days, {hours:02d}:{minutes:02d}:{seconds:02d}"


@dataclass
class MachineRecord:
    """Probe result for one computer.

    Attributes:
        computer: DNS host name
        status: Probe outcome
        boot_time: Last boot time (UTC) when queried successfully
        uptime: Time since boot_time
        local_admins: Members of the local Administrators group
    """
    computer: str
    status: MachineStatus = MachineStatus.OFFLINE
    boot_time: Optional[datetime] = None
    uptime: Optional[timedelta] = None
    local_admins: list[str] = field(default_factory=list)

    UPTIME_COLUMNS = ["Computer", "Status", "Boot Time", "Up Time"]
    LOCAL_ADMIN_COLUMNS = ["Computer", "Local Administrators"]

    def to_uptime_row(self) -> dict:
        return {
            "Computer": self.computer,
            "Status": self.status.value,
            "Boot Time": self.boot_time.strftime("%Y-%m-%d %H:%M:%S") if self.boot_time else "",
            "Up Time": format_uptime(self.uptime),
        }

    def to_local_admin_row(self) -> dict:
        # Machines that were not queried carry their status in place of members
        if self.status != MachineStatus.ONLINE:
            members = self.status.value
        else:
            members = "; ".join(self.local_admins)
        return {
            "Computer": self.computer,
            "Local Administrators": members,
        }


@dataclass
class GroupMembership:
    """A user or computer that is a direct member of a security group."""
    group_dn: str
    group_scope: GroupScope
    identity: str
    identity_type: str

    COLUMNS = ["Group DN", "Group Scope", "Identity", "Identity Type"]

    def to_row(self) -> dict:
        return {
            "Group DN": self.group_dn,
            "Group Scope": self.group_scope.value,
            "Identity": self.identity,
            "Identity Type": self.identity_type,
        }
