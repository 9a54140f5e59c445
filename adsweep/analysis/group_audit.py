"""
Group Membership Audit
======================

Lists security groups that directly contain users or computers.

Under the IGDLA convention identities belong in global groups and only
global groups belong in domain-local groups, so every row this audit emits
for a domain-local group is a candidate violation.

Membership is read from the group side:
- the group's member attribute lists direct members by DN, wherever they
  live in the domain
- users and computers whose primary group is the group carry its RID in
  primaryGroupID and never appear in member
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from ldap3.utils.conv import escape_filter_chars

from ..directory.client import DirectoryClient, DirectoryError
from ..model.schemas import GroupMembership, GroupScope, ObjectClass, is_security_group
from ..reporting.csv_report import CsvReport


# Member DNs per (|(distinguishedName=...)...) query
MEMBER_BATCH_SIZE = 50

MEMBER_ATTRIBUTES = ['sAMAccountName', 'objectClass']


@dataclass
class SecurityGroup:
    """A security group and its raw membership data."""
    distinguished_name: str
    scope: GroupScope
    member_dns: list[str] = field(default_factory=list)
    rid: Optional[str] = None


class GroupAudit:
    """Enumerates direct user/computer members of security groups.

    Usage:
        audit = GroupAudit(client, "OU=Groups,DC=corp,DC=local",
                           member_base="DC=corp,DC=local", scopes=["DomainLocal"])
        for membership in audit.run():
            print(membership.group_dn, membership.identity)
    """

    def __init__(
        self,
        client: DirectoryClient,
        search_base: str,
        scopes: Optional[list] = None,
        report: Optional[CsvReport] = None,
        member_base: Optional[str] = None,
        verbose: bool = True,
        progress_callback: Optional[Callable[[str], None]] = None
    ):
        """Initialize the audit.

        Args:
            client: Connected directory client
            search_base: DN under which groups are enumerated
            scopes: Group scope names to include (all when None)
            report: Optional CSV report receiving one row per membership
            member_base: DN under which members are looked up; normally the
                domain naming context (defaults to search_base)
            verbose: Whether to print progress messages
            progress_callback: Optional callback for progress updates
        """
        self.client = client
        self.search_base = search_base
        self.member_base = member_base or search_base
        self.scopes = {GroupScope(s) for s in scopes} if scopes else None
        self.report = report
        self.verbose = verbose
        self.progress_callback = progress_callback

    def _log(self, message: str) -> None:
        if self.verbose:
            print(message)
        if self.progress_callback:
            self.progress_callback(message)

    def security_groups(self) -> list[SecurityGroup]:
        """Return every security group in scope, with its member DNs."""
        records = self.client.search(
            self.search_base, "(objectClass=group)", ['groupType', 'member', 'objectSid']
        )
        groups = []
        for record in records:
            attrs = record['attributes']
            values = attrs.get('groupType') or []
            if not values:
                continue
            group_type = int(values[0])
            if not is_security_group(group_type):
                continue
            scope = GroupScope.from_group_type(group_type)
            if self.scopes is not None and scope not in self.scopes:
                continue

            sids = [s for s in attrs.get('objectSid') or [] if s]
            groups.append(SecurityGroup(
                distinguished_name=record['dn'],
                scope=scope,
                member_dns=[str(dn) for dn in attrs.get('member') or []],
                rid=sids[0].rsplit('-', 1)[1] if sids else None,
            ))
        return groups

    def _members_by_dn(self, member_dns: list[str]) -> list[dict]:
        records = []
        for start in range(0, len(member_dns), MEMBER_BATCH_SIZE):
            batch = member_dns[start:start + MEMBER_BATCH_SIZE]
            clauses = ''.join(f"(distinguishedName={escape_filter_chars(dn)})" for dn in batch)
            # objectClass=user also matches computers; nested groups drop out
            records.extend(self.client.search(
                self.member_base, f"(&(objectClass=user)(|{clauses}))", MEMBER_ATTRIBUTES
            ))

        position = {dn.lower(): i for i, dn in enumerate(member_dns)}
        return sorted(records, key=lambda r: position.get(r['dn'].lower(), len(position)))

    def _members_by_primary_group(self, rid: str) -> list[dict]:
        return self.client.search(
            self.member_base, f"(&(objectClass=user)(primaryGroupID={rid}))", MEMBER_ATTRIBUTES
        )

    def direct_members(self, group: SecurityGroup) -> list[GroupMembership]:
        """Users and computers that are direct members of group."""
        records = self._members_by_dn(group.member_dns) if group.member_dns else []
        if group.rid:
            records += self._members_by_primary_group(group.rid)

        members = []
        seen = set()
        for record in records:
            key = record['dn'].lower()
            if key in seen:
                continue
            seen.add(key)

            attrs = record['attributes']
            names = attrs.get('sAMAccountName') or []
            object_class = ObjectClass.from_object_classes(attrs.get('objectClass') or [])
            members.append(GroupMembership(
                group_dn=group.distinguished_name,
                group_scope=group.scope,
                identity=str(names[0]) if names else record['dn'],
                identity_type=object_class.value,
            ))
        return members

    def run(self) -> list[GroupMembership]:
        self._log(f"[*] Enumerating security groups under {self.search_base}")
        groups = self.security_groups()

        memberships = []
        for group in groups:
            try:
                members = self.direct_members(group)
            except DirectoryError as e:
                self._log(f"[!] Cannot read members of {group.distinguished_name}: {e.message}")
                continue

            for membership in members:
                memberships.append(membership)
                if self.report:
                    self.report.append(membership.to_row())

        self._log(f"[+] {len(groups)} security groups, {len(memberships)} direct user/computer memberships")
        return memberships
