"""Shared fixtures: in-memory directory and remote clients."""

from typing import Optional

import pytest

from adsweep.directory.client import DirectoryClient, DirectoryError
from adsweep.directory.descriptor import SecurityDescriptor
from adsweep.model.schemas import DirectoryObject, DomainContext
from adsweep.remote.client import RemoteClient, RemoteCommandError


DOMAIN_SID = "S-1-5-21-111-222-333"
DOMAIN_NC = "DC=corp,DC=local"
DOMAIN_ADMINS_SID = f"{DOMAIN_SID}-512"
ORPHAN_SID = f"{DOMAIN_SID}-5001"
ALICE_SID = f"{DOMAIN_SID}-1104"


class FakeDirectory(DirectoryClient):
    """In-memory DirectoryClient.

    objects: dn -> objectClass list
    descriptors: dn -> SecurityDescriptor
    accounts: sid -> NETBIOS\\name
    """

    def __init__(self):
        self.objects: dict[str, list] = {}
        self.parents: dict[str, str] = {}
        self.descriptors: dict[str, SecurityDescriptor] = {}
        self.accounts: dict[str, str] = {
            DOMAIN_ADMINS_SID: "CORP\\Domain Admins",
            ALICE_SID: "CORP\\alice",
        }
        self.records: list[tuple[str, dict]] = []
        self.unlistable: set[str] = set()
        self.unreadable: set[str] = set()
        self.failing_writes: set[str] = set()
        self.fail_writes_after: Optional[int] = None
        self.writes: list[tuple[str, bool, bytes]] = []
        self.calls: list[str] = []

    # Tree construction helpers

    def add(self, dn: str, classes, parent: Optional[str] = None, descriptor=None):
        self.objects[dn] = list(classes)
        if parent:
            self.parents[dn] = parent
        if descriptor is not None:
            self.descriptors[dn] = descriptor
        return dn

    # DirectoryClient interface

    def list_children(self, dn):
        self.calls.append(f"list_children:{dn}")
        if dn in self.unlistable:
            raise DirectoryError(dn, "insufficientAccessRights")
        return [
            DirectoryObject.from_classes(child, self.objects[child])
            for child, parent in self.parents.items() if parent == dn
        ]

    def read_security(self, dn):
        self.calls.append(f"read_security:{dn}")
        if dn in self.unreadable or dn not in self.descriptors:
            raise DirectoryError(dn, "noSuchObject")
        # Hand out a fresh copy, like a real read
        return SecurityDescriptor.from_bytes(self.descriptors[dn].to_bytes())

    def write_security(self, dn, descriptor, owner=False):
        self.calls.append(f"write_security:{dn}")
        if dn in self.failing_writes:
            raise DirectoryError(dn, "unwillingToPerform")
        if self.fail_writes_after is not None and len(self.writes) >= self.fail_writes_after:
            raise DirectoryError(dn, "busy")
        data = descriptor.to_bytes()
        self.writes.append((dn, owner, data))
        self.descriptors[dn] = SecurityDescriptor.from_bytes(data)

    def lookup_sid(self, sid):
        self.calls.append(f"lookup_sid:{sid}")
        return self.accounts.get(sid)

    def lookup_account(self, name):
        for sid, account in self.accounts.items():
            if account.lower() == name.lower():
                return sid
        raise DirectoryError(DOMAIN_NC, f"account {name} not found")

    def search(self, base, ldap_filter, attributes):
        """Records whose key occurs in the filter and whose DN is under base."""
        self.calls.append(f"search:{ldap_filter}")
        return [
            r for f, r in self.records
            if f in ldap_filter and r['dn'].lower().endswith(base.lower())
        ]

    def get_domain_sid(self):
        return DOMAIN_SID

    def get_netbios_name(self):
        return "CORP"

    def get_naming_contexts(self):
        return {
            "domain": DOMAIN_NC,
            "configuration": f"CN=Configuration,{DOMAIN_NC}",
            "schema": f"CN=Schema,CN=Configuration,{DOMAIN_NC}",
            "forest": DOMAIN_NC,
            "domaindns": f"DC=DomainDnsZones,{DOMAIN_NC}",
        }

    def get_all_naming_contexts(self):
        return list(self.get_naming_contexts().values())


class FakeRemote(RemoteClient):
    """In-memory RemoteClient: hosts map to script output or an exception."""

    def __init__(self, reachable=None, outputs=None, failing=None):
        self.reachable = set(reachable or [])
        self.outputs = dict(outputs or {})
        self.failing = set(failing or [])
        self.commands: list[tuple[str, str]] = []

    def is_reachable(self, host):
        return host in self.reachable

    def run_powershell(self, host, script):
        self.commands.append((host, script))
        if host in self.failing:
            raise RemoteCommandError(host, "Access is denied")
        return self.outputs.get(host, "")


def allow(sid, mask=0x20094, inherited=False):
    return (sid, 0x00, 0x10 if inherited else 0x00, mask)


def deny(sid, mask=0x10000):
    return (sid, 0x01, 0x00, mask)


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def context():
    return DomainContext(
        domain_sid=DOMAIN_SID,
        netbios_name="CORP",
        dns_name="corp.local",
        default_naming_context=DOMAIN_NC,
        forest_root=DOMAIN_NC,
        substitute_owner="CORP\\Domain Admins",
        substitute_owner_sid=DOMAIN_ADMINS_SID,
    )


@pytest.fixture
def messages():
    collected = []
    return collected
