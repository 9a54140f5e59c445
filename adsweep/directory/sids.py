"""
SID Helpers
===========

Binary SID decoding, well-known SID names, orphan classification and a
cached SID-to-name resolver.

An identity reference is either a resolved principal name
(NETBIOS\\sAMAccountName) or, when the SID no longer resolves, the raw SID
string. An unresolved SID that carries the domain SID prefix is orphaned.
"""

import struct
from typing import Optional


# Well-known SIDs that never resolve through a directory search
WELL_KNOWN_SIDS = {
    'S-1-0-0': 'Null Authority',
    'S-1-1-0': 'Everyone',
    'S-1-2-0': 'Local',
    'S-1-2-1': 'Console Logon',
    'S-1-3-0': 'Creator Owner',
    'S-1-3-1': 'Creator Group',
    'S-1-5-1': 'NT AUTHORITY\\Dialup',
    'S-1-5-2': 'NT AUTHORITY\\Network',
    'S-1-5-3': 'NT AUTHORITY\\Batch',
    'S-1-5-4': 'NT AUTHORITY\\Interactive',
    'S-1-5-6': 'NT AUTHORITY\\Service',
    'S-1-5-7': 'NT AUTHORITY\\Anonymous Logon',
    'S-1-5-9': 'NT AUTHORITY\\Enterprise Domain Controllers',
    'S-1-5-10': 'NT AUTHORITY\\Self',
    'S-1-5-11': 'NT AUTHORITY\\Authenticated Users',
    'S-1-5-18': 'NT AUTHORITY\\SYSTEM',
    'S-1-5-19': 'NT AUTHORITY\\Local Service',
    'S-1-5-20': 'NT AUTHORITY\\Network Service',
    'S-1-5-32-544': 'BUILTIN\\Administrators',
    'S-1-5-32-545': 'BUILTIN\\Users',
    'S-1-5-32-546': 'BUILTIN\\Guests',
    'S-1-5-32-548': 'BUILTIN\\Account Operators',
    'S-1-5-32-549': 'BUILTIN\\Server Operators',
    'S-1-5-32-550': 'BUILTIN\\Print Operators',
    'S-1-5-32-551': 'BUILTIN\\Backup Operators',
    'S-1-5-32-552': 'BUILTIN\\Replicator',
    'S-1-5-32-554': 'BUILTIN\\Pre-Windows 2000 Compatible Access',
    'S-1-5-32-555': 'BUILTIN\\Remote Desktop Users',
    'S-1-5-32-556': 'BUILTIN\\Network Configuration Operators',
    'S-1-5-32-557': 'BUILTIN\\Incoming Forest Trust Builders',
    'S-1-5-32-558': 'BUILTIN\\Performance Monitor Users',
    'S-1-5-32-559': 'BUILTIN\\Performance Log Users',
    'S-1-5-32-560': 'BUILTIN\\Windows Authorization Access Group',
    'S-1-5-32-561': 'BUILTIN\\Terminal Server License Servers',
    'S-1-5-32-562': 'BUILTIN\\Distributed COM Users',
    'S-1-5-32-568': 'BUILTIN\\IIS_IUSRS',
    'S-1-5-32-569': 'BUILTIN\\Cryptographic Operators',
    'S-1-5-32-573': 'BUILTIN\\Event Log Readers',
    'S-1-5-32-574': 'BUILTIN\\Certificate Service DCOM Access',
    'S-1-5-32-575': 'BUILTIN\\RDS Remote Access Servers',
    'S-1-5-32-576': 'BUILTIN\\RDS Endpoint Servers',
    'S-1-5-32-577': 'BUILTIN\\RDS Management Servers',
    'S-1-5-32-578': 'BUILTIN\\Hyper-V Administrators',
    'S-1-5-32-579': 'BUILTIN\\Access Control Assistance Operators',
    'S-1-5-32-580': 'BUILTIN\\Remote Management Users',
}


def convert_sid(sid_bytes: bytes) -> str:
    """Convert binary SID to string format.

    Args:
        sid_bytes: Binary SID data

    Returns:
        String SID (e.g., "S-1-5-21-..."), or "" for malformed input
    """
    if not sid_bytes or len(sid_bytes) < 8:
        return ""

    # SID structure:
    # Byte 0: Revision
    # Byte 1: Number of sub-authorities
    # Bytes 2-7: Identifier authority (big-endian)
    # Remaining: Sub-authorities (little-endian 32-bit)
    revision = sid_bytes[0]
    sub_auth_count = sid_bytes[1]

    if len(sid_bytes) < 8 + sub_auth_count * 4:
        return ""

    id_auth = int.from_bytes(sid_bytes[2:8], 'big')

    sub_auths = []
    for i in range(sub_auth_count):
        offset = 8 + (i * 4)
        sub_auths.append(struct.unpack('<I', sid_bytes[offset:offset + 4])[0])

    sid = f"S-{revision}-{id_auth}"
    for sub_auth in sub_auths:
        sid += f"-{sub_auth}"
    return sid


def sid_value(value) -> Optional[str]:
    """Normalize an objectSid attribute value to its string form.

    ldap3 hands objectSid back as bytes or as an already formatted string
    depending on whether the schema was loaded.
    """
    if isinstance(value, (bytes, bytearray)):
        return convert_sid(bytes(value)) or None
    if isinstance(value, str) and value.startswith('S-'):
        return value
    return None


def is_orphaned_identity(identity: str, domain_sid: str) -> bool:
    """Return True if an identity reference is an unresolved domain SID.

    Resolved references are principal names and never start with the SID
    prefix, so a plain prefix test is the whole classification.
    """
    return identity.startswith(domain_sid)


class SidResolver:
    """Resolves SIDs to identity references with a per-run cache.

    Usage:
        resolver = SidResolver(client)
        resolver.resolve("S-1-5-32-544")       # 'BUILTIN\\Administrators'
        resolver.resolve("S-1-5-21-1-2-3-999")  # raw SID if deleted

    Lookup order: well-known table, cache, directory search. A SID the
    directory does not know is returned unchanged.
    """

    def __init__(self, client):
        self.client = client
        self._sid_cache: dict[str, str] = {}

    def resolve(self, sid: str) -> str:
        if not sid:
            return sid
        if sid in WELL_KNOWN_SIDS:
            return WELL_KNOWN_SIDS[sid]
        if sid in self._sid_cache:
            return self._sid_cache[sid]

        name = self.client.lookup_sid(sid)
        identity = name or sid
        self._sid_cache[sid] = identity
        return identity
