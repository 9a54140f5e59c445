"""
Security Descriptor Module
==========================

Read, edit and re-serialize nTSecurityDescriptor values.

Design Decisions:
-----------------
1. Parsing and serialization are delegated to impacket's ldaptypes so that
   an edited descriptor round-trips byte-exactly for untouched parts
2. Only owner and DACL are exposed; the SACL is never requested
3. Rights masks are rendered with Active Directory rights names
"""

from typing import Optional

from impacket.ldap import ldaptypes


# SD_FLAGS control values
OWNER_SECURITY_INFORMATION = 0x01
GROUP_SECURITY_INFORMATION = 0x02
DACL_SECURITY_INFORMATION = 0x04

# SE_DACL_PRESENT | SE_SELF_RELATIVE
DEFAULT_CONTROL = 0x8004

ALLOW_ACE_TYPES = (0x00, 0x05, 0x09, 0x0B)
DENY_ACE_TYPES = (0x01, 0x06, 0x0A, 0x0C)

INHERITED_ACE = 0x10

# Composite rights first so they absorb their component bits
AD_RIGHTS = [
    ('GenericAll', 0x000F01FF),
    ('GenericRead', 0x00020094),
    ('GenericWrite', 0x00020028),
    ('GenericExecute', 0x00020004),
    ('CreateChild', 0x00000001),
    ('DeleteChild', 0x00000002),
    ('ListChildren', 0x00000004),
    ('Self', 0x00000008),
    ('ReadProperty', 0x00000010),
    ('WriteProperty', 0x00000020),
    ('DeleteTree', 0x00000040),
    ('ListObject', 0x00000080),
    ('ExtendedRight', 0x00000100),
    ('Delete', 0x00010000),
    ('ReadControl', 0x00020000),
    ('WriteDacl', 0x00040000),
    ('WriteOwner', 0x00080000),
    ('Synchronize', 0x00100000),
    ('AccessSystemSecurity', 0x01000000),
]


def format_rights(mask: int) -> str:
    """Render an access mask as comma-separated AD rights names.

    Bits with no name are appended as a hex remainder.
    """
    names = []
    remaining = mask
    for name, value in AD_RIGHTS:
        if remaining & value == value:
            names.append(name)
            remaining &= ~value
    if remaining:
        names.append(f"0x{remaining:x}")
    return ", ".join(names) if names else "None"


def access_type_name(ace_type: int) -> str:
    if ace_type in ALLOW_ACE_TYPES:
        return "Allow"
    if ace_type in DENY_ACE_TYPES:
        return "Deny"
    return "Other"


class SecurityDescriptor:
    """Owner and DACL view over a self-relative security descriptor.

    Usage:
        sd = SecurityDescriptor.from_bytes(raw)
        sd.owner_sid                 # 'S-1-5-21-...-512'
        for ace in sd.aces():        # (sid, inherited, type, mask)
            ...
        sd.remove_aces("S-1-5-21-...-5001")
        sd.set_owner("S-1-5-21-...-512")
        raw = sd.to_bytes()
    """

    def __init__(self, sd: "ldaptypes.SR_SECURITY_DESCRIPTOR"):
        self._sd = sd

    @classmethod
    def from_bytes(cls, data: bytes) -> "SecurityDescriptor":
        return cls(ldaptypes.SR_SECURITY_DESCRIPTOR(data=data))

    @classmethod
    def build(cls, owner_sid: str, aces: Optional[list] = None) -> "SecurityDescriptor":
        """Create a descriptor from scratch.

        Args:
            owner_sid: Owner in canonical form
            aces: Iterable of (sid, ace_type, ace_flags, mask) tuples,
                where ace_type is 0 (allow) or 1 (deny)
        """
        sd = ldaptypes.SR_SECURITY_DESCRIPTOR()
        sd['Revision'] = b'\x01'
        sd['Sbz1'] = b'\x00'
        sd['Control'] = DEFAULT_CONTROL
        sd['OwnerSid'] = ldaptypes.LDAP_SID()
        sd['OwnerSid'].fromCanonical(owner_sid)
        sd['GroupSid'] = b''
        sd['Sacl'] = b''

        acl = ldaptypes.ACL()
        acl['AclRevision'] = 4
        acl['Sbz1'] = 0
        acl['Sbz2'] = 0
        acl.aces = []
        for sid, ace_type, ace_flags, mask in aces or []:
            acl.aces.append(_build_ace(sid, ace_type, ace_flags, mask))
        sd['Dacl'] = acl
        return cls(sd)

    @property
    def owner_sid(self) -> Optional[str]:
        owner = self._sd['OwnerSid']
        if not isinstance(owner, ldaptypes.LDAP_SID):
            return None
        return owner.formatCanonical()

    def set_owner(self, sid: str) -> None:
        owner = ldaptypes.LDAP_SID()
        owner.fromCanonical(sid)
        self._sd['OwnerSid'] = owner

    def _dacl(self) -> Optional["ldaptypes.ACL"]:
        dacl = self._sd['Dacl']
        if not isinstance(dacl, ldaptypes.ACL):
            return None
        return dacl

    def _dacl_aces(self) -> list:
        dacl = self._dacl()
        return dacl.aces if dacl is not None else []

    def aces(self) -> list[tuple]:
        """List DACL entries as (sid, inherited, access_type, mask)."""
        entries = []
        for ace in self._dacl_aces():
            body = ace['Ace']
            entries.append((
                body['Sid'].formatCanonical(),
                bool(ace['AceFlags'] & INHERITED_ACE),
                access_type_name(ace['AceType']),
                int(body['Mask']['Mask']),
            ))
        return entries

    def remove_aces(self, sid: str) -> int:
        """Drop every DACL entry whose trustee is sid.

        Returns:
            Number of entries removed
        """
        dacl = self._dacl()
        if dacl is None:
            return 0
        kept = [ace for ace in dacl.aces if ace['Ace']['Sid'].formatCanonical() != sid]
        removed = len(dacl.aces) - len(kept)
        dacl.aces = kept
        return removed

    def to_bytes(self) -> bytes:
        return self._sd.getData()


def _build_ace(sid: str, ace_type: int, ace_flags: int, mask: int):
    ace = ldaptypes.ACE()
    ace['AceType'] = ace_type
    ace['AceFlags'] = ace_flags
    if ace_type in DENY_ACE_TYPES:
        body = ldaptypes.ACCESS_DENIED_ACE()
    else:
        body = ldaptypes.ACCESS_ALLOWED_ACE()
    body['Mask'] = ldaptypes.ACCESS_MASK()
    body['Mask']['Mask'] = mask
    body['Sid'] = ldaptypes.LDAP_SID()
    body['Sid'].fromCanonical(sid)
    ace['Ace'] = body
    return ace
