"""
adsweep Directory Module
========================

Directory service access.

Components:
- client.py: DirectoryClient interface and the ldap3 implementation
- descriptor.py: nTSecurityDescriptor parsing and editing (impacket)
- sids.py: SID decoding, well-known names and the SID resolver
- walker.py: Depth-first subtree traversal

Design Philosophy:
- Analysis code only ever talks to the DirectoryClient interface
- Every directory failure surfaces as DirectoryError
"""

from .client import (
    DirectoryClient,
    DirectoryError,
    LDAPDirectoryClient,
    build_domain_context,
)
from .descriptor import SecurityDescriptor, format_rights
from .sids import SidResolver, convert_sid, is_orphaned_identity
from .walker import TreeWalker
