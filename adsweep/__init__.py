"""
adsweep - Active Directory Operational Utilities
================================================

A Python toolkit for routine Active Directory hygiene and inventory.

Architecture Overview:
----------------------
- directory/: Directory service boundary (ldap3), security descriptors
  (impacket), SID resolution and the subtree walker
- remote/: Remote machine boundary (ping + WinRM)
- analysis/: Orphan sweep, remediation, group audit and machine probes
- reporting/: CSV report output
- pipeline.py: One entry point per command
- main.py: Command-line interface

Design Decisions:
-----------------
1. Directory and remote access sit behind interfaces so the core logic can
   be driven by in-memory fakes
2. All data models use Python dataclasses
3. Every run is sequential; per-item failures are logged and skipped, only
   an output-file conflict or a failed connection aborts a run
4. Domain facts are computed once per run and passed around read-only
"""

__version__ = "1.0.0"
__author__ = "adsweep contributors"

from .config import ADSweepConfig
