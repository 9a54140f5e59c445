"""
adsweep Model Module
====================

Contains the data models shared by the directory, analysis and reporting
layers.

Key Components:
- schemas.py: Typed dataclasses for directory objects, ACEs, machine records
  and report rows
"""

from .schemas import (
    ObjectClass,
    MachineStatus,
    GroupScope,
    DirectoryObject,
    AccessEntry,
    InspectionResult,
    DomainContext,
    OrphanFinding,
    SweepSummary,
    MachineRecord,
    GroupMembership,
    is_security_group,
    format_uptime,
)
