"""
adsweep Analysis Module
=======================

The per-command logic, written against the directory and remote
interfaces.

Components:
- inspector.py: Owner/ACE classification (orphaned vs resolved)
- remediator.py: Owner fix-up and orphaned ACE removal
- orphan_sweep.py: Walk -> inspect -> remediate -> report
- group_audit.py: Direct user/computer members of security groups
- machine_probe.py: Uptime and local administrator inventories
"""

from .inspector import AclInspector
from .remediator import Remediator
from .orphan_sweep import OrphanSweep
from .group_audit import GroupAudit
from .machine_probe import (
    MachineInventory,
    UptimeInventory,
    LocalAdminInventory,
    list_computers,
)
