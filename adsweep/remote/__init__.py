"""
adsweep Remote Module
=====================

Remote machine management boundary (reachability probe + WinRM PowerShell).
"""

from .client import RemoteClient, RemoteCommandError, WinRMClient, ping_host
