"""
adsweep Configuration Module
============================

Centralized configuration management for the adsweep utilities.
Supports environment variables for credentials.

Design Decision:
- Configuration is a dataclass tree that is resolved once at start and passed
  through the pipeline; nothing reads it again mid-run
- Every remediation action is an explicit switch that defaults to off
- Output handling (path, overwrite) is shared by all report-producing commands
"""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class LDAPConfig:
    """Configuration for the directory connection.

    Attributes:
        server: Domain controller host name or IP address
        domain: DNS domain name (e.g., corp.local)
        username: Bind user (domain\\user, user@domain or bare user)
        password: Bind password (loaded from environment if not provided)
        use_ssl: Whether to use LDAPS (port 636) vs LDAP (port 389)
        page_size: Page size for LDAP queries
        timeout: Connection timeout in seconds
    """
    server: Optional[str] = None
    domain: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    use_ssl: bool = False
    port: Optional[int] = None  # Auto-detect based on use_ssl
    page_size: int = 1000
    timeout: int = 30

    def __post_init__(self):
        if self.port is None:
            self.port = 636 if self.use_ssl else 389
        if self.password is None:
            self.password = os.environ.get("ADSWEEP_LDAP_PASSWORD")


@dataclass
class WinRMConfig:
    """Configuration for remote machine management.

    Attributes:
        username: WinRM user (loaded from WINRM_USERNAME if not provided)
        password: WinRM password (loaded from WINRM_PASSWORD if not provided)
        transport: pywinrm transport (ntlm, kerberos, basic, credssp)
        use_ssl: Whether to use HTTPS (port 5986) vs HTTP (port 5985)
        ping_timeout: Seconds to wait for the reachability probe
    """
    username: Optional[str] = None
    password: Optional[str] = None
    transport: str = "ntlm"
    use_ssl: bool = False
    port: Optional[int] = None
    ping_timeout: int = 1

    def __post_init__(self):
        if self.username is None:
            self.username = os.environ.get("WINRM_USERNAME")
        if self.password is None:
            self.password = os.environ.get("WINRM_PASSWORD")
        if self.port is None:
            self.port = 5986 if self.use_ssl else 5985


@dataclass
class SweepConfig:
    """Configuration for the orphaned SID sweep.

    Attributes:
        search_root: Explicit DN or a naming context keyword
            (domain, configuration, schema, forest, domaindns, forestdns, all)
        remove_orphans: Remove ACEs whose identity is an orphaned domain SID
        containers_only: Only visit containers and OUs
        show_permissions: Print every ACE of every visited object
        show_all_objects: Print every visited object, not just findings
        fix_owner: Replace orphaned owners with the substitute owner
        substitute_owner: Owner to set; bare names resolve in the current domain
    """
    search_root: str = "domain"
    remove_orphans: bool = False
    containers_only: bool = False
    show_permissions: bool = False
    show_all_objects: bool = False
    fix_owner: bool = False
    substitute_owner: str = "Domain Admins"


@dataclass
class MachineConfig:
    """Configuration for computer selection in the machine inventories.

    Attributes:
        search_base: DN to search under (defaults to the domain naming context)
        name_filter: cn wildcard pattern (e.g., "SRV*")
        enabled_only: Skip disabled computer accounts
    """
    search_base: Optional[str] = None
    name_filter: str = "*"
    enabled_only: bool = True


@dataclass
class GroupConfig:
    """Configuration for the group membership audit.

    Attributes:
        search_base: DN to search under (defaults to the domain naming context)
        scopes: Group scopes to include (DomainLocal, Global, Universal, BuiltinLocal)
    """
    search_base: Optional[str] = None
    scopes: list = field(default_factory=lambda: [
        "DomainLocal",
        "Global",
        "Universal",
    ])


@dataclass
class OutputConfig:
    """Configuration for report output.

    Attributes:
        output_path: CSV file to write (None means console only where allowed)
        overwrite: Replace an existing report instead of aborting
    """
    output_path: Optional[str] = None
    overwrite: bool = False


@dataclass
class ADSweepConfig:
    """Main configuration container for adsweep.

    Design Decision:
    This aggregates all sub-configurations into a single object that can be
    passed through the pipeline. Each command extracts the configuration it
    needs.

    Usage:
        config = ADSweepConfig()  # Uses all defaults
        config = ADSweepConfig(sweep=SweepConfig(fix_owner=True))
    """
    ldap: LDAPConfig = field(default_factory=LDAPConfig)
    winrm: WinRMConfig = field(default_factory=WinRMConfig)
    sweep: SweepConfig = field(default_factory=SweepConfig)
    machines: MachineConfig = field(default_factory=MachineConfig)
    groups: GroupConfig = field(default_factory=GroupConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    # Verbosity level for logging
    verbose: bool = True
    debug: bool = False

    @classmethod
    def from_dict(cls, config_dict: dict) -> "ADSweepConfig":
        """Create configuration from a dictionary.

        Useful for loading from JSON/YAML files or CLI arguments.
        """
        return cls(
            ldap=LDAPConfig(**config_dict.get("ldap", {})),
            winrm=WinRMConfig(**config_dict.get("winrm", {})),
            sweep=SweepConfig(**config_dict.get("sweep", {})),
            machines=MachineConfig(**config_dict.get("machines", {})),
            groups=GroupConfig(**config_dict.get("groups", {})),
            output=OutputConfig(**config_dict.get("output", {})),
            verbose=config_dict.get("verbose", True),
            debug=config_dict.get("debug", False)
        )

    def to_dict(self) -> dict:
        """Convert configuration to dictionary for serialization.

        Passwords are masked.
        """
        from dataclasses import asdict
        data = asdict(self)
        for section in ("ldap", "winrm"):
            if data[section].get("password"):
                data[section]["password"] = "********"
        return data
