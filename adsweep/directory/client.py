"""
Directory Client Module
=======================

Directory service boundary for the sweep, inventory and audit commands.

Features:
- Lists immediate children of a DN
- Reads and writes owner / DACL of nTSecurityDescriptor
- Resolves SIDs to account names and account names to SIDs
- Exposes the well-known naming contexts from the rootDSE
- Handles large result sets with paging

Design Decisions:
-----------------
1. DirectoryClient is the abstract interface the walker, inspector and
   remediator depend on; tests substitute an in-memory implementation
2. LDAPDirectoryClient uses ldap3 for cross-platform LDAP support
3. Every failed operation raises DirectoryError; callers decide whether a
   failure skips an item or aborts the run
4. Security descriptor reads request owner + DACL only (SD_FLAGS control);
   writes send back only the part that changed
"""

from abc import ABC, abstractmethod
from typing import Optional, Callable

from ldap3 import (
    Server, Connection, ALL, SUBTREE, LEVEL, BASE,
    NTLM, SIMPLE, MODIFY_REPLACE
)
from ldap3.core.exceptions import LDAPException
from ldap3.protocol.microsoft import security_descriptor_control
from ldap3.utils.conv import escape_filter_chars

from ..config import LDAPConfig
from ..model.schemas import DirectoryObject, DomainContext
from .descriptor import (
    SecurityDescriptor,
    OWNER_SECURITY_INFORMATION,
    DACL_SECURITY_INFORMATION,
)
from .sids import sid_value


# Paged results control OID
PAGED_RESULTS_OID = '1.2.840.113556.1.4.319'

# Keywords accepted as a search root in place of an explicit DN
NAMING_CONTEXT_KEYWORDS = (
    'domain', 'configuration', 'schema', 'forest', 'domaindns', 'forestdns', 'all'
)


class DirectoryError(Exception):
    """A directory read or write failed for a specific DN."""

    def __init__(self, dn: str, message: str):
        super().__init__(f"{dn}: {message}")
        self.dn = dn
        self.message = message


def dn_to_dns_name(dn: str) -> str:
    """Convert DC=corp,DC=local to corp.local."""
    parts = [p.split('=', 1)[1] for p in dn.split(',') if p.strip().upper().startswith('DC=')]
    return '.'.join(parts)


class DirectoryClient(ABC):
    """Interface to the directory service, keyed by distinguished name."""

    @abstractmethod
    def list_children(self, dn: str) -> list[DirectoryObject]:
        """List immediate children of dn."""

    @abstractmethod
    def read_security(self, dn: str) -> SecurityDescriptor:
        """Read owner and DACL of dn."""

    @abstractmethod
    def write_security(self, dn: str, descriptor: SecurityDescriptor, owner: bool = False) -> None:
        """Persist the DACL (or the owner when owner=True) of dn."""

    @abstractmethod
    def lookup_sid(self, sid: str) -> Optional[str]:
        """Return NETBIOS\\sAMAccountName for sid, or None if no object has it."""

    @abstractmethod
    def lookup_account(self, name: str) -> str:
        """Return the SID of a DOMAIN\\name or bare account name."""

    @abstractmethod
    def search(self, base: str, ldap_filter: str, attributes: list[str]) -> list[dict]:
        """Subtree search returning {'dn': ..., 'attributes': {name: [values]}} records."""

    @abstractmethod
    def get_domain_sid(self) -> str:
        ...

    @abstractmethod
    def get_netbios_name(self) -> str:
        ...

    @abstractmethod
    def get_naming_contexts(self) -> dict[str, str]:
        """Map naming context keywords to DNs.

        Keys: domain, configuration, schema, forest, and domaindns / forestdns
        when those application partitions exist.
        """

    @abstractmethod
    def get_all_naming_contexts(self) -> list[str]:
        ...

    def resolve_search_roots(self, search_root: str) -> list[str]:
        """Turn a keyword or explicit DN into the list of DNs to walk.

        Raises:
            ValueError: if a keyword names a partition this forest lacks
        """
        keyword = search_root.strip().lower()
        if keyword == 'all':
            return self.get_all_naming_contexts()
        if keyword in NAMING_CONTEXT_KEYWORDS:
            contexts = self.get_naming_contexts()
            if keyword not in contexts:
                raise ValueError(f"Naming context '{search_root}' not found")
            return [contexts[keyword]]
        return [search_root]


def build_domain_context(
    client: DirectoryClient,
    substitute_owner: str = "Domain Admins",
    resolve_owner: bool = False
) -> DomainContext:
    """Collect the read-only domain facts used for one run.

    Args:
        client: Connected directory client
        substitute_owner: Owner used by owner fix-up; names without a
            DOMAIN\\ prefix are qualified with the current domain
        resolve_owner: Look up the substitute owner SID (required when
            owner fix-up is enabled)

    Raises:
        DirectoryError: if resolve_owner is set and the owner does not exist
    """
    contexts = client.get_naming_contexts()
    default_nc = contexts.get('domain', '')
    netbios = client.get_netbios_name()

    if '\\' in substitute_owner:
        owner_name = substitute_owner
    else:
        owner_name = f"{netbios}\\{substitute_owner}"

    owner_sid = client.lookup_account(owner_name) if resolve_owner else None

    return DomainContext(
        domain_sid=client.get_domain_sid(),
        netbios_name=netbios,
        dns_name=dn_to_dns_name(default_nc),
        default_naming_context=default_nc,
        forest_root=contexts.get('forest', default_nc),
        substitute_owner=owner_name,
        substitute_owner_sid=owner_sid,
    )


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class LDAPDirectoryClient(DirectoryClient):
    """ldap3-backed directory client.

    Usage:
        client = LDAPDirectoryClient(config=LDAPConfig(
            server="192.168.1.100",
            domain="corp.local",
            username="admin",
            password="password"
        ))
        client.connect()
        for child in client.list_children("DC=corp,DC=local"):
            print(child.distinguished_name)
    """

    def __init__(
        self,
        config: Optional[LDAPConfig] = None,
        verbose: bool = True,
        progress_callback: Optional[Callable[[str], None]] = None
    ):
        """Initialize the client.

        Args:
            config: LDAPConfig with server, domain and credentials
            verbose: Whether to print progress messages
            progress_callback: Optional callback for progress updates
        """
        self.config = config or LDAPConfig()
        self.verbose = verbose
        self.progress_callback = progress_callback

        # Connection state
        self.connection: Optional[Connection] = None
        self._domain_sid: str = ""
        self._netbios_name: str = ""

    def _log(self, message: str) -> None:
        """Log a message to console and/or callback."""
        if self.verbose:
            print(message)
        if self.progress_callback:
            self.progress_callback(message)

    def connect(self) -> bool:
        """Establish connection to the LDAP server.

        Returns:
            True if connection successful, False otherwise
        """
        cfg = self.config
        try:
            server = Server(
                cfg.server,
                port=cfg.port,
                use_ssl=cfg.use_ssl,
                get_info=ALL,
                connect_timeout=cfg.timeout
            )

            if cfg.username and cfg.password:
                if '\\' not in cfg.username and '@' not in cfg.username:
                    ntlm_user = f"{cfg.domain.split('.')[0].upper()}\\{cfg.username}"
                else:
                    ntlm_user = cfg.username

                self._log(f"[*] Connecting to {cfg.server}:{cfg.port} as {ntlm_user}")

                try:
                    self.connection = Connection(
                        server,
                        user=ntlm_user,
                        password=cfg.password,
                        authentication=NTLM,
                        auto_bind=True,
                        receive_timeout=cfg.timeout
                    )
                except LDAPException:
                    self._log("[*] NTLM auth failed, trying simple bind...")
                    self.connection = Connection(
                        server,
                        user=cfg.username if '@' in cfg.username else f"{cfg.username}@{cfg.domain}",
                        password=cfg.password,
                        authentication=SIMPLE,
                        auto_bind=True,
                        receive_timeout=cfg.timeout
                    )
            else:
                self._log(f"[*] Connecting anonymously to {cfg.server}:{cfg.port}")
                self.connection = Connection(
                    server,
                    auto_bind=True,
                    receive_timeout=cfg.timeout
                )

            self._log(f"[+] Connected successfully to {cfg.server}")
            return True

        except LDAPException as e:
            self._log(f"[!] Connection failed: {e}")
            return False

    def disconnect(self) -> None:
        """Close the LDAP connection."""
        if self.connection:
            try:
                self.connection.unbind()
            except LDAPException:
                pass
            self.connection = None

    # ------------------------------------------------------------------
    # Low-level search
    # ------------------------------------------------------------------

    def _check_result(self, dn: str) -> None:
        result = self.connection.result or {}
        if result.get('result', 0) != 0:
            raise DirectoryError(dn, f"{result.get('description')} {result.get('message', '')}".strip())

    def _search(self, base: str, ldap_filter: str, scope, attributes: list[str], controls=None) -> list[dict]:
        """Run a paged search and return raw searchResEntry responses."""
        entries = []
        cookie = None
        try:
            while True:
                self.connection.search(
                    search_base=base,
                    search_filter=ldap_filter,
                    search_scope=scope,
                    attributes=attributes,
                    controls=controls,
                    paged_size=self.config.page_size,
                    paged_cookie=cookie
                )
                self._check_result(base)
                entries.extend(
                    r for r in self.connection.response or [] if r.get('type') == 'searchResEntry'
                )
                cookie = (self.connection.result.get('controls', {})
                          .get(PAGED_RESULTS_OID, {})
                          .get('value', {})
                          .get('cookie'))
                if not cookie:
                    break
        except LDAPException as e:
            raise DirectoryError(base, str(e)) from e
        return entries

    def search(self, base: str, ldap_filter: str, attributes: list[str]) -> list[dict]:
        records = []
        for entry in self._search(base, ldap_filter, SUBTREE, attributes):
            attrs = entry.get('attributes', {})
            raw = entry.get('raw_attributes', {})
            values = {}
            for name in attributes:
                if name == 'objectSid':
                    values[name] = [sid_value(v) for v in _as_list(raw.get(name))]
                else:
                    values[name] = _as_list(attrs.get(name))
            records.append({'dn': entry['dn'], 'attributes': values})
        return records

    # ------------------------------------------------------------------
    # Tree and security descriptor operations
    # ------------------------------------------------------------------

    def list_children(self, dn: str) -> list[DirectoryObject]:
        entries = self._search(dn, '(objectClass=*)', LEVEL, ['objectClass'])
        return [
            DirectoryObject.from_classes(e['dn'], _as_list(e.get('attributes', {}).get('objectClass')))
            for e in entries
        ]

    def read_security(self, dn: str) -> SecurityDescriptor:
        controls = security_descriptor_control(
            sdflags=OWNER_SECURITY_INFORMATION | DACL_SECURITY_INFORMATION
        )
        entries = self._search(dn, '(objectClass=*)', BASE, ['nTSecurityDescriptor'], controls=controls)
        if not entries:
            raise DirectoryError(dn, "object not found")

        raw = _as_list(entries[0].get('raw_attributes', {}).get('nTSecurityDescriptor'))
        if not raw or not isinstance(raw[0], bytes):
            raise DirectoryError(dn, "nTSecurityDescriptor not readable")
        try:
            return SecurityDescriptor.from_bytes(raw[0])
        except Exception as e:
            raise DirectoryError(dn, f"malformed security descriptor: {e}") from e

    def write_security(self, dn: str, descriptor: SecurityDescriptor, owner: bool = False) -> None:
        sdflags = OWNER_SECURITY_INFORMATION if owner else DACL_SECURITY_INFORMATION
        try:
            ok = self.connection.modify(
                dn,
                {'nTSecurityDescriptor': [(MODIFY_REPLACE, [descriptor.to_bytes()])]},
                controls=security_descriptor_control(sdflags=sdflags)
            )
        except LDAPException as e:
            raise DirectoryError(dn, str(e)) from e
        if not ok:
            self._check_result(dn)
            raise DirectoryError(dn, "modify failed")

    # ------------------------------------------------------------------
    # Name and SID resolution
    # ------------------------------------------------------------------

    def lookup_sid(self, sid: str) -> Optional[str]:
        base = self.get_naming_contexts()['domain']
        entries = self._search(base, f"(objectSid={escape_filter_chars(sid)})", SUBTREE, ['sAMAccountName'])
        if not entries:
            return None
        names = _as_list(entries[0].get('attributes', {}).get('sAMAccountName'))
        if not names:
            return None
        prefix = 'BUILTIN' if sid.startswith('S-1-5-32-') else self.get_netbios_name()
        return f"{prefix}\\{names[0]}"

    def _naming_context_for_netbios(self, netbios: str) -> str:
        if netbios.lower() == self.get_netbios_name().lower():
            return self.get_naming_contexts()['domain']

        partitions = f"CN=Partitions,{self.get_naming_contexts()['configuration']}"
        entries = self._search(
            partitions,
            f"(&(objectClass=crossRef)(nETBIOSName={escape_filter_chars(netbios)}))",
            SUBTREE,
            ['nCName']
        )
        for entry in entries:
            nc = _as_list(entry.get('attributes', {}).get('nCName'))
            if nc:
                return str(nc[0])
        raise DirectoryError(partitions, f"no domain with NetBIOS name {netbios}")

    def lookup_account(self, name: str) -> str:
        if '\\' in name:
            netbios, account = name.split('\\', 1)
        else:
            netbios, account = self.get_netbios_name(), name

        base = self._naming_context_for_netbios(netbios)
        entries = self._search(
            base, f"(sAMAccountName={escape_filter_chars(account)})", SUBTREE, ['objectSid']
        )
        for entry in entries:
            for value in _as_list(entry.get('raw_attributes', {}).get('objectSid')):
                sid = sid_value(value)
                if sid:
                    return sid
        raise DirectoryError(base, f"account {name} not found")

    # ------------------------------------------------------------------
    # Domain facts
    # ------------------------------------------------------------------

    def get_domain_sid(self) -> str:
        """Retrieve the domain SID (cached after the first call)."""
        if not self._domain_sid:
            base = self.get_naming_contexts()['domain']
            entries = self._search(base, '(objectClass=domain)', BASE, ['objectSid'])
            if entries:
                values = _as_list(entries[0].get('raw_attributes', {}).get('objectSid'))
                self._domain_sid = sid_value(values[0]) if values else ""
            if not self._domain_sid:
                raise DirectoryError(base, "could not read domain SID")
            self._log(f"[+] Domain SID: {self._domain_sid}")
        return self._domain_sid

    def get_netbios_name(self) -> str:
        if not self._netbios_name:
            contexts = self.get_naming_contexts()
            try:
                entries = self._search(
                    f"CN=Partitions,{contexts['configuration']}",
                    f"(&(objectClass=crossRef)(nCName={escape_filter_chars(contexts['domain'])}))",
                    SUBTREE,
                    ['nETBIOSName']
                )
                names = _as_list(entries[0].get('attributes', {}).get('nETBIOSName')) if entries else []
                self._netbios_name = str(names[0]) if names else ""
            except DirectoryError as e:
                self._log(f"[!] Could not read NetBIOS name: {e}")
            if not self._netbios_name:
                self._netbios_name = (self.config.domain or dn_to_dns_name(contexts['domain'])).split('.')[0].upper()
        return self._netbios_name

    def _root_dse(self, key: str) -> str:
        other = self.connection.server.info.other
        return str(_as_list(other.get(key))[0]) if other.get(key) else ""

    def get_naming_contexts(self) -> dict[str, str]:
        contexts = {
            'domain': self._root_dse('defaultNamingContext'),
            'configuration': self._root_dse('configurationNamingContext'),
            'schema': self._root_dse('schemaNamingContext'),
            'forest': self._root_dse('rootDomainNamingContext'),
        }
        all_contexts = {nc.lower(): nc for nc in self.get_all_naming_contexts()}
        domain_dns = f"DC=DomainDnsZones,{contexts['domain']}"
        forest_dns = f"DC=ForestDnsZones,{contexts['forest']}"
        if domain_dns.lower() in all_contexts:
            contexts['domaindns'] = all_contexts[domain_dns.lower()]
        if forest_dns.lower() in all_contexts:
            contexts['forestdns'] = all_contexts[forest_dns.lower()]
        return contexts

    def get_all_naming_contexts(self) -> list[str]:
        return [str(nc) for nc in self.connection.server.info.naming_contexts or []]
