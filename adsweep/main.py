#!/usr/bin/env python3
"""
adsweep - Active Directory Operational Utilities
================================================

Command-line interface.

Usage:
    # Report orphaned SIDs in owners and ACEs of the domain partition
    python -m adsweep orphans -u admin -p Password123 -d corp.local -s 192.168.1.100

    # Remove orphaned ACEs and reset orphaned owners below one OU
    python -m adsweep orphans -u admin -p Password123 -d corp.local -s dc01 \\
        --search-root "OU=Sales,DC=corp,DC=local" --remove-orphans --fix-owner

    # Uptime of all enabled servers, written to CSV
    python -m adsweep uptime -u admin -p Password123 -d corp.local -s dc01 \\
        --name-filter "SRV*" -o uptime.csv

    # Security groups with direct user/computer members
    python -m adsweep groups -u admin -p Password123 -d corp.local -s dc01 -o groups.csv

    # Local administrators of every computer
    python -m adsweep localadmins -u admin -p Password123 -d corp.local -s dc01 -o admins.csv

Environment Variables:
    ADSWEEP_LDAP_PASSWORD   LDAP bind password (instead of -p)
    WINRM_USERNAME          WinRM user (instead of --winrm-user)
    WINRM_PASSWORD          WinRM password (instead of --winrm-password)
"""

import argparse
import sys

from . import __version__
from .config import ADSweepConfig
from .model.schemas import MachineStatus
from .pipeline import (
    run_group_audit,
    run_local_admin_inventory,
    run_orphan_sweep,
    run_uptime_inventory,
)


GROUP_SCOPES = ["DomainLocal", "Global", "Universal", "BuiltinLocal"]


def _connection_parent() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)

    ldap_group = parent.add_argument_group("LDAP Connection")
    ldap_group.add_argument(
        "-u", "--username",
        help="Domain username for LDAP authentication"
    )
    ldap_group.add_argument(
        "-p", "--password",
        help="Domain password for LDAP authentication"
    )
    ldap_group.add_argument(
        "-d", "--domain",
        required=True,
        help="Domain name (e.g., corp.local)"
    )
    ldap_group.add_argument(
        "-s", "--server",
        required=True,
        help="Domain controller IP address or hostname"
    )
    ldap_group.add_argument(
        "--ssl",
        action="store_true",
        help="Use LDAPS (port 636)"
    )

    output_group = parent.add_argument_group("Output")
    output_group.add_argument(
        "-o", "--output",
        help="CSV report path"
    )
    output_group.add_argument(
        "--overwrite",
        action="store_true",
        help="Replace the report if it already exists"
    )
    output_group.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress progress and finding lines"
    )
    output_group.add_argument(
        "--debug",
        action="store_true",
        help="Also print skipped subtrees"
    )
    return parent


def _machine_parent() -> argparse.ArgumentParser:
    parent = argparse.ArgumentParser(add_help=False)

    selection = parent.add_argument_group("Computer Selection")
    selection.add_argument(
        "--search-base",
        help="DN to search for computers (default: domain naming context)"
    )
    selection.add_argument(
        "--name-filter",
        default="*",
        help="Computer name pattern, e.g. SRV* (default: *)"
    )
    selection.add_argument(
        "--include-disabled",
        action="store_true",
        help="Also probe disabled computer accounts"
    )

    winrm_group = parent.add_argument_group("WinRM")
    winrm_group.add_argument("--winrm-user", help="WinRM username")
    winrm_group.add_argument("--winrm-password", help="WinRM password")
    winrm_group.add_argument(
        "--winrm-transport",
        default="ntlm",
        choices=["ntlm", "kerberos", "basic", "credssp"],
        help="WinRM transport (default: ntlm)"
    )
    winrm_group.add_argument(
        "--winrm-ssl",
        action="store_true",
        help="Use WinRM over HTTPS (port 5986)"
    )
    winrm_group.add_argument(
        "--ping-timeout",
        type=int,
        default=1,
        help="Reachability probe timeout in seconds (default: 1)"
    )
    return parent


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="adsweep",
        description="adsweep - Active Directory operational utilities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"adsweep {__version__}"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    connection = _connection_parent()
    machines = _machine_parent()

    orphans = subparsers.add_parser(
        "orphans",
        parents=[connection],
        help="Find (and optionally repair) orphaned SIDs in owners and ACEs"
    )
    sweep_group = orphans.add_argument_group("Sweep Options")
    sweep_group.add_argument(
        "--search-root",
        default="domain",
        help="DN to walk, or one of: domain, configuration, schema, forest, "
             "domaindns, forestdns, all (default: domain)"
    )
    sweep_group.add_argument(
        "--remove-orphans",
        action="store_true",
        help="Remove ACEs that reference orphaned SIDs (modifies AD)"
    )
    sweep_group.add_argument(
        "--fix-owner",
        action="store_true",
        help="Replace orphaned owners with --owner (modifies AD)"
    )
    sweep_group.add_argument(
        "--owner",
        default="Domain Admins",
        help="Substitute owner; DOMAIN\\name or a name in the current domain "
             "(default: Domain Admins)"
    )
    sweep_group.add_argument(
        "--containers-only",
        action="store_true",
        help="Only visit containers and organizational units"
    )
    sweep_group.add_argument(
        "--show-permissions",
        action="store_true",
        help="Print every ACE of every visited object"
    )
    sweep_group.add_argument(
        "--show-all-objects",
        action="store_true",
        help="Print every visited object"
    )

    subparsers.add_parser(
        "uptime",
        parents=[connection, machines],
        help="Report last boot time and uptime of computers"
    )

    subparsers.add_parser(
        "localadmins",
        parents=[connection, machines],
        help="Report local Administrators membership of computers"
    )

    groups = subparsers.add_parser(
        "groups",
        parents=[connection],
        help="Report security groups with direct user/computer members"
    )
    groups.add_argument(
        "--search-base",
        help="DN to search for groups (default: domain naming context)"
    )
    groups.add_argument(
        "--scope",
        action="append",
        choices=GROUP_SCOPES,
        help="Group scope to include; repeatable (default: DomainLocal, Global, Universal)"
    )
    return parser


def config_from_args(args: argparse.Namespace) -> ADSweepConfig:
    """Translate parsed arguments into an ADSweepConfig."""
    config = {
        "ldap": {
            "server": args.server,
            "domain": args.domain,
            "username": args.username,
            "password": args.password,
            "use_ssl": args.ssl,
        },
        "output": {
            "output_path": args.output,
            "overwrite": args.overwrite,
        },
        "verbose": not args.quiet,
        "debug": args.debug,
    }

    if args.command == "orphans":
        config["sweep"] = {
            "search_root": args.search_root,
            "remove_orphans": args.remove_orphans,
            "containers_only": args.containers_only,
            "show_permissions": args.show_permissions,
            "show_all_objects": args.show_all_objects,
            "fix_owner": args.fix_owner,
            "substitute_owner": args.owner,
        }
    elif args.command in ("uptime", "localadmins"):
        config["machines"] = {
            "search_base": args.search_base,
            "name_filter": args.name_filter,
            "enabled_only": not args.include_disabled,
        }
        config["winrm"] = {
            "username": args.winrm_user,
            "password": args.winrm_password,
            "transport": args.winrm_transport,
            "use_ssl": args.winrm_ssl,
            "ping_timeout": args.ping_timeout,
        }
    elif args.command == "groups":
        config["groups"] = {"search_base": args.search_base}
        if args.scope:
            config["groups"]["scopes"] = args.scope

    return ADSweepConfig.from_dict(config)


def _print_machine_summary(records) -> None:
    for status in MachineStatus:
        count = sum(1 for r in records if r.status == status)
        print(f"  - {status.value}: {count}")


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    config = config_from_args(args)

    if not args.quiet:
        print_banner()

    try:
        if args.command == "orphans":
            summary = run_orphan_sweep(config)
            print(f"\nObjects visited: {summary.objects_visited}")
            print(f"  - Unreadable: {summary.objects_skipped}")
            print(f"  - Orphaned owners: {summary.orphaned_owners}")
            print(f"  - Orphaned identities: {summary.orphaned_identities}")
            if config.sweep.fix_owner:
                print(f"  - Owners fixed: {summary.owners_fixed}")
            if config.sweep.remove_orphans:
                print(f"  - ACEs removed: {summary.entries_removed}")
            if summary.persist_failures:
                print(f"  - Write failures: {summary.persist_failures}")

        elif args.command == "uptime":
            records = run_uptime_inventory(config)
            print(f"\nComputers probed: {len(records)}")
            _print_machine_summary(records)

        elif args.command == "localadmins":
            records = run_local_admin_inventory(config)
            print(f"\nComputers probed: {len(records)}")
            _print_machine_summary(records)

        elif args.command == "groups":
            memberships = run_group_audit(config)
            print(f"\nDirect user/computer memberships: {len(memberships)}")

        if config.output.output_path:
            print(f"\nResults saved to: {config.output.output_path}")
        return 0

    except Exception as e:
        print(f"\n[!] Error: {e}")
        if args.debug:
            import traceback
            traceback.print_exc()
        return 1


def print_banner():
    """Print the adsweep banner."""
    banner = r"""
            _
   __ _  __| |_____      _____  ___ _ __
  / _` |/ _` / __\ \ /\ / / _ \/ _ \ '_ \
 | (_| | (_| \__ \\ V  V /  __/  __/ |_) |
  \__,_|\__,_|___/ \_/\_/ \___|\___| .__/
                                   |_|
  Active Directory Operational Utilities
    """
    print(banner)


if __name__ == "__main__":
    sys.exit(main())
