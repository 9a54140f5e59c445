"""Tests for argument parsing and the CLI entry point."""

import pytest

from adsweep import main as cli
from adsweep.config import ADSweepConfig
from adsweep.model.schemas import SweepSummary
from adsweep.reporting.csv_report import ReportExistsError


CONNECTION = ["-u", "admin", "-p", "secret", "-d", "corp.local", "-s", "dc01"]


def parse(*argv):
    return cli.config_from_args(cli.build_parser().parse_args(list(argv)))


class TestConfigFromArgs:

    def test_orphans_defaults(self):
        config = parse("orphans", *CONNECTION)

        assert config.ldap.server == "dc01"
        assert config.ldap.port == 389
        assert config.sweep.search_root == "domain"
        assert config.sweep.substitute_owner == "Domain Admins"
        assert not config.sweep.remove_orphans
        assert not config.sweep.fix_owner
        assert config.verbose

    def test_orphans_switches(self):
        config = parse(
            "orphans", *CONNECTION, "--ssl", "--search-root", "configuration",
            "--remove-orphans", "--fix-owner", "--owner", "CORP\\Enterprise Admins",
            "--containers-only", "-q", "-o", "out.csv", "--overwrite",
        )

        assert config.ldap.port == 636
        assert config.sweep.search_root == "configuration"
        assert config.sweep.remove_orphans and config.sweep.fix_owner
        assert config.sweep.containers_only
        assert config.sweep.substitute_owner == "CORP\\Enterprise Admins"
        assert config.output.output_path == "out.csv"
        assert config.output.overwrite
        assert not config.verbose

    def test_machine_options(self, monkeypatch):
        monkeypatch.delenv("WINRM_USERNAME", raising=False)
        monkeypatch.delenv("WINRM_PASSWORD", raising=False)
        config = parse(
            "uptime", *CONNECTION, "--name-filter", "SRV*", "--include-disabled",
            "--winrm-user", "CORP\\ops", "--winrm-password", "pw", "--winrm-ssl",
        )

        assert config.machines.name_filter == "SRV*"
        assert not config.machines.enabled_only
        assert config.winrm.username == "CORP\\ops"
        assert config.winrm.port == 5986

    def test_group_scopes(self):
        assert parse("groups", *CONNECTION).groups.scopes == ["DomainLocal", "Global", "Universal"]
        config = parse("groups", *CONNECTION, "--scope", "DomainLocal", "--scope", "Universal")
        assert config.groups.scopes == ["DomainLocal", "Universal"]

    def test_password_from_environment(self, monkeypatch):
        monkeypatch.setenv("ADSWEEP_LDAP_PASSWORD", "from-env")
        config = parse("orphans", "-u", "admin", "-d", "corp.local", "-s", "dc01")
        assert config.ldap.password == "from-env"

    def test_server_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["orphans", "-d", "corp.local"])


class TestConfigSerialization:

    def test_passwords_masked(self):
        config = ADSweepConfig.from_dict({"ldap": {"password": "secret"}, "winrm": {"password": "pw"}})
        data = config.to_dict()

        assert data["ldap"]["password"] == "********"
        assert data["winrm"]["password"] == "********"


class TestMain:

    def test_success(self, monkeypatch, capsys):
        captured = {}

        def fake_sweep(config):
            captured["config"] = config
            return SweepSummary(objects_visited=7, orphaned_identities=2)

        monkeypatch.setattr(cli, "run_orphan_sweep", fake_sweep)

        assert cli.main(["orphans", *CONNECTION, "-q"]) == 0
        assert "Objects visited: 7" in capsys.readouterr().out
        assert captured["config"].ldap.domain == "corp.local"

    def test_error_returns_one(self, monkeypatch, capsys):
        def fake_sweep(config):
            raise ReportExistsError("Output file out.csv already exists")

        monkeypatch.setattr(cli, "run_orphan_sweep", fake_sweep)

        assert cli.main(["orphans", *CONNECTION, "-q", "-o", "out.csv"]) == 1
        assert "[!] Error: Output file out.csv already exists" in capsys.readouterr().out
