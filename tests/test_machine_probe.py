"""Tests for computer selection and the uptime / local admin probes."""

from datetime import datetime, timedelta, timezone

import pytest

from adsweep.analysis.machine_probe import (
    BOOT_TIME_SCRIPT,
    LOCAL_ADMINS_SCRIPT,
    LocalAdminInventory,
    MachineInventory,
    UptimeInventory,
    computer_filter,
    list_computers,
    parse_boot_time,
    parse_member_list,
)
from adsweep.model.schemas import MachineRecord, MachineStatus, format_uptime
from adsweep.reporting.csv_report import CsvReport

from conftest import DOMAIN_NC, FakeRemote


NOW = datetime(2024, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock():
    return NOW


class TestComputerSelection:

    def test_default_filter(self):
        assert computer_filter() == (
            "(&(objectClass=computer)(cn=*)(dNSHostName=*)"
            "(!(userAccountControl:1.2.840.113556.1.4.803:=2)))"
        )

    def test_name_pattern_keeps_wildcard(self):
        assert "(cn=SRV*)" in computer_filter("SRV*")

    def test_name_pattern_is_escaped(self):
        assert "(cn=WEB\\28A\\29*)" in computer_filter("WEB(A)*")

    def test_include_disabled(self):
        assert "userAccountControl" not in computer_filter("*", enabled_only=False)

    def test_list_computers_sorted(self, directory):
        directory.records = [
            ("objectClass=computer", {"dn": f"CN=B,{DOMAIN_NC}", "attributes": {"dNSHostName": ["srv02.corp.local"]}}),
            ("objectClass=computer", {"dn": f"CN=A,{DOMAIN_NC}", "attributes": {"dNSHostName": ["SRV01.corp.local"]}}),
            ("objectClass=computer", {"dn": f"CN=C,{DOMAIN_NC}", "attributes": {"dNSHostName": []}}),
        ]

        assert list_computers(directory, DOMAIN_NC) == ["SRV01.corp.local", "srv02.corp.local"]


class TestParsing:

    def test_parse_boot_time(self):
        assert parse_boot_time("2024-03-08T09:30:15\r\n") == datetime(2024, 3, 8, 9, 30, 15, tzinfo=timezone.utc)

    def test_parse_member_list(self):
        output = "CORP\\Domain Admins\r\nSRV01\\Administrator\r\n\r\n"
        assert parse_member_list(output) == ["CORP\\Domain Admins", "SRV01\\Administrator"]

    def test_format_uptime(self):
        assert format_uptime(timedelta(days=2, hours=2, minutes=29, seconds=45, microseconds=5)) == "2 days, 02:29:45"
        assert format_uptime(None) == ""


class TestMachineInventory:

    def test_base_class_is_abstract(self):
        with pytest.raises(TypeError):
            MachineInventory(FakeRemote())

    def test_subclass_must_define_query_and_row(self):
        class RowOnly(MachineInventory):
            def row(self, record):
                return {}

        with pytest.raises(TypeError):
            RowOnly(FakeRemote())


class TestUptimeInventory:

    def test_offline_machine_is_never_queried(self):
        remote = FakeRemote(reachable=[])
        record = UptimeInventory(remote, clock=fixed_clock, verbose=False).probe("srv01")

        assert record.status == MachineStatus.OFFLINE
        assert remote.commands == []
        assert record.to_uptime_row() == {
            "Computer": "srv01", "Status": "Offline", "Boot Time": "", "Up Time": "",
        }

    def test_remote_failure_is_unreachable(self):
        remote = FakeRemote(reachable=["srv01"], failing=["srv01"])
        record = UptimeInventory(remote, clock=fixed_clock, verbose=False).probe("srv01")

        assert record.status == MachineStatus.UNREACHABLE
        assert remote.commands == [("srv01", BOOT_TIME_SCRIPT)]

    def test_unparseable_output_is_unreachable(self):
        remote = FakeRemote(reachable=["srv01"], outputs={"srv01": "Access denied"})
        record = UptimeInventory(remote, clock=fixed_clock, verbose=False).probe("srv01")

        assert record.status == MachineStatus.UNREACHABLE
        assert record.boot_time is None

    def test_online_machine(self):
        remote = FakeRemote(reachable=["srv01"], outputs={"srv01": "2024-03-08T09:30:15"})
        record = UptimeInventory(remote, clock=fixed_clock, verbose=False).probe("srv01")

        assert record.status == MachineStatus.ONLINE
        assert record.uptime == timedelta(days=2, hours=2, minutes=29, seconds=45)
        assert record.to_uptime_row() == {
            "Computer": "srv01",
            "Status": "Online",
            "Boot Time": "2024-03-08 09:30:15",
            "Up Time": "2 days, 02:29:45",
        }

    def test_one_row_per_machine(self, tmp_path):
        remote = FakeRemote(
            reachable=["srv01", "srv02"],
            outputs={"srv01": "2024-03-08T09:30:15"},
            failing=["srv02"],
        )
        report = CsvReport(tmp_path / "uptime.csv", MachineRecord.UPTIME_COLUMNS)
        report.preflight()

        records = UptimeInventory(remote, report=report, clock=fixed_clock,
                                  verbose=False).run(["srv01", "srv02", "srv03"])

        assert [r.status for r in records] == [
            MachineStatus.ONLINE, MachineStatus.UNREACHABLE, MachineStatus.OFFLINE,
        ]
        frame = report.read()
        assert list(frame["Computer"]) == ["srv01", "srv02", "srv03"]
        assert list(frame["Status"]) == ["Online", "Unreachable", "Offline"]
        assert list(frame["Up Time"]) == ["2 days, 02:29:45", "", ""]


class TestLocalAdminInventory:

    @pytest.fixture
    def remote(self):
        return FakeRemote(
            reachable=["srv01", "srv02"],
            outputs={"srv01": "CORP\\Domain Admins\nSRV01\\Administrator\n"},
            failing=["srv02"],
        )

    def test_members_collected(self, remote):
        record = LocalAdminInventory(remote, verbose=False).probe("srv01")

        assert remote.commands == [("srv01", LOCAL_ADMINS_SCRIPT)]
        assert record.local_admins == ["CORP\\Domain Admins", "SRV01\\Administrator"]
        assert record.to_local_admin_row() == {
            "Computer": "srv01",
            "Local Administrators": "CORP\\Domain Admins; SRV01\\Administrator",
        }

    def test_status_in_place_of_members(self, remote, tmp_path):
        report = CsvReport(tmp_path / "admins.csv", MachineRecord.LOCAL_ADMIN_COLUMNS)
        report.preflight()

        LocalAdminInventory(remote, report=report, verbose=False).run(["srv01", "srv02", "srv03"])

        assert report.read().to_dict("records") == [
            {"Computer": "srv01", "Local Administrators": "CORP\\Domain Admins; SRV01\\Administrator"},
            {"Computer": "srv02", "Local Administrators": "Unreachable"},
            {"Computer": "srv03", "Local Administrators": "Offline"},
        ]
