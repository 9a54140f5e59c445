"""Tests for owner/ACE classification."""

from adsweep.analysis.inspector import AclInspector
from adsweep.directory.descriptor import SecurityDescriptor

from conftest import ALICE_SID, DOMAIN_ADMINS_SID, DOMAIN_NC, ORPHAN_SID, allow, deny


TARGET = f"OU=Sales,{DOMAIN_NC}"
FOREIGN_SID = "S-1-5-21-999-888-777-1200"


class TestAclInspector:

    def test_classifies_entries(self, directory, context):
        directory.add(TARGET, ["organizationalUnit"], descriptor=SecurityDescriptor.build(
            DOMAIN_ADMINS_SID,
            [
                allow(ALICE_SID),
                allow("S-1-5-11"),
                deny(ORPHAN_SID),
                allow(FOREIGN_SID),
                allow(ORPHAN_SID, inherited=True),
            ]
        ))

        result = AclInspector(directory, context, verbose=False).inspect(TARGET)

        assert result.owner_identity == "CORP\\Domain Admins"
        assert not result.owner_orphaned
        assert [e.identity for e in result.entries] == [
            "CORP\\alice",
            "NT AUTHORITY\\Authenticated Users",
            ORPHAN_SID,
            FOREIGN_SID,
            ORPHAN_SID,
        ]
        assert [e.orphaned for e in result.entries] == [False, False, True, False, True]
        assert result.entries[2].access_type == "Deny"
        assert result.entries[4].inherited
        assert result.orphaned_identities == [ORPHAN_SID]
        assert len(result.entries_for(ORPHAN_SID)) == 2
        assert result.has_findings

    def test_orphaned_owner(self, directory, context):
        directory.add(TARGET, ["organizationalUnit"],
                      descriptor=SecurityDescriptor.build(ORPHAN_SID, [allow(ALICE_SID)]))

        result = AclInspector(directory, context, verbose=False).inspect(TARGET)

        assert result.owner_sid == ORPHAN_SID
        assert result.owner_identity == ORPHAN_SID
        assert result.owner_orphaned
        assert result.orphaned_identities == []

    def test_clean_object_has_no_findings(self, directory, context):
        directory.add(TARGET, ["organizationalUnit"],
                      descriptor=SecurityDescriptor.build(DOMAIN_ADMINS_SID, [allow(ALICE_SID)]))

        result = AclInspector(directory, context, verbose=False).inspect(TARGET)

        assert not result.has_findings

    def test_unreadable_object(self, directory, context, messages):
        directory.add(TARGET, ["organizationalUnit"])
        directory.unreadable.add(TARGET)
        inspector = AclInspector(directory, context, verbose=False, progress_callback=messages.append)

        assert inspector.inspect(TARGET) is None
        assert messages == [f"[!] Cannot read {TARGET}: noSuchObject"]
