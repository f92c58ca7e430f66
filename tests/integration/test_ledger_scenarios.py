"""
Ledger Scenario Tests

End-to-end flows: role setup, authorized appends, history traversal,
revocation and the OR-across-namespaces rule.
"""

import pytest

from compliance import (
    LedgerConfig, NONE_ID, RoleAccess, RoleVariant, UnauthorizedAccount, ErrorCode
)

from .fixtures import (
    ADMIN, ALICE, BOB, E0, E9, O0, O9, R1, R2, S1, S2, ISSUE_DATE,
    make_ledger, grant_write, append
)


class TestEndToEnd:
    """Create role, grant WRITE, append twice, walk the list."""

    def test_two_record_history(self):
        ledger = make_ledger()
        grant_write(ledger, ALICE, R1, RoleVariant.RESOURCE)

        first_id = append(ledger, ALICE, "k1", status=S1)

        latest = ledger.get_latest("k1")
        assert latest.exists is True
        assert latest.id == first_id
        assert latest.nonce == 0
        assert latest.previous == NONE_ID
        assert latest.resource_id == R1
        assert latest.status == S1
        assert latest.owner == BOB
        assert latest.status_issue_date == ISSUE_DATE

        second_id = append(ledger, ALICE, "k1", status=S2)

        latest = ledger.get_latest("k1")
        assert latest.id == second_id
        assert latest.nonce == 1
        assert latest.previous == first_id
        assert latest.status == S2

        older = ledger.get_entry(latest.previous)
        assert older.id == first_id
        assert older.exists

        sentinel = ledger.get_entry(older.previous)
        assert sentinel.exists is False

    def test_history_is_newest_first(self):
        ledger = make_ledger()
        grant_write(ledger, ALICE, R1, RoleVariant.RESOURCE)

        ids = [append(ledger, ALICE, "k1", ref=f"doc-{i}") for i in range(4)]

        history = list(ledger.history("k1"))
        assert [r.id for r in history] == list(reversed(ids))
        assert [r.nonce for r in history] == [3, 2, 1, 0]

    def test_keys_are_independent_lists(self):
        ledger = make_ledger()
        grant_write(ledger, ALICE, R1, RoleVariant.RESOURCE)

        a0 = append(ledger, ALICE, "a")
        b0 = append(ledger, ALICE, "b")
        a1 = append(ledger, ALICE, "a")

        assert ledger.get_latest("a").previous == a0
        assert ledger.get_latest("a").id == a1
        assert ledger.get_latest("b").id == b0
        assert ledger.get_latest("b").nonce == 0
        assert ledger.record_count == 3
        assert ledger.get_index("a").length == 2

    def test_unused_key_is_a_miss(self):
        ledger = make_ledger()

        assert ledger.get_latest("never").exists is False
        assert list(ledger.history("never")) == []
        assert ledger.get_index("never").exists is False

    def test_get_entry_matches_latest(self):
        ledger = make_ledger()
        grant_write(ledger, ALICE, R1, RoleVariant.RESOURCE)
        append(ledger, ALICE, "k1")
        append(ledger, ALICE, "k1")

        latest = ledger.get_latest("k1")
        assert ledger.get_entry(latest.id) == latest


class TestRevocation:

    def test_revoked_writer_cannot_append(self):
        ledger = make_ledger()
        grant_write(ledger, ALICE, R1, RoleVariant.RESOURCE)
        append(ledger, ALICE, "k1")

        assert ledger.revoke_role(ADMIN, ALICE, R1, RoleVariant.RESOURCE, RoleAccess.WRITE)

        with pytest.raises(UnauthorizedAccount) as exc:
            append(ledger, ALICE, "k1")

        assert exc.value.error.code == ErrorCode.UNAUTHORIZED_ACCOUNT
        assert exc.value.error.context_value("account") == ALICE
        assert exc.value.error.context_value("access") == "write"
        assert ledger.record_count == 1
        assert ledger.get_index("k1").length == 1

    def test_renounced_writer_cannot_append(self):
        ledger = make_ledger()
        grant_write(ledger, ALICE, R1, RoleVariant.RESOURCE)

        assert ledger.renounce_role(ALICE, R1, RoleVariant.RESOURCE, RoleAccess.WRITE)

        with pytest.raises(UnauthorizedAccount):
            append(ledger, ALICE, "k1")


class TestNamespaceOr:
    """WRITE on any one of entity/resource/organization suffices."""

    def test_resource_grant_alone_suffices(self):
        ledger = make_ledger()
        grant_write(ledger, ALICE, R1, RoleVariant.RESOURCE)

        record_id = append(ledger, ALICE, "k1", entity=E9, resource=R1, organization=O9)

        assert ledger.get_entry(record_id).exists

    def test_organization_grant_covers_many_resources(self):
        ledger = make_ledger()
        grant_write(ledger, ALICE, O0, RoleVariant.ORGANIZATION)

        append(ledger, ALICE, "k1", resource=R1, organization=O0)
        append(ledger, ALICE, "k2", resource=R2, organization=O0)

        assert ledger.record_count == 2

    def test_no_matching_namespace_fails(self):
        ledger = make_ledger()
        grant_write(ledger, ALICE, R1, RoleVariant.RESOURCE)

        with pytest.raises(UnauthorizedAccount):
            append(ledger, ALICE, "k1", entity=E9, resource=R2, organization=O9)

    def test_namespaces_do_not_alias(self):
        """WRITE on resource R1 says nothing about entity R1."""
        ledger = make_ledger()
        grant_write(ledger, ALICE, R1, RoleVariant.RESOURCE)

        with pytest.raises(UnauthorizedAccount):
            append(ledger, ALICE, "k1", entity=R1, resource=R2, organization=O9)

    def test_has_any_role_for(self):
        ledger = make_ledger()
        grant_write(ledger, ALICE, R1, RoleVariant.RESOURCE)

        assert ledger.has_any_role_for(ALICE, E9, R1, O9, RoleAccess.WRITE)
        assert not ledger.has_any_role_for(ALICE, E9, R2, O9, RoleAccess.WRITE)
        assert not ledger.has_any_role_for(ALICE, E9, R1, O9, RoleAccess.READ)


class TestCapabilityIsolation:

    def test_read_only_cannot_append(self):
        ledger = make_ledger(LedgerConfig(gate_reads=True))
        grant_write(ledger, ALICE, O0, RoleVariant.ORGANIZATION)
        append(ledger, ALICE, "k1", entity=E9, resource=R2, organization=O0)

        ledger.grant_role(ADMIN, BOB, O0, RoleVariant.ORGANIZATION, RoleAccess.READ)

        latest = ledger.get_latest("k1", caller=BOB)
        assert latest.exists
        assert ledger.get_entry(latest.id, caller=BOB) == latest

        with pytest.raises(UnauthorizedAccount):
            append(ledger, BOB, "k1", entity=E9, resource=R2, organization=O0)

    def test_write_only_has_no_read_or_admin(self):
        ledger = make_ledger()
        grant_write(ledger, ALICE, O0, RoleVariant.ORGANIZATION)

        access = ledger.access
        assert access.has_access(ALICE, O0, RoleVariant.ORGANIZATION, RoleAccess.WRITE)
        assert not access.has_access(ALICE, O0, RoleVariant.ORGANIZATION, RoleAccess.READ)
        assert not access.has_access(ALICE, O0, RoleVariant.ORGANIZATION, RoleAccess.ADMIN)


class TestGatedReads:

    def test_open_reads_by_default(self):
        ledger = make_ledger()
        grant_write(ledger, ALICE, R1, RoleVariant.RESOURCE)
        append(ledger, ALICE, "k1")

        assert ledger.get_latest("k1", caller="0xstranger").exists

    def test_gated_read_requires_read(self):
        ledger = make_ledger(LedgerConfig(gate_reads=True))
        grant_write(ledger, ALICE, R1, RoleVariant.RESOURCE)
        record_id = append(ledger, ALICE, "k1")

        with pytest.raises(UnauthorizedAccount):
            ledger.get_latest("k1", caller=ALICE)
        with pytest.raises(UnauthorizedAccount):
            ledger.get_entry(record_id)
        with pytest.raises(UnauthorizedAccount):
            list(ledger.history("k1", caller=BOB))

    def test_gated_miss_is_not_checked(self):
        ledger = make_ledger(LedgerConfig(gate_reads=True))

        assert ledger.get_latest("never", caller="0xstranger").exists is False


class TestAuditTrail:

    def test_appends_and_grants_are_logged(self):
        ledger = make_ledger()
        grant_write(ledger, ALICE, R1, RoleVariant.RESOURCE)
        record_id = append(ledger, ALICE, "k1")

        actions = [e.action for e in ledger.get_audit_log()]
        assert actions.count("role_created") == 1
        assert actions.count("role_granted") == 2
        assert actions.count("record_appended") == 1

        appended = ledger.store.audit.get_entries(action="record_appended")[0]
        assert appended.entity_id == record_id.hex()
        assert appended.get("nonce") == "0"
        assert appended.get("previous") == NONE_ID.hex()

    def test_denial_is_logged_and_counted(self):
        ledger = make_ledger()

        with pytest.raises(UnauthorizedAccount):
            append(ledger, ALICE, "k1")

        denied = ledger.access.audit.get_entries(action="access_denied")
        assert len(denied) == 1
        assert denied[0].entity_id == ALICE
        assert denied[0].get("operation") == "add_entry"
        assert ledger.metrics.total("access_denied_total") == 1.0
        assert ledger.metrics.total("records_appended_total") == 0.0
