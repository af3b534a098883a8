"""
Tests for per-member overrides and the audit entries they write.
"""

import logging

import pytest
from fastapi import HTTPException

from app.core.exceptions import InvalidReferenceError, NotFoundError
from app.modules.audit.service import AuditLogger
from app.modules.overrides.service import OverrideService
from tests.conftest import OTHER_TENANT_ID, TENANT_ID


@pytest.fixture
def overrides(supabase, registry):
    return OverrideService(supabase, registry)


class TestSetOverride:
    """Tests for the override upsert."""

    def test_set_override_creates_row(self, overrides, supabase, member):
        override = overrides.set_override(member.id, "finance.invoice.create", True, "user-owner")
        assert override.membership_id == member.id
        assert override.granted is True
        assert override.granted_by == "user-owner"
        assert len(supabase.rows("member_permission_overrides")) == 1

    def test_second_set_replaces_first(self, overrides, supabase, member):
        """Same (membership, key) is a single row; the last write wins."""
        overrides.set_override(member.id, "finance.invoice.create", True, "user-a")
        overrides.set_override(member.id, "finance.invoice.create", False, "user-b")
        rows = supabase.rows("member_permission_overrides")
        assert len(rows) == 1
        assert rows[0]["granted"] is False
        assert rows[0]["granted_by"] == "user-b"

    def test_unknown_key_rejected(self, overrides, supabase, member):
        with pytest.raises(InvalidReferenceError):
            overrides.set_override(member.id, "finance.invoice.teleport", True, "user-a")
        assert supabase.rows("member_permission_overrides") == []
        assert supabase.rows("delegation_audit_log") == []

    def test_unknown_membership_rejected(self, overrides):
        with pytest.raises(NotFoundError):
            overrides.set_override("missing", "finance.invoice.create", True, "user-a")

    def test_store_failure_propagates(self, overrides, supabase, member):
        supabase.failures.add(("member_permission_overrides", "upsert"))
        with pytest.raises(HTTPException) as exc_info:
            overrides.set_override(member.id, "finance.invoice.create", True, "user-a")
        assert exc_info.value.status_code == 500
        assert supabase.rows("delegation_audit_log") == []

    def test_list_overrides(self, overrides, member):
        overrides.set_override(member.id, "finance.invoice.create", True, "user-a")
        overrides.set_override(member.id, "vet.treatment.read", False, "user-a")
        listed = {o.permission_key: o.granted for o in overrides.list_overrides(member.id)}
        assert listed == {"finance.invoice.create": True, "vet.treatment.read": False}


class TestOverrideAudit:
    """Tests for the audit side effect."""

    def test_grant_writes_granted_entry(self, overrides, supabase, member):
        overrides.set_override(member.id, "finance.invoice.create", True, "user-owner")
        entries = supabase.rows("delegation_audit_log")
        assert len(entries) == 1
        assert entries[0]["action"] == "granted"
        assert entries[0]["actor_user_id"] == "user-owner"
        assert entries[0]["target_member_id"] == member.id
        assert entries[0]["permission_key"] == "finance.invoice.create"

    def test_revoke_writes_revoked_entry(self, overrides, supabase, member):
        overrides.set_override(member.id, "finance.invoice.create", False, "user-owner")
        assert [e["action"] for e in supabase.rows("delegation_audit_log")] == ["revoked"]

    def test_audit_tenant_comes_from_target(self, overrides, supabase):
        """The entry is filed under the target member's tenant."""
        target = supabase.add_member("vet", tenant_id=OTHER_TENANT_ID)
        overrides.set_override(target.id, "vet.treatment.read", True, "user-owner")
        assert supabase.rows("delegation_audit_log")[0]["tenant_id"] == OTHER_TENANT_ID

    def test_audit_failure_does_not_fail_mutation(self, overrides, supabase, member, caplog):
        """A failing audit insert is logged and the override stays."""
        supabase.failures.add(("delegation_audit_log", "insert"))
        with caplog.at_level(logging.ERROR, logger="app.modules.audit.service"):
            override = overrides.set_override(member.id, "finance.invoice.create", True, "user-owner")
        assert override.granted is True
        assert len(supabase.rows("member_permission_overrides")) == 1
        assert supabase.rows("delegation_audit_log") == []
        assert "Failed to write audit entry" in caplog.text

    def test_remove_override_is_not_audited(self, overrides, supabase, member):
        overrides.set_override(member.id, "finance.invoice.create", True, "user-owner")
        assert overrides.remove_override(member.id, "finance.invoice.create") is True
        assert len(supabase.rows("delegation_audit_log")) == 1
        assert supabase.rows("member_permission_overrides") == []

    def test_custom_audit_logger_is_used(self, supabase, registry, member):
        appended = []

        class RecordingAuditLogger(AuditLogger):
            def append(self, entry):
                appended.append(entry)

        service = OverrideService(supabase, registry, audit_logger=RecordingAuditLogger(supabase))
        service.set_override(member.id, "hr.employee.view", True, "user-owner")
        assert [(e.tenant_id, e.permission_key) for e in appended] == [(TENANT_ID, "hr.employee.view")]


class TestRemoveOverride:
    """Tests for override removal."""

    def test_remove_missing_override_returns_false(self, overrides, member):
        assert overrides.remove_override(member.id, "finance.invoice.create") is False

    def test_remove_for_unknown_membership_raises(self, overrides):
        with pytest.raises(NotFoundError):
            overrides.remove_override("missing", "finance.invoice.create")
