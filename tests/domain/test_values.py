"""Tests for workflow value objects and audit entries."""

import pytest

from procure_kernel.domain.audit import AuditEntry, AuditOutcome
from procure_kernel.domain.clock import DeterministicClock
from procure_kernel.domain.values import Actor, DocumentRef, TransitionResult
from procure_kernel.domain.workflow import DocumentStatus, DocumentType, Role


class TestActor:

    def test_role_string_is_coerced(self):
        actor = Actor(id=1, role="MANAGER", organization_id=7)
        assert actor.role is Role.MANAGER

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            Actor(id=1, role="JANITOR", organization_id=7)

    def test_missing_organization_rejected(self):
        with pytest.raises(ValueError, match="organization_id"):
            Actor(id=1, role=Role.MANAGER, organization_id=None)

    def test_super_admin_flag(self):
        assert Actor(1, Role.SUPER_ADMIN, 1).is_super_admin
        assert not Actor(1, Role.DIRECTOR, 1).is_super_admin


class TestDocumentRef:

    def test_equality_ignores_code(self):
        a = DocumentRef(DocumentType.PURCHASE_ORDER, 3, "BC-0003-03-2026")
        b = DocumentRef("PURCHASE_ORDER", 3)
        assert a == b

    def test_str(self):
        assert str(DocumentRef(DocumentType.BUDGET, 12)) == "BUDGET:12"


class TestAuditEntry:

    def _entry(self, **overrides):
        values = dict(
            document_type=DocumentType.NEED_SHEET,
            document_id=1,
            transition="validate",
            actor_id=10,
            actor_role="MANAGER",
            actor_organization_id=7,
            outcome=AuditOutcome.APPLIED,
            from_status=DocumentStatus.IN_PROGRESS,
            to_status=DocumentStatus.VALIDATED,
        )
        values.update(overrides)
        return AuditEntry(**values)

    def test_applied_entry(self):
        assert self._entry().error_code is None

    def test_denied_requires_error_code(self):
        with pytest.raises(ValueError, match="error_code"):
            self._entry(outcome=AuditOutcome.DENIED, to_status=None)

    def test_applied_cannot_carry_error_code(self):
        with pytest.raises(ValueError):
            self._entry(error_code="UNAUTHORIZED")

    def test_applied_requires_statuses(self):
        with pytest.raises(ValueError):
            self._entry(to_status=None)


class TestTransitionResult:

    def _result(self, doc_type, new_status):
        return TransitionResult(
            document=DocumentRef(doc_type, 1),
            transition="validate",
            from_status=DocumentStatus.IN_PROGRESS,
            new_status=new_status,
            audit_record_id=1,
        )

    def test_approved_is_final_for_two_stage(self):
        assert self._result(DocumentType.PURCHASE_REQUEST, DocumentStatus.APPROVED).new_status_is_final
        assert not self._result(
            DocumentType.PURCHASE_REQUEST, DocumentStatus.VALIDATED,
        ).new_status_is_final

    def test_validated_is_final_for_budget(self):
        assert self._result(DocumentType.BUDGET, DocumentStatus.VALIDATED).new_status_is_final


class TestDeterministicClock:

    def test_fixed_until_advanced(self):
        clock = DeterministicClock()
        first = clock.now()
        assert clock.now() == first
        assert (clock.tick() - first).total_seconds() == 1
        assert clock.today() == first.date()
