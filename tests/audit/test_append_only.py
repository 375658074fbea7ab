"""
Append-only guarantees for audit records and chain links.

AuditRecord and ChainLink rows can be inserted but never updated or
deleted through the ORM.
"""

import pytest

from procure_kernel.domain.audit import AuditEntry, AuditOutcome
from procure_kernel.domain.workflow import DocumentStatus, DocumentType
from procure_kernel.exceptions import ImmutabilityViolationError
from procure_kernel.models.chain_link import ChainLink
from procure_kernel.services.audit_trail import AuditTrail


@pytest.fixture
def audit_record(session, deterministic_clock):
    return AuditTrail(session, deterministic_clock).record(
        AuditEntry(
            document_type=DocumentType.BUDGET,
            document_id=1,
            transition="validate",
            actor_id=10,
            actor_role="DIRECTOR",
            actor_organization_id=7,
            outcome=AuditOutcome.APPLIED,
            from_status=DocumentStatus.IN_PROGRESS,
            to_status=DocumentStatus.VALIDATED,
        )
    )


@pytest.fixture
def chain_link(session, deterministic_clock):
    link = ChainLink(
        source_type="PURCHASE_REQUEST",
        source_id=1,
        target_type="PURCHASE_ORDER",
        target_id=1,
        created_by_id=10,
        created_at=deterministic_clock.now(),
    )
    session.add(link)
    session.flush()
    return link


class TestAuditRecordImmutability:

    def test_update_rejected(self, session, audit_record):
        audit_record.outcome = "DENIED"
        audit_record.error_code = "FORGED"

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "AuditRecord"

    def test_delete_rejected(self, session, audit_record):
        session.delete(audit_record)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()


class TestChainLinkImmutability:

    def test_retarget_rejected(self, session, chain_link):
        chain_link.target_id = 2

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_type == "ChainLink"

    def test_delete_rejected(self, session, chain_link):
        session.delete(chain_link)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
