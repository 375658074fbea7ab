"""
Module: procure_kernel.models.audit_record
Responsibility: ORM persistence for the transition audit trail.
Architecture position: Kernel > Models.  May import from db/base.py,
    domain/ and exceptions only.

Invariants enforced:
    - Audit records are append-only; no UPDATE or DELETE (ORM listeners).
    - outcome is APPLIED or DENIED (CHECK); DENIED rows carry an error_code.

Failure modes:
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.

Audit relevance:
    AuditRecord IS the audit trail.  Every call to WorkflowEngine.apply
    produces exactly one row, whether the transition was applied or denied.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column

from procure_kernel.db.base import Base
from procure_kernel.exceptions import ImmutabilityViolationError


class AuditRecord(Base):
    """One transition attempt on one document."""

    __tablename__ = "audit_records"

    __table_args__ = (
        CheckConstraint(
            "outcome IN ('APPLIED', 'DENIED')",
            name="ck_audit_records_valid_outcome",
        ),
        CheckConstraint(
            "outcome = 'APPLIED' OR error_code IS NOT NULL",
            name="ck_audit_records_denied_has_code",
        ),
        Index("ix_audit_records_document", "document_type", "document_id", "occurred_at"),
        Index("ix_audit_records_actor", "actor_id", "occurred_at"),
        Index("ix_audit_records_outcome", "outcome", "occurred_at"),
    )

    document_type: Mapped[str] = mapped_column(String(40), nullable=False)
    document_id: Mapped[int] = mapped_column(nullable=False)
    transition: Mapped[str] = mapped_column(String(40), nullable=False)
    actor_id: Mapped[int] = mapped_column(nullable=False)
    actor_role: Mapped[str] = mapped_column(String(20), nullable=False)
    actor_organization_id: Mapped[int] = mapped_column(nullable=False)
    outcome: Mapped[str] = mapped_column(String(10), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    to_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<AuditRecord {self.id} {self.outcome} {self.transition} on "
            f"{self.document_type}:{self.document_id} by {self.actor_id}>"
        )


# =============================================================================
# ORM-Level Immutability (Append-Only)
# =============================================================================


@event.listens_for(AuditRecord, "before_update")
def prevent_audit_record_update(mapper, connection, target):
    """Prevent updates to audit records."""
    raise ImmutabilityViolationError(
        entity_type="AuditRecord",
        entity_id=str(target.id),
        reason="Audit records are immutable -- cannot modify",
    )


@event.listens_for(AuditRecord, "before_delete")
def prevent_audit_record_delete(mapper, connection, target):
    """Prevent deletion of audit records."""
    raise ImmutabilityViolationError(
        entity_type="AuditRecord",
        entity_id=str(target.id),
        reason="Audit records are immutable -- cannot delete",
    )
