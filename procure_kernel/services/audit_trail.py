"""
AuditTrail -- append-only record of every transition attempt.

Responsibility:
    Writes one ``AuditRecord`` per ``AuditEntry`` and answers the four
    read-side queries used by reporting and the API layer.

Architecture position:
    Kernel > Services -- imperative shell, owns audit record persistence.

Invariants enforced:
    - Append-only: there is no update or delete API, and the model's ORM
      listeners reject any attempt made through the session.
    - Ordering: every query returns rows by (occurred_at, id) ascending, so
      records sharing a timestamp keep insertion order.

Failure modes:
    - ValueError from AuditEntry when a DENIED entry has no error code.
    - SQLAlchemy errors propagate; the caller owns the transaction.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from procure_kernel.domain.audit import AuditEntry, AuditOutcome
from procure_kernel.domain.clock import Clock, SystemClock
from procure_kernel.domain.workflow import DocumentType
from procure_kernel.logging_config import get_logger
from procure_kernel.models.audit_record import AuditRecord
from procure_kernel.services.base import BaseService

logger = get_logger("services.audit_trail")


def _value(v):
    return v.value if v is not None and hasattr(v, "value") else v


class AuditTrail(BaseService[AuditRecord]):
    """
    Append-only audit log of transition attempts.

    Contract:
        ``record`` flushes within the caller's transaction and never
        commits.  Queries read whatever the session can see.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def record(self, entry: AuditEntry) -> AuditRecord:
        """Persist one attempt and return the flushed row."""
        record = AuditRecord(
            document_type=_value(entry.document_type),
            document_id=entry.document_id,
            transition=_value(entry.transition),
            actor_id=entry.actor_id,
            actor_role=_value(entry.actor_role),
            actor_organization_id=entry.actor_organization_id,
            outcome=entry.outcome.value,
            comment=entry.comment,
            from_status=_value(entry.from_status),
            to_status=_value(entry.to_status),
            error_code=entry.error_code,
            occurred_at=self._clock.now(),
        )
        self.session.add(record)
        self.session.flush()

        logger.debug(
            "audit_record_written",
            extra={
                "audit_record_id": record.id,
                "outcome": record.outcome,
                "document_type": record.document_type,
                "document_id": record.document_id,
                "transition": record.transition,
            },
        )
        return record

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def by_document(self, doc_type: DocumentType, doc_id: int) -> list[AuditRecord]:
        return self._query(
            AuditRecord.document_type == DocumentType(doc_type).value,
            AuditRecord.document_id == doc_id,
        )

    def by_actor(self, actor_id: int) -> list[AuditRecord]:
        return self._query(AuditRecord.actor_id == actor_id)

    def by_type(self, doc_type: DocumentType) -> list[AuditRecord]:
        return self._query(AuditRecord.document_type == DocumentType(doc_type).value)

    def by_outcome(self, outcome: AuditOutcome) -> list[AuditRecord]:
        return self._query(AuditRecord.outcome == AuditOutcome(outcome).value)

    def _query(self, *criteria) -> list[AuditRecord]:
        stmt = (
            select(AuditRecord)
            .where(*criteria)
            .order_by(AuditRecord.occurred_at, AuditRecord.id)
        )
        return list(self.session.scalars(stmt))
