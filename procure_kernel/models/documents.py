"""
Module: procure_kernel.models.documents
Responsibility: ORM persistence for the eight procurement document types.
    One table per type; every table shares the DocumentBase columns used by
    the workflow engine.
Architecture position: Kernel > Models.  May import from db/base.py,
    domain/ and exceptions only.

Invariants enforced:
    - status is one of IN_PROGRESS, VALIDATED, APPROVED, REJECTED (CHECK).
    - rejection_comment is non-empty if and only if status is REJECTED (CHECK).
    - created_by_id never changes after INSERT (ORM listener).
    - Optimistic locking: every UPDATE is guarded by the version column;
      a stale write raises StaleDataError, which the engine reports as
      ConcurrentModificationError.

Failure modes:
    - IntegrityError when a CHECK constraint is violated by raw writes.
    - ImmutabilityViolationError when created_by_id is modified.
    - StaleDataError on a lost optimistic-lock race.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, ClassVar

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
    inspect,
)
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from procure_kernel.db.base import IdType, TimestampedBase
from procure_kernel.domain.values import DocumentRef, DocumentView
from procure_kernel.domain.workflow import DocumentStatus, DocumentType
from procure_kernel.exceptions import ImmutabilityViolationError

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in DocumentStatus)


def _document_table_args(tablename: str) -> tuple:
    return (
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})",
            name=f"ck_{tablename}_valid_status",
        ),
        CheckConstraint(
            "(status = 'REJECTED' AND rejection_comment IS NOT NULL "
            "AND length(trim(rejection_comment)) > 0) "
            "OR (status <> 'REJECTED' AND rejection_comment IS NULL)",
            name=f"ck_{tablename}_rejection_comment",
        ),
        Index(f"ix_{tablename}_org_status", "organization_id", "status"),
        Index(
            f"ix_{tablename}_source",
            "source_document_type",
            "source_document_id",
        ),
    )


class DocumentBase(TimestampedBase):
    """
    Columns and behaviour shared by every document type.

    Contract:
        Concrete subclasses set ``document_type`` and list their
        type-specific columns in ``detail_fields`` so that ``to_view``
        can expose them without knowing the type.
    """

    __abstract__ = True

    document_type: ClassVar[DocumentType]
    detail_fields: ClassVar[tuple[str, ...]] = ()

    @declared_attr.directive
    def __table_args__(cls) -> tuple:
        return _document_table_args(cls.__tablename__)

    @declared_attr.directive
    def __mapper_args__(cls) -> dict[str, Any]:
        return {"version_id_col": cls.__table__.c.version}

    code: Mapped[str | None] = mapped_column(String(40), nullable=True, unique=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DocumentStatus.IN_PROGRESS.value,
    )
    organization_id: Mapped[int] = mapped_column(nullable=False)
    amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    created_by_id: Mapped[int] = mapped_column(nullable=False)
    source_document_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    source_document_id: Mapped[int | None] = mapped_column(nullable=True)
    rejection_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self.id} code={self.code} "
            f"status={self.status} org={self.organization_id}>"
        )

    @property
    def status_enum(self) -> DocumentStatus:
        return DocumentStatus(self.status)

    @property
    def ref(self) -> DocumentRef:
        return DocumentRef(self.document_type, self.id, self.code)

    @property
    def source_ref(self) -> DocumentRef | None:
        if self.source_document_type is None or self.source_document_id is None:
            return None
        return DocumentRef(
            DocumentType(self.source_document_type), self.source_document_id,
        )

    def to_view(self) -> DocumentView:
        """Convert ORM model to a frozen, detached view."""
        return DocumentView(
            ref=self.ref,
            status=self.status_enum,
            organization_id=self.organization_id,
            created_by_id=self.created_by_id,
            amount=self.amount,
            source=self.source_ref,
            rejection_comment=self.rejection_comment,
            version=self.version,
            created_at=self.created_at,
            active=getattr(self, "active", None),
            fields={name: getattr(self, name) for name in self.detail_fields},
        )


@event.listens_for(DocumentBase, "before_update", propagate=True)
def prevent_creator_change(mapper, connection, target):
    """A document's creator is fixed at INSERT time."""
    history = inspect(target).attrs.created_by_id.history
    if history.deleted and history.added and history.deleted[0] != history.added[0]:
        raise ImmutabilityViolationError(
            entity_type=type(target).__name__,
            entity_id=str(target.id),
            reason="created_by_id is immutable after creation",
        )


# =============================================================================
# Procurement chain
# =============================================================================


class NeedSheet(DocumentBase):
    """Fiche de besoin: a service's statement of need."""

    __tablename__ = "need_sheets"
    document_type = DocumentType.NEED_SHEET
    detail_fields = ("title", "description", "beneficiary_service")

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    beneficiary_service: Mapped[str | None] = mapped_column(String(200), nullable=True)


class PurchaseRequest(DocumentBase):
    __tablename__ = "purchase_requests"
    document_type = DocumentType.PURCHASE_REQUEST
    detail_fields = ("supplier", "description", "beneficiary_service")

    supplier: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    beneficiary_service: Mapped[str | None] = mapped_column(String(200), nullable=True)


class PurchaseOrder(DocumentBase):
    """Bon de commande, generated from an approved purchase request."""

    __tablename__ = "purchase_orders"
    document_type = DocumentType.PURCHASE_ORDER
    detail_fields = (
        "supplier",
        "description",
        "beneficiary_service",
        "payment_method",
        "payment_due_date",
        "execution_date",
    )

    supplier: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    beneficiary_service: Mapped[str | None] = mapped_column(String(200), nullable=True)
    payment_method: Mapped[str] = mapped_column(
        String(50), nullable=False, default="Bank transfer",
    )
    payment_due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    execution_date: Mapped[date | None] = mapped_column(Date, nullable=True)


class ServiceAttestation(DocumentBase):
    """Attestation de service fait: proof that the ordered service was delivered."""

    __tablename__ = "service_attestations"
    document_type = DocumentType.SERVICE_ATTESTATION
    detail_fields = (
        "supplier",
        "title",
        "finding",
        "delivery_date",
        "purchase_order_reference",
    )

    supplier: Mapped[str] = mapped_column(String(200), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    finding: Mapped[str | None] = mapped_column(Text, nullable=True)
    delivery_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    purchase_order_reference: Mapped[str | None] = mapped_column(String(40), nullable=True)


# =============================================================================
# Treasury chain
# =============================================================================


class WithdrawalDecision(DocumentBase):
    __tablename__ = "withdrawal_decisions"
    document_type = DocumentType.WITHDRAWAL_DECISION
    detail_fields = ("origin_account", "destination_account", "reason")

    origin_account: Mapped[str] = mapped_column(String(100), nullable=False)
    destination_account: Mapped[str] = mapped_column(String(100), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)


class PaymentOrder(DocumentBase):
    __tablename__ = "payment_orders"
    document_type = DocumentType.PAYMENT_ORDER
    detail_fields = ("origin_account", "destination_account", "description")

    origin_account: Mapped[str] = mapped_column(String(100), nullable=False)
    destination_account: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


# =============================================================================
# Budgeting (single stage, active flag)
# =============================================================================


class Budget(DocumentBase):
    __tablename__ = "budgets"
    document_type = DocumentType.BUDGET
    detail_fields = ("title", "description", "start_date", "end_date")

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class CreditLine(DocumentBase):
    __tablename__ = "credit_lines"
    document_type = DocumentType.CREDIT_LINE
    detail_fields = ("title", "description", "budget_id")

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    budget_id: Mapped[int | None] = mapped_column(
        IdType, ForeignKey("budgets.id"), nullable=True,
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


DOCUMENT_MODELS: dict[DocumentType, type[DocumentBase]] = {
    model.document_type: model
    for model in (
        NeedSheet,
        PurchaseRequest,
        PurchaseOrder,
        ServiceAttestation,
        WithdrawalDecision,
        PaymentOrder,
        Budget,
        CreditLine,
    )
}


def model_for(doc_type: DocumentType) -> type[DocumentBase]:
    """Return the ORM class mapped for ``doc_type``."""
    return DOCUMENT_MODELS[DocumentType(doc_type)]
