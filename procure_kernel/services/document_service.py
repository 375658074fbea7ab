"""
DocumentService -- origination and loading of procurement documents.

Responsibility:
    Creates documents on behalf of an actor (role and tenant checks,
    initial status, human-readable code) and loads them by (type, id).
    Also used by ChainGenerator to persist generated successors.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.

Invariants enforced:
    - New documents start IN_PROGRESS in the creator's organization.
    - Only the roles listed in the type's profile may originate it;
      purchase orders have no originating role and only come from chaining.
    - A service attestation raised against a purchase order needs that
      order APPROVED, and each order gets at most one attestation.
    - Codes follow ``<PREFIX>-<id:04d>-<MM>-<YYYY>`` and are unique per type.

Failure modes:
    - DocumentCreationError: role may not originate the type, a source
      document belongs to another organization, or a purchase order is not
      approved or already attested.
    - DocumentNotFoundError: load of an unknown (type, id), or an unknown
      source document.
"""

from datetime import date
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from procure_kernel.domain.clock import Clock, SystemClock
from procure_kernel.domain.values import Actor, DocumentRef
from procure_kernel.domain.workflow import (
    DOCUMENT_TYPE_PROFILES,
    DocumentStatus,
    DocumentType,
)
from procure_kernel.exceptions import DocumentCreationError, DocumentNotFoundError
from procure_kernel.logging_config import get_logger
from procure_kernel.models.documents import DocumentBase, ServiceAttestation, model_for
from procure_kernel.services.base import BaseService

logger = get_logger("services.document_service")


def format_code(prefix: str, document_id: int, on: date) -> str:
    """FB-0035-11-2025 style code."""
    return f"{prefix}-{document_id:04d}-{on.month:02d}-{on.year}"


class DocumentService(BaseService[DocumentBase]):
    """Create and load documents of every type."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def create(
        self,
        doc_type: DocumentType,
        actor: Actor,
        source: DocumentRef | None = None,
        **fields: Any,
    ) -> DocumentBase:
        """
        Originate a new document as ``actor``.

        ``fields`` are the type-specific columns plus ``amount``.  When
        ``source`` points at a need sheet, a purchase request inherits its
        amount and beneficiary service unless they are given explicitly.
        """
        doc_type = DocumentType(doc_type)
        profile = DOCUMENT_TYPE_PROFILES[doc_type]
        if actor.role not in profile.creator_roles:
            reason = (
                "documents of this type are only generated by chaining"
                if not profile.creator_roles
                else "allowed roles: "
                + ", ".join(sorted(r.value for r in profile.creator_roles))
            )
            raise DocumentCreationError(doc_type.value, actor.role.value, reason)

        if source is not None:
            source_doc = self.load(source.document_type, source.document_id)
            if source_doc.organization_id != actor.organization_id:
                raise DocumentCreationError(
                    doc_type.value,
                    actor.role.value,
                    f"source {source} belongs to another organization",
                )
            if doc_type is DocumentType.PURCHASE_REQUEST and (
                source.document_type is DocumentType.NEED_SHEET
            ):
                fields.setdefault("amount", source_doc.amount)
                fields.setdefault("beneficiary_service", source_doc.beneficiary_service)
            if doc_type is DocumentType.SERVICE_ATTESTATION and (
                source.document_type is DocumentType.PURCHASE_ORDER
            ):
                self._check_order_attestable(source_doc, actor)
                fields.setdefault("supplier", source_doc.supplier)
                fields.setdefault("amount", source_doc.amount)
                fields.setdefault("purchase_order_reference", source_doc.code)

        document = model_for(doc_type)(
            organization_id=actor.organization_id,
            created_by_id=actor.id,
            status=DocumentStatus.IN_PROGRESS.value,
            **fields,
        )
        if source is not None:
            document.source_document_type = source.document_type.value
            document.source_document_id = source.document_id

        self.persist(document)

        logger.info(
            "document_created",
            extra={
                "document_type": doc_type.value,
                "document_id": document.id,
                "code": document.code,
                "organization_id": actor.organization_id,
                "actor_id": actor.id,
            },
        )
        return document

    def _check_order_attestable(self, order: DocumentBase, actor: Actor) -> None:
        def deny(reason: str) -> DocumentCreationError:
            return DocumentCreationError(
                DocumentType.SERVICE_ATTESTATION.value, actor.role.value, reason,
            )

        if order.status_enum is not DocumentStatus.APPROVED:
            raise deny(f"purchase order {order.code} is not approved")
        attested = self.session.scalar(
            select(func.count()).select_from(ServiceAttestation).where(
                ServiceAttestation.source_document_type == DocumentType.PURCHASE_ORDER.value,
                ServiceAttestation.source_document_id == order.id,
            )
        )
        if attested:
            raise deny(f"purchase order {order.code} already has an attestation")

    def persist(self, document: DocumentBase) -> DocumentBase:
        """INSERT ``document`` and give it its code."""
        self.session.add(document)
        self.session.flush()
        prefix = DOCUMENT_TYPE_PROFILES[document.document_type].code_prefix
        document.code = format_code(prefix, document.id, self._clock.today())
        self.session.flush()
        return document

    def load(self, doc_type: DocumentType, doc_id: int) -> DocumentBase:
        document = self.session.get(model_for(doc_type), doc_id)
        if document is None:
            raise DocumentNotFoundError(DocumentType(doc_type).value, doc_id)
        return document
