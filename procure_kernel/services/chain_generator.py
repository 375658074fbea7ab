"""
ChainGenerator -- creation of the successor document on approval.

Responsibility:
    Looks up the builder registered for a source document type, builds
    the successor from the source's fields, persists it IN_PROGRESS with
    a back-reference to the source, and records the ChainLink.

Architecture position:
    Kernel > Services -- imperative shell, flush-only.  Invoked by
    WorkflowEngine inside the same transaction as the approving
    transition, so the successor commits or rolls back with it.

Invariants enforced:
    - At most one successor per source document: an existing ChainLink
      short-circuits with AlreadyChainedError, and UNIQUE(source_type,
      source_id) catches a concurrent duplicate at flush time.
    - Builders are pure functions of the source fields and today's date;
      they never touch the session.
    - The successor inherits the source's organization.

Failure modes:
    - NoChainRegisteredError: no builder for the source type.
    - AlreadyChainedError: the source already has a successor.
"""

from collections.abc import Callable, Mapping
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from procure_kernel.domain.clock import Clock, SystemClock
from procure_kernel.domain.values import DocumentRef
from procure_kernel.domain.workflow import DocumentStatus, DocumentType
from procure_kernel.exceptions import AlreadyChainedError, NoChainRegisteredError
from procure_kernel.logging_config import get_logger
from procure_kernel.models.chain_link import ChainLink
from procure_kernel.models.documents import (
    DocumentBase,
    PaymentOrder,
    PurchaseOrder,
    PurchaseRequest,
    WithdrawalDecision,
)
from procure_kernel.services.base import BaseService
from procure_kernel.services.document_service import DocumentService

logger = get_logger("services.chain_generator")

ChainBuilder = Callable[[DocumentBase, date], DocumentBase]

PAYMENT_TERM_DAYS = 30
EXECUTION_DELAY_DAYS = 7


# =========================================================================
# Builders
# =========================================================================


def purchase_order_from_request(source: PurchaseRequest, today: date) -> PurchaseOrder:
    return PurchaseOrder(
        supplier=source.supplier,
        amount=source.amount,
        description=source.description,
        beneficiary_service=source.beneficiary_service,
        payment_method="Bank transfer",
        payment_due_date=today + timedelta(days=PAYMENT_TERM_DAYS),
        execution_date=today + timedelta(days=EXECUTION_DELAY_DAYS),
    )


def payment_order_from_withdrawal(
    source: WithdrawalDecision, today: date,
) -> PaymentOrder:
    return PaymentOrder(
        amount=source.amount,
        origin_account=source.origin_account,
        destination_account=source.destination_account,
        description=source.reason,
    )


DEFAULT_CHAIN_BUILDERS: dict[DocumentType, ChainBuilder] = {
    DocumentType.PURCHASE_REQUEST: purchase_order_from_request,
    DocumentType.WITHDRAWAL_DECISION: payment_order_from_withdrawal,
}


class ChainGenerator(BaseService[ChainLink]):
    """
    Registered mapping ``source type -> builder``.

    Contract:
        ``builders`` is copied at construction; ``register`` only affects
        this instance.  WorkflowEngine passes its own mapping to every
        generator it creates.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        builders: Mapping[DocumentType, ChainBuilder] | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._builders: dict[DocumentType, ChainBuilder] = dict(
            DEFAULT_CHAIN_BUILDERS if builders is None else builders
        )
        self._documents = DocumentService(session, self._clock)

    def register(self, source_type: DocumentType, builder: ChainBuilder) -> None:
        self._builders[DocumentType(source_type)] = builder

    def has_builder(self, source_type: DocumentType) -> bool:
        return DocumentType(source_type) in self._builders

    def existing_link(self, source_type: DocumentType, source_id: int) -> ChainLink | None:
        stmt = select(ChainLink).where(
            ChainLink.source_type == DocumentType(source_type).value,
            ChainLink.source_id == source_id,
        )
        return self.session.scalars(stmt).one_or_none()

    def generate(
        self,
        source_type: DocumentType,
        source_document: DocumentBase,
        actor_id: int,
    ) -> DocumentRef:
        """
        Build, persist and link the successor of ``source_document``.

        Raises:
            NoChainRegisteredError: No builder for ``source_type``.
            AlreadyChainedError: ``source_document`` already has a successor.
        """
        source_type = DocumentType(source_type)
        builder = self._builders.get(source_type)
        if builder is None:
            raise NoChainRegisteredError(source_type.value)

        # Read before any flush: a failed flush expires the source.
        source_id = source_document.id
        link = self.existing_link(source_type, source_id)
        if link is not None:
            raise AlreadyChainedError(
                source_type.value, source_id, link.target_type, link.target_id,
            )

        target = builder(source_document, self._clock.today())
        target.organization_id = source_document.organization_id
        target.created_by_id = actor_id
        target.status = DocumentStatus.IN_PROGRESS.value
        target.source_document_type = source_type.value
        target.source_document_id = source_id
        self._documents.persist(target)

        self.session.add(
            ChainLink(
                source_type=source_type.value,
                source_id=source_id,
                target_type=target.document_type.value,
                target_id=target.id,
                created_by_id=actor_id,
                created_at=self._clock.now(),
            )
        )
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise AlreadyChainedError(source_type.value, source_id) from exc

        logger.info(
            "document_chained",
            extra={
                "source_type": source_type.value,
                "source_id": source_id,
                "target_type": target.document_type.value,
                "target_id": target.id,
                "target_code": target.code,
            },
        )
        return target.ref
