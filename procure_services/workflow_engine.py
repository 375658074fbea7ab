"""
procure_services.workflow_engine -- Document workflow state machine.

Responsibility:
    Applies a named transition to a document on behalf of an actor:
    loads the document, checks tenant scope, finds the rule in the
    declarative transition table, enforces the comment rule, delegates
    role/ownership checks to TransitionAuthorizer, reroutes threshold-gated
    transitions through ThresholdPolicy, persists the new status, audits
    the attempt and triggers chaining.  Thin coordinator: no per-type
    branching lives here.

Architecture position:
    Services layer.  Owns the unit of work (one session per ``apply``);
    kernel services only flush.

Invariants enforced:
    - Atomicity: status change, APPLIED audit record and chained successor
      commit in one transaction.  If any of them fails, none is kept.
    - Every attempt is audited: a denial rolls back the unit of work, then
      a DENIED record carrying the error code is committed in a separate
      transaction before the error is re-raised.
    - REJECTED is terminal and no transition is applied twice: both follow
      from the table having no rule for the attempted (status, transition).
    - First writer wins: a concurrent ``apply`` on the same document either
      re-reads the new status (InvalidTransitionError) or loses the version
      check (ConcurrentModificationError).  Never two APPLIED.
    - Post-commit hooks run only after commit and never roll it back.

Failure modes:
    - DocumentNotFoundError, CrossTenantAccessError, InvalidTransitionError,
      CommentRequiredError, UnauthorizedTransitionError,
      ThresholdNotConfiguredError, ConcurrentModificationError,
      AlreadyChainedError: audited as DENIED and re-raised.
    - PersistenceUnavailableError: the database did not answer within its
      bounds, or the DENIED record itself could not be written.  Not retried.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from decimal import Decimal
from uuid import uuid4

from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from procure_kernel.db.engine import get_session_factory
from procure_kernel.domain.audit import AuditEntry, AuditOutcome
from procure_kernel.domain.clock import Clock, SystemClock
from procure_kernel.domain.values import (
    Actor,
    DocumentView,
    StageRequirement,
    TransitionResult,
)
from procure_kernel.domain.workflow import (
    DOCUMENT_TYPE_PROFILES,
    TERMINAL_STATUSES,
    DocumentStatus,
    DocumentType,
    TransitionName,
    TransitionRule,
    find_rule,
    rules_from,
)
from procure_kernel.exceptions import (
    ChainError,
    CommentRequiredError,
    ConcurrentModificationError,
    CrossTenantAccessError,
    InvalidTransitionError,
    PersistenceUnavailableError,
    ThresholdError,
    WorkflowError,
)
from procure_kernel.logging_config import LogContext, get_logger
from procure_kernel.models.audit_record import AuditRecord
from procure_kernel.models.documents import DocumentBase
from procure_kernel.services.audit_trail import AuditTrail
from procure_kernel.services.chain_generator import (
    DEFAULT_CHAIN_BUILDERS,
    ChainBuilder,
    ChainGenerator,
)
from procure_kernel.services.document_service import DocumentService
from procure_kernel.services.threshold_policy import ThresholdPolicy
from procure_services.transition_authorizer import TransitionAuthorizer

logger = get_logger("services.workflow_engine")

PostCommitHook = Callable[[TransitionResult, Actor], None]

# Errors that are denials of the attempt rather than infrastructure faults.
DENIAL_ERRORS = (WorkflowError, ThresholdError, ChainError)

# The database did not answer within its bounds.
UNAVAILABLE_ERRORS = (OperationalError, PoolTimeoutError)


def _unavailable_detail(exc: Exception) -> str:
    return str(getattr(exc, "orig", None) or exc)


@dataclass
class _Attempt:
    """What is known about an attempt so far; feeds the DENIED record."""

    document_type: DocumentType
    document_id: int
    transition: str
    from_status: DocumentStatus | None = None


class WorkflowEngine:
    """
    Applies transitions, one unit of work per call.

    Contract:
        ``session_factory`` defaults to the factory configured by
        ``procure_kernel.db.engine``.  The engine is safe to share
        between threads: all per-call state lives in the call's session.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session] | None = None,
        clock: Clock | None = None,
        authorizer: TransitionAuthorizer | None = None,
        chain_builders: dict[DocumentType, ChainBuilder] | None = None,
        post_commit_hooks: Iterable[PostCommitHook] = (),
    ):
        self._session_factory = session_factory or get_session_factory()
        self._clock = clock or SystemClock()
        self._authorizer = authorizer or TransitionAuthorizer()
        self._chain_builders = dict(
            DEFAULT_CHAIN_BUILDERS if chain_builders is None else chain_builders
        )
        self._post_commit_hooks: list[PostCommitHook] = list(post_commit_hooks)

    def register_chain_builder(
        self, source_type: DocumentType, builder: ChainBuilder,
    ) -> None:
        self._chain_builders[DocumentType(source_type)] = builder

    def add_post_commit_hook(self, hook: PostCommitHook) -> None:
        self._post_commit_hooks.append(hook)

    # ------------------------------------------------------------------
    # apply
    # ------------------------------------------------------------------

    def apply(
        self,
        doc_type: DocumentType,
        doc_id: int,
        transition: TransitionName | str,
        actor: Actor,
        comment: str | None = None,
    ) -> TransitionResult:
        """
        Apply ``transition`` to document (``doc_type``, ``doc_id``).

        Returns:
            TransitionResult with the new status and, when the new status
            triggers chaining, the generated successor.

        Raises:
            WorkflowError, ThresholdError, ChainError subclasses after the
            attempt has been audited as DENIED; PersistenceUnavailableError.
        """
        doc_type = DocumentType(doc_type)
        transition_value = (
            transition.value if isinstance(transition, TransitionName) else str(transition)
        )
        attempt = _Attempt(doc_type, doc_id, transition_value)
        correlation_id = LogContext.get_all().get("correlation_id") or str(uuid4())

        with LogContext.bind(
            correlation_id=correlation_id,
            actor_id=actor.id,
            organization_id=actor.organization_id,
            document_ref=f"{doc_type.value}:{doc_id}",
        ):
            start = time.monotonic()
            session = self._session_factory()
            try:
                result = self._apply(session, attempt, actor, comment)
                session.commit()
            except DENIAL_ERRORS as exc:
                session.rollback()
                self._record_denial(attempt, actor, comment, exc)
                raise
            except StaleDataError as exc:
                session.rollback()
                error = ConcurrentModificationError(doc_type.value, doc_id)
                self._record_denial(attempt, actor, comment, error)
                raise error from exc
            except UNAVAILABLE_ERRORS as exc:
                session.rollback()
                detail = _unavailable_detail(exc)
                logger.error(
                    "workflow_persistence_unavailable",
                    extra={"transition": transition_value, "detail": detail},
                )
                raise PersistenceUnavailableError("apply", detail) from exc
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

            logger.info(
                "workflow_transition_applied",
                extra={
                    "transition": result.transition,
                    "from_status": result.from_status.value,
                    "to_status": result.new_status.value,
                    "rerouted": result.rerouted,
                    "generated_document": (
                        str(result.generated_document)
                        if result.generated_document is not None else None
                    ),
                    "audit_record_id": result.audit_record_id,
                    "duration_ms": round((time.monotonic() - start) * 1000, 3),
                },
            )
            self._run_post_commit_hooks(result, actor)
            return result

    def _apply(
        self,
        session: Session,
        attempt: _Attempt,
        actor: Actor,
        comment: str | None,
    ) -> TransitionResult:
        doc_type, doc_id = attempt.document_type, attempt.document_id

        # 1. load
        document = DocumentService(session, self._clock).load(doc_type, doc_id)
        from_status = document.status_enum
        attempt.from_status = from_status

        # 2. tenant scope
        self._check_tenant(actor, document)

        # 3. transition table
        rule = self._find_rule(document, attempt.transition)

        # 4. comment rule
        if rule.requires_comment and not (comment and comment.strip()):
            raise CommentRequiredError(doc_type.value, doc_id)

        # 5. role + ownership
        self._authorizer.check(actor, doc_type, rule.transition, document)

        # 6. threshold routing
        new_status, rerouted = rule.to_status, False
        if rule.threshold_gated:
            requirement = ThresholdPolicy(session, self._clock).resolve_required_stage(
                document.organization_id, document.amount, doc_type,
            )
            if requirement.requires_escalation:
                new_status, rerouted = rule.escalated_status, True

        # 7. persist (version-checked)
        document.status = new_status.value
        if new_status is DocumentStatus.REJECTED:
            document.rejection_comment = comment.strip()
        if rule.sets_active is not None:
            document.active = rule.sets_active
        session.flush()

        # 8. audit
        record = AuditTrail(session, self._clock).record(
            AuditEntry(
                document_type=doc_type,
                document_id=doc_id,
                transition=rule.transition.value,
                actor_id=actor.id,
                actor_role=actor.role.value,
                actor_organization_id=actor.organization_id,
                outcome=AuditOutcome.APPLIED,
                comment=comment,
                from_status=from_status,
                to_status=new_status,
            )
        )

        # 9. chaining
        generated = None
        trigger = DOCUMENT_TYPE_PROFILES[doc_type].chain_trigger_status
        if trigger is not None and new_status is trigger and new_status is not from_status:
            chain = ChainGenerator(session, self._clock, self._chain_builders)
            if chain.has_builder(doc_type):
                generated = chain.generate(doc_type, document, actor.id)

        return TransitionResult(
            document=document.ref,
            transition=rule.transition.value,
            from_status=from_status,
            new_status=new_status,
            audit_record_id=record.id,
            generated_document=generated,
            rerouted=rerouted,
        )

    @staticmethod
    def _check_tenant(actor: Actor, document: DocumentBase) -> None:
        if document.organization_id != actor.organization_id and not actor.is_super_admin:
            raise CrossTenantAccessError(
                document.document_type.value,
                document.id,
                actor.organization_id,
                document.organization_id,
            )

    @staticmethod
    def _find_rule(document: DocumentBase, transition: str) -> TransitionRule:
        doc_type, status = document.document_type, document.status_enum
        try:
            name = TransitionName(transition)
        except ValueError:
            raise InvalidTransitionError(
                doc_type.value, document.id, status.value, transition,
                "unknown transition",
            ) from None

        rule = find_rule(doc_type, status, name)
        if rule is None:
            reason = "document is rejected" if status in TERMINAL_STATUSES else None
            raise InvalidTransitionError(
                doc_type.value, document.id, status.value, name.value, reason,
            )
        if (
            rule.sets_active is not None
            and rule.from_status is rule.to_status
            and getattr(document, "active", None) == rule.sets_active
        ):
            raise InvalidTransitionError(
                doc_type.value, document.id, status.value, name.value,
                "already active" if rule.sets_active else "already inactive",
            )
        return rule

    # ------------------------------------------------------------------
    # Denials and side effects
    # ------------------------------------------------------------------

    def _record_denial(
        self,
        attempt: _Attempt,
        actor: Actor,
        comment: str | None,
        error: Exception,
    ) -> None:
        code = getattr(error, "code", type(error).__name__)
        logger.warning(
            "workflow_transition_denied",
            extra={
                "transition": attempt.transition,
                "from_status": attempt.from_status,
                "error_code": code,
                "reason": str(error),
            },
        )
        session = self._session_factory()
        try:
            AuditTrail(session, self._clock).record(
                AuditEntry(
                    document_type=attempt.document_type,
                    document_id=attempt.document_id,
                    transition=attempt.transition,
                    actor_id=actor.id,
                    actor_role=actor.role.value,
                    actor_organization_id=actor.organization_id,
                    outcome=AuditOutcome.DENIED,
                    comment=comment,
                    from_status=attempt.from_status,
                    error_code=code,
                )
            )
            session.commit()
        except UNAVAILABLE_ERRORS as exc:
            session.rollback()
            detail = _unavailable_detail(exc)
            logger.error(
                "workflow_denial_audit_failed",
                extra={"error_code": code, "detail": detail},
            )
            raise PersistenceUnavailableError("audit_denial", detail) from exc
        finally:
            session.close()

    def _run_post_commit_hooks(self, result: TransitionResult, actor: Actor) -> None:
        if result.from_status is result.new_status or not result.new_status_is_final:
            return
        for hook in self._post_commit_hooks:
            try:
                hook(result, actor)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "post_commit_hook_failed",
                    extra={
                        "hook": getattr(hook, "__name__", repr(hook)),
                        "document": str(result.document),
                        "new_status": result.new_status.value,
                        "error": str(exc),
                    },
                )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get_document(
        self, doc_type: DocumentType, doc_id: int, actor: Actor,
    ) -> DocumentView:
        """Tenant-scoped read; a SUPER_ADMIN may read any organization."""
        with self._read_session() as session:
            document = DocumentService(session, self._clock).load(doc_type, doc_id)
            self._check_tenant(actor, document)
            return document.to_view()

    def available_transitions(
        self, doc_type: DocumentType, doc_id: int, actor: Actor,
    ) -> list[str]:
        """Transition names ``actor`` could apply to the document right now."""
        with self._read_session() as session:
            document = DocumentService(session, self._clock).load(doc_type, doc_id)
            self._check_tenant(actor, document)
            names: list[str] = []
            for rule in rules_from(document.document_type, document.status_enum):
                allowed, _ = self._authorizer.is_authorized(
                    actor, rule.document_type, rule.transition, document,
                )
                if not allowed or rule.transition.value in names:
                    continue
                try:
                    self._find_rule(document, rule.transition.value)
                except InvalidTransitionError:
                    continue
                names.append(rule.transition.value)
            return names

    def resolve_required_stage(
        self, organization_id: int, amount: Decimal, doc_type: DocumentType,
    ) -> StageRequirement:
        """Threshold resolution for UI-side display."""
        with self._read_session() as session:
            return ThresholdPolicy(session, self._clock).resolve_required_stage(
                organization_id, amount, doc_type,
            )

    def history(self, doc_type: DocumentType, doc_id: int) -> list[AuditRecord]:
        """Audit records of one document, oldest first."""
        with self._read_session() as session:
            return AuditTrail(session, self._clock).by_document(doc_type, doc_id)

    def _read_session(self) -> "_ReadSession":
        return _ReadSession(self._session_factory)


class _ReadSession:
    """Session that never commits; maps timeouts like ``apply``."""

    def __init__(self, factory: sessionmaker[Session]):
        self._factory = factory
        self._session: Session | None = None

    def __enter__(self) -> Session:
        self._session = self._factory()
        return self._session

    def __exit__(self, exc_type, exc, tb) -> bool:
        # close() detaches without expiring, so returned rows stay readable.
        self._session.close()
        if isinstance(exc, UNAVAILABLE_ERRORS):
            raise PersistenceUnavailableError("read", _unavailable_detail(exc)) from exc
        return False
