"""
Procurement workflow types (``procure_kernel.domain.workflow``).

Responsibility
--------------
Enumerations and the single declarative transition table consulted by
the workflow engine and the transition authorizer.  Every document type
is described here as data; no per-type conditional logic lives in the
engine.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/``, or outer layers.

Invariants enforced
-------------------
* ``TRANSITION_TABLE`` keys are ``(document_type, from_status,
  transition)``; a missing key means the transition is not legal from
  that status.
* ``REJECTED`` has no outgoing rule for any document type.
* Every reject rule requires a comment and reuses the role set of the
  forward transition of the same stage.
* Threshold-gated rules declare the status they are rerouted to when
  the amount meets or exceeds the organization's threshold.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class DocumentType(str, Enum):
    """The eight procurement document types."""

    NEED_SHEET = "NEED_SHEET"
    PURCHASE_REQUEST = "PURCHASE_REQUEST"
    PURCHASE_ORDER = "PURCHASE_ORDER"
    SERVICE_ATTESTATION = "SERVICE_ATTESTATION"
    WITHDRAWAL_DECISION = "WITHDRAWAL_DECISION"
    PAYMENT_ORDER = "PAYMENT_ORDER"
    BUDGET = "BUDGET"
    CREDIT_LINE = "CREDIT_LINE"


class DocumentStatus(str, Enum):
    """Document lifecycle statuses."""

    IN_PROGRESS = "IN_PROGRESS"
    VALIDATED = "VALIDATED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class TransitionName(str, Enum):
    """Named actions that move a document between statuses."""

    VALIDATE = "validate"
    APPROVE = "approve"
    REJECT = "reject"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"


class Role(str, Enum):
    """Actor roles within an organization."""

    TREASURY = "TREASURY"
    MANAGER = "MANAGER"
    ACCOUNTANT = "ACCOUNTANT"
    RESPONSIBLE = "RESPONSIBLE"
    DIRECTOR = "DIRECTOR"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


TERMINAL_STATUSES: frozenset[DocumentStatus] = frozenset({DocumentStatus.REJECTED})


@dataclass(frozen=True)
class TransitionRule:
    """One row of the transition table.

    Contract: frozen.  ``escalated_status`` is set only on threshold-gated
    rules and names the intermediate status used when escalation is
    required.  ``sets_active`` is the value written to the document's
    ``active`` flag, or None when the rule does not touch the flag.
    """

    document_type: DocumentType
    from_status: DocumentStatus
    transition: TransitionName
    to_status: DocumentStatus
    required_roles: frozenset[Role]
    requires_comment: bool = False
    escalated_status: DocumentStatus | None = None
    sets_active: bool | None = None

    @property
    def threshold_gated(self) -> bool:
        return self.escalated_status is not None


@dataclass(frozen=True)
class DocumentTypeProfile:
    """Static facts about a document type that are not transitions."""

    document_type: DocumentType
    code_prefix: str
    final_status: DocumentStatus
    creator_roles: frozenset[Role]
    has_active_flag: bool = False
    chain_trigger_status: DocumentStatus | None = None


# =========================================================================
# Rule builders
# =========================================================================


def _roles(*roles: Role) -> frozenset[Role]:
    return frozenset(roles)


def _two_stage(
    doc_type: DocumentType,
    validators: frozenset[Role],
    approvers: frozenset[Role],
) -> list[TransitionRule]:
    """IN_PROGRESS -validate-> VALIDATED -approve-> APPROVED, reject from both."""
    ip, v, a, r = (
        DocumentStatus.IN_PROGRESS,
        DocumentStatus.VALIDATED,
        DocumentStatus.APPROVED,
        DocumentStatus.REJECTED,
    )
    return [
        TransitionRule(doc_type, ip, TransitionName.VALIDATE, v, validators),
        TransitionRule(doc_type, v, TransitionName.APPROVE, a, approvers),
        TransitionRule(doc_type, ip, TransitionName.REJECT, r, validators, requires_comment=True),
        TransitionRule(doc_type, v, TransitionName.REJECT, r, approvers, requires_comment=True),
    ]


def _threshold_gated(
    doc_type: DocumentType,
    first_stage: frozenset[Role],
    escalation_stage: frozenset[Role],
) -> list[TransitionRule]:
    """IN_PROGRESS -validate-> APPROVED, rerouted to VALIDATED on escalation."""
    ip, v, a, r = (
        DocumentStatus.IN_PROGRESS,
        DocumentStatus.VALIDATED,
        DocumentStatus.APPROVED,
        DocumentStatus.REJECTED,
    )
    return [
        TransitionRule(
            doc_type, ip, TransitionName.VALIDATE, a, first_stage,
            escalated_status=v,
        ),
        TransitionRule(doc_type, v, TransitionName.APPROVE, a, escalation_stage),
        TransitionRule(doc_type, ip, TransitionName.REJECT, r, first_stage, requires_comment=True),
        TransitionRule(doc_type, v, TransitionName.REJECT, r, escalation_stage, requires_comment=True),
    ]


def _single_stage_activatable(
    doc_type: DocumentType,
    validators: frozenset[Role],
    deactivators: frozenset[Role],
) -> list[TransitionRule]:
    """IN_PROGRESS -validate-> VALIDATED (final) with an active flag toggle."""
    ip, v, r = (
        DocumentStatus.IN_PROGRESS,
        DocumentStatus.VALIDATED,
        DocumentStatus.REJECTED,
    )
    return [
        TransitionRule(doc_type, ip, TransitionName.VALIDATE, v, validators, sets_active=True),
        TransitionRule(doc_type, ip, TransitionName.REJECT, r, validators, requires_comment=True),
        TransitionRule(doc_type, v, TransitionName.ACTIVATE, v, validators, sets_active=True),
        TransitionRule(doc_type, v, TransitionName.DEACTIVATE, v, deactivators, sets_active=False),
    ]


# =========================================================================
# The table
# =========================================================================

_RULES: list[TransitionRule] = [
    *_two_stage(DocumentType.NEED_SHEET, _roles(Role.MANAGER), _roles(Role.ACCOUNTANT)),
    *_two_stage(DocumentType.PURCHASE_REQUEST, _roles(Role.MANAGER), _roles(Role.ACCOUNTANT)),
    *_two_stage(
        DocumentType.PURCHASE_ORDER,
        _roles(Role.ACCOUNTANT),
        _roles(Role.RESPONSIBLE, Role.DIRECTOR),
    ),
    *_two_stage(DocumentType.SERVICE_ATTESTATION, _roles(Role.MANAGER), _roles(Role.ACCOUNTANT)),
    *_threshold_gated(DocumentType.WITHDRAWAL_DECISION, _roles(Role.RESPONSIBLE), _roles(Role.DIRECTOR)),
    *_threshold_gated(DocumentType.PAYMENT_ORDER, _roles(Role.RESPONSIBLE), _roles(Role.DIRECTOR)),
    *_single_stage_activatable(
        DocumentType.BUDGET, _roles(Role.DIRECTOR), _roles(Role.DIRECTOR, Role.RESPONSIBLE),
    ),
    *_single_stage_activatable(
        DocumentType.CREDIT_LINE, _roles(Role.DIRECTOR), _roles(Role.DIRECTOR, Role.RESPONSIBLE),
    ),
]

TRANSITION_TABLE: dict[
    tuple[DocumentType, DocumentStatus, TransitionName], TransitionRule
] = {(r.document_type, r.from_status, r.transition): r for r in _RULES}


DOCUMENT_TYPE_PROFILES: dict[DocumentType, DocumentTypeProfile] = {
    DocumentType.NEED_SHEET: DocumentTypeProfile(
        DocumentType.NEED_SHEET, "FB", DocumentStatus.APPROVED,
        _roles(Role.TREASURY, Role.MANAGER),
    ),
    DocumentType.PURCHASE_REQUEST: DocumentTypeProfile(
        DocumentType.PURCHASE_REQUEST, "DA", DocumentStatus.APPROVED,
        _roles(Role.TREASURY, Role.MANAGER),
        chain_trigger_status=DocumentStatus.APPROVED,
    ),
    # Purchase orders only come from an approved purchase request.
    DocumentType.PURCHASE_ORDER: DocumentTypeProfile(
        DocumentType.PURCHASE_ORDER, "BC", DocumentStatus.APPROVED,
        frozenset(),
    ),
    DocumentType.SERVICE_ATTESTATION: DocumentTypeProfile(
        DocumentType.SERVICE_ATTESTATION, "ASF", DocumentStatus.APPROVED,
        _roles(Role.TREASURY, Role.MANAGER),
    ),
    DocumentType.WITHDRAWAL_DECISION: DocumentTypeProfile(
        DocumentType.WITHDRAWAL_DECISION, "DP", DocumentStatus.APPROVED,
        _roles(Role.ACCOUNTANT),
        chain_trigger_status=DocumentStatus.APPROVED,
    ),
    DocumentType.PAYMENT_ORDER: DocumentTypeProfile(
        DocumentType.PAYMENT_ORDER, "OP", DocumentStatus.APPROVED,
        _roles(Role.ACCOUNTANT),
    ),
    DocumentType.BUDGET: DocumentTypeProfile(
        DocumentType.BUDGET, "BUD", DocumentStatus.VALIDATED,
        _roles(Role.RESPONSIBLE, Role.DIRECTOR),
        has_active_flag=True,
    ),
    DocumentType.CREDIT_LINE: DocumentTypeProfile(
        DocumentType.CREDIT_LINE, "LC", DocumentStatus.VALIDATED,
        _roles(Role.RESPONSIBLE, Role.DIRECTOR),
        has_active_flag=True,
    ),
}


def find_rule(
    doc_type: DocumentType,
    from_status: DocumentStatus,
    transition: TransitionName,
) -> TransitionRule | None:
    """Return the rule for (type, status, transition), or None if not legal."""
    return TRANSITION_TABLE.get((doc_type, from_status, transition))


def rules_from(
    doc_type: DocumentType, from_status: DocumentStatus,
) -> list[TransitionRule]:
    """All rules leaving ``from_status`` for ``doc_type``, in table order."""
    return [
        r for r in _RULES
        if r.document_type == doc_type and r.from_status == from_status
    ]


def is_approval_class(doc_type: DocumentType, status: DocumentStatus) -> bool:
    """True when ``status`` is the final, approval-class status of the type."""
    return DOCUMENT_TYPE_PROFILES[doc_type].final_status == status
