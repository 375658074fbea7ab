"""
Value objects exchanged between the workflow engine and its callers.

Architecture position:
    Kernel > Domain -- pure, frozen dataclasses.  ZERO I/O.

Failure modes:
    - ValueError from Actor.__post_init__ on a missing id or organization.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any

from procure_kernel.domain.workflow import (
    DocumentStatus,
    DocumentType,
    Role,
    is_approval_class,
)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, trusted as supplied.

    Contract: ``role`` is coerced to ``Role`` so callers may pass the
    plain string value.
    """

    id: int
    role: Role
    organization_id: int

    def __post_init__(self) -> None:
        if self.id is None:
            raise ValueError("Actor id is required")
        if self.organization_id is None:
            raise ValueError("Actor organization_id is required")
        object.__setattr__(self, "role", Role(self.role))

    @property
    def is_super_admin(self) -> bool:
        return self.role is Role.SUPER_ADMIN


@dataclass(frozen=True)
class DocumentRef:
    """Typed pointer to one document instance."""

    document_type: DocumentType
    document_id: int
    code: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "document_type", DocumentType(self.document_type))

    def __str__(self) -> str:
        return f"{self.document_type.value}:{self.document_id}"


@dataclass(frozen=True)
class DocumentView:
    """Detached, read-only snapshot of a document row."""

    ref: DocumentRef
    status: DocumentStatus
    organization_id: int
    created_by_id: int
    amount: Decimal | None
    source: DocumentRef | None
    rejection_comment: str | None
    version: int
    created_at: datetime | None
    active: bool | None = None
    fields: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class StageRequirement:
    """Outcome of threshold resolution for one amount.

    ``final_stage_role`` is the role whose approval ends the workflow;
    ``requires_escalation`` is True when that role is the above-threshold
    one and an intermediate stage must be passed first.
    """

    final_stage_role: Role
    requires_escalation: bool
    threshold: Decimal


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a successful ``WorkflowEngine.apply``."""

    document: DocumentRef
    transition: str
    from_status: DocumentStatus
    new_status: DocumentStatus
    audit_record_id: int
    generated_document: DocumentRef | None = None
    rerouted: bool = False

    @property
    def new_status_is_final(self) -> bool:
        return is_approval_class(self.document.document_type, self.new_status)
