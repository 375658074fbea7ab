"""
Audit domain types (``procure_kernel.domain.audit``).

Responsibility
--------------
The unpersisted shape of one transition attempt.  The audit trail turns
an ``AuditEntry`` into an immutable ``AuditRecord`` row.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* A DENIED entry carries the machine-readable ``error_code`` of the
  failure; an APPLIED entry never does.
* An APPLIED entry always names both ``from_status`` and ``to_status``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from procure_kernel.domain.workflow import DocumentStatus, DocumentType


class AuditOutcome(str, Enum):
    """Result of one transition attempt."""

    APPLIED = "APPLIED"
    DENIED = "DENIED"


@dataclass(frozen=True)
class AuditEntry:
    """One transition attempt, ready to be recorded."""

    document_type: DocumentType
    document_id: int
    transition: str
    actor_id: int
    actor_role: str
    actor_organization_id: int
    outcome: AuditOutcome
    comment: str | None = None
    from_status: DocumentStatus | None = None
    to_status: DocumentStatus | None = None
    error_code: str | None = None

    def __post_init__(self) -> None:
        if self.outcome is AuditOutcome.DENIED and not self.error_code:
            raise ValueError("DENIED audit entries require an error_code")
        if self.outcome is AuditOutcome.APPLIED:
            if self.error_code is not None:
                raise ValueError("APPLIED audit entries cannot carry an error_code")
            if self.from_status is None or self.to_status is None:
                raise ValueError("APPLIED audit entries require from/to status")
