"""
Module: procure_kernel.models.chain_link
Responsibility: ORM persistence for document chaining events.
Architecture position: Kernel > Models.  May import from db/base.py and
    exceptions only.

Invariants enforced:
    - A source document is chained at most once: UNIQUE(source_type, source_id).
    - Chain links are append-only (ORM listeners).

Failure modes:
    - IntegrityError when a second link for the same source is flushed;
      ChainGenerator reports it as AlreadyChainedError.
    - ImmutabilityViolationError on any UPDATE/DELETE attempt.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, String, UniqueConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from procure_kernel.db.base import Base
from procure_kernel.exceptions import ImmutabilityViolationError


class ChainLink(Base):
    """Source document -> generated successor."""

    __tablename__ = "chain_links"

    __table_args__ = (
        UniqueConstraint("source_type", "source_id", name="uq_chain_links_source"),
        Index("ix_chain_links_target", "target_type", "target_id"),
    )

    source_type: Mapped[str] = mapped_column(String(40), nullable=False)
    source_id: Mapped[int] = mapped_column(nullable=False)
    target_type: Mapped[str] = mapped_column(String(40), nullable=False)
    target_id: Mapped[int] = mapped_column(nullable=False)
    created_by_id: Mapped[int] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ChainLink {self.source_type}:{self.source_id} -> "
            f"{self.target_type}:{self.target_id}>"
        )


@event.listens_for(ChainLink, "before_update")
def prevent_chain_link_update(mapper, connection, target):
    """Prevent updates to chain links."""
    raise ImmutabilityViolationError(
        entity_type="ChainLink",
        entity_id=str(target.id),
        reason="Chain links are immutable -- cannot modify",
    )


@event.listens_for(ChainLink, "before_delete")
def prevent_chain_link_delete(mapper, connection, target):
    """Prevent deletion of chain links."""
    raise ImmutabilityViolationError(
        entity_type="ChainLink",
        entity_id=str(target.id),
        reason="Chain links are immutable -- cannot delete",
    )
