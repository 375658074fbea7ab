"""
Module: procure_kernel.models.threshold
Responsibility: ORM persistence for per-organization validation thresholds.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ only.

Invariants enforced:
    - At most one active row per organization: partial unique index on
      organization_id WHERE active (SQLite and PostgreSQL).
    - threshold_amount > 0 (CHECK).
    - below_role != above_role (CHECK).

Failure modes:
    - IntegrityError if two rows of one organization are active at once.
      ThresholdPolicy never lets this reach the database in normal use.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from procure_kernel.db.base import Base
from procure_kernel.domain.workflow import Role


class ThresholdConfig(Base):
    """Monetary cutoff deciding whether an approval must be escalated."""

    __tablename__ = "threshold_configs"

    __table_args__ = (
        CheckConstraint(
            "threshold_amount > 0",
            name="ck_threshold_configs_positive_amount",
        ),
        CheckConstraint(
            "below_role <> above_role",
            name="ck_threshold_configs_distinct_roles",
        ),
        Index(
            "ix_threshold_configs_one_active",
            "organization_id",
            unique=True,
            sqlite_where=text("active = 1"),
            postgresql_where=text("active"),
        ),
        Index("ix_threshold_configs_org", "organization_id", "created_at"),
    )

    organization_id: Mapped[int] = mapped_column(nullable=False)
    threshold_amount: Mapped[Decimal] = mapped_column(nullable=False)
    below_role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Role.RESPONSIBLE.value,
    )
    above_role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=Role.DIRECTOR.value,
    )
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by_id: Mapped[int] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<ThresholdConfig {self.id} org={self.organization_id} "
            f"amount={self.threshold_amount} active={self.active}>"
        )
