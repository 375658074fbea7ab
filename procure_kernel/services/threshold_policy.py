"""
ThresholdPolicy -- per-organization escalation thresholds.

Responsibility:
    Resolves, for an organization and an amount, which role's approval
    ends the workflow of a threshold-gated document, and manages the
    organization's threshold configurations.

Architecture position:
    Kernel > Services -- imperative shell.  Consulted by WorkflowEngine
    for gated transitions and exposed for UI-side threshold display.

Invariants enforced:
    - No silent default: a gated transition for an organization without
      an active configuration fails with ThresholdNotConfiguredError.
    - amount >= threshold escalates to the above-threshold role;
      amount < threshold makes the below-threshold role terminal.
    - At most one active configuration per organization.  Activation
      deactivates every sibling and activates the target inside the
      caller's transaction, so other sessions see either the old or the
      new active row, never zero or two.  A partial unique index backs
      this at the database level.
    - Only a DIRECTOR of the organization, or a SUPER_ADMIN, may manage
      thresholds.

Failure modes:
    - ThresholdNotConfiguredError: no active configuration.
    - ThresholdConfigNotFoundError: unknown configuration id.
    - InvalidThresholdError: non-positive amount, identical roles,
      activating an active row, deactivating an inactive row.
    - ThresholdManagementDeniedError: actor may not manage thresholds.
"""

from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from procure_kernel.domain.clock import Clock, SystemClock
from procure_kernel.domain.values import Actor, StageRequirement
from procure_kernel.domain.workflow import DocumentType, Role
from procure_kernel.exceptions import (
    InvalidThresholdError,
    ThresholdConfigNotFoundError,
    ThresholdManagementDeniedError,
    ThresholdNotConfiguredError,
)
from procure_kernel.logging_config import get_logger
from procure_kernel.models.threshold import ThresholdConfig
from procure_kernel.services.base import BaseService

logger = get_logger("services.threshold_policy")


class ThresholdPolicy(BaseService[ThresholdConfig]):
    """Resolution and management of validation thresholds."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve_required_stage(
        self,
        organization_id: int,
        amount: Decimal,
        doc_type: DocumentType | None = None,
    ) -> StageRequirement:
        """
        Decide which role's approval is final for ``amount``.

        Raises:
            ThresholdNotConfiguredError: The organization has no active
                configuration.
        """
        config = self.get_active(organization_id)
        if config is None:
            raise ThresholdNotConfiguredError(
                organization_id,
                DocumentType(doc_type).value if doc_type is not None else None,
            )

        amount = Decimal(amount if amount is not None else 0)
        escalate = amount >= config.threshold_amount
        final_role = Role(config.above_role if escalate else config.below_role)

        logger.debug(
            "threshold_resolved",
            extra={
                "organization_id": organization_id,
                "document_type": doc_type,
                "amount": amount,
                "threshold": config.threshold_amount,
                "requires_escalation": escalate,
            },
        )
        return StageRequirement(
            final_stage_role=final_role,
            requires_escalation=escalate,
            threshold=config.threshold_amount,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_active(self, organization_id: int) -> ThresholdConfig | None:
        stmt = select(ThresholdConfig).where(
            ThresholdConfig.organization_id == organization_id,
            ThresholdConfig.active.is_(True),
        )
        return self.session.scalars(stmt).one_or_none()

    def list_configs(self, organization_id: int) -> list[ThresholdConfig]:
        stmt = (
            select(ThresholdConfig)
            .where(ThresholdConfig.organization_id == organization_id)
            .order_by(ThresholdConfig.created_at, ThresholdConfig.id)
        )
        return list(self.session.scalars(stmt))

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    def configure(
        self,
        organization_id: int,
        threshold_amount: Decimal,
        actor: Actor,
        activate: bool = True,
        below_role: Role = Role.RESPONSIBLE,
        above_role: Role = Role.DIRECTOR,
    ) -> ThresholdConfig:
        """Create a configuration, optionally making it the active one."""
        self._require_manager(actor, organization_id)

        threshold_amount = Decimal(threshold_amount)
        if threshold_amount <= 0:
            raise InvalidThresholdError(
                f"threshold amount must be positive, got {threshold_amount}"
            )
        below_role, above_role = Role(below_role), Role(above_role)
        if below_role is above_role:
            raise InvalidThresholdError("below and above roles must differ")

        config = ThresholdConfig(
            organization_id=organization_id,
            threshold_amount=threshold_amount,
            below_role=below_role.value,
            above_role=above_role.value,
            active=False,
            created_by_id=actor.id,
            created_at=self._clock.now(),
        )
        self.session.add(config)
        self.session.flush()

        logger.info(
            "threshold_configured",
            extra={
                "threshold_config_id": config.id,
                "organization_id": organization_id,
                "threshold_amount": threshold_amount,
                "actor_id": actor.id,
            },
        )

        if activate:
            self._activate(config, actor)
        return config

    def activate(self, config_id: int, actor: Actor) -> ThresholdConfig:
        """Make ``config_id`` the organization's only active configuration."""
        config = self._load(config_id)
        self._require_manager(actor, config.organization_id)
        if config.active:
            raise InvalidThresholdError("configuration is already active", config_id)
        self._activate(config, actor)
        return config

    def deactivate(self, config_id: int, actor: Actor) -> ThresholdConfig:
        """Deactivate ``config_id``; gated transitions then fail until one is active."""
        config = self._load(config_id)
        self._require_manager(actor, config.organization_id)
        if not config.active:
            raise InvalidThresholdError("configuration is not active", config_id)
        config.active = False
        self.session.flush()

        logger.info(
            "threshold_deactivated",
            extra={
                "threshold_config_id": config.id,
                "organization_id": config.organization_id,
                "actor_id": actor.id,
            },
        )
        return config

    def _activate(self, config: ThresholdConfig, actor: Actor) -> None:
        # Siblings first: the partial unique index forbids two active rows.
        self.session.execute(
            update(ThresholdConfig)
            .where(
                ThresholdConfig.organization_id == config.organization_id,
                ThresholdConfig.id != config.id,
                ThresholdConfig.active.is_(True),
            )
            .values(active=False)
            .execution_options(synchronize_session="fetch")
        )
        config.active = True
        self.session.flush()

        logger.info(
            "threshold_activated",
            extra={
                "threshold_config_id": config.id,
                "organization_id": config.organization_id,
                "threshold_amount": config.threshold_amount,
                "actor_id": actor.id,
            },
        )

    def _load(self, config_id: int) -> ThresholdConfig:
        config = self.session.get(ThresholdConfig, config_id)
        if config is None:
            raise ThresholdConfigNotFoundError(config_id)
        return config

    @staticmethod
    def _require_manager(actor: Actor, organization_id: int) -> None:
        if actor.is_super_admin:
            return
        if actor.role is Role.DIRECTOR and actor.organization_id == organization_id:
            return
        raise ThresholdManagementDeniedError(actor.id, actor.role.value, organization_id)
