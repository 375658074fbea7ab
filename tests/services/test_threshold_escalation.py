"""
Threshold-gated transitions through WorkflowEngine.

Covers:
- Above threshold: validate reroutes to VALIDATED, DIRECTOR approves
- The first-stage role cannot approve an escalated document
- Below threshold: validate goes straight to APPROVED and chains a payment order
- amount == threshold escalates
- No active configuration: ThresholdNotConfiguredError, audited, no change
- Thresholds are per organization
"""

from decimal import Decimal

import pytest

from procure_kernel.domain.workflow import DocumentStatus, DocumentType, Role
from procure_kernel.exceptions import (
    ThresholdNotConfiguredError,
    UnauthorizedTransitionError,
)

WD = DocumentType.WITHDRAWAL_DECISION
OP = DocumentType.PAYMENT_ORDER


class TestAboveThreshold:

    def test_withdrawal_escalates_to_director(
        self, workflow_engine, create_document, configure_threshold, make_actor, load_document,
    ):
        configure_threshold(amount="500000")
        wd_id = create_document(WD, amount="1000000")
        responsible = make_actor(Role.RESPONSIBLE)
        director = make_actor(Role.DIRECTOR)

        first = workflow_engine.apply(WD, wd_id, "validate", responsible)
        assert first.new_status is DocumentStatus.VALIDATED
        assert first.rerouted is True
        assert first.generated_document is None

        with pytest.raises(UnauthorizedTransitionError):
            workflow_engine.apply(WD, wd_id, "approve", responsible)
        assert load_document(WD, wd_id).status == "VALIDATED"

        final = workflow_engine.apply(WD, wd_id, "approve", director)
        assert final.new_status is DocumentStatus.APPROVED
        assert final.generated_document.document_type is OP

        history = workflow_engine.history(WD, wd_id)
        assert [(r.outcome, r.actor_role, r.to_status) for r in history] == [
            ("APPLIED", "RESPONSIBLE", "VALIDATED"),
            ("DENIED", "RESPONSIBLE", None),
            ("APPLIED", "DIRECTOR", "APPROVED"),
        ]

    def test_amount_equal_to_threshold_escalates(
        self, workflow_engine, create_document, configure_threshold, make_actor,
    ):
        configure_threshold(amount="500000")
        wd_id = create_document(WD, amount="500000")

        result = workflow_engine.apply(WD, wd_id, "validate", make_actor(Role.RESPONSIBLE))

        assert result.new_status is DocumentStatus.VALIDATED
        assert result.rerouted

    def test_escalated_payment_order(
        self, workflow_engine, create_document, configure_threshold, make_actor,
    ):
        configure_threshold(amount="100")
        op_id = create_document(OP, amount="100.01")

        result = workflow_engine.apply(OP, op_id, "validate", make_actor(Role.RESPONSIBLE))
        assert result.new_status is DocumentStatus.VALIDATED

        result = workflow_engine.apply(OP, op_id, "approve", make_actor(Role.DIRECTOR))
        assert result.new_status is DocumentStatus.APPROVED
        assert result.generated_document is None


class TestBelowThreshold:

    def test_responsible_approval_is_final(
        self, workflow_engine, create_document, configure_threshold, make_actor, load_document,
    ):
        configure_threshold(amount="500000")
        wd_id = create_document(WD, amount="499999.99", reason="Rent March")

        result = workflow_engine.apply(WD, wd_id, "validate", make_actor(Role.RESPONSIBLE))

        assert result.new_status is DocumentStatus.APPROVED
        assert result.rerouted is False
        assert result.new_status_is_final

        payment_order = load_document(OP, result.generated_document.document_id)
        assert payment_order.status == "IN_PROGRESS"
        assert payment_order.amount == Decimal("499999.99")
        assert payment_order.description == "Rent March"
        assert payment_order.origin_account == "ML-001-0001"

    def test_director_cannot_take_the_first_stage(
        self, workflow_engine, create_document, configure_threshold, make_actor,
    ):
        configure_threshold(amount="500000")
        wd_id = create_document(WD, amount="10")

        with pytest.raises(UnauthorizedTransitionError):
            workflow_engine.apply(WD, wd_id, "validate", make_actor(Role.DIRECTOR))


class TestMissingConfiguration:

    def test_gated_transition_fails_without_threshold(
        self, workflow_engine, create_document, make_actor, load_document,
    ):
        wd_id = create_document(WD, amount="1000")

        with pytest.raises(ThresholdNotConfiguredError) as exc_info:
            workflow_engine.apply(WD, wd_id, "validate", make_actor(Role.RESPONSIBLE))

        assert exc_info.value.organization_id == 7
        assert load_document(WD, wd_id).status == "IN_PROGRESS"
        [record] = workflow_engine.history(WD, wd_id)
        assert record.outcome == "DENIED"
        assert record.error_code == "THRESHOLD_NOT_CONFIGURED"

    def test_reject_does_not_need_a_threshold(
        self, workflow_engine, create_document, make_actor,
    ):
        wd_id = create_document(WD, amount="1000")

        result = workflow_engine.apply(
            WD, wd_id, "reject", make_actor(Role.RESPONSIBLE), comment="Wrong account",
        )

        assert result.new_status is DocumentStatus.REJECTED

    def test_other_organizations_threshold_does_not_apply(
        self, workflow_engine, create_document, configure_threshold, make_actor,
    ):
        configure_threshold(organization_id=8, amount="500000")
        wd_id = create_document(WD, organization_id=7, amount="1000")

        with pytest.raises(ThresholdNotConfiguredError):
            workflow_engine.apply(WD, wd_id, "validate", make_actor(Role.RESPONSIBLE))


class TestResolveRequiredStage:

    def test_read_side_resolution(self, workflow_engine, configure_threshold):
        configure_threshold(amount="500000")

        above = workflow_engine.resolve_required_stage(7, Decimal("750000"), WD)
        below = workflow_engine.resolve_required_stage(7, Decimal("1"), WD)

        assert above.requires_escalation and above.final_stage_role is Role.DIRECTOR
        assert not below.requires_escalation and below.final_stage_role is Role.RESPONSIBLE
        assert above.threshold == Decimal("500000")
