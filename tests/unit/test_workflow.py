"""Unit tests for the origination state machine"""

from dataclasses import replace
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from loan_origination.domain import workflow
from loan_origination.domain.exceptions import StepBlockedError, WorkflowStateError
from loan_origination.domain.models import (
    AllocationMode,
    LoanPurpose,
    ParticipantContext,
    PaymentCadence,
    Stage,
)
from loan_origination.utils.date_utils import first_of_next_month

UPLOAD = {"name": "agreement.pdf", "size": 52_000, "content_type": "application/pdf"}


@pytest.fixture
def state(participant, plan_config, funding_sources):
    return workflow.start_application("participant-1", participant, plan_config, funding_sources)


def _complete_through_compliance(state):
    """Fill every stage with valid data and advance to REVIEW"""
    state = workflow.patch_basics(state, amount=Decimal("10000"), term_years=3)
    state = workflow.advance(state)
    state = workflow.patch_payment(state, routing_number="021000021", account_number="000123456789", account_type="checking")
    state = workflow.advance(state)
    state = workflow.patch_allocation(state, mode=AllocationMode.PRO_RATA)
    state = workflow.advance(state)
    state = workflow.attach_documents(state, "LoanAgreement", [UPLOAD])
    state = workflow.attach_documents(state, "SpousalConsent", [{"name": "consent.pdf", "size": 1000}])
    state = workflow.patch_compliance(state, {"terms": True, "disclosure": True})
    return workflow.advance(state)


def test_start_eligible_uses_plan_defaults(state, plan_config):
    basics = state.draft.basics

    assert state.stage == Stage.BASICS
    assert basics.amount == Decimal("1000.00")
    assert basics.term_years == plan_config.term_years_max
    assert basics.payment_cadence == PaymentCadence.MONTHLY
    assert basics.first_payment_date == first_of_next_month(date.today()).isoformat()
    assert state.draft.payment is None
    assert state.draft.allocation is None
    assert state.draft.compliance is None


def test_start_ineligible_is_terminal(plan_config, funding_sources):
    poor = ParticipantContext(
        vested_balance=Decimal("1500"),
        outstanding_loan_balance=Decimal("0"),
        is_enrolled=True,
    )
    state = workflow.start_application("participant-2", poor, plan_config, funding_sources)

    assert state.stage == Stage.INELIGIBLE
    assert state.draft.basics is None
    assert workflow.can_advance(state) == list(state.eligibility.reasons)
    with pytest.raises(WorkflowStateError):
        workflow.patch_basics(state, amount=Decimal("1000"))
    with pytest.raises(WorkflowStateError):
        workflow.advance(state)
    with pytest.raises(WorkflowStateError):
        workflow.retreat(state)


def test_default_basics_pass_validation(state):
    assert workflow.can_advance(state) == []


def test_patch_does_not_validate(state):
    state = workflow.patch_basics(state, amount=Decimal("999999"))

    assert state.draft.basics.amount == Decimal("999999.00")
    assert len(workflow.can_advance(state)) == 1


def test_advance_blocked_by_validation(state):
    state = workflow.advance(state)  # BASICS -> PAYMENT

    with pytest.raises(StepBlockedError) as excinfo:
        workflow.advance(state)

    assert excinfo.value.stage == "payment"
    assert excinfo.value.errors == ["Payment setup is required."]


def test_patch_payment_merges_fields(state):
    state = workflow.patch_payment(state, routing_number="021000021")
    state = workflow.patch_payment(state, account_number="12345678", account_type="savings")

    payment = state.draft.payment
    assert payment.method == "ach"
    assert payment.routing_number == "021000021"
    assert payment.account_type == "savings"


def test_happy_path_to_confirmation(state):
    state = _complete_through_compliance(state)
    assert state.stage == Stage.REVIEW
    assert workflow.can_advance(state) == []

    submitted_at = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
    confirmed = workflow.advance(state, now=submitted_at)

    assert confirmed.stage == Stage.CONFIRMED
    assert confirmed.submitted_at == submitted_at
    assert confirmed.confirmation_number.startswith("LN-")
    assert confirmed.draft == state.draft


def test_confirmed_draft_is_immutable(state):
    confirmed = workflow.advance(_complete_through_compliance(state))

    with pytest.raises(WorkflowStateError):
        workflow.patch_basics(confirmed, amount=Decimal("2000"))
    with pytest.raises(WorkflowStateError):
        workflow.attach_documents(confirmed, "LoanAgreement", [UPLOAD])
    with pytest.raises(WorkflowStateError):
        workflow.advance(confirmed)
    with pytest.raises(WorkflowStateError):
        workflow.go_to_stage(confirmed, Stage.BASICS)


def test_retreat_is_never_gated(state):
    state = workflow.advance(state)
    state = workflow.patch_payment(state, routing_number="bad")

    state = workflow.retreat(state)

    assert state.stage == Stage.BASICS
    assert state.draft.payment.routing_number == "bad"


def test_retreat_at_first_stage_is_noop(state):
    assert workflow.retreat(state) == state


def test_edit_amount_from_review_keeps_later_data(state):
    review = _complete_through_compliance(state)

    editing = workflow.go_to_stage(review, Stage.BASICS)
    editing = workflow.patch_basics(editing, amount=Decimal("12000"))

    assert editing.stage == Stage.BASICS
    assert editing.draft.payment == review.draft.payment
    assert editing.draft.compliance == review.draft.compliance
    assert editing.draft.allocation.total_allocated == Decimal("12000.00")
    assert [row.amount for row in editing.draft.allocation.rows] == [
        Decimal("4000.00"),
        Decimal("4000.00"),
        Decimal("4000.00"),
    ]


def test_go_to_stage_cannot_skip_forward(state):
    with pytest.raises(WorkflowStateError):
        workflow.go_to_stage(state, Stage.REVIEW)
    with pytest.raises(WorkflowStateError):
        workflow.go_to_stage(state, Stage.INELIGIBLE)


def test_custom_allocation_renormalized_on_amount_change(state):
    state = workflow.patch_basics(state, amount=Decimal("3000"))
    state = workflow.patch_allocation(state, amounts={"fund_sp500": Decimal("2000")})

    assert state.draft.allocation.mode == AllocationMode.CUSTOM
    assert [row.amount for row in state.draft.allocation.rows] == [
        Decimal("2000.00"),
        Decimal("1000.00"),
        Decimal("0.00"),
    ]

    state = workflow.patch_basics(state, amount=Decimal("4000"))

    assert state.draft.allocation.mode == AllocationMode.CUSTOM
    assert state.draft.allocation.rows[-1].amount == Decimal("1000.00")
    assert state.draft.allocation.total_allocated == Decimal("4000.00")


def test_unchanged_amount_keeps_allocation(state):
    state = workflow.patch_allocation(state, amounts={"fund_sp500": Decimal("500")})
    before = state.draft.allocation

    state = workflow.patch_basics(state, term_years=2)

    assert state.draft.allocation is before


def test_over_allocated_custom_split_blocks_advance(state):
    state = workflow.advance(state)
    state = workflow.patch_payment(state, routing_number="021000021", account_number="12345678", account_type="checking")
    state = workflow.advance(state)
    state = workflow.patch_allocation(state, amounts={"fund_sp500": Decimal("900"), "fund_bond": Decimal("300")})

    assert workflow.can_advance(state) == ["Allocations cannot be negative."]


def test_switch_back_to_pro_rata(state):
    state = workflow.patch_allocation(state, amounts={"fund_sp500": Decimal("900")})
    state = workflow.patch_allocation(state, mode=AllocationMode.PRO_RATA)

    assert state.draft.allocation.mode == AllocationMode.PRO_RATA
    assert [row.amount for row in state.draft.allocation.rows] == [
        Decimal("333.33"),
        Decimal("333.33"),
        Decimal("333.34"),
    ]


def test_attach_documents_replaces_same_type(state):
    state = workflow.attach_documents(state, "LoanAgreement", [UPLOAD])
    state = workflow.attach_documents(state, "SpousalConsent", [UPLOAD])
    state = workflow.attach_documents(state, "LoanAgreement", [{"name": "signed.pdf", "size": 10}])

    documents = state.draft.compliance.documents
    assert [(d.document_type, d.name) for d in documents] == [
        ("SpousalConsent", "agreement.pdf"),
        ("LoanAgreement", "signed.pdf"),
    ]
    assert documents[1].content_type == "application/octet-stream"


def test_remove_document(state):
    state = workflow.attach_documents(state, "LoanAgreement", [UPLOAD])
    document_id = state.draft.compliance.documents[0].document_id

    state = workflow.remove_document(state, document_id)

    assert state.draft.compliance.documents == ()


def test_compliance_follows_purpose(state):
    state = workflow.patch_basics(state, purpose=LoanPurpose.RESIDENTIAL)
    state = workflow.attach_documents(state, "LoanAgreement", [UPLOAD])
    state = workflow.attach_documents(state, "SpousalConsent", [UPLOAD])
    state = workflow.patch_compliance(state, {"terms": True, "disclosure": True})

    assert workflow.stage_errors(state, Stage.COMPLIANCE) == ["Required document not uploaded: PurchaseAgreement."]


def test_amount_above_participant_maximum_blocks_basics(plan_config, funding_sources):
    modest = ParticipantContext(
        vested_balance=Decimal("10000"),
        outstanding_loan_balance=Decimal("0"),
        is_enrolled=True,
    )
    state = workflow.start_application("participant-3", modest, plan_config, funding_sources)
    state = workflow.patch_basics(state, amount=Decimal("5000.01"))

    assert workflow.can_advance(state) == ["Loan amount cannot exceed your available maximum of $5,000.00."]


def test_refresh_eligibility_moves_to_ineligible(state):
    drained = replace(state.participant, vested_balance=Decimal("0"))

    refreshed = workflow.refresh_eligibility(state, drained)

    assert refreshed.stage == Stage.INELIGIBLE
    assert refreshed.eligibility.eligible is False


def test_refresh_eligibility_keeps_stage_when_still_eligible(state):
    state = workflow.advance(state)

    refreshed = workflow.refresh_eligibility(state, state.participant)

    assert refreshed.stage == Stage.PAYMENT


def test_quote_follows_current_basics(state):
    state = workflow.patch_basics(state, amount=Decimal("10000"), term_years=3)

    result = workflow.quote(state, start_date=date(2026, 1, 1))

    assert result.number_of_payments == 36
    assert result.net_disbursement == Decimal("9900.00")
    assert result.amortization_schedule[-1].balance == Decimal("0.00")


def test_build_submission_payload(state):
    confirmed = workflow.advance(_complete_through_compliance(state))

    payload = workflow.build_submission(confirmed)

    assert payload["event"] == "PLAN_LOAN_SUBMITTED"
    assert payload["confirmation_number"] == confirmed.confirmation_number
    assert payload["loan"]["amount"] == "10000.00"
    assert payload["loan"]["net_disbursement"] == "9900.00"
    assert payload["payment_account"]["account_number"] == "****6789"
    assert [a["amount"] for a in payload["allocations"]] == ["3333.33", "3333.33", "3333.34"]
    assert payload["document_count"] == 2


def test_build_submission_requires_confirmation(state):
    with pytest.raises(WorkflowStateError):
        workflow.build_submission(state)


def test_entering_allocation_seeds_pro_rata_split(state):
    state = workflow.patch_basics(state, amount=Decimal("1000"))
    state = workflow.advance(state)
    state = workflow.patch_payment(state, routing_number="021000021", account_number="12345678", account_type="checking")

    state = workflow.advance(state)

    assert state.stage == Stage.ALLOCATION
    assert state.draft.allocation.mode == AllocationMode.PRO_RATA
    assert [row.amount for row in state.draft.allocation.rows] == [
        Decimal("333.33"),
        Decimal("333.33"),
        Decimal("333.34"),
    ]
    assert workflow.can_advance(state) == []


def test_entering_allocation_keeps_existing_split(state):
    state = workflow.patch_allocation(state, amounts={"fund_sp500": Decimal("600")})
    state = workflow.advance(state)
    state = workflow.patch_payment(state, routing_number="021000021", account_number="12345678", account_type="checking")

    state = workflow.advance(state)

    assert state.draft.allocation.mode == AllocationMode.CUSTOM
    assert state.draft.allocation.rows[0].amount == Decimal("600.00")
