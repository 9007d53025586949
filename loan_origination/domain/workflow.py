"""Loan origination state machine

The workflow is a WorkflowState value plus total functions over it. Patches
merge partial updates into the draft without validating; validation is the
read-only can_advance query the caller runs before advance. Forward moves
are gated, backward moves never are.

    BASICS -> PAYMENT -> ALLOCATION -> COMPLIANCE -> REVIEW -> CONFIRMED

INELIGIBLE is terminal and only reachable when the application starts (or is
resumed) for a participant who fails the eligibility check.
"""

import uuid
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from loan_origination.domain import allocation as allocator
from loan_origination.domain.amortization import calculate
from loan_origination.domain.eligibility import evaluate
from loan_origination.domain.exceptions import StepBlockedError, WorkflowStateError
from loan_origination.domain.models import (
    STAGE_ORDER,
    TERMINAL_STAGES,
    AllocationMode,
    CalculationResult,
    ComplianceRecord,
    DocumentMeta,
    FundingSource,
    LoanBasics,
    LoanPurpose,
    OriginationDraft,
    ParticipantContext,
    PaymentCadence,
    PaymentSetup,
    PlanConfig,
    Stage,
    WorkflowState,
)
from loan_origination.domain.validation import (
    validate_allocation,
    validate_basics,
    validate_compliance,
    validate_payment_setup,
    validate_review,
)
from loan_origination.utils.date_utils import first_of_next_month
from loan_origination.utils.money import round_cents


def default_basics(config: PlanConfig, today: Optional[date] = None) -> LoanBasics:
    """Plan minimum over the longest term, monthly, first payment next month"""
    today = today or date.today()
    return LoanBasics(
        amount=round_cents(config.min_loan_amount),
        term_years=config.term_years_max,
        first_payment_date=first_of_next_month(today).isoformat(),
        payment_cadence=PaymentCadence.MONTHLY,
    )


def start_application(
    participant_id: str,
    participant: ParticipantContext,
    config: PlanConfig,
    funding_sources: Iterable[FundingSource],
    today: Optional[date] = None,
    application_id: Optional[str] = None,
) -> WorkflowState:
    """
    Open a new application, re-running eligibility first.

    An ineligible participant gets a terminal INELIGIBLE state carrying the
    reasons and an empty draft; otherwise the flow starts at BASICS with
    plan defaults filled in.
    """
    eligibility = evaluate(participant, config)
    eligible = eligibility.eligible

    return WorkflowState(
        application_id=application_id or str(uuid.uuid4()),
        participant_id=participant_id,
        stage=Stage.BASICS if eligible else Stage.INELIGIBLE,
        config=config,
        participant=participant,
        eligibility=eligibility,
        funding_sources=tuple(funding_sources),
        draft=OriginationDraft(basics=default_basics(config, today)) if eligible else OriginationDraft(),
    )


def refresh_eligibility(state: WorkflowState, participant: ParticipantContext) -> WorkflowState:
    """Re-check a resumed draft against fresh account data"""
    if state.stage in TERMINAL_STAGES:
        return state

    eligibility = evaluate(participant, state.config)
    return replace(
        state,
        participant=participant,
        eligibility=eligibility,
        stage=state.stage if eligibility.eligible else Stage.INELIGIBLE,
    )


def _ensure_editable(state: WorkflowState) -> None:
    if state.stage == Stage.CONFIRMED:
        raise WorkflowStateError("Application has been submitted and can no longer be changed")
    if state.stage == Stage.INELIGIBLE:
        raise WorkflowStateError("Participant is not eligible for a loan")


def _rebalanced(state: WorkflowState, draft: OriginationDraft) -> OriginationDraft:
    """Recompute an existing allocation against the draft's loan amount"""
    current = draft.allocation
    if current is None or draft.basics is None:
        return draft

    amount = draft.basics.amount
    if current.mode == AllocationMode.PRO_RATA:
        rows = allocator.pro_rata(amount, state.funding_sources)
    else:
        rows = allocator.normalize(current.rows, amount)
    return replace(draft, allocation=allocator.build_allocation(current.mode, rows))


def patch_basics(state: WorkflowState, **changes: Any) -> WorkflowState:
    """Merge changes into the loan basics; an amount change rebalances the allocation"""
    _ensure_editable(state)

    current = state.draft.basics or default_basics(state.config)
    if "amount" in changes:
        changes["amount"] = round_cents(changes["amount"])
    if changes.get("payment_cadence") is not None:
        changes["payment_cadence"] = PaymentCadence(changes["payment_cadence"])
    if changes.get("purpose") is not None:
        changes["purpose"] = LoanPurpose(changes["purpose"])

    basics = replace(current, **changes)
    draft = replace(state.draft, basics=basics)
    if basics.amount != current.amount:
        draft = _rebalanced(state, draft)

    return replace(state, draft=draft)


def patch_payment(state: WorkflowState, **changes: Any) -> WorkflowState:
    """Merge changes into the ACH payment setup"""
    _ensure_editable(state)

    current = state.draft.payment or PaymentSetup()
    return replace(state, draft=replace(state.draft, payment=replace(current, **changes)))


def patch_allocation(
    state: WorkflowState,
    mode: Optional[AllocationMode] = None,
    amounts: Optional[Mapping[str, Any]] = None,
) -> WorkflowState:
    """
    Update the funding allocation.

    Switching to pro-rata rebuilds the even split. Editing row amounts (keyed
    by source id) switches to custom mode and renormalizes so the total still
    matches the loan amount.
    """
    _ensure_editable(state)

    loan_amount = state.draft.basics.amount if state.draft.basics else round_cents(0)
    current = state.draft.allocation or allocator.build_allocation(
        AllocationMode.PRO_RATA, allocator.pro_rata(loan_amount, state.funding_sources)
    )
    mode = AllocationMode(mode) if mode is not None else current.mode

    if amounts:
        mode = AllocationMode.CUSTOM
        rows = [
            replace(row, amount=round_cents(amounts[row.source_id])) if row.source_id in amounts else row
            for row in current.rows
        ]
        rows = allocator.normalize(rows, loan_amount)
    elif mode == AllocationMode.PRO_RATA:
        rows = allocator.pro_rata(loan_amount, state.funding_sources)
    else:
        rows = allocator.normalize(current.rows, loan_amount)

    allocation = allocator.build_allocation(mode, rows)
    return replace(state, draft=replace(state.draft, allocation=allocation))


def patch_compliance(state: WorkflowState, acknowledgments: Mapping[str, bool]) -> WorkflowState:
    """Merge acknowledgment flags (terms, disclosure, ...)"""
    _ensure_editable(state)

    current = state.draft.compliance or ComplianceRecord()
    merged = {**current.acknowledgments, **acknowledgments}
    return replace(state, draft=replace(state.draft, compliance=replace(current, acknowledgments=merged)))


def attach_documents(
    state: WorkflowState,
    document_type: str,
    uploads: Sequence[Mapping[str, Any]],
    now: Optional[datetime] = None,
) -> WorkflowState:
    """
    Record metadata for files picked for one document type.

    Each upload supplies name, size and content_type; file content is never
    stored. A new upload replaces earlier documents of the same type.
    """
    _ensure_editable(state)

    now = now or datetime.now(timezone.utc)
    current = state.draft.compliance or ComplianceRecord()
    new_documents = tuple(
        DocumentMeta(
            document_id=f"{document_type}-{uuid.uuid4().hex[:12]}",
            document_type=document_type,
            name=upload["name"],
            size=int(upload.get("size", 0)),
            content_type=upload.get("content_type", "application/octet-stream"),
            uploaded_at=now,
        )
        for upload in uploads
    )
    kept = tuple(doc for doc in current.documents if doc.document_type != document_type)
    return replace(state, draft=replace(state.draft, compliance=replace(current, documents=kept + new_documents)))


def remove_document(state: WorkflowState, document_id: str) -> WorkflowState:
    _ensure_editable(state)

    current = state.draft.compliance or ComplianceRecord()
    documents = tuple(doc for doc in current.documents if doc.document_id != document_id)
    return replace(state, draft=replace(state.draft, compliance=replace(current, documents=documents)))


def stage_errors(state: WorkflowState, stage: Stage) -> List[str]:
    """Validation errors that would block leaving the given stage"""
    draft = state.draft
    config = state.config

    if stage == Stage.BASICS:
        result = validate_basics(draft.basics, config, max_loan_amount=state.eligibility.max_loan_amount)
    elif stage == Stage.PAYMENT:
        result = validate_payment_setup(draft.payment)
    elif stage == Stage.ALLOCATION:
        loan_amount = draft.basics.amount if draft.basics else 0
        result = validate_allocation(draft.allocation, loan_amount)
    elif stage == Stage.COMPLIANCE:
        result = validate_compliance(
            draft.compliance,
            purpose=draft.basics.purpose if draft.basics else None,
            requires_spousal_consent=config.requires_spousal_consent,
            is_married=state.participant.is_married,
        )
    elif stage == Stage.REVIEW:
        result = validate_review(draft)
    elif stage == Stage.INELIGIBLE:
        return list(state.eligibility.reasons)
    else:
        return ["Application has already been submitted."]

    return list(result.errors)


def can_advance(state: WorkflowState) -> List[str]:
    """Errors blocking the forward transition; empty means advance is allowed"""
    return stage_errors(state, state.stage)


def advance(state: WorkflowState, now: Optional[datetime] = None) -> WorkflowState:
    """
    Move one stage forward.

    Raises:
        StepBlockedError: current stage has validation errors
        WorkflowStateError: workflow is in a terminal stage

    REVIEW -> CONFIRMED submits the draft: it is stamped with a confirmation
    number and submission time and becomes immutable.
    Entering ALLOCATION without an allocation seeds the pro-rata split.
    """
    if state.stage in TERMINAL_STAGES:
        raise WorkflowStateError(f"No transition out of {state.stage.value}")

    errors = can_advance(state)
    if errors:
        raise StepBlockedError(state.stage.value, errors)

    next_stage = STAGE_ORDER[STAGE_ORDER.index(state.stage) + 1]
    if next_stage == Stage.CONFIRMED:
        return replace(
            state,
            stage=next_stage,
            confirmation_number=f"LN-{uuid.uuid4().hex[:10].upper()}",
            submitted_at=now or datetime.now(timezone.utc),
        )
    if next_stage == Stage.ALLOCATION and state.draft.allocation is None:
        # Opening the allocation step starts from an even split
        rows = allocator.pro_rata(state.draft.basics.amount, state.funding_sources)
        draft = replace(state.draft, allocation=allocator.build_allocation(AllocationMode.PRO_RATA, rows))
        return replace(state, stage=next_stage, draft=draft)
    return replace(state, stage=next_stage)


def retreat(state: WorkflowState) -> WorkflowState:
    """Move one stage back; never validated, a no-op on the first stage"""
    if state.stage in TERMINAL_STAGES:
        raise WorkflowStateError(f"No transition out of {state.stage.value}")

    index = STAGE_ORDER.index(state.stage)
    if index == 0:
        return state
    return replace(state, stage=STAGE_ORDER[index - 1])


def go_to_stage(state: WorkflowState, stage: Stage) -> WorkflowState:
    """Jump back to an earlier stage (e.g. "edit amount" from review); later data is kept"""
    stage = Stage(stage)
    if state.stage in TERMINAL_STAGES:
        raise WorkflowStateError(f"No transition out of {state.stage.value}")
    if stage not in STAGE_ORDER or STAGE_ORDER.index(stage) > STAGE_ORDER.index(state.stage):
        raise WorkflowStateError(f"Cannot jump forward from {state.stage.value} to {stage.value}")
    return replace(state, stage=stage)


def quote(state: WorkflowState, start_date: Optional[date] = None) -> CalculationResult:
    """Loan figures for the draft's current basics under plan rate and fee"""
    basics = state.draft.basics
    config = state.config
    if basics is None:
        return calculate(0, config.default_annual_rate, 0, PaymentCadence.MONTHLY, config.origination_fee_pct, start_date)

    return calculate(
        basics.amount,
        config.default_annual_rate,
        basics.term_years,
        basics.payment_cadence,
        config.origination_fee_pct,
        start_date,
    )


def mask_account_number(account_number: str) -> str:
    digits = "".join(account_number.split())
    return f"****{digits[-4:]}"


def build_submission(state: WorkflowState) -> Dict[str, Any]:
    """Hand-off payload for the recordkeeper once the application is confirmed"""
    if state.stage != Stage.CONFIRMED:
        raise WorkflowStateError("Only confirmed applications can be submitted")

    draft = state.draft
    basics, payment = draft.basics, draft.payment
    calculation = quote(state, start_date=state.submitted_at.date())

    return {
        "event": "PLAN_LOAN_SUBMITTED",
        "application_id": state.application_id,
        "participant_id": state.participant_id,
        "confirmation_number": state.confirmation_number,
        "submitted_at": state.submitted_at.isoformat(),
        "loan": {
            "amount": str(basics.amount),
            "term_years": basics.term_years,
            "payment_cadence": basics.payment_cadence.value,
            "first_payment_date": str(basics.first_payment_date),
            "purpose": basics.purpose.value if basics.purpose else None,
            "annual_rate": str(state.config.default_annual_rate),
            "payment_per_period": str(calculation.payment_per_period),
            "number_of_payments": calculation.number_of_payments,
            "total_repayment": str(calculation.total_repayment),
            "origination_fee": str(calculation.origination_fee),
            "net_disbursement": str(calculation.net_disbursement),
            "payoff_date": calculation.payoff_date.isoformat(),
        },
        "payment_account": {
            "method": payment.method,
            "account_type": payment.account_type,
            "routing_number": "".join(payment.routing_number.split()),
            "account_number": mask_account_number(payment.account_number),
        },
        "allocations": [
            {"source_id": row.source_id, "source_name": row.source_name, "amount": str(row.amount)}
            for row in draft.allocation.rows
        ],
        "document_count": len(draft.compliance.documents),
    }
