"""Loan eligibility pre-check - runs before a participant may enter the origination flow"""

from decimal import Decimal

from loan_origination.domain.models import EligibilityResult, ParticipantContext, PlanConfig
from loan_origination.utils.money import round_cents, to_decimal


def effective_max_loan(participant: ParticipantContext, plan_config: PlanConfig) -> Decimal:
    """Largest amount the plan lets this participant borrow: min(vested * pct, absolute cap)"""
    from_vested = to_decimal(participant.vested_balance) * to_decimal(plan_config.max_loan_pct_of_vested)
    return min(from_vested, to_decimal(plan_config.max_loan_absolute))


def evaluate(participant: ParticipantContext, plan_config: PlanConfig) -> EligibilityResult:
    """
    Decide whether a participant can borrow, and the borrowable range.

    Rules (all evaluated, every failure reported):
    - Participant must be enrolled in the plan
    - Vested balance must be positive
    - Effective maximum must reach the plan minimum

    Returns:
        EligibilityResult with reasons and cent-rounded min/max amounts
    """
    reasons = []

    if not participant.is_enrolled:
        reasons.append("You must be enrolled in the 401(k) plan to request a loan.")

    if to_decimal(participant.vested_balance) <= 0:
        reasons.append("You need a vested balance to request a loan.")

    max_loan_amount = effective_max_loan(participant, plan_config)
    min_loan_amount = to_decimal(plan_config.min_loan_amount)

    if max_loan_amount < min_loan_amount:
        reasons.append(
            f"Your vested balance is too low to meet the minimum loan amount (${min_loan_amount:,.2f})."
        )

    return EligibilityResult(
        eligible=not reasons,
        reasons=tuple(reasons),
        min_loan_amount=round_cents(min_loan_amount),
        max_loan_amount=round_cents(max(max_loan_amount, Decimal("0"))),
    )
