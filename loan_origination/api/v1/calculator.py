"""Stateless loan calculator endpoints - eligibility and quote"""

from fastapi import APIRouter, Depends

from loan_origination.api.dependencies import get_plan_config
from loan_origination.api.v1.schemas import (
    CalculationResponse,
    EligibilityResponse,
    ParticipantSchema,
    QuoteRequest,
)
from loan_origination.domain.amortization import calculate
from loan_origination.domain.eligibility import evaluate
from loan_origination.domain.models import PlanConfig

router = APIRouter()


@router.post("/eligibility", response_model=EligibilityResponse)
def check_eligibility(participant: ParticipantSchema, plan_config: PlanConfig = Depends(get_plan_config)):
    """
    Pre-check whether a participant may borrow.

    Returns:
        Eligibility verdict, every failing reason and the borrowable range
    """
    return EligibilityResponse.from_domain(evaluate(participant.to_domain(), plan_config))


@router.post("/quote", response_model=CalculationResponse)
def quote_loan(request_body: QuoteRequest, plan_config: PlanConfig = Depends(get_plan_config)):
    """Payment, schedule, payoff date and net disbursement at the plan's rate and fee"""
    result = calculate(
        request_body.amount,
        plan_config.default_annual_rate,
        request_body.term_years,
        request_body.payment_cadence,
        plan_config.origination_fee_pct,
        start_date=request_body.start_date,
    )
    return CalculationResponse.from_domain(result)
