"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from loan_origination.domain.models import (
    AllocationMode,
    CalculationResult,
    EligibilityResult,
    FundingSource,
    LoanPurpose,
    OriginationDraft,
    ParticipantContext,
    PaymentCadence,
    Stage,
    WorkflowState,
)

# Upper bounds on caller-supplied loan figures; plan limits are far below these
MAX_LOAN_AMOUNT = Decimal("100000000")
MAX_TERM_YEARS = 30


class ParticipantSchema(BaseModel):
    """Account facts supplied by the portal"""

    vested_balance: Decimal = Field(..., description="Vested account balance in dollars")
    outstanding_loan_balance: Decimal = Field(Decimal("0"), ge=0)
    is_enrolled: bool
    is_married: bool = False

    def to_domain(self) -> ParticipantContext:
        return ParticipantContext(
            vested_balance=self.vested_balance,
            outstanding_loan_balance=self.outstanding_loan_balance,
            is_enrolled=self.is_enrolled,
            is_married=self.is_married,
        )


class FundingSourceSchema(BaseModel):
    source_id: str = Field(..., min_length=1)
    source_name: str


class EligibilityResponse(BaseModel):
    eligible: bool
    reasons: List[str]
    min_loan_amount: Decimal
    max_loan_amount: Decimal

    @classmethod
    def from_domain(cls, result: EligibilityResult) -> "EligibilityResponse":
        return cls(
            eligible=result.eligible,
            reasons=list(result.reasons),
            min_loan_amount=result.min_loan_amount,
            max_loan_amount=result.max_loan_amount,
        )


class QuoteRequest(BaseModel):
    """Request body for POST /v1/loans/quote"""

    amount: Decimal = Field(..., ge=0, le=MAX_LOAN_AMOUNT, description="Principal in dollars; 0 quotes an empty schedule")
    term_years: int = Field(..., ge=0, le=MAX_TERM_YEARS)
    payment_cadence: PaymentCadence = PaymentCadence.MONTHLY
    start_date: Optional[date] = None


class AmortizationRowSchema(BaseModel):
    payment_number: int
    payment: Decimal
    principal: Decimal
    interest: Decimal
    balance: Decimal


class CalculationResponse(BaseModel):
    payment_per_period: Decimal
    total_repayment: Decimal
    total_interest: Decimal
    amortization_schedule: List[AmortizationRowSchema]
    payoff_date: date
    origination_fee: Decimal
    net_disbursement: Decimal
    number_of_payments: int

    @classmethod
    def from_domain(cls, result: CalculationResult) -> "CalculationResponse":
        return cls(
            payment_per_period=result.payment_per_period,
            total_repayment=result.total_repayment,
            total_interest=result.total_interest,
            amortization_schedule=[
                AmortizationRowSchema(
                    payment_number=row.payment_number,
                    payment=row.payment,
                    principal=row.principal,
                    interest=row.interest,
                    balance=row.balance,
                )
                for row in result.amortization_schedule
            ],
            payoff_date=result.payoff_date,
            origination_fee=result.origination_fee,
            net_disbursement=result.net_disbursement,
            number_of_payments=result.number_of_payments,
        )


class StartApplicationRequest(BaseModel):
    """Request body for POST /v1/loans/applications"""

    participant_id: str = Field(..., min_length=1)
    participant: ParticipantSchema
    funding_sources: List[FundingSourceSchema] = Field(default_factory=list)

    def sources(self) -> List[FundingSource]:
        return [FundingSource(source_id=s.source_id, source_name=s.source_name) for s in self.funding_sources]


class BasicsPatch(BaseModel):
    amount: Optional[Decimal] = Field(None, le=MAX_LOAN_AMOUNT)
    term_years: Optional[int] = Field(None, ge=0, le=MAX_TERM_YEARS)
    first_payment_date: Optional[str] = None
    payment_cadence: Optional[PaymentCadence] = None
    purpose: Optional[LoanPurpose] = None


class PaymentPatch(BaseModel):
    method: Optional[str] = None
    routing_number: Optional[str] = None
    account_number: Optional[str] = None
    account_type: Optional[str] = None


class AllocationPatch(BaseModel):
    mode: Optional[AllocationMode] = None
    amounts: Optional[Dict[str, Decimal]] = Field(None, description="New amount per source id")


class CompliancePatch(BaseModel):
    acknowledgments: Dict[str, bool]


class UploadSchema(BaseModel):
    name: str = Field(..., min_length=1)
    size: int = Field(..., ge=0)
    content_type: str = "application/octet-stream"


class AttachDocumentsRequest(BaseModel):
    document_type: str = Field(..., min_length=1)
    files: List[UploadSchema] = Field(..., min_length=1)


class GoToStageRequest(BaseModel):
    stage: Stage


class DocumentSchema(BaseModel):
    document_id: str
    document_type: str
    name: str
    size: int
    content_type: str
    uploaded_at: datetime


class AllocationRowSchema(BaseModel):
    source_id: str
    source_name: str
    amount: Decimal
    percentage: Decimal


class BasicsSchema(BaseModel):
    amount: Decimal
    term_years: int
    first_payment_date: Optional[str] = None
    payment_cadence: PaymentCadence
    purpose: Optional[LoanPurpose] = None


class PaymentSchema(BaseModel):
    method: str
    routing_number: str
    account_number: str
    account_type: Optional[str] = None


class AllocationSchema(BaseModel):
    mode: AllocationMode
    rows: List[AllocationRowSchema]
    total_allocated: Decimal


class ComplianceSchema(BaseModel):
    documents: List[DocumentSchema]
    acknowledgments: Dict[str, bool]


class DraftSchema(BaseModel):
    basics: Optional[BasicsSchema] = None
    payment: Optional[PaymentSchema] = None
    allocation: Optional[AllocationSchema] = None
    compliance: Optional[ComplianceSchema] = None

    @classmethod
    def from_domain(cls, draft: OriginationDraft) -> "DraftSchema":
        basics = payment = allocation = compliance = None

        if draft.basics is not None:
            first_payment_date = draft.basics.first_payment_date
            basics = BasicsSchema(
                amount=draft.basics.amount,
                term_years=draft.basics.term_years,
                first_payment_date=str(first_payment_date) if first_payment_date else None,
                payment_cadence=draft.basics.payment_cadence,
                purpose=draft.basics.purpose,
            )
        if draft.payment is not None:
            payment = PaymentSchema(
                method=draft.payment.method,
                routing_number=draft.payment.routing_number,
                account_number=draft.payment.account_number,
                account_type=draft.payment.account_type,
            )
        if draft.allocation is not None:
            allocation = AllocationSchema(
                mode=draft.allocation.mode,
                rows=[
                    AllocationRowSchema(
                        source_id=row.source_id,
                        source_name=row.source_name,
                        amount=row.amount,
                        percentage=row.percentage,
                    )
                    for row in draft.allocation.rows
                ],
                total_allocated=draft.allocation.total_allocated,
            )
        if draft.compliance is not None:
            compliance = ComplianceSchema(
                documents=[
                    DocumentSchema(
                        document_id=doc.document_id,
                        document_type=doc.document_type,
                        name=doc.name,
                        size=doc.size,
                        content_type=doc.content_type,
                        uploaded_at=doc.uploaded_at,
                    )
                    for doc in draft.compliance.documents
                ],
                acknowledgments=dict(draft.compliance.acknowledgments),
            )

        return cls(basics=basics, payment=payment, allocation=allocation, compliance=compliance)


class ApplicationResponse(BaseModel):
    """Current workflow state for step indicators and navigation"""

    application_id: str
    participant_id: str
    stage: Stage
    eligibility: EligibilityResponse
    draft: DraftSchema
    errors: List[str]
    required_documents: List[str]
    confirmation_number: Optional[str] = None
    submitted_at: Optional[datetime] = None

    @classmethod
    def from_state(cls, state: WorkflowState, errors: List[str], required_documents: List[str]) -> "ApplicationResponse":
        return cls(
            application_id=state.application_id,
            participant_id=state.participant_id,
            stage=state.stage,
            eligibility=EligibilityResponse.from_domain(state.eligibility),
            draft=DraftSchema.from_domain(state.draft),
            errors=errors,
            required_documents=required_documents,
            confirmation_number=state.confirmation_number,
            submitted_at=state.submitted_at,
        )
