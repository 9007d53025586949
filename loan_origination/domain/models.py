"""Domain models - pure Python dataclasses representing the loan origination entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Union


class PaymentCadence(str, Enum):
    """Payroll-driven repayment frequency"""

    MONTHLY = "monthly"
    BIWEEKLY = "biweekly"
    SEMIMONTHLY = "semimonthly"


class LoanPurpose(str, Enum):
    GENERAL = "General"
    RESIDENTIAL = "Residential"
    HARDSHIP = "Hardship"
    OTHER = "Other"


class AllocationMode(str, Enum):
    PRO_RATA = "pro_rata"
    CUSTOM = "custom"


class Stage(str, Enum):
    """Origination workflow stages, in navigation order"""

    INELIGIBLE = "ineligible"
    BASICS = "basics"
    PAYMENT = "payment"
    ALLOCATION = "allocation"
    COMPLIANCE = "compliance"
    REVIEW = "review"
    CONFIRMED = "confirmed"


STAGE_ORDER: Tuple[Stage, ...] = (
    Stage.BASICS,
    Stage.PAYMENT,
    Stage.ALLOCATION,
    Stage.COMPLIANCE,
    Stage.REVIEW,
    Stage.CONFIRMED,
)

TERMINAL_STAGES: FrozenSet[Stage] = frozenset({Stage.INELIGIBLE, Stage.CONFIRMED})


@dataclass(frozen=True)
class PlanConfig:
    """Plan-level loan policy, loaded once per application and never mutated"""

    max_loan_absolute: Decimal
    max_loan_pct_of_vested: Decimal  # fraction, 0.5 = 50 %
    min_loan_amount: Decimal
    term_years_min: int
    term_years_max: int
    default_annual_rate: Decimal  # decimal, 0.085 = 8.5 %
    origination_fee_pct: Decimal  # decimal, 0.01 = 1 %
    allowed_payment_cadences: FrozenSet[PaymentCadence]
    requires_spousal_consent: bool


@dataclass(frozen=True)
class ParticipantContext:
    """Account facts supplied by the portal, read-only to the core"""

    vested_balance: Decimal
    outstanding_loan_balance: Decimal
    is_enrolled: bool
    is_married: bool = False


@dataclass(frozen=True)
class FundingSource:
    """Holding a loan can be drawn from"""

    source_id: str
    source_name: str


@dataclass(frozen=True)
class EligibilityResult:
    eligible: bool
    reasons: Tuple[str, ...]
    min_loan_amount: Decimal
    max_loan_amount: Decimal


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: Tuple[str, ...] = ()


@dataclass(frozen=True)
class LoanBasics:
    """Step 1: how much, how long, how often"""

    amount: Decimal
    term_years: int
    first_payment_date: Union[date, str, None]  # ISO string until validated
    payment_cadence: PaymentCadence
    purpose: Optional[LoanPurpose] = None


@dataclass(frozen=True)
class PaymentSetup:
    """Step 2: ACH direct debit account"""

    method: str = "ach"
    routing_number: str = ""
    account_number: str = ""
    account_type: Optional[str] = None  # "checking" or "savings"


@dataclass(frozen=True)
class AllocationRow:
    source_id: str
    source_name: str
    amount: Decimal
    percentage: Decimal


@dataclass(frozen=True)
class FundingAllocation:
    """Step 3: which holdings fund the loan"""

    mode: AllocationMode
    rows: Tuple[AllocationRow, ...]
    total_allocated: Decimal


@dataclass(frozen=True)
class DocumentMeta:
    """Uploaded document descriptor (metadata only, no file content)"""

    document_id: str
    document_type: str
    name: str
    size: int
    content_type: str
    uploaded_at: datetime


@dataclass(frozen=True)
class ComplianceRecord:
    """Step 4: documents and acknowledgments"""

    documents: Tuple[DocumentMeta, ...] = ()
    acknowledgments: Dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class OriginationDraft:
    """Accumulating application record, one per attempt"""

    basics: Optional[LoanBasics] = None
    payment: Optional[PaymentSetup] = None
    allocation: Optional[FundingAllocation] = None
    compliance: Optional[ComplianceRecord] = None


@dataclass(frozen=True)
class AmortizationRow:
    """Single payment in the repayment schedule"""

    payment_number: int
    payment: Decimal
    principal: Decimal
    interest: Decimal
    balance: Decimal


@dataclass(frozen=True)
class CalculationResult:
    """Derived loan figures, recomputed whenever the basics change"""

    payment_per_period: Decimal
    total_repayment: Decimal
    total_interest: Decimal
    amortization_schedule: Tuple[AmortizationRow, ...]
    payoff_date: date
    origination_fee: Decimal
    net_disbursement: Decimal
    number_of_payments: int


@dataclass(frozen=True)
class WorkflowState:
    """Origination workflow: current stage plus the draft it has accumulated"""

    application_id: str
    participant_id: str
    stage: Stage
    config: PlanConfig
    participant: ParticipantContext
    eligibility: EligibilityResult
    funding_sources: Tuple[FundingSource, ...]
    draft: OriginationDraft
    confirmation_number: Optional[str] = None
    submitted_at: Optional[datetime] = None
