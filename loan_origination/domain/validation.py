"""Per-stage validation for the loan origination flow

Each validator is a pure predicate returning every applicable error, so the
caller can render them all and keep the forward navigation disabled until
the list is empty.
"""

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, List, Optional, Sequence

from loan_origination.domain.models import (
    ComplianceRecord,
    FundingAllocation,
    LoanBasics,
    LoanPurpose,
    OriginationDraft,
    PaymentSetup,
    PlanConfig,
    ValidationResult,
)
from loan_origination.utils.date_utils import parse_iso_date
from loan_origination.utils.money import round_cents, to_decimal

ROUTING_PATTERN = re.compile(r"^\d{9}$")  # US ABA routing number
ACCOUNT_PATTERN = re.compile(r"^\d{4,17}$")
ACCOUNT_TYPES = ("checking", "savings")
PAYMENT_METHOD = "ach"
ALLOCATION_TOLERANCE = Decimal("0.01")
REQUIRED_ACKNOWLEDGMENTS = (
    ("terms", "You must accept the loan terms and conditions."),
    ("disclosure", "You must acknowledge the disclosure."),
)


def _result(errors: List[str]) -> ValidationResult:
    return ValidationResult(valid=not errors, errors=tuple(errors))


def validate_basics(
    basics: Optional[LoanBasics],
    config: PlanConfig,
    today: Optional[date] = None,
    max_loan_amount: Optional[Decimal] = None,
) -> ValidationResult:
    """
    Amount, term, first payment date and cadence against plan policy.

    max_loan_amount is the participant's effective maximum from the
    eligibility check; when given, amounts above it are rejected as well.
    """
    if basics is None:
        return _result(["Loan basics are required."])

    errors = []
    today = today or date.today()
    amount = to_decimal(basics.amount)
    min_amount = to_decimal(config.min_loan_amount)
    max_amount = to_decimal(config.max_loan_absolute)

    if amount < min_amount or amount > max_amount:
        errors.append(f"Loan amount must be between ${min_amount:,.2f} and ${max_amount:,.2f}.")
    elif max_loan_amount is not None and amount > to_decimal(max_loan_amount):
        errors.append(f"Loan amount cannot exceed your available maximum of ${to_decimal(max_loan_amount):,.2f}.")

    if basics.term_years < config.term_years_min or basics.term_years > config.term_years_max:
        errors.append(f"Term must be between {config.term_years_min} and {config.term_years_max} years.")

    first_payment = parse_iso_date(basics.first_payment_date)
    if first_payment is None:
        errors.append("A valid first payment date is required.")
    elif first_payment < today:
        errors.append("First payment date must be today or in the future.")

    if basics.payment_cadence not in config.allowed_payment_cadences:
        errors.append("Selected payment frequency is not allowed by your plan.")

    return _result(errors)


def validate_payment_setup(payment: Optional[PaymentSetup]) -> ValidationResult:
    """ACH account details; whitespace in the numbers is ignored"""
    if payment is None:
        return _result(["Payment setup is required."])

    errors = []

    if payment.method != PAYMENT_METHOD:
        errors.append("Payment method must be ACH.")

    if not ROUTING_PATTERN.match(re.sub(r"\s", "", payment.routing_number or "")):
        errors.append("Routing number must be 9 digits.")

    if not ACCOUNT_PATTERN.match(re.sub(r"\s", "", payment.account_number or "")):
        errors.append("Account number must be 4-17 digits.")

    if payment.account_type not in ACCOUNT_TYPES:
        errors.append("Please select account type (checking or savings).")

    return _result(errors)


def validate_allocation(allocation: Optional[FundingAllocation], loan_amount) -> ValidationResult:
    """Total must match the loan amount to the cent; no negative rows"""
    if allocation is None:
        return _result(["Funding allocation is required."])

    errors = []
    total = round_cents(allocation.total_allocated)
    target = round_cents(loan_amount)

    if abs(total - target) > ALLOCATION_TOLERANCE:
        errors.append(f"Total allocation (${total:,.2f}) must equal loan amount (${target:,.2f}).")

    if any(row.amount < 0 for row in allocation.rows):
        errors.append("Allocations cannot be negative.")

    return _result(errors)


@dataclass(frozen=True)
class DocumentContext:
    """Facts the required-document rules are evaluated against"""

    purpose: Optional[LoanPurpose]
    requires_spousal_consent: bool
    is_married: bool


@dataclass(frozen=True)
class DocumentRule:
    document_type: str
    applies: Callable[[DocumentContext], bool]


DOCUMENT_RULES = (
    DocumentRule("LoanAgreement", lambda ctx: True),
    DocumentRule("PurchaseAgreement", lambda ctx: ctx.purpose == LoanPurpose.RESIDENTIAL),
    DocumentRule("HardshipDocument", lambda ctx: ctx.purpose == LoanPurpose.HARDSHIP),
    DocumentRule("SpousalConsent", lambda ctx: ctx.requires_spousal_consent and ctx.is_married),
)


def required_documents(
    purpose: Optional[LoanPurpose],
    requires_spousal_consent: bool,
    is_married: bool,
    rules: Sequence[DocumentRule] = DOCUMENT_RULES,
) -> List[str]:
    """Document types the participant must upload, in rule order"""
    context = DocumentContext(
        purpose=purpose,
        requires_spousal_consent=requires_spousal_consent,
        is_married=is_married,
    )
    return [rule.document_type for rule in rules if rule.applies(context)]


def validate_compliance(
    record: Optional[ComplianceRecord],
    purpose: Optional[LoanPurpose],
    requires_spousal_consent: bool,
    is_married: bool,
) -> ValidationResult:
    """Required documents uploaded and terms/disclosure acknowledged"""
    if record is None:
        return _result(["Documents and compliance are required."])

    errors = []
    uploaded_types = {doc.document_type for doc in record.documents}

    for document_type in required_documents(purpose, requires_spousal_consent, is_married):
        if document_type not in uploaded_types:
            errors.append(f"Required document not uploaded: {document_type}.")

    for key, message in REQUIRED_ACKNOWLEDGMENTS:
        if not record.acknowledgments.get(key):
            errors.append(message)

    return _result(errors)


def validate_review(draft: OriginationDraft) -> ValidationResult:
    """Every stage must have been completed at least once"""
    errors = []
    if draft.basics is None:
        errors.append("Loan basics are missing.")
    if draft.payment is None:
        errors.append("Payment setup is missing.")
    if draft.allocation is None:
        errors.append("Funding allocation is missing.")
    if draft.compliance is None:
        errors.append("Documents and compliance are missing.")
    return _result(errors)
