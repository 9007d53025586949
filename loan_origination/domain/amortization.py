"""Amortization engine for plan loans

Computes the level payment for a payroll cadence, the full repayment
schedule, totals, payoff date and the net disbursement after the origination
fee. Every monetary value is rounded to the cent as soon as it is computed;
the final row takes whatever balance remains so the schedule always closes
at exactly zero.
"""

from datetime import date
from decimal import Decimal, getcontext, localcontext
from typing import Dict, List, Optional

from loan_origination.domain.models import AmortizationRow, CalculationResult, PaymentCadence
from loan_origination.utils.date_utils import add_months
from loan_origination.utils.money import Numeric, round_cents, to_decimal

PAYMENTS_PER_YEAR: Dict[PaymentCadence, int] = {
    PaymentCadence.MONTHLY: 12,
    PaymentCadence.BIWEEKLY: 26,
    PaymentCadence.SEMIMONTHLY: 24,
}

ZERO = Decimal("0.00")

# Digits beyond the amount's magnitude kept for interest and payment arithmetic
PRECISION_HEADROOM = 16


def level_payment(amount: Decimal, rate_per_period: Decimal, number_of_payments: int) -> Decimal:
    """
    Payment that amortizes amount over n equal periods.

        payment = P * r * (1 + r)^n / ((1 + r)^n - 1)

    With a zero rate this is straight-line P / n.
    """
    if rate_per_period == 0:
        return round_cents(amount / number_of_payments)
    factor = (1 + rate_per_period) ** number_of_payments
    return round_cents(amount * rate_per_period * factor / (factor - 1))


def months_to_payoff(number_of_payments: int, payments_per_year: int) -> int:
    """ceil(n / (payments_per_year / 12)), a calendar-month approximation for non-monthly cadences"""
    return -(-number_of_payments * 12 // payments_per_year)


def build_schedule(amount: Decimal, rate_per_period: Decimal, payment: Decimal, number_of_payments: int) -> List[AmortizationRow]:
    """Split each payment into interest and principal until the balance reaches zero"""
    schedule = []
    balance = round_cents(amount)

    for payment_number in range(1, number_of_payments + 1):
        interest = round_cents(balance * rate_per_period)
        if payment_number == number_of_payments:
            # Last payment absorbs accumulated rounding drift
            principal = balance
        else:
            principal = max(round_cents(min(payment - interest, balance)), ZERO)
        balance = round_cents(max(ZERO, balance - principal))

        schedule.append(
            AmortizationRow(
                payment_number=payment_number,
                payment=round_cents(principal + interest),
                principal=principal,
                interest=interest,
                balance=balance,
            )
        )

    return schedule


def working_precision(amount: Decimal) -> int:
    """Significant digits that carry amount to the cent with headroom for rate arithmetic"""
    return max(getcontext().prec, amount.adjusted() + PRECISION_HEADROOM)


def _zero_result(start_date: date) -> CalculationResult:
    return CalculationResult(
        payment_per_period=ZERO,
        total_repayment=ZERO,
        total_interest=ZERO,
        amortization_schedule=(),
        payoff_date=start_date,
        origination_fee=ZERO,
        net_disbursement=ZERO,
        number_of_payments=0,
    )


def calculate(
    amount: Numeric,
    annual_rate: Numeric,
    term_years: int,
    cadence: PaymentCadence,
    origination_fee_pct: Numeric,
    start_date: Optional[date] = None,
) -> CalculationResult:
    """
    Calculate payment per period, schedule, totals, payoff date and net disbursement.

    Never raises for numeric input: amount <= 0 (or a non-positive payment
    count, or a non-finite amount) yields an all-zero result with an empty
    schedule. Arithmetic runs in a local decimal context wide enough for the
    amount, so very large loans round to the cent instead of overflowing the
    default precision. Plan bounds are checked by the step validators, not here.
    """
    amount = to_decimal(amount)
    start_date = start_date or date.today()

    payments_per_year = PAYMENTS_PER_YEAR[PaymentCadence(cadence)]
    number_of_payments = int(term_years) * payments_per_year

    if not amount.is_finite() or number_of_payments <= 0:
        return _zero_result(start_date)

    with localcontext() as ctx:
        ctx.prec = working_precision(amount)

        amount = round_cents(amount)
        if amount <= 0:
            return _zero_result(start_date)

        rate_per_period = to_decimal(annual_rate) / payments_per_year
        payment = level_payment(amount, rate_per_period, number_of_payments)
        schedule = build_schedule(amount, rate_per_period, payment, number_of_payments)

        total_repayment = round_cents(sum((row.payment for row in schedule), ZERO))
        total_interest = round_cents(total_repayment - amount)
        origination_fee = round_cents(amount * to_decimal(origination_fee_pct))
        net_disbursement = round_cents(amount - origination_fee)

    return CalculationResult(
        payment_per_period=payment,
        total_repayment=total_repayment,
        total_interest=total_interest,
        amortization_schedule=tuple(schedule),
        payoff_date=add_months(start_date, months_to_payoff(number_of_payments, payments_per_year)),
        origination_fee=origination_fee,
        net_disbursement=net_disbursement,
        number_of_payments=number_of_payments,
    )
