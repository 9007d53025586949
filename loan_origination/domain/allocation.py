"""Funding-source allocation for plan loans"""

from dataclasses import replace
from decimal import Decimal
from typing import Iterable, List, Sequence

from loan_origination.domain.models import AllocationMode, AllocationRow, FundingAllocation, FundingSource
from loan_origination.utils.money import Numeric, from_cents, round_cents, to_cents


def allocation_percentage(amount: Decimal, total: Decimal) -> Decimal:
    """Share of total, in percent with two decimals (0 when total is 0)"""
    if total == 0:
        return Decimal("0.00")
    return round_cents(amount / total * 100)


def pro_rata(amount: Numeric, sources: Sequence[FundingSource]) -> List[AllocationRow]:
    """
    Split the loan amount evenly across funding sources.

    Requirements:
    - Equal share per source, in whole cents
    - Last source absorbs rounding remainder (≤ len(sources)-1 cents drift)

    Example:
        $1000.00 over 3 sources → [$333.33, $333.33, $333.34]
        100000 cents / 3 = 33333 base, remainder 1
        Last source: 33333 + 1 = 33334
    """
    if not sources:
        return []

    target = round_cents(amount)
    total_cents = to_cents(target)

    # Calculate base amount and remainder
    base_amount, remainder = divmod(total_cents, len(sources))

    rows = []
    for i, source in enumerate(sources):
        cents = base_amount + (remainder if i == len(sources) - 1 else 0)
        row_amount = from_cents(cents)
        rows.append(
            AllocationRow(
                source_id=source.source_id,
                source_name=source.source_name,
                amount=row_amount,
                percentage=allocation_percentage(row_amount, target),
            )
        )

    return rows


def normalize(rows: Sequence[AllocationRow], amount: Numeric) -> List[AllocationRow]:
    """
    Force a (possibly user-edited) allocation to total exactly the loan amount.

    Every row keeps its amount (rounded to cents) and gets its percentage
    recomputed; the last row is set to whatever the others leave over. The
    result may contain a negative last row, which the allocation validator
    rejects. Normalizing an already-normalized set is a no-op.
    """
    if not rows:
        return []

    target = round_cents(amount)
    leading = [
        replace(row, amount=round_cents(row.amount), percentage=allocation_percentage(round_cents(row.amount), target))
        for row in rows[:-1]
    ]
    remainder = round_cents(target - sum((row.amount for row in leading), Decimal("0")))
    last = replace(rows[-1], amount=remainder, percentage=allocation_percentage(remainder, target))

    return leading + [last]


def build_allocation(mode: AllocationMode, rows: Iterable[AllocationRow]) -> FundingAllocation:
    """Wrap rows with their mode and running total"""
    rows = tuple(rows)
    return FundingAllocation(
        mode=mode,
        rows=rows,
        total_allocated=round_cents(sum((row.amount for row in rows), Decimal("0"))),
    )
