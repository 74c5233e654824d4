# adslots/services/settlement/periods.py
"""
Period arithmetic and money rounding.

All amounts are Decimal, rounded half-up to cents.
"""

import calendar
from datetime import date
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Optional

from ...errors import ValidationError

CENT = Decimal("0.01")


def to_cents(value) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def period_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a month."""
    if not 1 <= month <= 12:
        raise ValidationError(f"Ongeldige maand: {month}.")
    if not 2000 <= year <= 2100:
        raise ValidationError(f"Ongeldig jaar: {year}.")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def next_period(year: int, month: int) -> tuple[int, int]:
    return (year + 1, 1) if month == 12 else (year, month + 1)


def days_covered(
    start: Optional[date],
    end: Optional[date],
    period_start: date,
    period_end: date,
) -> int:
    """Days of [start, end] inside the period (open ends extend to the period edge)."""
    first = max(start or period_start, period_start)
    last = min(end or period_end, period_end)
    if last < first:
        return 0
    return (last - first).days + 1


def prorate(monthly_price: Decimal, days: int, days_in_period: int) -> Decimal:
    """Daily proration; a full month bills the monthly price exactly."""
    if days >= days_in_period:
        return to_cents(monthly_price)
    return to_cents(Decimal(monthly_price) * days / days_in_period)


def distribute(total: Decimal, weights: dict) -> dict:
    """
    Split `total` over keys proportionally to `weights` in whole cents.

    Largest-remainder rounding: shares always add up to `total` exactly.
    Keys with zero weight get zero; if all weights are zero, everything is zero.
    """
    total = to_cents(total)
    weight_sum = sum(Decimal(w) for w in weights.values())
    if weight_sum <= 0 or total == 0:
        return {key: Decimal("0.00") for key in weights}

    total_cents = int(total / CENT)
    raw = {key: Decimal(total_cents) * Decimal(w) / weight_sum for key, w in weights.items()}
    floors = {key: int(value.to_integral_value(rounding=ROUND_DOWN)) for key, value in raw.items()}

    leftover = total_cents - sum(floors.values())
    by_remainder = sorted(weights, key=lambda key: (raw[key] - floors[key], str(key)), reverse=True)
    for key in by_remainder[:leftover]:
        floors[key] += 1

    return {key: Decimal(cents) * CENT for key, cents in floors.items()}
