"""Time off in lieu (TOIL) conversion.

Overtime beyond what payroll pays out is banked as whole leave days. Hours
that do not make up a full day carry over to the next month's conversion.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from overtime_workflow.errors import ValidationError

CENT = Decimal("0.01")
# Hours in a 31-day month
MAX_MONTH_HOURS = Decimal("744")


@dataclass(frozen=True)
class ToilConversion:
    """Outcome of converting one month's hours into TOIL days."""

    hours: Decimal
    carryover_hours: Decimal
    total_hours: Decimal
    days: int
    remaining_hours: Decimal


def convert_toil_hours(
    hours: Decimal,
    carryover_hours: Decimal,
    hours_per_day: Decimal,
) -> ToilConversion:
    """Whole days in ``hours + carryover_hours``; the rest carries over.

    Raises:
        ValidationError: hours not an amount in cents within one month.
    """
    hours = Decimal(hours)
    if not hours.is_finite() or hours < 0 or hours > MAX_MONTH_HOURS:
        raise ValidationError(
            f"TOIL hours must be between 0 and {MAX_MONTH_HOURS}: {hours}"
        )
    if hours != hours.quantize(CENT):
        raise ValidationError("TOIL hours may have at most 2 decimal places")
    if hours_per_day <= 0:
        raise ValidationError("Hours per day must be positive")

    total = hours + carryover_hours
    days, remaining = divmod(total, hours_per_day)
    return ToilConversion(
        hours=hours,
        carryover_hours=carryover_hours,
        total_hours=total,
        days=int(days),
        remaining_hours=remaining,
    )


def previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def toil_expiry(earned_year: int, earned_month: int, months: int) -> tuple[int, int]:
    """(year, month) in which TOIL earned in the given month lapses.

    Days stay usable through the expiry month and expire after it.
    """
    index = earned_year * 12 + (earned_month - 1) + months
    return index // 12, index % 12 + 1


def is_toil_expired(expiry_year: int, expiry_month: int, today: date) -> bool:
    return (expiry_year, expiry_month) < (today.year, today.month)
