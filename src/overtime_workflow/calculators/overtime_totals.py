"""Overtime entry validation and totals.

Pure functions: no database access. The workflow service supplies the
reference date, the recap cutoff and the configured limits.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from overtime_workflow.config import Settings
from overtime_workflow.errors import ValidationError

CENT = Decimal("0.01")


@dataclass(frozen=True)
class EntryInput:
    """One submitted day of overtime."""

    work_date: date
    hours: Decimal
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.work_date.isoformat(),
            "hours": str(self.hours),
            "description": self.description,
        }


def coerce_entry(raw: EntryInput | Mapping[str, Any]) -> EntryInput:
    """Build an EntryInput from a mapping with ``date``/``hours``/``description``."""
    if isinstance(raw, EntryInput):
        return raw

    work_date = raw.get("work_date", raw.get("date"))
    hours = raw.get("hours")
    description = raw.get("description")
    if work_date is None or hours is None or not description:
        raise ValidationError("Each entry must have date, hours, and description")

    if isinstance(work_date, str):
        try:
            work_date = date.fromisoformat(work_date)
        except ValueError as e:
            raise ValidationError(f"Invalid entry date: {work_date}") from e

    try:
        hours = Decimal(str(hours))
    except InvalidOperation as e:
        raise ValidationError(f"Invalid hours value: {hours}") from e
    if not hours.is_finite():
        raise ValidationError(f"Invalid hours value: {hours}")

    return EntryInput(work_date=work_date, hours=hours, description=str(description))


def validate_entries(
    entries: Iterable[EntryInput | Mapping[str, Any]],
    *,
    today: date,
    settings: Settings,
    last_recap_date: date | None = None,
) -> list[EntryInput]:
    """Validate a submitted entry set and return it sorted by date.

    Raises:
        ValidationError: empty set, missing fields, hours that are not a
            finite amount in cents or out of range,
            a date in the future, outside the edit window, on or before the
            last payroll recap, or repeated within the set.
    """
    parsed = [coerce_entry(e) for e in entries]
    if not parsed:
        raise ValidationError("At least one overtime entry is required")

    window_start = today - timedelta(days=settings.edit_window_days)
    seen: set[date] = set()
    duplicates: list[str] = []

    for entry in parsed:
        if not entry.description.strip():
            raise ValidationError("Each entry must have date, hours, and description")

        if not entry.hours.is_finite():
            raise ValidationError(
                f"Invalid hours value: {entry.hours}",
                {"date": entry.work_date.isoformat()},
            )

        if entry.hours <= 0 or entry.hours > settings.max_entry_hours:
            raise ValidationError(
                f"Hours must be greater than 0 and at most {settings.max_entry_hours}",
                {"date": entry.work_date.isoformat(), "hours": str(entry.hours)},
            )

        # Entries are stored to the cent; finer values would drift from the total
        if entry.hours != entry.hours.quantize(CENT):
            raise ValidationError(
                "Hours may have at most 2 decimal places",
                {"date": entry.work_date.isoformat(), "hours": str(entry.hours)},
            )

        if entry.work_date > today:
            raise ValidationError(
                "Cannot submit overtime for future dates",
                {"date": entry.work_date.isoformat()},
            )

        if entry.work_date < window_start:
            raise ValidationError(
                f"Overtime can only be submitted within the last "
                f"{settings.edit_window_days} days",
                {"date": entry.work_date.isoformat(), "earliest": window_start.isoformat()},
            )

        if last_recap_date is not None and entry.work_date <= last_recap_date:
            raise ValidationError(
                "Date has already been processed in payroll recap",
                {"date": entry.work_date.isoformat(), "last_recap_date": last_recap_date.isoformat()},
            )

        if entry.work_date in seen:
            duplicates.append(entry.work_date.isoformat())
        seen.add(entry.work_date)

    if duplicates:
        raise ValidationError(
            "Duplicate dates found in entries",
            {"duplicate_dates": sorted(set(duplicates))},
        )

    return sorted(parsed, key=lambda e: e.work_date)


def compute_total_hours(entries: Iterable[EntryInput]) -> Decimal:
    """Sum of entry hours."""
    return sum((e.hours for e in entries), Decimal("0"))


def compute_total_amount(
    total_hours: Decimal,
    overtime_rate: Decimal | None,
    settings: Settings,
) -> Decimal:
    """Convert hours into money: hours / standard day * daily overtime rate."""
    rate = overtime_rate if overtime_rate is not None else settings.default_overtime_rate
    amount = total_hours / settings.standard_hours_per_day * rate
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)
