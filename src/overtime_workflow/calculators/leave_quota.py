"""Annual leave entitlement from employment status and tenure."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from overtime_workflow.config import Settings
from overtime_workflow.models.employee import EmploymentStatus


def months_of_service(join_date: date, reference: date) -> int:
    """Whole calendar months between join date and reference date.

    Day of month is ignored: joining on 2024-03-01 or 2024-03-31 both give
    10 months at 2025-01-01. Negative when the employee joins after the
    reference date.
    """
    return (reference.year - join_date.year) * 12 + (reference.month - join_date.month)


def accrual_reference_date(year: int) -> date:
    """Tenure for a year's entitlement is measured on January 1 of that year."""
    return date(year, 1, 1)


def calculate_annual_quota(
    employee_status: str,
    join_date: date | None,
    year: int,
    settings: Settings,
) -> Decimal:
    """Annual leave days for an employee in the given year.

    - PKWTT (permanent): fixed quota.
    - PKWT (contract): senior quota once tenure at January 1 reaches
      ``contract_tenure_months``, junior quota before that. A contract
      employee with no known join date gets the junior quota.
    - Everything else: 0.
    """
    if employee_status == EmploymentStatus.PKWTT.value:
        return settings.permanent_annual_quota

    if employee_status == EmploymentStatus.PKWT.value:
        if join_date is None:
            return settings.contract_junior_annual_quota
        months = months_of_service(join_date, accrual_reference_date(year))
        if months >= settings.contract_tenure_months:
            return settings.contract_senior_annual_quota
        return settings.contract_junior_annual_quota

    return Decimal("0")
