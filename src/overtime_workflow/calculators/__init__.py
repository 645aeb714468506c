"""Pure calculations for overtime totals, leave entitlement and TOIL."""

from overtime_workflow.calculators.leave_quota import (
    accrual_reference_date,
    calculate_annual_quota,
    months_of_service,
)
from overtime_workflow.calculators.overtime_totals import (
    EntryInput,
    coerce_entry,
    compute_total_amount,
    compute_total_hours,
    validate_entries,
)
from overtime_workflow.calculators.toil import (
    ToilConversion,
    convert_toil_hours,
    is_toil_expired,
    previous_month,
    toil_expiry,
)

__all__ = [
    "EntryInput",
    "coerce_entry",
    "compute_total_amount",
    "compute_total_hours",
    "validate_entries",
    "accrual_reference_date",
    "calculate_annual_quota",
    "months_of_service",
    "ToilConversion",
    "convert_toil_hours",
    "is_toil_expired",
    "previous_month",
    "toil_expiry",
]
