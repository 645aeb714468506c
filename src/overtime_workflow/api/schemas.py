"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Overtime schemas
# ============================================================================


class OvertimeEntryIn(BaseModel):
    """One day of overtime in a submission."""

    model_config = ConfigDict(populate_by_name=True)

    work_date: date = Field(alias="date")
    hours: Decimal = Field(gt=0)
    description: str = Field(min_length=1)


class OvertimeSubmit(BaseModel):
    """Schema for submitting or editing an overtime request."""

    entries: list[OvertimeEntryIn] = Field(min_length=1)


class CommentRequest(BaseModel):
    """Body for approval-family actions."""

    comment: str | None = None


class OvertimeEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    work_date: date
    hours: Decimal
    description: str


class OvertimeRequestResponse(BaseModel):
    """Schema for overtime request response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    employee_id: UUID
    status: str
    total_hours: Decimal
    total_amount: Decimal
    submitted_at: datetime
    updated_at: datetime
    current_approver_id: UUID | None = None
    supervisor_id: UUID | None = None
    supervisor_status: str | None = None
    supervisor_comment: str | None = None
    division_head_id: UUID | None = None
    division_head_status: str | None = None
    division_head_comment: str | None = None
    final_approver_id: UUID | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    deleted_at: datetime | None = None
    is_recapped: bool = False
    entries: list[OvertimeEntryResponse] = []


class RevisionResponse(BaseModel):
    """Schema for one revision ledger entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    overtime_request_id: UUID
    revised_by: UUID
    action: str
    changes: dict[str, Any]
    comment: str | None = None
    created_at: datetime


class TransitionResponse(BaseModel):
    """Updated request plus the ledger entry it produced.

    ``revision`` is null when the ledger write failed; the transition itself
    still succeeded.
    """

    request: OvertimeRequestResponse
    revision: RevisionResponse | None = None


# ============================================================================
# Balance schemas
# ============================================================================


class OvertimeBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    current_balance: Decimal
    pending_hours: Decimal
    total_paid: Decimal
    last_reset_at: datetime | None = None


class LeaveBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    year: int
    annual_quota: Decimal
    annual_used: Decimal
    annual_remaining: Decimal
    sick_leave_used: Decimal
    menstrual_leave_used: Decimal
    unpaid_leave_used: Decimal
    toil_balance: Decimal
    toil_used: Decimal
    toil_expired: Decimal


class BalanceAdjustRequest(BaseModel):
    """Either ``{overtime_delta, reason}`` or ``{year, new_quota, reason}``."""

    reason: str
    overtime_delta: Decimal | None = None
    year: int | None = None
    new_quota: Decimal | None = None

    @model_validator(mode="after")
    def check_exactly_one_kind(self) -> "BalanceAdjustRequest":
        overtime = self.overtime_delta is not None
        leave = self.year is not None or self.new_quota is not None
        if overtime == leave:
            raise ValueError("Provide either overtime_delta or year with new_quota")
        if leave and (self.year is None or self.new_quota is None):
            raise ValueError("Leave quota adjustments need both year and new_quota")
        return self


class MarkPaidResponse(BaseModel):
    hours_paid: Decimal
    balance: OvertimeBalanceResponse


class ToilCreditRequest(BaseModel):
    """Excess overtime hours of one month, as reported by payroll."""

    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    hours: Decimal = Field(..., ge=0)


class ToilGrantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    employee_id: UUID
    earned_year: int
    earned_month: int
    hours: Decimal
    carryover_hours: Decimal
    total_hours: Decimal
    days: int
    remaining_hours: Decimal
    expiry_year: int
    expiry_month: int
    status: str
    expired_at: datetime | None = None


class ToilBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    total_days: int
    grants: list[ToilGrantResponse]


# ============================================================================
# Accrual schemas
# ============================================================================


class AccrualFailureResponse(BaseModel):
    employee_id: UUID
    reason: str


class AccrualResponse(BaseModel):
    year: int
    created: int
    skipped: int
    errors: int
    total: int
    failures: list[AccrualFailureResponse] = []


# ============================================================================
# Leave schemas
# ============================================================================


class LeaveSubmit(BaseModel):
    leave_type: str
    start_date: date
    end_date: date
    total_days: Decimal
    reason: str


class LeaveRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    employee_id: UUID
    leave_type: str
    is_paid: bool
    start_date: date
    end_date: date
    total_days: Decimal
    reason: str
    status: str
    current_approver_id: UUID | None = None
    supervisor_status: str | None = None
    division_head_status: str | None = None
    submitted_at: datetime
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    cancelled_at: datetime | None = None


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response. Error details are added as extra keys."""

    model_config = ConfigDict(extra="allow")

    detail: str
    code: str | None = None
