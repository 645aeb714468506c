"""Leave balance, leave request and TOIL models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from overtime_workflow.models.base import Base, TimestampMixin, utcnow


class LeaveType(str, Enum):
    """Leave categories."""

    ANNUAL = "ANNUAL"
    SICK = "SICK"
    MATERNITY = "MATERNITY"
    MENSTRUAL = "MENSTRUAL"
    MARRIAGE = "MARRIAGE"
    UNPAID = "UNPAID"


PAID_LEAVE_TYPES = frozenset(
    {
        LeaveType.ANNUAL,
        LeaveType.SICK,
        LeaveType.MATERNITY,
        LeaveType.MENSTRUAL,
        LeaveType.MARRIAGE,
    }
)


class LeaveBalance(Base, TimestampMixin):
    """Per-employee, per-year leave entitlement and usage.

    Created once per (employee, year) by the accrual job. Usage counters are
    only ever moved with single UPDATE statements so that concurrent approvals
    cannot lose an increment.
    """

    __tablename__ = "leave_balance"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("employee.id", ondelete="CASCADE"), nullable=False
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    annual_quota: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    annual_used: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    annual_remaining: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)

    sick_leave_used: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    menstrual_leave_used: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )
    unpaid_leave_used: Mapped[Decimal] = mapped_column(
        Numeric(6, 2), nullable=False, default=Decimal("0")
    )

    # TOIL days: available, taken as leave, lapsed unused
    toil_balance: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    toil_used: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))
    toil_expired: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=Decimal("0"))

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("employee_id", "year", name="leave_balance_employee_year_unique"),
    )


class LeaveRequest(Base):
    """A leave application moving through supervisor / division head approval."""

    __tablename__ = "leave_request"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("employee.id", ondelete="CASCADE"), nullable=False, index=True
    )
    leave_type: Mapped[str] = mapped_column(String, nullable=False)
    is_paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")
    current_approver_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True, index=True)

    supervisor_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    supervisor_status: Mapped[str | None] = mapped_column(String, nullable=True)
    supervisor_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    supervisor_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    division_head_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    division_head_status: Mapped[str | None] = mapped_column(String, nullable=True)
    division_head_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    division_head_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED', 'CANCELLED')",
            name="leave_request_status_check",
        ),
        CheckConstraint("start_date <= end_date", name="leave_request_dates_check"),
        CheckConstraint("total_days > 0", name="leave_request_days_check"),
    )


class ToilStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    EXPIRED = "EXPIRED"


class ToilGrant(Base, TimestampMixin):
    """One month's overtime converted into TOIL days.

    At most one grant per employee and month. ``remaining_hours`` is the
    part of a day left over, carried into the next month's conversion.
    """

    __tablename__ = "toil_grant"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("employee.id", ondelete="CASCADE"), nullable=False, index=True
    )
    earned_year: Mapped[int] = mapped_column(Integer, nullable=False)
    earned_month: Mapped[int] = mapped_column(Integer, nullable=False)

    hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    carryover_hours: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    total_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False)
    days: Mapped[int] = mapped_column(Integer, nullable=False)
    remaining_hours: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)

    expiry_year: Mapped[int] = mapped_column(Integer, nullable=False)
    expiry_month: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default=ToilStatus.AVAILABLE.value)
    expired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    granted_by: Mapped[UUID] = mapped_column(Uuid, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "employee_id", "earned_year", "earned_month", name="toil_grant_employee_month_unique"
        ),
        CheckConstraint("earned_month BETWEEN 1 AND 12", name="toil_grant_month_check"),
        CheckConstraint("days >= 0", name="toil_grant_days_check"),
        CheckConstraint("status IN ('AVAILABLE', 'EXPIRED')", name="toil_grant_status_check"),
    )
