"""Overtime request, entry, revision and balance models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
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
from sqlalchemy.orm import Mapped, mapped_column, relationship

from overtime_workflow.models.base import Base, TimestampMixin, utcnow


# ===== Requests =====


class OvertimeRequest(Base):
    """An employee's batch of overtime entries moving through approval."""

    __tablename__ = "overtime_request"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    employee_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("employee.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")
    total_hours: Mapped[Decimal] = mapped_column(Numeric(8, 2), nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(16, 2), nullable=False, default=Decimal("0")
    )
    submitted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    current_approver_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True, index=True)

    # Supervisor tier
    supervisor_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    supervisor_status: Mapped[str | None] = mapped_column(String, nullable=True)
    supervisor_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    supervisor_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Division head tier
    division_head_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    division_head_status: Mapped[str | None] = mapped_column(String, nullable=True)
    division_head_comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    division_head_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Outcome
    final_approver_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_recapped: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Bumped by every status write; guards against a stale read
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'REVISION_REQUESTED', 'APPROVED', 'REJECTED', 'DELETED')",
            name="overtime_request_status_check",
        ),
        CheckConstraint("total_hours >= 0", name="overtime_request_hours_check"),
    )

    entries: Mapped[list[OvertimeEntry]] = relationship(
        back_populates="overtime_request",
        cascade="all, delete-orphan",
        order_by="OvertimeEntry.work_date",
        lazy="selectin",
    )

    @property
    def entries_count(self) -> int:
        """Number of entries on the request."""
        return len(self.entries)


class OvertimeEntry(Base):
    """A single day of overtime within a request."""

    __tablename__ = "overtime_entry"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    overtime_request_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("overtime_request.id", ondelete="CASCADE"), nullable=False
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    hours: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        UniqueConstraint("overtime_request_id", "work_date", name="overtime_entry_date_unique"),
        CheckConstraint("hours > 0 AND hours <= 12", name="overtime_entry_hours_check"),
    )

    overtime_request: Mapped[OvertimeRequest] = relationship(back_populates="entries")


# ===== Audit =====


class OvertimeRevision(Base):
    """Immutable ledger entry for one action taken on an overtime request.

    Append-only: nothing in the codebase updates or deletes these rows.
    The integer id gives a strict order for entries sharing a timestamp.
    """

    __tablename__ = "overtime_revision"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    overtime_request_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("overtime_request.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    revised_by: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    changes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


# ===== Balances =====


class OvertimeBalance(Base):
    """Accrued overtime hours per employee."""

    __tablename__ = "overtime_balance"

    employee_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("employee.id", ondelete="CASCADE"), primary_key=True
    )
    current_balance: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    pending_hours: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    total_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    last_reset_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class BalanceAdjustmentLog(Base, TimestampMixin):
    """Manual balance correction made by an administrator."""

    __tablename__ = "balance_adjustment_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("employee.id", ondelete="CASCADE"), nullable=False, index=True
    )
    adjusted_by: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    kind: Mapped[str] = mapped_column(String, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    previous_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    new_value: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    __table_args__ = (
        CheckConstraint("kind IN ('OVERTIME', 'LEAVE')", name="balance_adjustment_kind_check"),
    )
