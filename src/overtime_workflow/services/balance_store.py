"""Balance Store - overtime hours, yearly leave days and TOIL per employee.

Every numeric change is a single UPDATE evaluated by the database
(``balance = balance + :h``), never a read-modify-write in Python, so
concurrent approvals for the same employee cannot lose an update.

Notes:
- Automatic deductions clamp at zero; only ``adjust_overtime`` may drive a
  balance negative.
- Balance rows are created on first use with INSERT ... ON CONFLICT DO
  NOTHING, so two callers racing to create the same row both succeed.
- Methods called from the workflow run inside the caller's transaction and
  never commit. The admin operations (``adjust_overtime``, ``mark_paid``,
  ``adjust_leave_quota``, ``credit_toil``, ``expire_toil``) are top-level
  and commit themselves.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import and_, case, insert, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_workflow.calculators.toil import (
    convert_toil_hours,
    previous_month,
    toil_expiry,
)
from overtime_workflow.errors import ConflictError, NotFoundError, ValidationError
from overtime_workflow.models import (
    BalanceAdjustmentLog,
    LeaveBalance,
    LeaveType,
    OvertimeBalance,
    ToilGrant,
    ToilStatus,
    utcnow,
)
from overtime_workflow.services.directory import EmployeeDirectory

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class DebitResult:
    """Outcome of a clamped deduction."""

    before: Decimal
    after: Decimal
    deducted: Decimal


@dataclass(frozen=True)
class MarkPaidResult:
    """Hours moved from the current balance into total paid."""

    hours_paid: Decimal
    balance: OvertimeBalance


@dataclass(frozen=True)
class ToilSummary:
    """Unexpired TOIL grants of an employee, oldest first."""

    employee_id: UUID
    total_days: int
    grants: list[ToilGrant]


# Leave types with a usage counter on LeaveBalance
_USAGE_COLUMNS = {
    LeaveType.SICK: LeaveBalance.sick_leave_used,
    LeaveType.MENSTRUAL: LeaveBalance.menstrual_leave_used,
    LeaveType.UNPAID: LeaveBalance.unpaid_leave_used,
}


class BalanceStore:
    """Atomic reads and adjustments of employee balances."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.directory = EmployeeDirectory(session)

    # ===== Row creation =====

    async def _insert_ignore(
        self,
        model: type[Any],
        conflict_columns: list[str],
        values: dict[str, Any],
    ) -> bool:
        """Insert a row unless it already exists. Returns True if inserted."""
        dialect = self.session.bind.dialect.name
        if dialect == "postgresql":
            stmt = postgresql.insert(model).values(**values).on_conflict_do_nothing(
                index_elements=conflict_columns
            )
        elif dialect == "sqlite":
            stmt = sqlite.insert(model).values(**values).on_conflict_do_nothing(
                index_elements=conflict_columns
            )
        else:
            exists = await self.session.execute(
                select(model).filter_by(**{c: values[c] for c in conflict_columns})
            )
            if exists.first() is not None:
                return False
            stmt = insert(model).values(**values)

        result = await self.session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def _ensure_overtime_row(self, employee_id: UUID) -> None:
        await self._insert_ignore(
            OvertimeBalance,
            ["employee_id"],
            {
                "employee_id": employee_id,
                "current_balance": ZERO,
                "pending_hours": ZERO,
                "total_paid": ZERO,
                "updated_at": utcnow(),
            },
        )

    async def _load_overtime(self, employee_id: UUID, *, for_update: bool = False) -> OvertimeBalance:
        stmt = (
            select(OvertimeBalance)
            .where(OvertimeBalance.employee_id == employee_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one()

    async def _update_overtime(self, employee_id: UUID, **values: Any) -> None:
        await self.session.execute(
            update(OvertimeBalance)
            .where(OvertimeBalance.employee_id == employee_id)
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )

    # ===== Overtime =====

    async def get_overtime_balance(self, employee_id: UUID) -> OvertimeBalance:
        """Get the employee's overtime balance, creating a zero row on first use.

        Raises:
            NotFoundError: unknown employee.
        """
        await self.directory.require(employee_id)
        await self._ensure_overtime_row(employee_id)
        return await self._load_overtime(employee_id)

    async def add_pending(self, employee_id: UUID, hours: Decimal) -> None:
        """Hold hours of a newly submitted (or enlarged) request."""
        await self._ensure_overtime_row(employee_id)
        await self._update_overtime(
            employee_id, pending_hours=OvertimeBalance.pending_hours + hours
        )

    async def release_pending(self, employee_id: UUID, hours: Decimal) -> None:
        """Release held hours, never below zero."""
        await self._ensure_overtime_row(employee_id)
        remaining = OvertimeBalance.pending_hours - hours
        await self._update_overtime(
            employee_id,
            pending_hours=case((remaining < 0, ZERO), else_=remaining),
        )

    async def credit_overtime(self, employee_id: UUID, hours: Decimal) -> None:
        """Add approved hours to the current balance."""
        if hours < 0:
            raise ValidationError("Credit hours must not be negative")
        await self._ensure_overtime_row(employee_id)
        await self._update_overtime(
            employee_id, current_balance=OvertimeBalance.current_balance + hours
        )

    async def debit_overtime(self, employee_id: UUID, hours: Decimal) -> DebitResult:
        """Deduct hours, clamped at zero.

        Never raises for an insufficient balance. A balance that is already
        zero or negative (admin correction) is left as it is.
        """
        if hours < 0:
            raise ValidationError("Debit hours must not be negative")
        await self._ensure_overtime_row(employee_id)
        before = (await self._load_overtime(employee_id, for_update=True)).current_balance

        current = OvertimeBalance.current_balance
        await self._update_overtime(
            employee_id,
            current_balance=case(
                (current <= 0, current),
                (current - hours < 0, ZERO),
                else_=current - hours,
            ),
        )

        after = (await self._load_overtime(employee_id)).current_balance
        return DebitResult(before=before, after=after, deducted=before - after)

    async def adjust_overtime(
        self,
        employee_id: UUID,
        delta: Decimal,
        reason: str,
        actor_id: UUID,
    ) -> OvertimeBalance:
        """Manual correction by an administrator. May go negative.

        Raises:
            PermissionDeniedError: actor is not an administrator.
            ValidationError: missing reason or zero delta.
            NotFoundError: unknown employee.
        """
        await self.directory.require_admin(actor_id)
        if not reason or not reason.strip():
            raise ValidationError("A reason is required for balance adjustments")
        delta = Decimal(str(delta))
        if delta == 0:
            raise ValidationError("Adjustment must be non-zero")
        await self.directory.require(employee_id)

        await self._ensure_overtime_row(employee_id)
        before = (await self._load_overtime(employee_id, for_update=True)).current_balance
        await self._update_overtime(
            employee_id, current_balance=OvertimeBalance.current_balance + delta
        )
        balance = await self._load_overtime(employee_id)

        self.session.add(
            BalanceAdjustmentLog(
                employee_id=employee_id,
                adjusted_by=actor_id,
                kind="OVERTIME",
                amount=delta,
                previous_value=before,
                new_value=balance.current_balance,
                reason=reason.strip(),
            )
        )
        await self.session.commit()

        logger.info(
            "Overtime balance of %s adjusted by %s (%s -> %s) by %s",
            employee_id,
            delta,
            before,
            balance.current_balance,
            actor_id,
        )
        return balance

    async def mark_paid(self, employee_id: UUID, actor_id: UUID) -> MarkPaidResult:
        """Move a positive current balance into total paid."""
        await self.directory.require_admin(actor_id)
        await self.directory.require(employee_id)

        await self._ensure_overtime_row(employee_id)
        before = (await self._load_overtime(employee_id, for_update=True)).current_balance

        current = OvertimeBalance.current_balance
        await self._update_overtime(
            employee_id,
            total_paid=OvertimeBalance.total_paid + case((current > 0, current), else_=ZERO),
            current_balance=case((current > 0, ZERO), else_=current),
            last_reset_at=utcnow(),
        )
        await self.session.commit()

        balance = await self._load_overtime(employee_id)
        hours_paid = before if before > 0 else ZERO
        logger.info("Marked %s overtime hours paid for %s by %s", hours_paid, employee_id, actor_id)
        return MarkPaidResult(hours_paid=hours_paid, balance=balance)

    # ===== Leave =====

    async def _load_leave(self, employee_id: UUID, year: int) -> LeaveBalance | None:
        result = await self.session.execute(
            select(LeaveBalance)
            .where(LeaveBalance.employee_id == employee_id, LeaveBalance.year == year)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_leave_balance(self, employee_id: UUID, year: int) -> LeaveBalance:
        """Leave balance for a year.

        Raises:
            NotFoundError: no balance has been created for that year.
        """
        balance = await self._load_leave(employee_id, year)
        if balance is None:
            raise NotFoundError(f"No leave balance for employee {employee_id} in {year}")
        return balance

    async def materialize_yearly_leave_balance(
        self,
        employee_id: UUID,
        year: int,
        quota: Decimal,
    ) -> tuple[LeaveBalance, bool]:
        """Create the year's balance if missing.

        An existing row is returned untouched, usage counters included.
        Returns (balance, created).
        """
        now = utcnow()
        created = await self._insert_ignore(
            LeaveBalance,
            ["employee_id", "year"],
            {
                "employee_id": employee_id,
                "year": year,
                "annual_quota": quota,
                "annual_used": ZERO,
                "annual_remaining": quota,
                "sick_leave_used": ZERO,
                "menstrual_leave_used": ZERO,
                "unpaid_leave_used": ZERO,
                "toil_balance": ZERO,
                "toil_used": ZERO,
                "toil_expired": ZERO,
                "created_at": now,
                "updated_at": now,
            },
        )
        return await self.get_leave_balance(employee_id, year), created

    async def adjust_leave_quota(
        self,
        employee_id: UUID,
        year: int,
        new_quota: Decimal,
        reason: str,
        actor_id: UUID,
    ) -> LeaveBalance:
        """Correct an annual quota. Remaining days follow the new quota."""
        await self.directory.require_admin(actor_id)
        if not reason or not reason.strip():
            raise ValidationError("A reason is required for balance adjustments")
        new_quota = Decimal(str(new_quota))
        if new_quota < 0:
            raise ValidationError("Annual quota must not be negative")
        await self.directory.require(employee_id)

        existing, created = await self.materialize_yearly_leave_balance(
            employee_id, year, new_quota
        )
        previous = ZERO if created else existing.annual_quota

        await self.session.execute(
            update(LeaveBalance)
            .where(LeaveBalance.employee_id == employee_id, LeaveBalance.year == year)
            .values(
                annual_quota=new_quota,
                annual_remaining=new_quota - LeaveBalance.annual_used,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        self.session.add(
            BalanceAdjustmentLog(
                employee_id=employee_id,
                adjusted_by=actor_id,
                kind="LEAVE",
                amount=new_quota - previous,
                previous_value=previous,
                new_value=new_quota,
                reason=reason.strip(),
                year=year,
            )
        )
        await self.session.commit()

        logger.info(
            "Leave quota of %s for %s set %s -> %s by %s",
            employee_id,
            year,
            previous,
            new_quota,
            actor_id,
        )
        return await self.get_leave_balance(employee_id, year)

    async def consume_leave(
        self,
        employee_id: UUID,
        year: int,
        leave_type: str,
        days: Decimal,
    ) -> None:
        """Record approved leave days against the year's counters.

        Maternity and marriage leave have no counter and are not recorded.
        """
        if leave_type == LeaveType.ANNUAL:
            values: dict[str, Any] = {
                "annual_used": LeaveBalance.annual_used + days,
                "annual_remaining": LeaveBalance.annual_quota - (LeaveBalance.annual_used + days),
            }
        elif leave_type in _USAGE_COLUMNS:
            column = _USAGE_COLUMNS[LeaveType(leave_type)]
            values = {column.key: column + days}
        else:
            return

        result = await self.session.execute(
            update(LeaveBalance)
            .where(LeaveBalance.employee_id == employee_id, LeaveBalance.year == year)
            .values(updated_at=utcnow(), **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"No leave balance for employee {employee_id} in {year}")

    # ===== TOIL =====

    async def credit_toil(
        self,
        employee_id: UUID,
        year: int,
        month: int,
        hours: Decimal,
        actor_id: UUID,
        *,
        hours_per_day: Decimal = Decimal("8"),
        expiry_months: int = 3,
    ) -> ToilGrant:
        """Convert a month's excess overtime hours into TOIL days.

        The previous month's leftover hours are added first. Whole days go
        to the earning year's ``toil_balance``; the rest is kept on the grant
        for next month.

        Raises:
            PermissionDeniedError: actor is not an administrator.
            ValidationError: bad month or hours.
            NotFoundError: unknown employee, or no leave balance for the
                year when at least one day is earned.
            ConflictError: the month has already been credited.
        """
        await self.directory.require_admin(actor_id)
        if not 1 <= month <= 12:
            raise ValidationError(f"Invalid month: {month}")
        await self.directory.require(employee_id)

        prev_year, prev_month = previous_month(year, month)
        carryover = await self.session.scalar(
            select(ToilGrant.remaining_hours).where(
                ToilGrant.employee_id == employee_id,
                ToilGrant.earned_year == prev_year,
                ToilGrant.earned_month == prev_month,
            )
        )
        conversion = convert_toil_hours(
            Decimal(str(hours)), Decimal(carryover or ZERO), hours_per_day
        )
        if conversion.days > 0:
            await self.get_leave_balance(employee_id, year)

        expiry_year, expiry_month = toil_expiry(year, month, expiry_months)
        inserted = await self._insert_ignore(
            ToilGrant,
            ["employee_id", "earned_year", "earned_month"],
            {
                "id": uuid4(),
                "employee_id": employee_id,
                "earned_year": year,
                "earned_month": month,
                "hours": conversion.hours,
                "carryover_hours": conversion.carryover_hours,
                "total_hours": conversion.total_hours,
                "days": conversion.days,
                "remaining_hours": conversion.remaining_hours,
                "expiry_year": expiry_year,
                "expiry_month": expiry_month,
                "status": ToilStatus.AVAILABLE.value,
                "granted_by": actor_id,
                "created_at": utcnow(),
            },
        )
        if not inserted:
            raise ConflictError(f"TOIL for {year}-{month:02d} has already been credited")

        if conversion.days > 0:
            await self.session.execute(
                update(LeaveBalance)
                .where(LeaveBalance.employee_id == employee_id, LeaveBalance.year == year)
                .values(
                    toil_balance=LeaveBalance.toil_balance + conversion.days,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
        await self.session.commit()

        logger.info(
            "Credited %d TOIL day(s) to %s for %s-%02d (%s h, %s h carried over, %s h left)",
            conversion.days,
            employee_id,
            year,
            month,
            conversion.hours,
            conversion.carryover_hours,
            conversion.remaining_hours,
        )
        return await self.session.scalar(
            select(ToilGrant)
            .where(
                ToilGrant.employee_id == employee_id,
                ToilGrant.earned_year == year,
                ToilGrant.earned_month == month,
            )
            .execution_options(populate_existing=True)
        )

    async def use_toil(self, employee_id: UUID, year: int, days: Decimal) -> None:
        """Take TOIL days from the year's balance. Runs in the caller's transaction.

        Raises:
            ValidationError: non-positive days or not enough TOIL left.
            NotFoundError: no leave balance for the year.
        """
        days = Decimal(str(days))
        if not days.is_finite() or days <= 0:
            raise ValidationError("TOIL days must be positive")

        result = await self.session.execute(
            update(LeaveBalance)
            .where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.year == year,
                LeaveBalance.toil_balance >= days,
            )
            .values(
                toil_balance=LeaveBalance.toil_balance - days,
                toil_used=LeaveBalance.toil_used + days,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            balance = await self.get_leave_balance(employee_id, year)
            raise ValidationError(
                "Insufficient TOIL balance",
                {"available": str(balance.toil_balance), "requested": str(days)},
            )

    async def expire_toil(self, today: date) -> list[ToilGrant]:
        """Expire every available grant whose expiry month has passed.

        Each grant is flipped with a conditional UPDATE, so concurrent runs
        expire it once. The lapsed days leave the earning year's
        ``toil_balance`` (clamped at zero, since days may have been used)
        and are added to ``toil_expired``.
        """
        due = await self.session.execute(
            select(ToilGrant.id, ToilGrant.employee_id, ToilGrant.earned_year, ToilGrant.days)
            .where(
                ToilGrant.status == ToilStatus.AVAILABLE.value,
                or_(
                    ToilGrant.expiry_year < today.year,
                    and_(
                        ToilGrant.expiry_year == today.year,
                        ToilGrant.expiry_month < today.month,
                    ),
                ),
            )
            .order_by(ToilGrant.earned_year, ToilGrant.earned_month, ToilGrant.employee_id)
        )

        now = utcnow()
        expired_ids: list[UUID] = []
        for grant_id, employee_id, earned_year, days in due.all():
            result = await self.session.execute(
                update(ToilGrant)
                .where(ToilGrant.id == grant_id, ToilGrant.status == ToilStatus.AVAILABLE.value)
                .values(status=ToilStatus.EXPIRED.value, expired_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                continue
            expired_ids.append(grant_id)
            if days:
                available = LeaveBalance.toil_balance
                lapsed = case((available < days, available), else_=days)
                await self.session.execute(
                    update(LeaveBalance)
                    .where(
                        LeaveBalance.employee_id == employee_id,
                        LeaveBalance.year == earned_year,
                    )
                    .values(
                        toil_balance=available - lapsed,
                        toil_expired=LeaveBalance.toil_expired + lapsed,
                        updated_at=now,
                    )
                    .execution_options(synchronize_session=False)
                )
        await self.session.commit()

        logger.info("Expired %d TOIL grant(s) as of %s", len(expired_ids), today.isoformat())
        if not expired_ids:
            return []
        result = await self.session.execute(
            select(ToilGrant)
            .where(ToilGrant.id.in_(expired_ids))
            .order_by(ToilGrant.earned_year, ToilGrant.earned_month, ToilGrant.employee_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_toil_balance(self, employee_id: UUID) -> ToilSummary:
        """Unexpired grants that earned at least one day.

        Raises:
            NotFoundError: unknown employee.
        """
        await self.directory.require(employee_id)
        result = await self.session.execute(
            select(ToilGrant)
            .where(
                ToilGrant.employee_id == employee_id,
                ToilGrant.status == ToilStatus.AVAILABLE.value,
                ToilGrant.days > 0,
            )
            .order_by(ToilGrant.earned_year, ToilGrant.earned_month)
        )
        grants = list(result.scalars().all())
        return ToilSummary(
            employee_id=employee_id,
            total_days=sum(g.days for g in grants),
            grants=grants,
        )
