"""Leave request service.

Same pattern as the overtime workflow: status read under lock, conditional
status write, commit. Final approval records the days against the leave
balance of the year the leave starts in.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Any, AsyncIterator, Callable
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_workflow.calculators.leave_quota import calculate_annual_quota
from overtime_workflow.config import Settings
from overtime_workflow.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from overtime_workflow.metrics import registry
from overtime_workflow.models import PAID_LEAVE_TYPES, LeaveRequest, LeaveType, utcnow
from overtime_workflow.services.balance_store import BalanceStore
from overtime_workflow.services.directory import EmployeeDirectory
from overtime_workflow.services.state_machine import LeaveAction, LeaveStateMachine, LeaveStatus

logger = logging.getLogger(__name__)

UNPAID_MAX_DAYS_PER_YEAR = Decimal("14")
UNPAID_MAX_CONSECUTIVE_DAYS = Decimal("10")
MATERNITY_DAYS = Decimal("90")


class LeaveService:
    """Submission and approval of leave requests."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        clock: Callable[[], date] | None = None,
    ):
        self.session = session
        self.settings = settings
        self.clock = clock or date.today
        self.balances = BalanceStore(session)
        self.directory = EmployeeDirectory(session)

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[None]:
        try:
            yield
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def _load(self, request_id: UUID, *, for_update: bool = False) -> LeaveRequest:
        stmt = (
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        request = (await self.session.execute(stmt)).scalar_one_or_none()
        if request is None:
            raise NotFoundError(f"Leave request {request_id} not found")
        return request

    async def get_leave(self, request_id: UUID) -> LeaveRequest:
        return await self._load(request_id)

    async def _write_status(
        self,
        request: LeaveRequest,
        expected_status: str,
        action: str,
        **values: Any,
    ) -> None:
        result = await self.session.execute(
            update(LeaveRequest)
            .where(
                LeaveRequest.id == request.id,
                LeaveRequest.status == expected_status,
                LeaveRequest.version == request.version,
            )
            .values(version=LeaveRequest.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(
                f"Leave request {request.id} changed concurrently",
                from_status=expected_status,
                action=action,
            )

    async def _validate_rules(
        self,
        employee_id: UUID,
        leave_type: LeaveType,
        start_date: date,
        end_date: date,
        total_days: Decimal,
    ) -> None:
        if leave_type == LeaveType.MATERNITY and total_days != MATERNITY_DAYS:
            raise ValidationError(f"Maternity leave must be exactly {MATERNITY_DAYS} days")

        if leave_type == LeaveType.UNPAID:
            if total_days > UNPAID_MAX_CONSECUTIVE_DAYS:
                raise ValidationError(
                    f"Unpaid leave cannot exceed {UNPAID_MAX_CONSECUTIVE_DAYS} consecutive days"
                )
            used = await self.session.scalar(
                select(func.coalesce(func.sum(LeaveRequest.total_days), 0)).where(
                    LeaveRequest.employee_id == employee_id,
                    LeaveRequest.leave_type == LeaveType.UNPAID.value,
                    LeaveRequest.status.in_([LeaveStatus.PENDING.value, LeaveStatus.APPROVED.value]),
                    LeaveRequest.start_date >= date(start_date.year, 1, 1),
                    LeaveRequest.start_date <= date(start_date.year, 12, 31),
                )
            )
            if Decimal(str(used or 0)) + total_days > UNPAID_MAX_DAYS_PER_YEAR:
                raise ValidationError(
                    f"Unpaid leave cannot exceed {UNPAID_MAX_DAYS_PER_YEAR} days per year",
                    {"used": str(used or 0), "requested": str(total_days)},
                )

        if leave_type == LeaveType.ANNUAL:
            employee = await self.directory.require(employee_id)
            quota = calculate_annual_quota(
                employee.employee_status,
                employee.join_date or employee.created_at.date(),
                start_date.year,
                self.settings,
            )
            balance, _ = await self.balances.materialize_yearly_leave_balance(
                employee_id, start_date.year, quota
            )
            if total_days > balance.annual_remaining:
                raise ValidationError(
                    "Insufficient annual leave balance",
                    {"remaining": str(balance.annual_remaining), "requested": str(total_days)},
                )

    async def submit_leave(
        self,
        employee_id: UUID,
        leave_type: str,
        start_date: date,
        end_date: date,
        total_days: Decimal,
        reason: str | None,
    ) -> LeaveRequest:
        """Create a PENDING leave request."""
        try:
            leave_type = LeaveType(leave_type)
        except ValueError as e:
            raise ValidationError(f"Unknown leave type: {leave_type}") from e
        if not reason or not reason.strip():
            raise ValidationError("A reason is required for leave requests")
        if start_date > end_date:
            raise ValidationError("Start date must be on or before end date")
        if start_date < self.clock():
            raise ValidationError("Cannot request leave for past dates")
        total_days = Decimal(str(total_days))
        if total_days <= 0:
            raise ValidationError("Total days must be positive")

        async with self._unit_of_work():
            employee = await self.directory.require(employee_id)
            if not employee.is_active:
                raise PermissionDeniedError("Inactive employees cannot request leave")

            overlap = await self.session.scalar(
                select(func.count())
                .select_from(LeaveRequest)
                .where(
                    LeaveRequest.employee_id == employee_id,
                    LeaveRequest.status.in_([LeaveStatus.PENDING.value, LeaveStatus.APPROVED.value]),
                    LeaveRequest.start_date <= end_date,
                    LeaveRequest.end_date >= start_date,
                )
            )
            if overlap:
                raise ValidationError("Leave dates overlap an existing leave request")

            await self._validate_rules(employee_id, leave_type, start_date, end_date, total_days)

            approver_id = await self.directory.determine_approver(employee)
            request = LeaveRequest(
                employee_id=employee_id,
                leave_type=leave_type.value,
                is_paid=leave_type in PAID_LEAVE_TYPES,
                start_date=start_date,
                end_date=end_date,
                total_days=total_days,
                reason=reason.strip(),
                status=LeaveStatus.PENDING.value,
                current_approver_id=approver_id,
                supervisor_id=employee.supervisor_id,
                division_head_id=await self.directory.division_head_id(employee),
                submitted_at=utcnow(),
            )
            self.session.add(request)

        registry.increment("leave_transitions_total", {"action": "SUBMIT"})
        logger.info("Leave request %s submitted by %s", request.id, employee_id)
        return await self._load(request.id)

    async def _authorize(self, request: LeaveRequest, actor_id: UUID) -> bool:
        """Returns True when the actor decides at the supervisor tier."""
        actor = await self.directory.require(actor_id)
        at_supervisor_tier = request.supervisor_status is None and request.supervisor_id is not None
        if actor.is_admin:
            return at_supervisor_tier
        if actor_id == request.employee_id:
            raise PermissionDeniedError("You cannot decide on your own leave request")
        if actor_id != request.current_approver_id:
            raise PermissionDeniedError("You are not authorized to decide on this leave request")
        return at_supervisor_tier and actor_id == request.supervisor_id

    async def approve_leave(
        self,
        request_id: UUID,
        actor_id: UUID,
        comment: str | None = None,
    ) -> LeaveRequest:
        """Approve at the current tier.

        Supervisor approval is passed on to the division head when the
        request has one; otherwise the approval is final and the days are
        recorded against the leave balance.
        """
        action = LeaveAction.APPROVE
        async with self._unit_of_work():
            request = await self._load(request_id, for_update=True)
            final_status = LeaveStateMachine.validate_action(action, request.status)
            supervisor_tier = await self._authorize(request, actor_id)
            now = utcnow()

            escalate = (
                supervisor_tier
                and request.division_head_id is not None
                and request.division_head_id != actor_id
            )
            if supervisor_tier:
                values: dict[str, Any] = {
                    "supervisor_status": LeaveStatus.APPROVED.value,
                    "supervisor_comment": comment,
                    "supervisor_date": now,
                }
            else:
                values = {
                    "division_head_status": LeaveStatus.APPROVED.value,
                    "division_head_comment": comment,
                    "division_head_date": now,
                }

            if escalate:
                values.update(
                    status=LeaveStatus.PENDING.value,
                    current_approver_id=request.division_head_id,
                )
            else:
                values.update(status=final_status, approved_at=now, current_approver_id=None)

            await self._write_status(request, request.status, action.value, **values)

            if not escalate:
                year = request.start_date.year
                employee = await self.directory.require(request.employee_id)
                quota = calculate_annual_quota(
                    employee.employee_status,
                    employee.join_date or employee.created_at.date(),
                    year,
                    self.settings,
                )
                await self.balances.materialize_yearly_leave_balance(
                    request.employee_id, year, quota
                )
                await self.balances.consume_leave(
                    request.employee_id,
                    year,
                    request.leave_type,
                    Decimal(request.total_days),
                )

        registry.increment("leave_transitions_total", {"action": action.value})
        logger.info("Leave request %s approved by %s", request_id, actor_id)
        return await self._load(request_id)

    async def reject_leave(
        self,
        request_id: UUID,
        actor_id: UUID,
        comment: str | None,
    ) -> LeaveRequest:
        if not comment or not comment.strip():
            raise ValidationError("A comment is required when rejecting a request")
        action = LeaveAction.REJECT
        async with self._unit_of_work():
            request = await self._load(request_id, for_update=True)
            new_status = LeaveStateMachine.validate_action(action, request.status)
            supervisor_tier = await self._authorize(request, actor_id)
            now = utcnow()
            prefix = "supervisor" if supervisor_tier else "division_head"
            await self._write_status(
                request,
                request.status,
                action.value,
                status=new_status,
                rejected_at=now,
                current_approver_id=None,
                **{
                    f"{prefix}_status": LeaveStatus.REJECTED.value,
                    f"{prefix}_comment": comment.strip(),
                    f"{prefix}_date": now,
                },
            )

        registry.increment("leave_transitions_total", {"action": action.value})
        logger.info("Leave request %s rejected by %s", request_id, actor_id)
        return await self._load(request_id)

    async def cancel_leave(self, request_id: UUID, actor_id: UUID) -> LeaveRequest:
        """Owner withdraws a request that nobody has decided on yet."""
        action = LeaveAction.CANCEL
        async with self._unit_of_work():
            request = await self._load(request_id, for_update=True)
            if request.employee_id != actor_id:
                raise PermissionDeniedError("Only the owner may cancel this leave request")
            new_status = LeaveStateMachine.validate_action(action, request.status)
            await self._write_status(
                request,
                request.status,
                action.value,
                status=new_status,
                cancelled_at=utcnow(),
                current_approver_id=None,
            )

        registry.increment("leave_transitions_total", {"action": action.value})
        return await self._load(request_id)
