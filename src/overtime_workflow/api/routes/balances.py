"""Balance API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from overtime_workflow.api.dependencies import ActorId, AppSettings, Balances
from overtime_workflow.api.schemas import (
    BalanceAdjustRequest,
    ErrorResponse,
    LeaveBalanceResponse,
    MarkPaidResponse,
    OvertimeBalanceResponse,
    ToilBalanceResponse,
    ToilCreditRequest,
    ToilGrantResponse,
)

router = APIRouter(prefix="/balances", tags=["balances"])

EmployeeId = Annotated[UUID, Path()]


@router.get(
    "/{employee_id}/overtime",
    response_model=OvertimeBalanceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_overtime_balance(
    balances: Balances,
    actor_id: ActorId,
    employee_id: EmployeeId,
) -> OvertimeBalanceResponse:
    balance = await balances.get_overtime_balance(employee_id)
    return OvertimeBalanceResponse.model_validate(balance)


@router.get(
    "/{employee_id}/leave/{year}",
    response_model=LeaveBalanceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_leave_balance(
    balances: Balances,
    actor_id: ActorId,
    employee_id: EmployeeId,
    year: Annotated[int, Path(ge=2000, le=2100)],
) -> LeaveBalanceResponse:
    return LeaveBalanceResponse.model_validate(await balances.get_leave_balance(employee_id, year))


@router.post(
    "/{employee_id}/adjust",
    response_model=OvertimeBalanceResponse | LeaveBalanceResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def adjust_balance(
    balances: Balances,
    actor_id: ActorId,
    employee_id: EmployeeId,
    payload: BalanceAdjustRequest,
) -> OvertimeBalanceResponse | LeaveBalanceResponse:
    """Admin correction of the overtime balance or a year's leave quota."""
    if payload.overtime_delta is not None:
        balance = await balances.adjust_overtime(
            employee_id, payload.overtime_delta, payload.reason, actor_id
        )
        return OvertimeBalanceResponse.model_validate(balance)

    leave = await balances.adjust_leave_quota(
        employee_id, payload.year, payload.new_quota, payload.reason, actor_id
    )
    return LeaveBalanceResponse.model_validate(leave)


@router.post(
    "/{employee_id}/mark-paid",
    response_model=MarkPaidResponse,
    responses={403: {"model": ErrorResponse}},
)
async def mark_paid(
    balances: Balances,
    actor_id: ActorId,
    employee_id: EmployeeId,
) -> MarkPaidResponse:
    result = await balances.mark_paid(employee_id, actor_id)
    return MarkPaidResponse(
        hours_paid=result.hours_paid,
        balance=OvertimeBalanceResponse.model_validate(result.balance),
    )


@router.get(
    "/{employee_id}/toil",
    response_model=ToilBalanceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_toil_balance(
    balances: Balances,
    actor_id: ActorId,
    employee_id: EmployeeId,
) -> ToilBalanceResponse:
    return ToilBalanceResponse.model_validate(await balances.get_toil_balance(employee_id))


@router.post(
    "/{employee_id}/toil",
    response_model=ToilGrantResponse,
    status_code=201,
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def credit_toil(
    balances: Balances,
    settings: AppSettings,
    actor_id: ActorId,
    employee_id: EmployeeId,
    payload: ToilCreditRequest,
) -> ToilGrantResponse:
    """Bank a month's excess overtime as TOIL days. Admin only."""
    grant = await balances.credit_toil(
        employee_id,
        payload.year,
        payload.month,
        payload.hours,
        actor_id,
        hours_per_day=settings.standard_hours_per_day,
        expiry_months=settings.toil_expiry_months,
    )
    return ToilGrantResponse.model_validate(grant)
