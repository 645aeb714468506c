"""Yearly accrual and TOIL expiry endpoints."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Path, Request

from overtime_workflow.api.dependencies import Accrual, ActorId, Balances, DbSession
from overtime_workflow.api.schemas import AccrualResponse, ErrorResponse, ToilGrantResponse
from overtime_workflow.services import EmployeeDirectory

router = APIRouter(prefix="/accrual", tags=["accrual"])


@router.post(
    "/{year}",
    response_model=AccrualResponse,
    responses={403: {"model": ErrorResponse}},
)
async def run_accrual(
    db: DbSession,
    scheduler: Accrual,
    actor_id: ActorId,
    year: Annotated[int, Path(ge=2000, le=2100)],
) -> AccrualResponse:
    """Create missing leave balances for the year. Safe to call repeatedly."""
    await EmployeeDirectory(db).require_admin(actor_id)
    report = await scheduler.run_yearly_accrual(year)
    return AccrualResponse.model_validate(report.to_dict())


@router.post(
    "/toil/expire",
    response_model=list[ToilGrantResponse],
    responses={403: {"model": ErrorResponse}},
)
async def expire_toil(
    request: Request,
    db: DbSession,
    balances: Balances,
    actor_id: ActorId,
) -> list[ToilGrantResponse]:
    """Expire TOIL grants past their expiry month. Safe to call repeatedly."""
    await EmployeeDirectory(db).require_admin(actor_id)
    today = (request.app.state.clock or date.today)()
    expired = await balances.expire_toil(today)
    return [ToilGrantResponse.model_validate(g) for g in expired]
