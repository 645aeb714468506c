"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_workflow.config import Settings
from overtime_workflow.services import (
    AccrualScheduler,
    BalanceStore,
    LeaveService,
    OvertimeWorkflowService,
)


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with request.app.state.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_actor_id(
    x_actor_id: Annotated[str | None, Header()] = None,
) -> UUID:
    """Extract the calling employee's ID from header."""
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-ID header is required",
        )
    try:
        return UUID(x_actor_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Actor-ID format",
        )


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
ActorId = Annotated[UUID, Depends(get_actor_id)]


def get_overtime_service(
    request: Request, db: DbSession, settings: AppSettings
) -> OvertimeWorkflowService:
    return OvertimeWorkflowService(db, settings, clock=request.app.state.clock)


def get_leave_service(request: Request, db: DbSession, settings: AppSettings) -> LeaveService:
    return LeaveService(db, settings, clock=request.app.state.clock)


def get_balance_store(db: DbSession) -> BalanceStore:
    return BalanceStore(db)


def get_accrual_scheduler(
    request: Request, db: DbSession, settings: AppSettings
) -> AccrualScheduler:
    return AccrualScheduler(db, settings, clock=request.app.state.clock)


OvertimeService = Annotated[OvertimeWorkflowService, Depends(get_overtime_service)]
Leaves = Annotated[LeaveService, Depends(get_leave_service)]
Balances = Annotated[BalanceStore, Depends(get_balance_store)]
Accrual = Annotated[AccrualScheduler, Depends(get_accrual_scheduler)]
