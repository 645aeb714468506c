"""API routes."""

from overtime_workflow.api.routes.accrual import router as accrual_router
from overtime_workflow.api.routes.balances import router as balances_router
from overtime_workflow.api.routes.health import router as health_router
from overtime_workflow.api.routes.leave import router as leave_router
from overtime_workflow.api.routes.overtime import router as overtime_router

__all__ = [
    "accrual_router",
    "balances_router",
    "health_router",
    "leave_router",
    "overtime_router",
]
