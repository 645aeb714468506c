"""FastAPI application factory."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import date
from typing import Callable

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from overtime_workflow import __version__
from overtime_workflow.api.routes import (
    accrual_router,
    balances_router,
    health_router,
    leave_router,
    overtime_router,
)
from overtime_workflow.config import Settings, get_settings
from overtime_workflow.database import (
    create_engine_from_settings,
    create_schema,
    create_session_factory,
)
from overtime_workflow.errors import (
    ApprovalLockedError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    WorkflowError,
)

logger = logging.getLogger(__name__)

# Most specific first; ApprovalLockedError is a ConflictError
ERROR_STATUS: list[tuple[type[WorkflowError], int]] = [
    (ApprovalLockedError, status.HTTP_423_LOCKED),
    (ConflictError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
]


def status_for(exc: WorkflowError) -> int:
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


def create_app(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    clock: Callable[[], date] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Tests pass their own session factory and clock; otherwise an engine is
    built from settings and, in debug mode, the schema is created on startup.
    """
    settings = settings or get_settings()
    engine = None
    if session_factory is None:
        engine = create_engine_from_settings(settings)
        session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        if engine is not None and settings.debug:
            await create_schema(engine)
        yield
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="Overtime Workflow API",
        description="Overtime approval, balances and leave accrual",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.clock = clock

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(WorkflowError)
    async def workflow_exception_handler(request: Request, exc: WorkflowError) -> JSONResponse:
        return JSONResponse(
            status_code=status_for(exc),
            content={"detail": exc.message, "code": exc.code, **exc.details},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    app.include_router(health_router)
    app.include_router(overtime_router, prefix="/api/v1")
    app.include_router(leave_router, prefix="/api/v1")
    app.include_router(balances_router, prefix="/api/v1")
    app.include_router(accrual_router, prefix="/api/v1")

    return app
