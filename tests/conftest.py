"""Pytest fixtures for overtime workflow tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from overtime_workflow.config import Settings
from overtime_workflow.database import (
    create_engine_from_settings,
    create_schema,
    create_session_factory,
)
from overtime_workflow.metrics import registry
from overtime_workflow.models import (
    AccessLevel,
    Division,
    Employee,
    EmploymentStatus,
    SYSTEM_SETTINGS_ID,
    SystemSettings,
)
from overtime_workflow.services import OvertimeWorkflowService

# Friday; the default edit window reaches back to 2024-04-26
TODAY = date(2024, 5, 3)


def clock() -> date:
    return TODAY


@dataclass(frozen=True)
class Org:
    """IDs of the seeded organisation.

    The employee reports to the supervisor; both sit in a division headed
    by the division head. The contract employee has no supervisor and
    reports straight to the division head.
    """

    admin_id: UUID
    hr_id: UUID
    division_head_id: UUID
    supervisor_id: UUID
    employee_id: UUID
    contract_id: UUID
    inactive_id: UUID
    division_id: UUID


def entry(day: date, hours: str = "2", description: str = "Release support") -> dict:
    return {"date": day.isoformat(), "hours": hours, "description": description}


@pytest.fixture(autouse=True)
def reset_metrics():
    registry.reset()
    yield
    registry.reset()


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing at a per-test SQLite file."""
    return Settings(database_url=f"sqlite+aiosqlite:///{tmp_path / 'workflow.db'}")


@pytest.fixture
def two_tier_settings(settings: Settings) -> Settings:
    return replace(settings, require_division_head_approval=True)


@pytest_asyncio.fixture
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine with a fresh schema."""
    engine = create_engine_from_settings(settings)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def org(session_factory: async_sessionmaker[AsyncSession]) -> Org:
    """Seed the organisation in its own session and return the IDs."""
    ids = Org(
        admin_id=uuid4(),
        hr_id=uuid4(),
        division_head_id=uuid4(),
        supervisor_id=uuid4(),
        employee_id=uuid4(),
        contract_id=uuid4(),
        inactive_id=uuid4(),
        division_id=uuid4(),
    )

    async with session_factory() as session:
        session.add(Division(id=ids.division_id, name="Engineering", head_id=ids.division_head_id))
        await session.flush()

        session.add_all(
            [
                Employee(
                    id=ids.admin_id,
                    name="Admin",
                    email="admin@example.com",
                    access_level=int(AccessLevel.SYSTEM_ADMIN),
                    join_date=date(2018, 1, 2),
                ),
                Employee(
                    id=ids.hr_id,
                    name="HR",
                    email="hr@example.com",
                    access_level=int(AccessLevel.HR),
                    join_date=date(2019, 6, 1),
                ),
                Employee(
                    id=ids.division_head_id,
                    name="Division Head",
                    email="head@example.com",
                    division_id=ids.division_id,
                    join_date=date(2017, 3, 1),
                ),
            ]
        )
        await session.flush()

        session.add(
            Employee(
                id=ids.supervisor_id,
                name="Supervisor",
                email="supervisor@example.com",
                division_id=ids.division_id,
                supervisor_id=ids.division_head_id,
                join_date=date(2020, 2, 1),
            )
        )
        await session.flush()

        session.add_all(
            [
                Employee(
                    id=ids.employee_id,
                    name="Employee",
                    email="employee@example.com",
                    division_id=ids.division_id,
                    supervisor_id=ids.supervisor_id,
                    employee_status=EmploymentStatus.PKWTT.value,
                    join_date=date(2021, 8, 16),
                    overtime_rate=Decimal("40000"),
                ),
                Employee(
                    id=ids.contract_id,
                    name="Contractor",
                    email="contract@example.com",
                    division_id=ids.division_id,
                    employee_status=EmploymentStatus.PKWT.value,
                    join_date=date(2024, 3, 1),
                ),
                Employee(
                    id=ids.inactive_id,
                    name="Former",
                    email="former@example.com",
                    supervisor_id=ids.supervisor_id,
                    employee_status=EmploymentStatus.INACTIVE.value,
                    join_date=date(2015, 1, 1),
                ),
            ]
        )
        await session.commit()

    return ids


@pytest.fixture
def service(session: AsyncSession, settings: Settings) -> OvertimeWorkflowService:
    return OvertimeWorkflowService(session, settings, clock=clock)


async def set_recap_state(
    session: AsyncSession,
    *,
    last_recap_date: date | None = None,
    locked: bool = False,
) -> None:
    """Write the recap singleton the way the payroll process leaves it."""
    row = await session.get(SystemSettings, SYSTEM_SETTINGS_ID)
    if row is None:
        row = SystemSettings(id=SYSTEM_SETTINGS_ID)
        session.add(row)
    row.last_recap_date = last_recap_date
    row.is_approval_locked = locked
    await session.commit()
