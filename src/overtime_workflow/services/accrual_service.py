"""Yearly leave accrual.

Creates one LeaveBalance row per active employee for the target year,
with the entitlement computed from employment status and tenure on
January 1 of that year. Each employee is committed separately: a crash or
a failing row leaves every employee processed so far in place, and a rerun
skips them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_workflow.calculators.leave_quota import calculate_annual_quota
from overtime_workflow.config import Settings
from overtime_workflow.errors import AccrualPartialFailure
from overtime_workflow.metrics import registry
from overtime_workflow.models import Employee, EmploymentStatus
from overtime_workflow.services.balance_store import BalanceStore

logger = logging.getLogger(__name__)


@dataclass
class AccrualReport:
    """Tally of one accrual run. ``created + skipped + errors == total``."""

    year: int
    created: int = 0
    skipped: int = 0
    errors: int = 0
    total: int = 0
    failures: list[AccrualPartialFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "created": self.created,
            "skipped": self.skipped,
            "errors": self.errors,
            "total": self.total,
            "failures": [
                {"employee_id": str(f.employee_id), "reason": f.reason} for f in self.failures
            ],
        }


class AccrualScheduler:
    """Materializes yearly leave balances."""

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

    async def _load_roster(self) -> list[tuple[UUID, str, date | None, datetime | None]]:
        # Plain tuples: a rollback expires ORM instances mid-loop.
        result = await self.session.execute(
            select(
                Employee.id,
                Employee.employee_status,
                Employee.join_date,
                Employee.created_at,
            ).order_by(Employee.created_at, Employee.id)
        )
        return [tuple(row) for row in result.all()]

    async def run_yearly_accrual(self, year: int | None = None) -> AccrualReport:
        """Create missing balances for ``year`` (default: the current year).

        Idempotent: employees that already have a row are skipped and their
        row is left untouched.
        """
        year = year or self.clock().year
        report = AccrualReport(year=year)
        roster = await self._load_roster()
        report.total = len(roster)

        logger.info("Starting leave accrual for %s (%d employees)", year, report.total)

        for employee_id, status, join_date, created_at in roster:
            if status == EmploymentStatus.INACTIVE.value:
                report.skipped += 1
                registry.increment("accrual_records_total", {"outcome": "skipped"})
                continue

            tenure_start = join_date or (created_at.date() if created_at else None)
            quota = calculate_annual_quota(status, tenure_start, year, self.settings)

            try:
                _, created = await self.balances.materialize_yearly_leave_balance(
                    employee_id, year, quota
                )
                await self.session.commit()
            except SQLAlchemyError as e:
                await self.session.rollback()
                failure = AccrualPartialFailure(employee_id, year, str(e))
                report.errors += 1
                report.failures.append(failure)
                registry.increment("accrual_records_total", {"outcome": "error"})
                logger.exception("Leave accrual failed for employee %s (%s)", employee_id, year)
                continue

            if created:
                report.created += 1
                registry.increment("accrual_records_total", {"outcome": "created"})
                logger.debug("Created %s leave balance for %s: %s days", year, employee_id, quota)
            else:
                report.skipped += 1
                registry.increment("accrual_records_total", {"outcome": "skipped"})

        logger.info(
            "Leave accrual for %s finished: created=%d skipped=%d errors=%d total=%d",
            year,
            report.created,
            report.skipped,
            report.errors,
            report.total,
        )
        return report
