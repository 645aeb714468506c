"""Tests for yearly leave accrual."""

from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from conftest import clock
from overtime_workflow.metrics import registry
from overtime_workflow.models import LeaveBalance
from overtime_workflow.services import AccrualScheduler, BalanceStore

pytestmark = pytest.mark.asyncio


class FlakyBalanceStore(BalanceStore):
    """Fails to materialize one employee's balance."""

    def __init__(self, session, broken_id):
        super().__init__(session)
        self.broken_id = broken_id

    async def materialize_yearly_leave_balance(self, employee_id, year, quota):
        if employee_id == self.broken_id:
            raise OperationalError("INSERT INTO leave_balance", {}, Exception("database is locked"))
        return await super().materialize_yearly_leave_balance(employee_id, year, quota)


async def _balance_count(session, year: int) -> int:
    result = await session.execute(
        select(func.count()).select_from(LeaveBalance).where(LeaveBalance.year == year)
    )
    return result.scalar_one()


class TestYearlyAccrual:
    async def test_creates_balances_for_active_employees(self, session, settings, org):
        scheduler = AccrualScheduler(session, settings, clock=clock)
        report = await scheduler.run_yearly_accrual(2025)

        assert report.total == 7
        assert report.created == 6
        assert report.skipped == 1  # inactive
        assert report.errors == 0
        assert report.created + report.skipped + report.errors == report.total
        assert await _balance_count(session, 2025) == 6

        store = BalanceStore(session)
        permanent = await store.get_leave_balance(org.employee_id, 2025)
        assert permanent.annual_quota == Decimal("14")
        assert permanent.annual_remaining == Decimal("14")
        # Joined 2024-03-01: ten months on 2025-01-01
        contract = await store.get_leave_balance(org.contract_id, 2025)
        assert contract.annual_quota == Decimal("10")

        assert registry.value("accrual_records_total", {"outcome": "created"}) == 6

    async def test_rerun_is_idempotent(self, session, settings, org):
        scheduler = AccrualScheduler(session, settings, clock=clock)
        await scheduler.run_yearly_accrual(2025)
        await BalanceStore(session).consume_leave(org.employee_id, 2025, "ANNUAL", Decimal("3"))
        await session.commit()

        report = await scheduler.run_yearly_accrual(2025)

        assert report.created == 0
        assert report.skipped == 7
        assert await _balance_count(session, 2025) == 6
        balance = await BalanceStore(session).get_leave_balance(org.employee_id, 2025)
        assert balance.annual_used == Decimal("3")
        assert balance.annual_remaining == Decimal("11")

    async def test_defaults_to_current_year(self, session, settings, org):
        report = await AccrualScheduler(session, settings, clock=clock).run_yearly_accrual()
        assert report.year == 2024
        # Contract joined 2024-03-01: no tenure on 2024-01-01
        balance = await BalanceStore(session).get_leave_balance(org.contract_id, 2024)
        assert balance.annual_quota == Decimal("10")

    async def test_one_failure_does_not_stop_the_run(self, session, settings, org):
        scheduler = AccrualScheduler(session, settings, clock=clock)
        scheduler.balances = FlakyBalanceStore(session, org.supervisor_id)

        report = await scheduler.run_yearly_accrual(2025)

        assert report.errors == 1
        assert report.created == 5
        assert report.created + report.skipped + report.errors == report.total
        assert [f.employee_id for f in report.failures] == [org.supervisor_id]
        assert report.failures[0].code == "ACCRUAL_FAILED"
        assert report.to_dict()["failures"][0]["employee_id"] == str(org.supervisor_id)
        assert await _balance_count(session, 2025) == 5
        assert registry.value("accrual_records_total", {"outcome": "error"}) == 1

        # The rerun fills the gap
        retry = await AccrualScheduler(session, settings, clock=clock).run_yearly_accrual(2025)
        assert retry.created == 1
        assert retry.errors == 0
        assert await _balance_count(session, 2025) == 6
