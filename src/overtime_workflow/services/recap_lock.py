"""Payroll recap cutoff and approval lock.

The monthly recap (part of payroll, run elsewhere) freezes approvals while
it runs and records the last date it processed. Overtime dated on or
before that date can no longer be submitted or edited, and requests it
consumed are flagged so an admin override cannot reverse them.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_workflow.errors import ApprovalLockedError
from overtime_workflow.models import (
    SYSTEM_SETTINGS_ID,
    OvertimeEntry,
    OvertimeRequest,
    SystemSettings,
    utcnow,
)


class RecapLockService:
    """Reads and writes the recap singleton row."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self) -> SystemSettings | None:
        return await self.session.get(SystemSettings, SYSTEM_SETTINGS_ID, populate_existing=True)

    async def last_recap_date(self) -> date | None:
        row = await self.get()
        return row.last_recap_date if row else None

    async def ensure_unlocked(self, action: str | None = None) -> None:
        """Raise ApprovalLockedError while payroll recap holds the lock."""
        row = await self.get()
        if row is not None and row.is_approval_locked:
            raise ApprovalLockedError(
                "Approvals are locked while payroll recap is in progress",
                action=action,
            )

    async def _get_or_create(self) -> SystemSettings:
        row = await self.get()
        if row is None:
            row = SystemSettings(id=SYSTEM_SETTINGS_ID, is_approval_locked=False)
            self.session.add(row)
            await self.session.flush()
        return row

    async def lock_approvals(self, actor_id: UUID) -> SystemSettings:
        row = await self._get_or_create()
        row.is_approval_locked = True
        row.locked_by = actor_id
        row.locked_at = utcnow()
        await self.session.commit()
        return row

    async def unlock_approvals(self) -> SystemSettings:
        row = await self._get_or_create()
        row.is_approval_locked = False
        row.locked_by = None
        row.locked_at = None
        await self.session.commit()
        return row

    async def complete_recap(self, recap_date: date) -> int:
        """Record the recap cutoff and flag the approved requests it covered.

        A request is covered when every entry is dated on or before the
        cutoff. Returns the number of requests newly flagged.
        """
        row = await self._get_or_create()
        row.last_recap_date = recap_date

        uncovered = select(OvertimeEntry.overtime_request_id).where(
            OvertimeEntry.work_date > recap_date
        )
        result = await self.session.execute(
            update(OvertimeRequest)
            .where(
                OvertimeRequest.status == "APPROVED",
                OvertimeRequest.is_recapped.is_(False),
                OvertimeRequest.id.not_in(uncovered),
            )
            .values(is_recapped=True, version=OvertimeRequest.version + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount or 0
