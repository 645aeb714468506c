"""Revision Ledger - append-only audit trail for overtime requests.

One immutable row per action taken on a request. The ledger is written
after the state transition has committed; a failed write is logged,
counted and returned to the caller instead of being raised, so that a lost
audit line never undoes an approval.

No update or delete operation exists on this service.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_workflow.errors import LedgerWriteFailure
from overtime_workflow.metrics import registry
from overtime_workflow.models import OvertimeRevision
from overtime_workflow.services.revision_changes import Changes, changes_from_dict
from overtime_workflow.services.state_machine import RevisionAction

logger = logging.getLogger(__name__)


DEFAULT_COMMENTS: dict[str, str] = {
    RevisionAction.SUBMITTED: "Overtime request submitted",
    RevisionAction.EDITED: "Overtime request edited by employee",
    RevisionAction.RESUBMITTED: "Overtime request resubmitted after revision",
    RevisionAction.APPROVED_SUPERVISOR: "Approved by supervisor",
    RevisionAction.REJECTED_SUPERVISOR: "Rejected by supervisor",
    RevisionAction.APPROVED_DIVHEAD: "Approved by division head",
    RevisionAction.REJECTED_DIVHEAD: "Rejected by division head",
    RevisionAction.REVISION_REQUESTED: "Revision requested",
    RevisionAction.ADMIN_REJECTED: "Rejected by admin",
    RevisionAction.FINAL_APPROVED: "Finally approved",
    RevisionAction.FINAL_REJECTED: "Finally rejected",
    RevisionAction.DELETED: "Overtime request deleted",
}


@dataclass(frozen=True)
class LedgerResult:
    """Outcome of a ledger append.

    Exactly one of ``entry`` and ``failure`` is set. A failure means the
    transition itself still committed.
    """

    entry: OvertimeRevision | None = None
    failure: LedgerWriteFailure | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class RevisionLedger:
    """Append-only revision ledger."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def append(
        self,
        request_id: UUID,
        revised_by: UUID,
        changes: Changes,
        comment: str | None = None,
    ) -> LedgerResult:
        """Write one ledger entry in its own transaction.

        Must be called after the transition it records has committed.
        """
        action = changes.action.value
        entry = OvertimeRevision(
            overtime_request_id=request_id,
            revised_by=revised_by,
            action=action,
            changes=changes.to_dict(),
            comment=comment or DEFAULT_COMMENTS.get(action),
        )

        try:
            await self._write(entry)
        except SQLAlchemyError as e:
            await self.session.rollback()
            failure = LedgerWriteFailure(request_id, action, str(e))
            logger.exception(
                "Revision ledger write failed for overtime request %s (%s); "
                "transition is committed",
                request_id,
                action,
            )
            registry.increment("ledger_write_failures_total", {"action": action})
            return LedgerResult(failure=failure)

        return LedgerResult(entry=entry)

    async def _write(self, entry: OvertimeRevision) -> None:
        self.session.add(entry)
        await self.session.commit()

    async def history(self, request_id: UUID) -> list[OvertimeRevision]:
        """All entries for a request, oldest first; id breaks timestamp ties."""
        result = await self.session.execute(
            select(OvertimeRevision)
            .where(OvertimeRevision.overtime_request_id == request_id)
            .order_by(OvertimeRevision.created_at, OvertimeRevision.id)
        )
        return list(result.scalars().all())

    async def typed_history(self, request_id: UUID) -> list[tuple[OvertimeRevision, Changes]]:
        """History with each payload parsed back into its typed form."""
        return [(entry, changes_from_dict(entry.changes)) for entry in await self.history(request_id)]
