"""Overtime workflow service - lifecycle of a single overtime request.

Operations:
- submit / edit / resubmit: owner-authored changes
- approve_as_supervisor / reject_as_supervisor: first approval tier
- approve_as_division_head / reject_as_division_head: second approval tier
- final_approve / final_reject: single-authority decision
- request_revision: send the request back to its owner
- admin_reject: override an approved request and reverse its balance credit
- delete: soft delete by the owner or a system administrator

Every transition reads the request with SELECT ... FOR UPDATE and writes
the new status with UPDATE ... WHERE status = <observed status> AND
version = <observed version> in the same transaction. If another
transaction got there first the update matches no row and the caller
receives ConflictError with nothing changed. The revision ledger entry
is written only after that transaction commits.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, AsyncIterator, Callable, Iterable, Mapping
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_workflow.calculators.overtime_totals import (
    EntryInput,
    compute_total_amount,
    compute_total_hours,
    validate_entries,
)
from overtime_workflow.config import Settings
from overtime_workflow.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from overtime_workflow.metrics import registry
from overtime_workflow.models import Employee, OvertimeEntry, OvertimeRequest, OvertimeRevision, utcnow
from overtime_workflow.services.balance_store import BalanceStore
from overtime_workflow.services.directory import EmployeeDirectory
from overtime_workflow.services.recap_lock import RecapLockService
from overtime_workflow.services.revision_changes import (
    AdminRejectedChanges,
    ApprovalTier,
    Changes,
    DeletedChanges,
    EditedChanges,
    FinalDecisionChanges,
    RequestSummary,
    ResubmittedChanges,
    RevisionRequestedChanges,
    SubmittedChanges,
    TierDecisionChanges,
)
from overtime_workflow.services.revision_ledger import LedgerResult, RevisionLedger
from overtime_workflow.services.state_machine import (
    OvertimeStateMachine,
    OvertimeStatus,
    RevisionAction,
    TierDecision,
)

logger = logging.getLogger(__name__)

ADMIN_OVERRIDE_PREFIX = "[ADMIN OVERRIDE]"

# Statuses whose entry dates block the same date on another request
_CLAIMED_STATUSES = (
    OvertimeStatus.PENDING.value,
    OvertimeStatus.REVISION_REQUESTED.value,
    OvertimeStatus.APPROVED.value,
)


@dataclass(frozen=True)
class TransitionResult:
    """Updated request plus the outcome of its ledger write."""

    request: OvertimeRequest
    revision: LedgerResult

    @property
    def revision_entry(self) -> OvertimeRevision | None:
        return self.revision.entry


def _require_comment(comment: str | None, what: str) -> str:
    if comment is None or not comment.strip():
        raise ValidationError(f"A comment is required when {what}")
    return comment.strip()


def _summary(total_hours: Decimal, total_amount: Decimal, entries_count: int) -> RequestSummary:
    return RequestSummary(
        total_hours=Decimal(total_hours),
        total_amount=Decimal(total_amount),
        entries_count=entries_count,
    )


def _entry_snapshot(entries: Iterable[OvertimeEntry]) -> tuple[EntryInput, ...]:
    return tuple(
        EntryInput(work_date=e.work_date, hours=Decimal(e.hours), description=e.description)
        for e in entries
    )


class OvertimeWorkflowService:
    """State machine driver for overtime requests."""

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        ledger: RevisionLedger | None = None,
        clock: Callable[[], date] | None = None,
    ):
        self.session = session
        self.settings = settings
        self.ledger = ledger or RevisionLedger(session)
        self.clock = clock or date.today
        self.balances = BalanceStore(session)
        self.directory = EmployeeDirectory(session)
        self.recap = RecapLockService(session)

    # ===== Loading =====

    async def _load(self, request_id: UUID, *, for_update: bool = False) -> OvertimeRequest:
        stmt = (
            select(OvertimeRequest)
            .where(OvertimeRequest.id == request_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        request = result.scalar_one_or_none()
        if request is None:
            raise NotFoundError(f"Overtime request {request_id} not found")
        return request

    async def get_request(self, request_id: UUID) -> OvertimeRequest:
        """Load a request with its entries."""
        return await self._load(request_id)

    async def list_for_employee(
        self,
        employee_id: UUID,
        include_deleted: bool = False,
    ) -> list[OvertimeRequest]:
        stmt = select(OvertimeRequest).where(OvertimeRequest.employee_id == employee_id)
        if not include_deleted:
            stmt = stmt.where(OvertimeRequest.status != OvertimeStatus.DELETED.value)
        result = await self.session.execute(stmt.order_by(OvertimeRequest.submitted_at.desc()))
        return list(result.scalars().all())

    async def list_pending_approvals(self, approver_id: UUID) -> list[OvertimeRequest]:
        """Requests waiting on this approver. Admins see every pending request."""
        approver = await self.directory.require(approver_id)
        stmt = select(OvertimeRequest).where(
            OvertimeRequest.status == OvertimeStatus.PENDING.value
        )
        if not approver.is_admin:
            stmt = stmt.where(OvertimeRequest.current_approver_id == approver_id)
        result = await self.session.execute(stmt.order_by(OvertimeRequest.submitted_at))
        return list(result.scalars().all())

    async def get_revision_history(self, request_id: UUID) -> list[OvertimeRevision]:
        """Ledger entries for a request, oldest first."""
        await self._load(request_id)
        return await self.ledger.history(request_id)

    # ===== Transaction plumbing =====

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[None]:
        """Roll back everything done in the block if it raises."""
        try:
            yield
        except Exception:
            await self.session.rollback()
            raise

    async def _write_status(
        self,
        request: OvertimeRequest,
        expected_status: str,
        action: str | None = None,
        **values: Any,
    ) -> None:
        """Conditional update on the observed status and version.

        Raises ConflictError if the row no longer has ``expected_status`` or
        was written by anyone since it was read. The version check catches
        transitions that keep the status, such as a supervisor approval
        escalated to the division head.
        """
        values.setdefault("updated_at", utcnow())
        result = await self.session.execute(
            update(OvertimeRequest)
            .where(
                OvertimeRequest.id == request.id,
                OvertimeRequest.status == expected_status,
                OvertimeRequest.version == request.version,
            )
            .values(version=OvertimeRequest.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(
                f"Overtime request {request.id} changed concurrently; "
                f"expected status {expected_status}",
                from_status=expected_status,
                action=action,
            )

    async def _finish(
        self,
        request_id: UUID,
        actor_id: UUID,
        changes: Changes,
        comment: str | None,
    ) -> TransitionResult:
        """Commit the transition, then append its ledger entry."""
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        action = changes.action.value
        registry.increment("overtime_transitions_total", {"action": action})
        logger.info("Overtime request %s: %s by %s", request_id, action, actor_id)

        revision = await self.ledger.append(request_id, actor_id, changes, comment)
        request = await self._load(request_id)
        return TransitionResult(request=request, revision=revision)

    # ===== Validation helpers =====

    async def _validate_entries(
        self,
        employee_id: UUID,
        entries: Iterable[EntryInput | Mapping[str, Any]],
        exclude_request_id: UUID | None = None,
    ) -> list[EntryInput]:
        parsed = validate_entries(
            entries,
            today=self.clock(),
            settings=self.settings,
            last_recap_date=await self.recap.last_recap_date(),
        )

        stmt = (
            select(OvertimeEntry.work_date)
            .join(OvertimeRequest, OvertimeEntry.overtime_request_id == OvertimeRequest.id)
            .where(
                OvertimeRequest.employee_id == employee_id,
                OvertimeRequest.status.in_(_CLAIMED_STATUSES),
                OvertimeEntry.work_date.in_([e.work_date for e in parsed]),
            )
        )
        if exclude_request_id is not None:
            stmt = stmt.where(OvertimeRequest.id != exclude_request_id)
        taken = sorted({d for d in (await self.session.execute(stmt)).scalars()})
        if taken:
            raise ValidationError(
                "Some dates already have overtime requests",
                {"duplicate_dates": [d.isoformat() for d in taken]},
            )
        return parsed

    def _requires_two_tiers(self, request: OvertimeRequest) -> bool:
        return (
            self.settings.require_division_head_approval
            and request.supervisor_id is not None
            and request.division_head_id is not None
            and request.division_head_id != request.supervisor_id
        )

    async def _authorize_approver(
        self,
        request: OvertimeRequest,
        actor_id: UUID,
        tier_approver_id: UUID | None,
    ) -> Employee:
        actor = await self.directory.require(actor_id)
        if actor.is_admin:
            return actor
        if actor_id == request.employee_id:
            raise PermissionDeniedError("You cannot decide on your own overtime request")
        if actor_id not in (tier_approver_id, request.current_approver_id):
            raise PermissionDeniedError("You are not authorized to decide on this request")
        return actor

    async def _authorize_owner(self, request: OvertimeRequest, actor_id: UUID) -> None:
        if request.employee_id != actor_id:
            raise PermissionDeniedError("Only the owner may modify this overtime request")

    # ===== Owner operations =====

    async def submit(
        self,
        employee_id: UUID,
        entries: Iterable[EntryInput | Mapping[str, Any]],
    ) -> TransitionResult:
        """Create a PENDING request and hold its hours as pending."""
        async with self._unit_of_work():
            employee = await self.directory.require(employee_id)
            if not employee.is_active:
                raise PermissionDeniedError("Inactive employees cannot submit overtime")

            parsed = await self._validate_entries(employee_id, entries)
            total_hours = compute_total_hours(parsed)
            total_amount = compute_total_amount(total_hours, employee.overtime_rate, self.settings)
            approver_id = await self.directory.determine_approver(employee)
            division_head_id = await self.directory.division_head_id(employee)

            now = utcnow()
            request = OvertimeRequest(
                employee_id=employee_id,
                status=OvertimeStatus.PENDING.value,
                total_hours=total_hours,
                total_amount=total_amount,
                current_approver_id=approver_id,
                supervisor_id=employee.supervisor_id,
                division_head_id=division_head_id,
                submitted_at=now,
                updated_at=now,
                entries=[
                    OvertimeEntry(
                        work_date=e.work_date,
                        hours=e.hours,
                        description=e.description,
                    )
                    for e in parsed
                ],
            )
            self.session.add(request)
            await self.session.flush()
            await self.balances.add_pending(employee_id, total_hours)

        changes = SubmittedChanges(
            entries=tuple(parsed),
            total_hours=total_hours,
            total_amount=total_amount,
            current_approver_id=approver_id,
        )
        return await self._finish(request.id, employee_id, changes, None)

    async def edit(
        self,
        request_id: UUID,
        actor_id: UUID,
        entries: Iterable[EntryInput | Mapping[str, Any]],
    ) -> TransitionResult:
        """Replace the entries of an open request. Status is not changed."""
        async with self._unit_of_work():
            request = await self._load(request_id, for_update=True)
            await self._authorize_owner(request, actor_id)
            status = request.status
            OvertimeStateMachine.validate_action(RevisionAction.EDITED, status)

            employee = await self.directory.require(request.employee_id)
            parsed = await self._validate_entries(
                request.employee_id, entries, exclude_request_id=request.id
            )
            old_hours = Decimal(request.total_hours)
            before = _summary(request.total_hours, request.total_amount, len(request.entries))

            total_hours = compute_total_hours(parsed)
            total_amount = compute_total_amount(total_hours, employee.overtime_rate, self.settings)

            await self.session.execute(
                delete(OvertimeEntry)
                .where(OvertimeEntry.overtime_request_id == request.id)
                .execution_options(synchronize_session=False)
            )
            # Old rows are gone; the stale objects are replaced on reload.
            for e in parsed:
                request.entries.append(
                    OvertimeEntry(work_date=e.work_date, hours=e.hours, description=e.description)
                )
            await self._write_status(
                request,
                status,
                RevisionAction.EDITED.value,
                total_hours=total_hours,
                total_amount=total_amount,
            )

            delta = total_hours - old_hours
            if delta > 0:
                await self.balances.add_pending(request.employee_id, delta)
            elif delta < 0:
                await self.balances.release_pending(request.employee_id, -delta)

        changes = EditedChanges(
            before=before,
            after=_summary(total_hours, total_amount, len(parsed)),
            status=status,
        )
        return await self._finish(request_id, actor_id, changes, None)

    async def resubmit(
        self,
        request_id: UUID,
        actor_id: UUID,
        comment: str | None = None,
    ) -> TransitionResult:
        """Send a revised request back for review (REVISION_REQUESTED → PENDING)."""
        async with self._unit_of_work():
            request = await self._load(request_id, for_update=True)
            await self._authorize_owner(request, actor_id)
            action = RevisionAction.RESUBMITTED
            to_status = OvertimeStateMachine.validate_action(action, request.status)

            values: dict[str, Any] = {"status": to_status}
            cleared: ApprovalTier | None = None
            if request.division_head_status == TierDecision.REVISION_REQUESTED.value:
                cleared = ApprovalTier.DIVISION_HEAD
                values.update(division_head_status=None, division_head_comment=None, division_head_date=None)
            elif request.supervisor_status == TierDecision.REVISION_REQUESTED.value:
                cleared = ApprovalTier.SUPERVISOR
                values.update(supervisor_status=None, supervisor_comment=None, supervisor_date=None)

            await self._write_status(request, request.status, action.value, **values)

        changes = ResubmittedChanges(
            previous_status=OvertimeStatus.REVISION_REQUESTED.value,
            new_status=to_status,
            cleared_tier=cleared,
            current_approver_id=request.current_approver_id,
        )
        return await self._finish(request_id, actor_id, changes, comment)

    # ===== Approver operations =====

    async def _approve_final(
        self,
        request: OvertimeRequest,
        action: RevisionAction,
        actor_id: UUID,
        **values: Any,
    ) -> Decimal:
        """Mark APPROVED and move the hours from pending to the balance."""
        hours = Decimal(request.total_hours)
        await self._write_status(
            request,
            request.status,
            action.value,
            status=OvertimeStatus.APPROVED.value,
            approved_at=utcnow(),
            final_approver_id=actor_id,
            current_approver_id=None,
            **values,
        )
        await self.balances.credit_overtime(request.employee_id, hours)
        await self.balances.release_pending(request.employee_id, hours)
        return hours

    async def _reject(
        self,
        request: OvertimeRequest,
        action: RevisionAction,
        **values: Any,
    ) -> Decimal:
        """Mark REJECTED and release the pending hours. No balance credit."""
        hours = Decimal(request.total_hours)
        await self._write_status(
            request,
            request.status,
            action.value,
            status=OvertimeStatus.REJECTED.value,
            rejected_at=utcnow(),
            current_approver_id=None,
            **values,
        )
        await self.balances.release_pending(request.employee_id, hours)
        return hours

    async def approve_as_supervisor(
        self,
        request_id: UUID,
        actor_id: UUID,
        comment: str | None = None,
    ) -> TransitionResult:
        """Supervisor approval; final unless the division head must also approve."""
        action = RevisionAction.APPROVED_SUPERVISOR
        async with self._unit_of_work():
            await self.recap.ensure_unlocked(action.value)
            request = await self._load(request_id, for_update=True)
            previous = request.status
            OvertimeStateMachine.validate_action(action, previous)
            await self._authorize_approver(request, actor_id, request.supervisor_id)
            if request.supervisor_status == TierDecision.APPROVED.value:
                raise ConflictError(
                    "Supervisor has already approved this request",
                    from_status=previous,
                    action=action.value,
                )

            tier_values = {
                "supervisor_status": TierDecision.APPROVED.value,
                "supervisor_comment": comment,
                "supervisor_date": utcnow(),
            }
            if self._requires_two_tiers(request):
                escalated_to = request.division_head_id
                new_status = OvertimeStatus.PENDING.value
                OvertimeStateMachine.validate_transition(previous, new_status)
                await self._write_status(
                    request,
                    previous,
                    action.value,
                    status=new_status,
                    current_approver_id=escalated_to,
                    **tier_values,
                )
                credited = Decimal("0")
                released = Decimal("0")
            else:
                escalated_to = None
                new_status = OvertimeStatus.APPROVED.value
                credited = await self._approve_final(request, action, actor_id, **tier_values)
                released = credited

        changes = TierDecisionChanges(
            tier=ApprovalTier.SUPERVISOR,
            decision=TierDecision.APPROVED,
            previous_status=previous,
            new_status=new_status,
            hours_credited=credited,
            pending_released=released,
            escalated_to=escalated_to,
        )
        return await self._finish(request_id, actor_id, changes, comment)

    async def reject_as_supervisor(
        self,
        request_id: UUID,
        actor_id: UUID,
        comment: str | None,
    ) -> TransitionResult:
        action = RevisionAction.REJECTED_SUPERVISOR
        comment = _require_comment(comment, "rejecting a request")
        async with self._unit_of_work():
            await self.recap.ensure_unlocked(action.value)
            request = await self._load(request_id, for_update=True)
            previous = request.status
            new_status = OvertimeStateMachine.validate_action(action, previous)
            await self._authorize_approver(request, actor_id, request.supervisor_id)
            released = await self._reject(
                request,
                action,
                supervisor_status=TierDecision.REJECTED.value,
                supervisor_comment=comment,
                supervisor_date=utcnow(),
            )

        changes = TierDecisionChanges(
            tier=ApprovalTier.SUPERVISOR,
            decision=TierDecision.REJECTED,
            previous_status=previous,
            new_status=new_status,
            pending_released=released,
        )
        return await self._finish(request_id, actor_id, changes, comment)

    def _ensure_supervisor_approved(self, request: OvertimeRequest, action: RevisionAction) -> None:
        if self._requires_two_tiers(request) and (
            request.supervisor_status != TierDecision.APPROVED.value
        ):
            raise ConflictError(
                "Supervisor approval is required before the division head can decide",
                from_status=request.status,
                action=action.value,
            )

    async def approve_as_division_head(
        self,
        request_id: UUID,
        actor_id: UUID,
        comment: str | None = None,
    ) -> TransitionResult:
        """Division head approval. Always final."""
        action = RevisionAction.APPROVED_DIVHEAD
        async with self._unit_of_work():
            await self.recap.ensure_unlocked(action.value)
            request = await self._load(request_id, for_update=True)
            previous = request.status
            new_status = OvertimeStateMachine.validate_action(action, previous)
            await self._authorize_approver(request, actor_id, request.division_head_id)
            self._ensure_supervisor_approved(request, action)
            credited = await self._approve_final(
                request,
                action,
                actor_id,
                division_head_status=TierDecision.APPROVED.value,
                division_head_comment=comment,
                division_head_date=utcnow(),
            )

        changes = TierDecisionChanges(
            tier=ApprovalTier.DIVISION_HEAD,
            decision=TierDecision.APPROVED,
            previous_status=previous,
            new_status=new_status,
            hours_credited=credited,
            pending_released=credited,
        )
        return await self._finish(request_id, actor_id, changes, comment)

    async def reject_as_division_head(
        self,
        request_id: UUID,
        actor_id: UUID,
        comment: str | None,
    ) -> TransitionResult:
        action = RevisionAction.REJECTED_DIVHEAD
        comment = _require_comment(comment, "rejecting a request")
        async with self._unit_of_work():
            await self.recap.ensure_unlocked(action.value)
            request = await self._load(request_id, for_update=True)
            previous = request.status
            new_status = OvertimeStateMachine.validate_action(action, previous)
            await self._authorize_approver(request, actor_id, request.division_head_id)
            self._ensure_supervisor_approved(request, action)
            released = await self._reject(
                request,
                action,
                division_head_status=TierDecision.REJECTED.value,
                division_head_comment=comment,
                division_head_date=utcnow(),
            )

        changes = TierDecisionChanges(
            tier=ApprovalTier.DIVISION_HEAD,
            decision=TierDecision.REJECTED,
            previous_status=previous,
            new_status=new_status,
            pending_released=released,
        )
        return await self._finish(request_id, actor_id, changes, comment)

    async def final_approve(
        self,
        request_id: UUID,
        actor_id: UUID,
        comment: str | None = None,
    ) -> TransitionResult:
        """Approve in one step, bypassing the tier chain."""
        action = RevisionAction.FINAL_APPROVED
        async with self._unit_of_work():
            await self.recap.ensure_unlocked(action.value)
            request = await self._load(request_id, for_update=True)
            previous = request.status
            new_status = OvertimeStateMachine.validate_action(action, previous)
            await self._authorize_approver(request, actor_id, None)
            extra = {"supervisor_comment": comment} if comment else {}
            credited = await self._approve_final(request, action, actor_id, **extra)

        changes = FinalDecisionChanges(
            decision=TierDecision.APPROVED,
            previous_status=previous,
            new_status=new_status,
            hours_credited=credited,
            pending_released=credited,
        )
        return await self._finish(request_id, actor_id, changes, comment)

    async def final_reject(
        self,
        request_id: UUID,
        actor_id: UUID,
        comment: str | None,
    ) -> TransitionResult:
        action = RevisionAction.FINAL_REJECTED
        comment = _require_comment(comment, "rejecting a request")
        async with self._unit_of_work():
            await self.recap.ensure_unlocked(action.value)
            request = await self._load(request_id, for_update=True)
            previous = request.status
            new_status = OvertimeStateMachine.validate_action(action, previous)
            await self._authorize_approver(request, actor_id, None)
            released = await self._reject(
                request,
                action,
                final_approver_id=actor_id,
                supervisor_comment=comment,
            )

        changes = FinalDecisionChanges(
            decision=TierDecision.REJECTED,
            previous_status=previous,
            new_status=new_status,
            pending_released=released,
        )
        return await self._finish(request_id, actor_id, changes, comment)

    async def request_revision(
        self,
        request_id: UUID,
        approver_id: UUID,
        comment: str | None,
    ) -> TransitionResult:
        """Send a PENDING request back to its owner. Balances are untouched."""
        action = RevisionAction.REVISION_REQUESTED
        comment = _require_comment(comment, "requesting a revision")
        async with self._unit_of_work():
            await self.recap.ensure_unlocked(action.value)
            request = await self._load(request_id, for_update=True)
            previous = request.status
            new_status = OvertimeStateMachine.validate_action(action, previous)

            if request.supervisor_status == TierDecision.APPROVED.value:
                tier = ApprovalTier.DIVISION_HEAD
                await self._authorize_approver(request, approver_id, request.division_head_id)
                tier_values = {
                    "division_head_status": TierDecision.REVISION_REQUESTED.value,
                    "division_head_comment": comment,
                    "division_head_date": utcnow(),
                }
            else:
                tier = ApprovalTier.SUPERVISOR
                await self._authorize_approver(request, approver_id, request.supervisor_id)
                tier_values = {
                    "supervisor_status": TierDecision.REVISION_REQUESTED.value,
                    "supervisor_comment": comment,
                    "supervisor_date": utcnow(),
                }

            await self._write_status(
                request, previous, action.value, status=new_status, **tier_values
            )

        changes = RevisionRequestedChanges(
            tier=tier,
            previous_status=previous,
            new_status=new_status,
        )
        return await self._finish(request_id, approver_id, changes, comment)

    # ===== Administrative operations =====

    async def admin_reject(
        self,
        request_id: UUID,
        admin_id: UUID,
        comment: str | None,
    ) -> TransitionResult:
        """Override an approved request and deduct its hours (clamped at zero).

        The original approval metadata is read from the locked row and kept
        in the ledger entry, since the row itself is overwritten here.
        """
        action = RevisionAction.ADMIN_REJECTED
        comment = _require_comment(comment, "overriding an approved request")
        async with self._unit_of_work():
            await self.directory.require_admin(admin_id, system_only=True)
            await self.recap.ensure_unlocked(action.value)
            request = await self._load(request_id, for_update=True)
            previous = request.status
            new_status = OvertimeStateMachine.validate_action(action, previous)
            if request.is_recapped:
                raise ConflictError(
                    "Cannot reject overtime that has already been processed in payroll recap",
                    from_status=previous,
                    action=action.value,
                )

            original_approver = request.final_approver_id
            original_approved_at = request.approved_at
            original_comment = request.supervisor_comment

            debit = await self.balances.debit_overtime(
                request.employee_id, Decimal(request.total_hours)
            )
            await self._write_status(
                request,
                previous,
                action.value,
                status=new_status,
                rejected_at=utcnow(),
                current_approver_id=None,
                supervisor_comment=f"{ADMIN_OVERRIDE_PREFIX} {comment}",
            )

        changes = AdminRejectedChanges(
            previous_status=previous,
            new_status=new_status,
            original_approver=original_approver,
            original_approved_at=original_approved_at,
            original_supervisor_comment=original_comment,
            hours_deducted=debit.deducted,
            balance_before=debit.before,
            balance_after=debit.after,
        )
        logger.warning(
            "Approved overtime request %s overridden by admin %s; %s hours deducted",
            request_id,
            admin_id,
            debit.deducted,
        )
        return await self._finish(request_id, admin_id, changes, comment)

    async def delete(
        self,
        request_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> TransitionResult:
        """Soft delete. Releases pending hours; never touches the current balance."""
        action = RevisionAction.DELETED
        async with self._unit_of_work():
            request = await self._load(request_id, for_update=True)
            actor = await self.directory.require(actor_id)
            if request.employee_id != actor_id and not actor.is_system_admin:
                raise PermissionDeniedError(
                    "Only the owner or a system administrator may delete this request"
                )
            previous = request.status
            new_status = OvertimeStateMachine.validate_action(action, previous)
            snapshot = _entry_snapshot(request.entries)

            released = Decimal("0")
            if OvertimeStateMachine.holds_pending_hours(previous):
                released = Decimal(request.total_hours)
                await self.balances.release_pending(request.employee_id, released)

            await self._write_status(
                request,
                previous,
                action.value,
                status=new_status,
                deleted_at=utcnow(),
                current_approver_id=None,
            )

        changes = DeletedChanges(
            previous_status=previous,
            reason=reason,
            pending_released=released,
            deleted_entries=snapshot,
        )
        return await self._finish(request_id, actor_id, changes, reason)
