"""Tests for the overtime request workflow."""

import asyncio
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import HealthCheck, given, settings as hypothesis_settings, strategies as st
from sqlalchemy import update

from conftest import TODAY, clock, entry, set_recap_state
from overtime_workflow.errors import (
    ApprovalLockedError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from overtime_workflow.metrics import registry
from overtime_workflow.models import OvertimeRequest
from overtime_workflow.services import OvertimeWorkflowService, RecapLockService
from overtime_workflow.services.revision_changes import changes_from_dict

pytestmark = pytest.mark.asyncio

YESTERDAY = TODAY - timedelta(days=1)
TWO_DAYS_AGO = TODAY - timedelta(days=2)


async def _balance(service: OvertimeWorkflowService, employee_id):
    return await service.balances.get_overtime_balance(employee_id)


class TestSubmit:
    async def test_submit_creates_pending_request(self, service, org):
        result = await service.submit(
            org.employee_id, [entry(YESTERDAY, "3"), entry(TWO_DAYS_AGO, "1.5")]
        )
        request = result.request

        assert request.status == "PENDING"
        assert request.total_hours == Decimal("4.5")
        # 4.5 / 8 * 40000
        assert request.total_amount == Decimal("22500.00")
        assert request.current_approver_id == org.supervisor_id
        assert request.supervisor_id == org.supervisor_id
        assert request.division_head_id == org.division_head_id
        assert [e.work_date for e in request.entries] == [TWO_DAYS_AGO, YESTERDAY]

        assert result.revision.ok
        assert result.revision.entry.action == "SUBMITTED"
        assert result.revision.entry.changes["kind"] == "submitted"
        assert registry.value("overtime_transitions_total", {"action": "SUBMITTED"}) == 1

        balance = await _balance(service, org.employee_id)
        assert balance.pending_hours == Decimal("4.5")
        assert balance.current_balance == Decimal("0")

    async def test_approver_falls_back_to_division_head(self, service, org):
        result = await service.submit(org.contract_id, [entry(YESTERDAY)])
        assert result.request.current_approver_id == org.division_head_id
        assert result.request.supervisor_id is None

    async def test_division_head_gets_admin_as_approver(self, service, org):
        result = await service.submit(org.division_head_id, [entry(YESTERDAY)])
        assert result.request.current_approver_id == org.admin_id
        assert result.request.division_head_id is None

    async def test_inactive_employee_cannot_submit(self, service, org):
        with pytest.raises(PermissionDeniedError):
            await service.submit(org.inactive_id, [entry(YESTERDAY)])

    async def test_unknown_employee(self, service):
        with pytest.raises(NotFoundError):
            await service.submit(uuid4(), [entry(YESTERDAY)])

    async def test_invalid_entries_leave_nothing_behind(self, service, org):
        with pytest.raises(ValidationError):
            await service.submit(org.employee_id, [entry(TODAY + timedelta(days=1))])

        assert await service.list_for_employee(org.employee_id) == []
        balance = await _balance(service, org.employee_id)
        assert balance.pending_hours == Decimal("0")

    async def test_date_claimed_by_another_request(self, service, org):
        await service.submit(org.employee_id, [entry(YESTERDAY)])

        with pytest.raises(ValidationError) as exc_info:
            await service.submit(org.employee_id, [entry(TWO_DAYS_AGO), entry(YESTERDAY)])
        assert exc_info.value.details == {"duplicate_dates": [YESTERDAY.isoformat()]}

    async def test_rejected_request_frees_its_dates(self, service, org):
        first = await service.submit(org.employee_id, [entry(YESTERDAY)])
        await service.reject_as_supervisor(first.request.id, org.supervisor_id, "Wrong project")

        second = await service.submit(org.employee_id, [entry(YESTERDAY)])
        assert second.request.status == "PENDING"

    async def test_dates_on_or_before_recap_rejected(self, session, service, org):
        await set_recap_state(session, last_recap_date=TWO_DAYS_AGO)

        with pytest.raises(ValidationError, match="payroll recap"):
            await service.submit(org.employee_id, [entry(TWO_DAYS_AGO)])
        result = await service.submit(org.employee_id, [entry(YESTERDAY)])
        assert result.request.status == "PENDING"


class TestEditAndResubmit:
    async def test_edit_replaces_entries_and_moves_pending(self, service, org):
        submitted = await service.submit(
            org.employee_id, [entry(YESTERDAY, "3"), entry(TWO_DAYS_AGO, "2")]
        )
        edited = await service.edit(
            submitted.request.id, org.employee_id, [entry(YESTERDAY, "1")]
        )

        assert edited.request.status == "PENDING"
        assert edited.request.total_hours == Decimal("1")
        assert [(e.work_date, e.hours) for e in edited.request.entries] == [
            (YESTERDAY, Decimal("1"))
        ]
        changes = changes_from_dict(edited.revision.entry.changes)
        assert changes.before.total_hours == Decimal("5")
        assert changes.after.total_hours == Decimal("1")
        assert changes.after.entries_count == 1

        balance = await _balance(service, org.employee_id)
        assert balance.pending_hours == Decimal("1")

    async def test_edit_may_reuse_own_dates(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "2")])
        edited = await service.edit(
            submitted.request.id, org.employee_id, [entry(YESTERDAY, "4")]
        )
        assert edited.request.total_hours == Decimal("4")
        balance = await _balance(service, org.employee_id)
        assert balance.pending_hours == Decimal("4")

    async def test_only_owner_may_edit(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        with pytest.raises(PermissionDeniedError):
            await service.edit(submitted.request.id, org.supervisor_id, [entry(YESTERDAY)])

    async def test_approved_request_is_frozen(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        await service.approve_as_supervisor(submitted.request.id, org.supervisor_id)

        with pytest.raises(ConflictError):
            await service.edit(submitted.request.id, org.employee_id, [entry(YESTERDAY, "1")])

    async def test_revision_round_trip(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "3")])
        request_id = submitted.request.id

        revised = await service.request_revision(request_id, org.supervisor_id, "Split per day")
        assert revised.request.status == "REVISION_REQUESTED"
        assert revised.request.supervisor_status == "REVISION_REQUESTED"
        balance = await _balance(service, org.employee_id)
        assert balance.pending_hours == Decimal("3")

        edited = await service.edit(request_id, org.employee_id, [entry(YESTERDAY, "2")])
        assert edited.request.status == "REVISION_REQUESTED"

        resubmitted = await service.resubmit(request_id, org.employee_id)
        assert resubmitted.request.status == "PENDING"
        assert resubmitted.request.supervisor_status is None
        assert resubmitted.revision.entry.changes["cleared_tier"] == "SUPERVISOR"

        approved = await service.approve_as_supervisor(request_id, org.supervisor_id)
        assert approved.request.status == "APPROVED"
        balance = await _balance(service, org.employee_id)
        assert balance.current_balance == Decimal("2")
        assert balance.pending_hours == Decimal("0")

    async def test_resubmit_requires_revision_requested(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        with pytest.raises(ConflictError):
            await service.resubmit(submitted.request.id, org.employee_id)

    async def test_request_revision_requires_comment(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        with pytest.raises(ValidationError):
            await service.request_revision(submitted.request.id, org.supervisor_id, " ")


class TestApproval:
    async def test_supervisor_approval_credits_balance(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "4")])
        result = await service.approve_as_supervisor(
            submitted.request.id, org.supervisor_id, "Thanks"
        )

        request = result.request
        assert request.status == "APPROVED"
        assert request.supervisor_status == "APPROVED"
        assert request.supervisor_comment == "Thanks"
        assert request.final_approver_id == org.supervisor_id
        assert request.approved_at is not None
        assert request.current_approver_id is None

        changes = result.revision.entry.changes
        assert Decimal(changes["hours_credited"]) == Decimal("4")
        assert Decimal(changes["pending_released"]) == Decimal("4")

        balance = await _balance(service, org.employee_id)
        assert balance.current_balance == Decimal("4")
        assert balance.pending_hours == Decimal("0")

    async def test_rejection_releases_pending_without_credit(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "4")])
        result = await service.reject_as_supervisor(
            submitted.request.id, org.supervisor_id, "Not approved in advance"
        )

        assert result.request.status == "REJECTED"
        assert result.request.rejected_at is not None
        balance = await _balance(service, org.employee_id)
        assert balance.current_balance == Decimal("0")
        assert balance.pending_hours == Decimal("0")

    async def test_reject_requires_comment(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        with pytest.raises(ValidationError):
            await service.reject_as_supervisor(submitted.request.id, org.supervisor_id, None)

    async def test_self_approval_forbidden(self, service, org):
        submitted = await service.submit(org.supervisor_id, [entry(YESTERDAY)])
        with pytest.raises(PermissionDeniedError):
            await service.approve_as_supervisor(submitted.request.id, org.supervisor_id)

    async def test_unrelated_employee_cannot_approve(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        with pytest.raises(PermissionDeniedError):
            await service.approve_as_supervisor(submitted.request.id, org.contract_id)

    async def test_hr_may_final_approve(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "2")])
        result = await service.final_approve(submitted.request.id, org.hr_id)

        assert result.request.status == "APPROVED"
        assert result.revision.entry.action == "FINAL_APPROVED"
        assert result.revision.entry.comment == "Finally approved"

    async def test_final_reject(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "2")])
        result = await service.final_reject(submitted.request.id, org.admin_id, "Duplicate claim")

        assert result.request.status == "REJECTED"
        assert result.request.final_approver_id == org.admin_id
        balance = await _balance(service, org.employee_id)
        assert balance.pending_hours == Decimal("0")

    async def test_second_decision_conflicts(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "2")])
        await service.approve_as_supervisor(submitted.request.id, org.supervisor_id)

        with pytest.raises(ConflictError) as exc_info:
            await service.reject_as_supervisor(submitted.request.id, org.supervisor_id, "Oops")
        assert exc_info.value.from_status == "APPROVED"

        balance = await _balance(service, org.employee_id)
        assert balance.current_balance == Decimal("2")


class TestTwoTierApproval:
    @pytest.fixture
    def service(self, session, two_tier_settings):
        return OvertimeWorkflowService(session, two_tier_settings, clock=clock)

    async def test_supervisor_escalates_to_division_head(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "3")])
        escalated = await service.approve_as_supervisor(submitted.request.id, org.supervisor_id)

        assert escalated.request.status == "PENDING"
        assert escalated.request.supervisor_status == "APPROVED"
        assert escalated.request.current_approver_id == org.division_head_id
        assert escalated.revision.entry.changes["escalated_to"] == str(org.division_head_id)
        balance = await _balance(service, org.employee_id)
        assert balance.current_balance == Decimal("0")
        assert balance.pending_hours == Decimal("3")

        approved = await service.approve_as_division_head(
            submitted.request.id, org.division_head_id, "OK"
        )
        assert approved.request.status == "APPROVED"
        assert approved.request.division_head_status == "APPROVED"
        balance = await _balance(service, org.employee_id)
        assert balance.current_balance == Decimal("3")
        assert balance.pending_hours == Decimal("0")

    async def test_division_head_waits_for_supervisor(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        with pytest.raises(ConflictError, match="Supervisor approval is required"):
            await service.approve_as_division_head(submitted.request.id, org.division_head_id)

    async def test_supervisor_cannot_approve_twice(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        await service.approve_as_supervisor(submitted.request.id, org.supervisor_id)
        with pytest.raises(ConflictError, match="already approved"):
            await service.approve_as_supervisor(submitted.request.id, org.supervisor_id)

    async def test_division_head_rejection(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "2")])
        await service.approve_as_supervisor(submitted.request.id, org.supervisor_id)
        rejected = await service.reject_as_division_head(
            submitted.request.id, org.division_head_id, "Budget exceeded"
        )

        assert rejected.request.status == "REJECTED"
        assert rejected.request.division_head_comment == "Budget exceeded"
        balance = await _balance(service, org.employee_id)
        assert balance.pending_hours == Decimal("0")
        assert balance.current_balance == Decimal("0")

    async def test_division_head_revision_clears_only_its_tier(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "2")])
        request_id = submitted.request.id
        await service.approve_as_supervisor(request_id, org.supervisor_id)

        revised = await service.request_revision(request_id, org.division_head_id, "Add detail")
        assert revised.request.division_head_status == "REVISION_REQUESTED"
        assert revised.revision.entry.changes["tier"] == "DIVISION_HEAD"

        resubmitted = await service.resubmit(request_id, org.employee_id)
        assert resubmitted.request.division_head_status is None
        assert resubmitted.request.supervisor_status == "APPROVED"

        approved = await service.approve_as_division_head(request_id, org.division_head_id)
        assert approved.request.status == "APPROVED"


class TestAdminReject:
    async def test_full_scenario(self, service, org):
        """Submit, approve, admin-reject: balance returns and history tells the story."""
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "5")])
        request_id = submitted.request.id
        approved = await service.approve_as_supervisor(request_id, org.supervisor_id, "Good")
        approved_at = approved.request.approved_at

        result = await service.admin_reject(request_id, org.admin_id, "Not authorised overtime")

        assert result.request.status == "REJECTED"
        assert result.request.supervisor_comment == "[ADMIN OVERRIDE] Not authorised overtime"
        balance = await _balance(service, org.employee_id)
        assert balance.current_balance == Decimal("0")

        history = await service.get_revision_history(request_id)
        assert [r.action for r in history] == ["SUBMITTED", "APPROVED_SUPERVISOR", "ADMIN_REJECTED"]
        override = changes_from_dict(history[-1].changes)
        assert override.original_approver == org.supervisor_id
        assert override.original_approved_at == approved_at
        assert override.original_supervisor_comment == "Good"
        assert override.hours_deducted == Decimal("5")
        assert override.balance_before == Decimal("5")
        assert override.balance_after == Decimal("0")

    async def test_deduction_is_clamped(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "5")])
        await service.approve_as_supervisor(submitted.request.id, org.supervisor_id)
        await service.balances.mark_paid(org.employee_id, org.admin_id)
        await service.balances.adjust_overtime(org.employee_id, Decimal("2"), "Bonus", org.admin_id)

        result = await service.admin_reject(submitted.request.id, org.admin_id, "Reversal")

        changes = result.revision.entry.changes
        assert Decimal(changes["balance_before"]) == Decimal("2")
        assert Decimal(changes["balance_after"]) == Decimal("0")
        assert Decimal(changes["hours_deducted"]) == Decimal("2")

    async def test_hr_is_not_enough(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        await service.approve_as_supervisor(submitted.request.id, org.supervisor_id)
        with pytest.raises(PermissionDeniedError):
            await service.admin_reject(submitted.request.id, org.hr_id, "No")

    async def test_only_from_approved(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        with pytest.raises(ConflictError):
            await service.admin_reject(submitted.request.id, org.admin_id, "No")

    async def test_recapped_request_cannot_be_overridden(self, session, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        await service.approve_as_supervisor(submitted.request.id, org.supervisor_id)
        flagged = await RecapLockService(session).complete_recap(YESTERDAY)
        assert flagged == 1

        with pytest.raises(ConflictError, match="payroll recap"):
            await service.admin_reject(submitted.request.id, org.admin_id, "Too late")


class TestRecapLock:
    async def test_decisions_blocked_while_locked(self, session, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        await RecapLockService(session).lock_approvals(org.admin_id)

        with pytest.raises(ApprovalLockedError) as exc_info:
            await service.approve_as_supervisor(submitted.request.id, org.supervisor_id)
        assert exc_info.value.code == "APPROVAL_LOCKED"

        await RecapLockService(session).unlock_approvals()
        result = await service.approve_as_supervisor(submitted.request.id, org.supervisor_id)
        assert result.request.status == "APPROVED"

    async def test_owner_actions_allowed_while_locked(self, session, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        await set_recap_state(session, locked=True)

        edited = await service.edit(submitted.request.id, org.employee_id, [entry(YESTERDAY, "1")])
        assert edited.request.total_hours == Decimal("1")


class TestDelete:
    async def test_owner_deletes_pending(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "3")])
        result = await service.delete(submitted.request.id, org.employee_id, "Entered twice")

        assert result.request.status == "DELETED"
        assert result.request.deleted_at is not None
        changes = changes_from_dict(result.revision.entry.changes)
        assert changes.pending_released == Decimal("3")
        assert changes.deleted_entries[0].work_date == YESTERDAY
        assert result.revision.entry.comment == "Entered twice"

        balance = await _balance(service, org.employee_id)
        assert balance.pending_hours == Decimal("0")
        assert await service.list_for_employee(org.employee_id) == []

    async def test_deleting_rejected_does_not_touch_balances(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "3")])
        await service.reject_as_supervisor(submitted.request.id, org.supervisor_id, "No")
        result = await service.delete(submitted.request.id, org.employee_id)

        assert changes_from_dict(result.revision.entry.changes).pending_released == Decimal("0")

    async def test_approved_cannot_be_deleted(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        await service.approve_as_supervisor(submitted.request.id, org.supervisor_id)
        with pytest.raises(ConflictError):
            await service.delete(submitted.request.id, org.employee_id)

    async def test_system_admin_may_delete(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        result = await service.delete(submitted.request.id, org.admin_id)
        assert result.request.status == "DELETED"

    async def test_others_may_not_delete(self, service, org):
        submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
        with pytest.raises(PermissionDeniedError):
            await service.delete(submitted.request.id, org.hr_id)


class TestConcurrency:
    async def test_stale_status_write_conflicts(self, session_factory, settings, org):
        """The conditional update refuses to overwrite a status it did not observe."""
        async with session_factory() as s1:
            service = OvertimeWorkflowService(s1, settings, clock=clock)
            submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
            request_id = submitted.request.id

        async with session_factory() as a, session_factory() as b:
            first = OvertimeWorkflowService(a, settings, clock=clock)
            stale = await first.get_request(request_id)
            await a.commit()

            await b.execute(
                update(OvertimeRequest)
                .where(OvertimeRequest.id == request_id)
                .values(status="APPROVED")
            )
            await b.commit()

            with pytest.raises(ConflictError) as exc_info:
                await first._write_status(stale, "PENDING", "APPROVED_SUPERVISOR", status="REJECTED")
            assert exc_info.value.from_status == "PENDING"
            await a.rollback()

    async def test_decision_after_concurrent_decision(self, session_factory, settings, org):
        async with session_factory() as s1:
            service = OvertimeWorkflowService(s1, settings, clock=clock)
            submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "2")])
            request_id = submitted.request.id

        async with session_factory() as a, session_factory() as b:
            approver = OvertimeWorkflowService(a, settings, clock=clock)
            rejecter = OvertimeWorkflowService(b, settings, clock=clock)

            await approver.approve_as_supervisor(request_id, org.supervisor_id)
            with pytest.raises(ConflictError):
                await rejecter.reject_as_supervisor(request_id, org.admin_id, "Too late")

            balance = await approver.balances.get_overtime_balance(org.employee_id)
            assert balance.current_balance == Decimal("2")
            assert balance.pending_hours == Decimal("0")
            history = await approver.get_revision_history(request_id)
            assert [r.action for r in history] == ["SUBMITTED", "APPROVED_SUPERVISOR"]

    async def _approve_at_once(self, session_factory, settings, request_id, approver_ids):
        """Run one supervisor approval per approver, each in its own session."""

        async def approve(actor_id):
            async with session_factory() as s:
                service = OvertimeWorkflowService(s, settings, clock=clock)
                return await service.approve_as_supervisor(request_id, actor_id)

        return await asyncio.gather(
            *(approve(actor_id) for actor_id in approver_ids), return_exceptions=True
        )

    @pytest.mark.parametrize("two_tier", [False, True])
    async def test_concurrent_approvals_have_one_winner(
        self, session_factory, settings, two_tier_settings, org, two_tier
    ):
        settings = two_tier_settings if two_tier else settings
        async with session_factory() as s:
            service = OvertimeWorkflowService(s, settings, clock=clock)
            submitted = await service.submit(org.employee_id, [entry(YESTERDAY, "2")])
            request_id = submitted.request.id

        outcomes = await self._approve_at_once(
            session_factory, settings, request_id, [org.supervisor_id, org.admin_id, org.hr_id]
        )

        winners = [o for o in outcomes if not isinstance(o, BaseException)]
        losers = [o for o in outcomes if isinstance(o, BaseException)]
        assert len(winners) == 1
        assert all(isinstance(e, ConflictError) for e in losers)

        async with session_factory() as s:
            service = OvertimeWorkflowService(s, settings, clock=clock)
            request = await service.get_request(request_id)
            history = await service.get_revision_history(request_id)
            balance = await service.balances.get_overtime_balance(org.employee_id)

        assert [r.action for r in history] == ["SUBMITTED", "APPROVED_SUPERVISOR"]
        assert request.supervisor_status == "APPROVED"
        if two_tier:
            assert request.status == "PENDING"
            assert request.current_approver_id == org.division_head_id
            assert balance.current_balance == Decimal("0")
            assert balance.pending_hours == Decimal("2")
        else:
            assert request.status == "APPROVED"
            assert balance.current_balance == Decimal("2")
            assert balance.pending_hours == Decimal("0")

    async def test_escalation_bumps_version(self, session_factory, two_tier_settings, org):
        """A stale read of an escalated request cannot be written back."""
        async with session_factory() as s:
            service = OvertimeWorkflowService(s, two_tier_settings, clock=clock)
            submitted = await service.submit(org.employee_id, [entry(YESTERDAY)])
            request_id = submitted.request.id
            assert submitted.request.version == 1

        async with session_factory() as a, session_factory() as b:
            first = OvertimeWorkflowService(a, two_tier_settings, clock=clock)
            stale = await first.get_request(request_id)
            await a.commit()

            second = OvertimeWorkflowService(b, two_tier_settings, clock=clock)
            escalated = await second.approve_as_supervisor(request_id, org.supervisor_id)
            assert escalated.request.status == "PENDING"
            assert escalated.request.version == 2

            with pytest.raises(ConflictError):
                await first._write_status(
                    stale, "PENDING", "APPROVED_SUPERVISOR", supervisor_status="APPROVED"
                )
            await a.rollback()


class TestStoredTotals:
    @hypothesis_settings(
        max_examples=25,
        deadline=None,
        suppress_health_check=[HealthCheck.function_scoped_fixture],
    )
    @given(
        hours=st.lists(
            st.decimals(min_value=Decimal("0.001"), max_value=Decimal("12"), places=3),
            min_size=1,
            max_size=4,
        )
    )
    async def test_total_matches_stored_entries(self, service, session_factory, org, hours):
        entries = [
            entry(TODAY - timedelta(days=i), str(h)) for i, h in enumerate(hours)
        ]
        try:
            submitted = await service.submit(org.employee_id, entries)
        except ValidationError:
            assert any(h != h.quantize(Decimal("0.01")) for h in hours)
            return

        async with session_factory() as s:
            reloaded = await OvertimeWorkflowService(s, service.settings, clock=clock).get_request(
                submitted.request.id
            )
            assert reloaded.total_hours == sum((e.hours for e in reloaded.entries), Decimal("0"))
            assert reloaded.total_hours == sum(hours, Decimal("0"))

        # Frees the dates for the next example
        await service.delete(submitted.request.id, org.employee_id)


class TestQueries:
    async def test_pending_approvals_for_approver(self, service, org):
        mine = await service.submit(org.employee_id, [entry(YESTERDAY)])
        other = await service.submit(org.contract_id, [entry(YESTERDAY)])

        supervisor_queue = await service.list_pending_approvals(org.supervisor_id)
        assert [r.id for r in supervisor_queue] == [mine.request.id]

        admin_queue = await service.list_pending_approvals(org.admin_id)
        assert {r.id for r in admin_queue} == {mine.request.id, other.request.id}

    async def test_missing_request(self, service):
        with pytest.raises(NotFoundError):
            await service.get_request(uuid4())
