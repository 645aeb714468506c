"""Overtime workflow services."""

from overtime_workflow.services.accrual_service import AccrualReport, AccrualScheduler
from overtime_workflow.services.balance_store import (
    BalanceStore,
    DebitResult,
    MarkPaidResult,
    ToilSummary,
)
from overtime_workflow.services.directory import EmployeeDirectory
from overtime_workflow.services.leave_service import LeaveService
from overtime_workflow.services.overtime_service import OvertimeWorkflowService, TransitionResult
from overtime_workflow.services.recap_lock import RecapLockService
from overtime_workflow.services.revision_ledger import LedgerResult, RevisionLedger
from overtime_workflow.services.state_machine import (
    LeaveStateMachine,
    LeaveStatus,
    OvertimeStateMachine,
    OvertimeStatus,
    RevisionAction,
)

__all__ = [
    # Overtime workflow
    "OvertimeWorkflowService",
    "TransitionResult",
    "OvertimeStateMachine",
    "OvertimeStatus",
    "RevisionAction",
    # Ledger
    "RevisionLedger",
    "LedgerResult",
    # Balances
    "BalanceStore",
    "DebitResult",
    "MarkPaidResult",
    "ToilSummary",
    # Accrual
    "AccrualScheduler",
    "AccrualReport",
    # Leave
    "LeaveService",
    "LeaveStateMachine",
    "LeaveStatus",
    # Collaborators
    "EmployeeDirectory",
    "RecapLockService",
]
