"""Workflow error taxonomy.

Every error carries a machine-readable ``code`` that the HTTP layer returns
alongside the message.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID


class WorkflowError(Exception):
    """Base class for all workflow errors."""

    code = "WORKFLOW_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(WorkflowError):
    """Malformed input. No mutation was performed."""

    code = "VALIDATION_ERROR"


class ConflictError(WorkflowError):
    """Transition attempted from a stale or incompatible state."""

    code = "CONFLICT"

    def __init__(
        self,
        message: str,
        from_status: str | None = None,
        action: str | None = None,
    ):
        self.from_status = from_status
        self.action = action
        details: dict[str, Any] = {}
        if from_status is not None:
            details["current_status"] = from_status
        if action is not None:
            details["action"] = action
        super().__init__(message, details)


class ApprovalLockedError(ConflictError):
    """Approvals are frozen while payroll recap is running."""

    code = "APPROVAL_LOCKED"


class NotFoundError(WorkflowError):
    """Unknown request, employee or balance."""

    code = "NOT_FOUND"


class PermissionDeniedError(WorkflowError):
    """Actor may not perform this operation."""

    code = "FORBIDDEN"


class LedgerWriteFailure(WorkflowError):
    """The transition committed but its audit entry did not persist.

    Never raised by the workflow; returned inside ``LedgerResult``.
    """

    code = "LEDGER_WRITE_FAILED"

    def __init__(self, overtime_request_id: UUID, action: str, reason: str):
        self.overtime_request_id = overtime_request_id
        self.action = action
        self.reason = reason
        super().__init__(
            f"Failed to record {action} for overtime request {overtime_request_id}: {reason}",
            {"overtime_request_id": str(overtime_request_id), "action": action},
        )


class AccrualPartialFailure(WorkflowError):
    """One employee's yearly balance could not be created."""

    code = "ACCRUAL_FAILED"

    def __init__(self, employee_id: UUID, year: int, reason: str):
        self.employee_id = employee_id
        self.year = year
        self.reason = reason
        super().__init__(
            f"Accrual for employee {employee_id} ({year}) failed: {reason}",
            {"employee_id": str(employee_id), "year": year},
        )
