"""Overtime and leave request state machines with transition validation."""

from __future__ import annotations

from enum import Enum

from overtime_workflow.errors import ConflictError


class OvertimeStatus(str, Enum):
    """Overtime request status values."""

    PENDING = "PENDING"
    REVISION_REQUESTED = "REVISION_REQUESTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    DELETED = "DELETED"


class RevisionAction(str, Enum):
    """Actions recorded in the revision ledger."""

    SUBMITTED = "SUBMITTED"
    EDITED = "EDITED"
    RESUBMITTED = "RESUBMITTED"
    APPROVED_SUPERVISOR = "APPROVED_SUPERVISOR"
    REJECTED_SUPERVISOR = "REJECTED_SUPERVISOR"
    APPROVED_DIVHEAD = "APPROVED_DIVHEAD"
    REJECTED_DIVHEAD = "REJECTED_DIVHEAD"
    REVISION_REQUESTED = "REVISION_REQUESTED"
    ADMIN_REJECTED = "ADMIN_REJECTED"
    FINAL_APPROVED = "FINAL_APPROVED"
    FINAL_REJECTED = "FINAL_REJECTED"
    DELETED = "DELETED"


class TierDecision(str, Enum):
    """Per-tier decision stored on the request."""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    REVISION_REQUESTED = "REVISION_REQUESTED"


_OPEN = frozenset({OvertimeStatus.PENDING, OvertimeStatus.REVISION_REQUESTED})


class OvertimeStateMachine:
    """State machine for overtime request status transitions.

    Allowed transitions:
    - PENDING → PENDING (escalation to the next approval tier)
    - PENDING → REVISION_REQUESTED / APPROVED / REJECTED / DELETED
    - REVISION_REQUESTED → PENDING (explicit resubmit)
    - REVISION_REQUESTED → APPROVED / REJECTED / DELETED
    - APPROVED → REJECTED (admin override only)
    - REJECTED → DELETED (owner cleanup)
    - DELETED is terminal
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        OvertimeStatus.PENDING: [
            OvertimeStatus.PENDING,
            OvertimeStatus.REVISION_REQUESTED,
            OvertimeStatus.APPROVED,
            OvertimeStatus.REJECTED,
            OvertimeStatus.DELETED,
        ],
        OvertimeStatus.REVISION_REQUESTED: [
            OvertimeStatus.PENDING,
            OvertimeStatus.APPROVED,
            OvertimeStatus.REJECTED,
            OvertimeStatus.DELETED,
        ],
        OvertimeStatus.APPROVED: [OvertimeStatus.REJECTED],
        OvertimeStatus.REJECTED: [OvertimeStatus.DELETED],
        OvertimeStatus.DELETED: [],  # Terminal state
    }

    # {action: (statuses the action may start from, resulting status)}
    # A resulting status of None leaves the status unchanged.
    ACTIONS: dict[str, tuple[frozenset[str], str | None]] = {
        RevisionAction.EDITED: (_OPEN, None),
        RevisionAction.RESUBMITTED: (
            frozenset({OvertimeStatus.REVISION_REQUESTED}),
            OvertimeStatus.PENDING,
        ),
        RevisionAction.APPROVED_SUPERVISOR: (_OPEN, OvertimeStatus.APPROVED),
        RevisionAction.REJECTED_SUPERVISOR: (_OPEN, OvertimeStatus.REJECTED),
        RevisionAction.APPROVED_DIVHEAD: (_OPEN, OvertimeStatus.APPROVED),
        RevisionAction.REJECTED_DIVHEAD: (_OPEN, OvertimeStatus.REJECTED),
        RevisionAction.FINAL_APPROVED: (_OPEN, OvertimeStatus.APPROVED),
        RevisionAction.FINAL_REJECTED: (_OPEN, OvertimeStatus.REJECTED),
        RevisionAction.REVISION_REQUESTED: (
            frozenset({OvertimeStatus.PENDING}),
            OvertimeStatus.REVISION_REQUESTED,
        ),
        RevisionAction.ADMIN_REJECTED: (
            frozenset({OvertimeStatus.APPROVED}),
            OvertimeStatus.REJECTED,
        ),
        RevisionAction.DELETED: (
            _OPEN | {OvertimeStatus.REJECTED},
            OvertimeStatus.DELETED,
        ),
    }

    # Statuses where entries can be modified
    ENTRIES_MUTABLE = _OPEN

    # Statuses holding hours in the pending bucket
    HOLDS_PENDING_HOURS = _OPEN

    TERMINAL = frozenset({OvertimeStatus.DELETED})

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising ConflictError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise ConflictError(
                f"Invalid transition from '{from_status}' to '{to_status}'",
                from_status=from_status,
            )

    @classmethod
    def can_perform(cls, action: str, from_status: str) -> bool:
        """Check if an action may be taken from the given status."""
        rule = cls.ACTIONS.get(action)
        return rule is not None and from_status in rule[0]

    @classmethod
    def validate_action(cls, action: str, from_status: str) -> str:
        """Validate an action and return the resulting status.

        Raises:
            ConflictError: the action is not allowed from ``from_status``.
        """
        rule = cls.ACTIONS.get(action)
        if rule is None or from_status not in rule[0]:
            action_name = getattr(action, "value", action)
            raise ConflictError(
                f"Cannot perform {action_name} on a request with status {from_status}",
                from_status=from_status,
                action=action_name,
            )
        allowed_from, result = rule
        to_status = from_status if result is None else result
        if to_status != from_status:
            cls.validate_transition(from_status, to_status)
        return getattr(to_status, "value", to_status)

    @classmethod
    def can_edit(cls, status: str) -> bool:
        """Check if entries can be modified in this status."""
        return status in cls.ENTRIES_MUTABLE

    @classmethod
    def holds_pending_hours(cls, status: str) -> bool:
        return status in cls.HOLDS_PENDING_HOURS

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return status in cls.TERMINAL

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def get_available_actions(cls, current_status: str) -> list[str]:
        """Actions that may be taken from the current status."""
        return [
            getattr(action, "value", action)
            for action, (allowed_from, _) in cls.ACTIONS.items()
            if current_status in allowed_from
        ]


# ===== Leave =====


class LeaveStatus(str, Enum):
    """Leave request status values."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class LeaveAction(str, Enum):
    """Actions on a leave request."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"


class LeaveStateMachine:
    """State machine for leave request status transitions.

    Allowed transitions:
    - PENDING → PENDING (supervisor approval passed to the division head)
    - PENDING → APPROVED / REJECTED / CANCELLED
    - APPROVED, REJECTED and CANCELLED are terminal
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        LeaveStatus.PENDING: [
            LeaveStatus.PENDING,
            LeaveStatus.APPROVED,
            LeaveStatus.REJECTED,
            LeaveStatus.CANCELLED,
        ],
        LeaveStatus.APPROVED: [],
        LeaveStatus.REJECTED: [],
        LeaveStatus.CANCELLED: [],
    }

    ACTIONS: dict[str, tuple[frozenset[str], str]] = {
        LeaveAction.APPROVE: (frozenset({LeaveStatus.PENDING}), LeaveStatus.APPROVED),
        LeaveAction.REJECT: (frozenset({LeaveStatus.PENDING}), LeaveStatus.REJECTED),
        LeaveAction.CANCEL: (frozenset({LeaveStatus.PENDING}), LeaveStatus.CANCELLED),
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        return to_status in cls.VALID_TRANSITIONS.get(from_status, [])

    @classmethod
    def validate_action(cls, action: str, from_status: str) -> str:
        """Validate an action and return the resulting status."""
        rule = cls.ACTIONS.get(action)
        if rule is None or from_status not in rule[0]:
            action_name = getattr(action, "value", action)
            raise ConflictError(
                f"Cannot {action_name.lower()} a leave request with status {from_status}",
                from_status=from_status,
                action=action_name,
            )
        return rule[1].value

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(status, [])
