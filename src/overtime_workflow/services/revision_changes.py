"""Typed ``changes`` payloads for revision ledger entries.

Each ledger action has its own frozen dataclass. Payloads are stored as
JSON with a ``kind`` tag and must describe what changed without needing
the (mutable) request row, so that an approval can still be audited after
an admin override has rewritten the request.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, ClassVar, Union
from uuid import UUID

from overtime_workflow.calculators.overtime_totals import EntryInput
from overtime_workflow.services.state_machine import RevisionAction, TierDecision


class ApprovalTier(str, Enum):
    """Which approval tier made a decision."""

    SUPERVISOR = "SUPERVISOR"
    DIVISION_HEAD = "DIVISION_HEAD"


def _serialize(obj: Any) -> Any:
    """Recursively serialize objects for JSON compatibility."""
    if isinstance(obj, dict):
        return {k: _serialize(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_serialize(v) for v in obj]
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif isinstance(obj, Decimal):
        return str(obj)
    elif isinstance(obj, Enum):
        return obj.value
    return obj


def _dec(value: Any) -> Decimal | None:
    return None if value is None else Decimal(str(value))


def _uuid(value: Any) -> UUID | None:
    return None if value is None else UUID(str(value))


def _dt(value: Any) -> datetime | None:
    return None if value is None else datetime.fromisoformat(value)


@dataclass(frozen=True)
class RequestSummary:
    """Compact before/after snapshot used by edits."""

    total_hours: Decimal
    total_amount: Decimal
    entries_count: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RequestSummary:
        return cls(
            total_hours=_dec(data["total_hours"]),
            total_amount=_dec(data["total_amount"]),
            entries_count=int(data["entries_count"]),
        )


@dataclass(frozen=True)
class RevisionChanges:
    """Base class for ledger payloads."""

    kind: ClassVar[str] = ""

    @property
    def action(self) -> RevisionAction:
        raise NotImplementedError("Subclasses must define action")

    def to_dict(self) -> dict[str, Any]:
        data = _serialize(asdict(self))
        data["kind"] = self.kind
        return data


@dataclass(frozen=True)
class SubmittedChanges(RevisionChanges):
    """Full entry list as submitted."""

    kind: ClassVar[str] = "submitted"

    entries: tuple[EntryInput, ...]
    total_hours: Decimal
    total_amount: Decimal
    current_approver_id: UUID | None = None

    @property
    def action(self) -> RevisionAction:
        return RevisionAction.SUBMITTED

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["entries"] = [e.to_dict() for e in self.entries]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SubmittedChanges:
        return cls(
            entries=tuple(
                EntryInput(
                    work_date=date.fromisoformat(e["date"]),
                    hours=Decimal(e["hours"]),
                    description=e["description"],
                )
                for e in data["entries"]
            ),
            total_hours=_dec(data["total_hours"]),
            total_amount=_dec(data["total_amount"]),
            current_approver_id=_uuid(data.get("current_approver_id")),
        )


@dataclass(frozen=True)
class EditedChanges(RevisionChanges):
    """Before/after summary of an edit (not a full entry diff)."""

    kind: ClassVar[str] = "edited"

    before: RequestSummary
    after: RequestSummary
    status: str

    @property
    def action(self) -> RevisionAction:
        return RevisionAction.EDITED

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EditedChanges:
        return cls(
            before=RequestSummary.from_dict(data["before"]),
            after=RequestSummary.from_dict(data["after"]),
            status=data["status"],
        )


@dataclass(frozen=True)
class ResubmittedChanges(RevisionChanges):
    """Owner sent a revised request back for review."""

    kind: ClassVar[str] = "resubmitted"

    previous_status: str
    new_status: str
    cleared_tier: ApprovalTier | None = None
    current_approver_id: UUID | None = None

    @property
    def action(self) -> RevisionAction:
        return RevisionAction.RESUBMITTED

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ResubmittedChanges:
        tier = data.get("cleared_tier")
        return cls(
            previous_status=data["previous_status"],
            new_status=data["new_status"],
            cleared_tier=ApprovalTier(tier) if tier else None,
            current_approver_id=_uuid(data.get("current_approver_id")),
        )


@dataclass(frozen=True)
class TierDecisionChanges(RevisionChanges):
    """Supervisor or division head approved or rejected.

    ``escalated_to`` is set when an approval passed the request on to the
    next tier instead of finalising it.
    """

    kind: ClassVar[str] = "tier_decision"

    tier: ApprovalTier
    decision: TierDecision
    previous_status: str
    new_status: str
    hours_credited: Decimal = Decimal("0")
    pending_released: Decimal = Decimal("0")
    escalated_to: UUID | None = None

    @property
    def action(self) -> RevisionAction:
        if self.tier == ApprovalTier.SUPERVISOR:
            if self.decision == TierDecision.APPROVED:
                return RevisionAction.APPROVED_SUPERVISOR
            return RevisionAction.REJECTED_SUPERVISOR
        if self.decision == TierDecision.APPROVED:
            return RevisionAction.APPROVED_DIVHEAD
        return RevisionAction.REJECTED_DIVHEAD

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TierDecisionChanges:
        return cls(
            tier=ApprovalTier(data["tier"]),
            decision=TierDecision(data["decision"]),
            previous_status=data["previous_status"],
            new_status=data["new_status"],
            hours_credited=_dec(data.get("hours_credited", "0")),
            pending_released=_dec(data.get("pending_released", "0")),
            escalated_to=_uuid(data.get("escalated_to")),
        )


@dataclass(frozen=True)
class RevisionRequestedChanges(RevisionChanges):
    """An approver sent the request back to its owner."""

    kind: ClassVar[str] = "revision_requested"

    tier: ApprovalTier | None
    previous_status: str
    new_status: str

    @property
    def action(self) -> RevisionAction:
        return RevisionAction.REVISION_REQUESTED

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RevisionRequestedChanges:
        tier = data.get("tier")
        return cls(
            tier=ApprovalTier(tier) if tier else None,
            previous_status=data["previous_status"],
            new_status=data["new_status"],
        )


@dataclass(frozen=True)
class AdminRejectedChanges(RevisionChanges):
    """Admin override of an approved request.

    Keeps the original approval metadata: after the override the request
    row no longer says who approved it or when.
    """

    kind: ClassVar[str] = "admin_rejected"

    previous_status: str
    new_status: str
    original_approver: UUID | None
    original_approved_at: datetime | None
    original_supervisor_comment: str | None
    hours_deducted: Decimal
    balance_before: Decimal
    balance_after: Decimal

    @property
    def action(self) -> RevisionAction:
        return RevisionAction.ADMIN_REJECTED

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AdminRejectedChanges:
        return cls(
            previous_status=data["previous_status"],
            new_status=data["new_status"],
            original_approver=_uuid(data.get("original_approver")),
            original_approved_at=_dt(data.get("original_approved_at")),
            original_supervisor_comment=data.get("original_supervisor_comment"),
            hours_deducted=_dec(data["hours_deducted"]),
            balance_before=_dec(data["balance_before"]),
            balance_after=_dec(data["balance_after"]),
        )


@dataclass(frozen=True)
class FinalDecisionChanges(RevisionChanges):
    """Single-authority approval or rejection."""

    kind: ClassVar[str] = "final_decision"

    decision: TierDecision
    previous_status: str
    new_status: str
    hours_credited: Decimal = Decimal("0")
    pending_released: Decimal = Decimal("0")

    @property
    def action(self) -> RevisionAction:
        if self.decision == TierDecision.APPROVED:
            return RevisionAction.FINAL_APPROVED
        return RevisionAction.FINAL_REJECTED

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FinalDecisionChanges:
        return cls(
            decision=TierDecision(data["decision"]),
            previous_status=data["previous_status"],
            new_status=data["new_status"],
            hours_credited=_dec(data.get("hours_credited", "0")),
            pending_released=_dec(data.get("pending_released", "0")),
        )


@dataclass(frozen=True)
class DeletedChanges(RevisionChanges):
    """Soft delete by the owner or a system administrator."""

    kind: ClassVar[str] = "deleted"

    previous_status: str
    reason: str | None = None
    pending_released: Decimal = Decimal("0")
    deleted_entries: tuple[EntryInput, ...] = field(default_factory=tuple)

    @property
    def action(self) -> RevisionAction:
        return RevisionAction.DELETED

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["deleted_entries"] = [e.to_dict() for e in self.deleted_entries]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeletedChanges:
        return cls(
            previous_status=data["previous_status"],
            reason=data.get("reason"),
            pending_released=_dec(data.get("pending_released", "0")),
            deleted_entries=tuple(
                EntryInput(
                    work_date=date.fromisoformat(e["date"]),
                    hours=Decimal(e["hours"]),
                    description=e["description"],
                )
                for e in data.get("deleted_entries", [])
            ),
        )


Changes = Union[
    SubmittedChanges,
    EditedChanges,
    ResubmittedChanges,
    TierDecisionChanges,
    RevisionRequestedChanges,
    AdminRejectedChanges,
    FinalDecisionChanges,
    DeletedChanges,
]

CHANGE_TYPES: dict[str, type[RevisionChanges]] = {
    cls.kind: cls
    for cls in (
        SubmittedChanges,
        EditedChanges,
        ResubmittedChanges,
        TierDecisionChanges,
        RevisionRequestedChanges,
        AdminRejectedChanges,
        FinalDecisionChanges,
        DeletedChanges,
    )
}


def changes_from_dict(data: dict[str, Any]) -> Changes:
    """Parse a stored payload back into its typed form.

    Raises:
        ValueError: unknown or missing ``kind`` tag.
    """
    kind = data.get("kind")
    cls = CHANGE_TYPES.get(kind)  # type: ignore[arg-type]
    if cls is None:
        raise ValueError(f"Unknown revision changes kind: {kind!r}")
    return cls.from_dict(data)  # type: ignore[attr-defined]
