"""ORM models."""

from overtime_workflow.models.base import Base, TimestampMixin, utcnow
from overtime_workflow.models.employee import AccessLevel, Division, Employee, EmploymentStatus
from overtime_workflow.models.leave import (
    PAID_LEAVE_TYPES,
    LeaveBalance,
    LeaveRequest,
    LeaveType,
    ToilGrant,
    ToilStatus,
)
from overtime_workflow.models.overtime import (
    BalanceAdjustmentLog,
    OvertimeBalance,
    OvertimeEntry,
    OvertimeRequest,
    OvertimeRevision,
)
from overtime_workflow.models.system import SYSTEM_SETTINGS_ID, SystemSettings

__all__ = [
    "Base",
    "TimestampMixin",
    "utcnow",
    # Organisation
    "AccessLevel",
    "Division",
    "Employee",
    "EmploymentStatus",
    # Overtime
    "OvertimeRequest",
    "OvertimeEntry",
    "OvertimeRevision",
    "OvertimeBalance",
    "BalanceAdjustmentLog",
    # Leave
    "LeaveBalance",
    "LeaveRequest",
    "LeaveType",
    "PAID_LEAVE_TYPES",
    "ToilGrant",
    "ToilStatus",
    # System
    "SYSTEM_SETTINGS_ID",
    "SystemSettings",
]
