"""Employee and division models.

Employee profiles are owned by the HR directory; the workflow only reads
status, tenure and reporting lines from them.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum, IntEnum
from uuid import UUID, uuid4

from sqlalchemy import Date, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from overtime_workflow.models.base import Base, TimestampMixin


class EmploymentStatus(str, Enum):
    """Employment classification."""

    PKWTT = "PKWTT"  # permanent
    PKWT = "PKWT"  # fixed-term contract
    PROBATION = "Probation"
    INTERN = "Intern"
    FREELANCE = "Freelance"
    INACTIVE = "Inactive"


class AccessLevel(IntEnum):
    """Access levels; lower is more privileged."""

    SYSTEM_ADMIN = 1
    HR = 2
    STAFF = 3


class Division(Base, TimestampMixin):
    """Organisational division."""

    __tablename__ = "division"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    # No FK: division and employee reference each other.
    head_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)

    employees: Mapped[list[Employee]] = relationship(back_populates="division")


class Employee(Base, TimestampMixin):
    """Employee profile."""

    __tablename__ = "employee"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    employee_status: Mapped[str] = mapped_column(
        String, nullable=False, default=EmploymentStatus.PKWTT.value
    )
    access_level: Mapped[int] = mapped_column(
        Integer, nullable=False, default=int(AccessLevel.STAFF)
    )
    join_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    supervisor_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("employee.id", ondelete="SET NULL"), nullable=True
    )
    division_id: Mapped[UUID | None] = mapped_column(
        Uuid, ForeignKey("division.id", ondelete="SET NULL"), nullable=True
    )
    overtime_rate: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)

    division: Mapped[Division | None] = relationship(back_populates="employees", lazy="selectin")

    @property
    def is_active(self) -> bool:
        """Check if the employee is still employed."""
        return self.employee_status != EmploymentStatus.INACTIVE.value

    @property
    def is_admin(self) -> bool:
        """Admin or HR (may act on any request)."""
        return self.access_level <= AccessLevel.HR

    @property
    def is_system_admin(self) -> bool:
        """System administrator (may override approved requests)."""
        return self.access_level == AccessLevel.SYSTEM_ADMIN
