"""System-wide settings written by the payroll recap process."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from overtime_workflow.models.base import Base, utcnow

SYSTEM_SETTINGS_ID = "system-settings-singleton"


class SystemSettings(Base):
    """Singleton row holding the recap cutoff and approval lock."""

    __tablename__ = "system_settings"

    id: Mapped[str] = mapped_column(String, primary_key=True, default=SYSTEM_SETTINGS_ID)
    last_recap_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_approval_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked_by: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    locked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
