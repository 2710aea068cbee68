# telecare/modules/availability/models.py
from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import JSON, CheckConstraint, Date, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from telecare.db.base import Base, UUIDPKMixin, TimestampMixin, ReprMixin


class AvailabilityTemplate(UUIDPKMixin, TimestampMixin, ReprMixin, Base):
    """
    A doctor's recurring weekly schedule. One row per doctor; every save
    replaces the previous version.
    """

    __tablename__ = "availability_templates"

    doctor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    valid_from: Mapped[date] = mapped_column(Date, nullable=False)
    valid_until: Mapped[date] = mapped_column(Date, nullable=False)

    # Weekday indices, 0 = Sunday .. 6 = Saturday
    excluded_weekdays: Mapped[list[int]] = mapped_column(JSON, nullable=False, default=list)
    # [{"start": "09:00", "end": "12:00"}, ...] in stored order
    daily_windows: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)

    slot_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")

    __table_args__ = (
        CheckConstraint("valid_from <= valid_until", name="ck_tpl_valid_range"),
        CheckConstraint("slot_duration_minutes > 0", name="ck_tpl_slot_positive"),
    )
