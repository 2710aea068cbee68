# telecare/modules/appointments/models.py
from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from telecare.db.base import Base, UUIDPKMixin, TimestampMixin, ReprMixin, UTCDateTime
from telecare.modules.users.models import User


class ApptStatus(str, PyEnum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ConsultationType(str, PyEnum):
    VIDEO = "video"
    VOICE = "voice"


class PaymentStatus(str, PyEnum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


_LIVE_ROWS = text("status <> 'cancelled'")


class Appointment(UUIDPKMixin, TimestampMixin, ReprMixin, Base):
    """
    One booking ledger entry. Never deleted; cancellation is a status.
    """

    __tablename__ = "appointments"

    patient_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )

    slot_start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    slot_end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    consultation_type: Mapped[str] = mapped_column(
        String(10), nullable=False, default=ConsultationType.VIDEO.value
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ApptStatus.SCHEDULED.value,
        server_default=ApptStatus.SCHEDULED.value,
    )
    symptoms: Mapped[str] = mapped_column(Text, nullable=False, default="")

    consultation_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    payment_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING.value,
        server_default=PaymentStatus.PENDING.value,
    )
    payment_order_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    prescription: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Opaque room identifier handed to the real-time provider
    room_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    patient: Mapped[Optional[User]] = relationship(
        "User", foreign_keys=[patient_id], lazy="joined", innerjoin=True
    )
    doctor: Mapped[Optional[User]] = relationship(
        "User", foreign_keys=[doctor_id], lazy="joined", innerjoin=True
    )

    __table_args__ = (
        CheckConstraint("slot_start < slot_end", name="ck_appt_slot_order"),
        CheckConstraint(
            "status IN ('scheduled', 'in_progress', 'completed', 'cancelled')",
            name="ck_appt_status_valid",
        ),
        # Avoid double booking: one live appointment per doctor and start instant.
        # Cancelled rows drop out of the index so the slot can be booked again.
        Index(
            "uq_appt_doctor_slot_live",
            "doctor_id",
            "slot_start",
            unique=True,
            postgresql_where=_LIVE_ROWS,
            sqlite_where=_LIVE_ROWS,
        ),
        Index("ix_appt_doctor_slot", "doctor_id", "slot_start", "slot_end"),
        Index("ix_appt_patient_slot", "patient_id", "slot_start"),
    )

    @property
    def status_enum(self) -> ApptStatus:
        return ApptStatus(self.status)
