# telecare/modules/audit.py
"""
Audit trail for booking-ledger, payment and availability mutations.

Rows are inserted in the caller's transaction: a booking that is rolled back
leaves no audit row behind.
"""
from __future__ import annotations

import datetime as dt
import uuid
from enum import Enum
from typing import Any, Optional

from sqlalchemy import JSON, ForeignKey, Index, String, func, insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Mapped, mapped_column

from telecare.db.base import Base


class AuditAction(str, Enum):
    BOOK_APPOINTMENT = "BOOK_APPOINTMENT"
    CANCEL_APPOINTMENT = "CANCEL_APPOINTMENT"
    JOIN_APPOINTMENT = "JOIN_APPOINTMENT"
    COMPLETE_APPOINTMENT = "COMPLETE_APPOINTMENT"
    ABORT_APPOINTMENT = "ABORT_APPOINTMENT"
    PAYMENT_ORDER_CREATED = "PAYMENT_ORDER_CREATED"
    PAYMENT_VERIFIED = "PAYMENT_VERIFIED"
    UPDATE_AVAILABILITY = "UPDATE_AVAILABILITY"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    actor_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    # appointment or availability template the action touched
    subject_id: Mapped[Optional[uuid.UUID]] = mapped_column(nullable=True)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    recorded_at: Mapped[dt.datetime] = mapped_column(
        nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("ix_audit_subject", "subject_id", "recorded_at"),)


async def record_audit(
    session: AsyncSession,
    actor_id: Optional[uuid.UUID],
    action: AuditAction,
    subject_id: Optional[uuid.UUID] = None,
    **details: Any,
) -> None:
    """details must be JSON-serialisable (pass datetimes as ISO strings)."""
    await session.execute(
        insert(AuditLog).values(
            actor_id=actor_id,
            action=action.value,
            subject_id=subject_id,
            details=details or None,
        )
    )
