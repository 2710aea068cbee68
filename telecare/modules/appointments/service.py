# telecare/modules/appointments/service.py
"""
Booking ledger: the only code that creates appointments or moves their status.
Payment fields are updated by telecare.modules.payments.service.

Every operation works inside the caller's session and flushes; the request
session provider (telecare.db.sql.get_session) commits or rolls back.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.config import settings
from telecare.core.errors import Forbidden, InvalidTransition, NotFound, SlotUnavailable, ValidationError
from telecare.modules.appointments.lifecycle import can_join_now, transition
from telecare.modules.appointments.models import Appointment, ApptStatus, PaymentStatus
from telecare.modules.appointments.schemas import (
    AppointmentBookRequest,
    AppointmentListPage,
    AppointmentPublic,
    JoinResponse,
)
from telecare.modules.audit import AuditAction, record_audit
from telecare.modules.users.models import User, UserRole

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_room_token() -> str:
    return f"room_{uuid.uuid4().hex}"


def to_public(appt: Appointment, now: Optional[datetime] = None) -> AppointmentPublic:
    dto = AppointmentPublic.model_validate(appt)
    return dto.model_copy(update={"can_join": can_join_now(appt, now or _utcnow())})


async def load_appointment(
    session: AsyncSession, appointment_id: UUID, *, for_update: bool = False
) -> Appointment:
    stmt = select(Appointment).where(Appointment.id == appointment_id)
    if for_update:
        stmt = stmt.with_for_update(of=Appointment)
    appt = (await session.execute(stmt)).unique().scalar_one_or_none()
    if appt is None:
        raise NotFound("appointment_not_found")
    return appt


async def reload_appointment(session: AsyncSession, appointment_id: UUID) -> Appointment:
    # Re-select so server-side timestamps and both parties are loaded
    stmt = (
        select(Appointment)
        .where(Appointment.id == appointment_id)
        .execution_options(populate_existing=True)
    )
    return (await session.execute(stmt)).unique().scalar_one()


def _is_patient_of(appt: Appointment, user: User) -> bool:
    return user.has_role(UserRole.PATIENT) and appt.patient_id == user.id


def _is_doctor_of(appt: Appointment, user: User) -> bool:
    return user.has_role(UserRole.DOCTOR) and appt.doctor_id == user.id


def _ensure_participant(appt: Appointment, user: User) -> None:
    if not (_is_patient_of(appt, user) or _is_doctor_of(appt, user)):
        raise Forbidden("not_owner")


def _check_booking_request(payload: AppointmentBookRequest) -> None:
    if len(payload.symptoms.strip()) < settings.SYMPTOMS_MIN_LENGTH:
        raise ValidationError(
            "symptoms_too_short",
            f"symptoms must be at least {settings.SYMPTOMS_MIN_LENGTH} characters",
        )
    if payload.slot_end <= payload.slot_start:
        raise ValidationError("invalid_slot_range", "slot_end must be after slot_start")

    fees = payload.fees
    if min(fees.consultation_fee, fees.platform_fee, fees.total_amount) < 0:
        raise ValidationError("invalid_fees", "fees must not be negative")
    if fees.consultation_fee + fees.platform_fee != fees.total_amount:
        raise ValidationError(
            "invalid_fees", "total_amount must equal consultation_fee + platform_fee"
        )


async def _lock_doctor_calendar(session: AsyncSession, doctor_id: UUID) -> None:
    """
    Take the doctor's booking lock for the rest of the transaction.

    The UPDATE holds a row lock on Postgres and the database write lock on
    SQLite, so a second booking for the same doctor waits here until the
    first commits and then sees its row in the overlap check.
    """
    res = await session.execute(
        update(User)
        .where(User.id == doctor_id, User.role == UserRole.DOCTOR.value)
        .values(booking_seq=User.booking_seq + 1)
        .execution_options(synchronize_session=False)
    )
    if not res.rowcount:
        raise NotFound("doctor_not_found")


async def _find_overlap(
    session: AsyncSession, doctor_id: UUID, start: datetime, end: datetime
) -> Optional[UUID]:
    stmt = (
        select(Appointment.id)
        .where(
            Appointment.doctor_id == doctor_id,
            Appointment.status != ApptStatus.CANCELLED.value,
            Appointment.slot_start < end,
            Appointment.slot_end > start,
        )
        .limit(1)
    )
    return (await session.execute(stmt)).scalar_one_or_none()


# BOOK
async def book_appointment(
    session: AsyncSession,
    payload: AppointmentBookRequest,
    current_user: User,
) -> AppointmentPublic:
    """
    Reserve a slot for the current patient.

    - Only role 'patient' may book; patient_id = current_user.id.
    - Overlap pre-check against live (non-cancelled) appointments gives the
      friendly error; the partial unique index on (doctor_id, slot_start)
      is the authoritative guard and its violation maps to the same
      SlotUnavailable.
    - Created as scheduled / pending; payment is a later, separate step.
    """
    if not current_user.has_role(UserRole.PATIENT):
        raise Forbidden("only_patients_can_book")
    _check_booking_request(payload)

    await _lock_doctor_calendar(session, payload.doctor_id)

    if await _find_overlap(session, payload.doctor_id, payload.slot_start, payload.slot_end):
        logger.warning(
            "Booking rejected: doctor %s already booked around %s",
            payload.doctor_id, payload.slot_start.isoformat(),
        )
        raise SlotUnavailable("slot_already_taken")

    appt = Appointment(
        doctor_id=payload.doctor_id,
        patient_id=current_user.id,
        slot_start=payload.slot_start,
        slot_end=payload.slot_end,
        consultation_type=payload.consultation_type.value,
        status=ApptStatus.SCHEDULED.value,
        symptoms=payload.symptoms.strip(),
        consultation_fee=payload.fees.consultation_fee,
        platform_fee=payload.fees.platform_fee,
        total_amount=payload.fees.total_amount,
        payment_status=PaymentStatus.PENDING.value,
        room_token=_new_room_token(),
    )
    session.add(appt)
    try:
        await session.flush()
    except IntegrityError as exc:
        message = str(exc.orig).lower() if exc.orig else str(exc).lower()
        if "uq_appt_doctor_slot_live" in message or "unique" in message:
            logger.warning(
                "Booking lost race: doctor %s slot %s",
                payload.doctor_id, payload.slot_start.isoformat(),
            )
            raise SlotUnavailable("slot_already_taken") from exc
        raise ValidationError("booking_rejected", "booking violates a storage constraint") from exc

    await record_audit(
        session, current_user.id, AuditAction.BOOK_APPOINTMENT, appt.id,
        doctor_id=str(appt.doctor_id), slot_start=appt.slot_start.isoformat(),
    )
    logger.info("Booked appointment %s for doctor %s", appt.id, appt.doctor_id)
    return to_public(await reload_appointment(session, appt.id))


# CANCEL
async def cancel_appointment(
    session: AsyncSession,
    appointment_id: UUID,
    current_user: User,
    now: Optional[datetime] = None,
) -> AppointmentPublic:
    """
    Cancel a scheduled appointment whose slot has not started yet.

    - patient may cancel only their own appointment, doctor only their own
    - the row is kept; the slot becomes bookable again
    - a paid booking is marked refunded (the refund itself is the gateway's job)
    """
    now = now or _utcnow()
    appt = await load_appointment(session, appointment_id, for_update=True)
    _ensure_participant(appt, current_user)

    if appt.status_enum is not ApptStatus.SCHEDULED:
        raise InvalidTransition(
            "only_scheduled_can_be_cancelled",
            f"appointment is {appt.status}",
        )
    if appt.slot_start <= now:
        raise InvalidTransition("slot_already_started")

    transition(appt, ApptStatus.CANCELLED)
    appt.cancelled_at = now
    if appt.payment_status == PaymentStatus.PAID.value:
        appt.payment_status = PaymentStatus.REFUNDED.value
    await session.flush()

    await record_audit(
        session, current_user.id, AuditAction.CANCEL_APPOINTMENT, appt.id, by=current_user.role
    )
    logger.info("Cancelled appointment %s by %s %s", appt.id, current_user.role, current_user.id)
    return to_public(await reload_appointment(session, appt.id), now)


# JOIN
async def join_appointment(
    session: AsyncSession,
    appointment_id: UUID,
    current_user: User,
) -> JoinResponse:
    """
    Enter the consultation room. scheduled -> in_progress; re-joining an
    in-progress appointment changes nothing and returns the same room token.
    """
    appt = await load_appointment(session, appointment_id, for_update=True)
    _ensure_participant(appt, current_user)

    if appt.status_enum is ApptStatus.SCHEDULED:
        transition(appt, ApptStatus.IN_PROGRESS)
        await session.flush()
        await record_audit(session, current_user.id, AuditAction.JOIN_APPOINTMENT, appt.id)
        logger.info("Appointment %s in progress", appt.id)
        appt = await reload_appointment(session, appt.id)
    elif appt.status_enum is not ApptStatus.IN_PROGRESS:
        raise InvalidTransition("appointment_closed", f"appointment is {appt.status}")

    return JoinResponse(room_token=appt.room_token, appointment=to_public(appt))


# COMPLETE
async def complete_appointment(
    session: AsyncSession,
    appointment_id: UUID,
    current_user: User,
    prescription: str,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AppointmentPublic:
    """
    Doctor closes the consultation with a prescription. Allowed from any
    non-terminal state, joined or not.
    """
    appt = await load_appointment(session, appointment_id, for_update=True)
    if not _is_doctor_of(appt, current_user):
        raise Forbidden("only_assigned_doctor_can_complete")
    if not prescription or not prescription.strip():
        raise ValidationError("prescription_required")

    transition(appt, ApptStatus.COMPLETED)
    appt.prescription = prescription.strip()
    appt.notes = notes.strip() if notes else None
    appt.completed_at = now or _utcnow()
    await session.flush()

    await record_audit(session, current_user.id, AuditAction.COMPLETE_APPOINTMENT, appt.id)
    logger.info("Completed appointment %s", appt.id)
    return to_public(await reload_appointment(session, appt.id), now)


# ABORT
async def abort_appointment(
    session: AsyncSession,
    appointment_id: UUID,
    current_user: User,
    now: Optional[datetime] = None,
) -> AppointmentPublic:
    """
    Abnormal end of a consultation that is already in progress.
    """
    now = now or _utcnow()
    appt = await load_appointment(session, appointment_id, for_update=True)
    if not _is_doctor_of(appt, current_user):
        raise Forbidden("only_assigned_doctor_can_abort")
    if appt.status_enum is not ApptStatus.IN_PROGRESS:
        raise InvalidTransition("only_in_progress_can_be_aborted", f"appointment is {appt.status}")

    transition(appt, ApptStatus.CANCELLED)
    appt.cancelled_at = now
    if appt.payment_status == PaymentStatus.PAID.value:
        appt.payment_status = PaymentStatus.REFUNDED.value
    await session.flush()

    await record_audit(session, current_user.id, AuditAction.ABORT_APPOINTMENT, appt.id)
    logger.warning("Consultation %s aborted by doctor %s", appt.id, current_user.id)
    return to_public(await reload_appointment(session, appt.id), now)


# READ
async def get_appointment(
    session: AsyncSession,
    appointment_id: UUID,
    current_user: User,
) -> AppointmentPublic:
    appt = await load_appointment(session, appointment_id)
    if not current_user.has_role(UserRole.ADMIN):
        _ensure_participant(appt, current_user)
    return to_public(appt)


async def list_my_appointments(
    session: AsyncSession,
    current_user: User,
    limit: int,
    offset: int,
    statuses: Optional[Sequence[ApptStatus]] = None,
) -> AppointmentListPage:
    """
    - patient => appointments where user is patient
    - doctor => appointments where user is doctor
    - admin => all
    """
    conditions = []
    if current_user.has_role(UserRole.PATIENT):
        conditions.append(Appointment.patient_id == current_user.id)
    elif current_user.has_role(UserRole.DOCTOR):
        conditions.append(Appointment.doctor_id == current_user.id)
    if statuses:
        conditions.append(Appointment.status.in_([s.value for s in statuses]))

    total_stmt = select(func.count()).select_from(Appointment).where(*conditions)
    total = (await session.execute(total_stmt)).scalar_one()

    stmt = (
        select(Appointment)
        .where(*conditions)
        .order_by(Appointment.slot_start, Appointment.id)
        .limit(limit)
        .offset(offset)
    )
    rows: List[Appointment] = list((await session.execute(stmt)).unique().scalars().all())
    now = _utcnow()
    return AppointmentListPage(
        items=[to_public(a, now) for a in rows],
        total=total,
        limit=limit,
        offset=offset,
        has_next=offset + limit < total,
    )


async def list_booked_start_times(
    session: AsyncSession,
    doctor_id: UUID,
    window_start: datetime,
    window_end: datetime,
) -> List[datetime]:
    """
    Start instants of the doctor's live appointments with
    window_start <= slot_start < window_end, ascending.
    """
    stmt = (
        select(Appointment.slot_start)
        .where(
            Appointment.doctor_id == doctor_id,
            Appointment.status != ApptStatus.CANCELLED.value,
            Appointment.slot_start >= window_start,
            Appointment.slot_start < window_end,
        )
        .order_by(Appointment.slot_start)
    )
    return list((await session.execute(stmt)).scalars().all())
