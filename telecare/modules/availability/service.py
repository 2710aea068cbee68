# telecare/modules/availability/service.py
from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.config import settings
from telecare.core.errors import Forbidden, NotFound
from telecare.modules.appointments.schemas import BookedSlots
from telecare.modules.appointments.service import list_booked_start_times
from telecare.modules.availability import repository as repo
from telecare.modules.availability.rules import resolve_timezone
from telecare.modules.availability.schemas import (
    AvailabilityTemplateIn,
    AvailabilityTemplatePublic,
    AvailableDates,
    SlotList,
)
from telecare.modules.availability.slots import derive_slots, list_available_dates
from telecare.modules.audit import AuditAction, record_audit
from telecare.modules.users.models import User, UserRole

logger = logging.getLogger(__name__)


async def upsert_template(
    session: AsyncSession,
    current_user: User,
    payload: AvailabilityTemplateIn,
) -> AvailabilityTemplatePublic:
    """
    Doctor publishes a new template. Already-booked appointments are not
    touched; the new template governs every later derivation.
    """
    if not current_user.has_role(UserRole.DOCTOR):
        raise Forbidden("only_doctors_have_availability")

    tpl = await repo.upsert(session, doctor_id=current_user.id, payload=payload)
    await record_audit(
        session, current_user.id, AuditAction.UPDATE_AVAILABILITY, tpl.id,
        valid_from=tpl.valid_from.isoformat(), valid_until=tpl.valid_until.isoformat(),
        slot_duration_minutes=tpl.slot_duration_minutes,
    )
    logger.info("Doctor %s published availability %s..%s", current_user.id, tpl.valid_from, tpl.valid_until)
    return AvailabilityTemplatePublic.model_validate(tpl)


async def get_template(session: AsyncSession, doctor_id: UUID) -> AvailabilityTemplatePublic:
    tpl = await repo.get_by_doctor(session, doctor_id=doctor_id)
    if tpl is None:
        raise NotFound("availability_not_found")
    return AvailabilityTemplatePublic.model_validate(tpl)


def day_bounds(target_date: date, tz_name: str) -> tuple[datetime, datetime]:
    """UTC instants of local midnight at the start and end of target_date."""
    tz = resolve_timezone(tz_name)
    start = datetime.combine(target_date, time.min, tzinfo=tz)
    end = datetime.combine(target_date + timedelta(days=1), time.min, tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


async def get_bookable_slots(
    session: AsyncSession,
    doctor_id: UUID,
    target_date: date,
) -> SlotList:
    template = await get_template(session, doctor_id)
    day_start, day_end = day_bounds(target_date, template.timezone)
    booked = await list_booked_start_times(session, doctor_id, day_start, day_end)
    return SlotList(
        doctor_id=doctor_id,
        date=target_date,
        timezone=template.timezone,
        slot_duration_minutes=template.slot_duration_minutes,
        slots=derive_slots(template, target_date, booked),
    )


async def get_available_dates(
    session: AsyncSession,
    doctor_id: UUID,
    today: Optional[date] = None,
) -> AvailableDates:
    template = await get_template(session, doctor_id)
    if today is None:
        today = datetime.now(resolve_timezone(template.timezone)).date()
    return AvailableDates(
        doctor_id=doctor_id,
        dates=list_available_dates(template, today, settings.AVAILABLE_DATES_LIMIT),
    )


async def get_booked_slots(
    session: AsyncSession,
    doctor_id: UUID,
    target_date: date,
) -> BookedSlots:
    """
    Live booking starts on target_date. The day is taken in the doctor's
    template timezone, or DEFAULT_TIMEZONE when none is published.
    """
    tpl = await repo.get_by_doctor(session, doctor_id=doctor_id)
    tz_name = tpl.timezone if tpl is not None else settings.DEFAULT_TIMEZONE
    day_start, day_end = day_bounds(target_date, tz_name)
    starts = await list_booked_start_times(session, doctor_id, day_start, day_end)
    return BookedSlots(doctor_id=doctor_id, slot_starts=starts)
