# telecare/routers/availability.py
from __future__ import annotations

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.errors import SchedulingError, to_http_exception
from telecare.db.sql import get_session
from telecare.dependencies import get_current_user, require_roles
from telecare.modules.availability.schemas import (
    AvailabilityTemplateIn,
    AvailabilityTemplatePublic,
    AvailableDates,
    SlotList,
)
from telecare.modules.availability.service import (
    get_available_dates,
    get_bookable_slots,
    get_template,
    upsert_template,
)
from telecare.modules.users.models import User, UserRole

router = APIRouter(tags=["availability"])


@router.put(
    "/availability/me",
    response_model=AvailabilityTemplatePublic,
    summary="Doctor publishes (replaces) their availability template",
)
async def availability_put_me(
    payload: AvailabilityTemplateIn,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.DOCTOR)),
):
    try:
        return await upsert_template(session, current_user, payload)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get(
    "/availability/doctor/{doctor_id}",
    response_model=AvailabilityTemplatePublic,
    summary="Read a doctor's availability template",
)
async def availability_get(
    doctor_id: UUID,
    session: AsyncSession = Depends(get_session),
    _: User = Depends(get_current_user),
):
    try:
        return await get_template(session, doctor_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get(
    "/availability/doctor/{doctor_id}/dates",
    response_model=AvailableDates,
    summary="Upcoming dates on which the doctor offers consultations",
)
async def availability_dates(
    doctor_id: UUID,
    session: AsyncSession = Depends(get_session),
    _: User = Depends(get_current_user),
):
    try:
        return await get_available_dates(session, doctor_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get(
    "/availability/doctor/{doctor_id}/slots",
    response_model=SlotList,
    summary="Bookable slots for one date (already booked starts removed)",
)
async def availability_slots(
    doctor_id: UUID,
    target_date: date = Query(..., alias="date"),
    session: AsyncSession = Depends(get_session),
    _: User = Depends(get_current_user),
):
    try:
        return await get_bookable_slots(session, doctor_id, target_date)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
