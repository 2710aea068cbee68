# telecare/routers/appointments.py
from __future__ import annotations

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.errors import SchedulingError, to_http_exception
from telecare.db.sql import get_session
from telecare.dependencies import get_current_user
from telecare.modules.appointments.models import ApptStatus
from telecare.modules.appointments.schemas import (
    AppointmentBookRequest,
    AppointmentListPage,
    AppointmentPublic,
    BookedSlots,
    CompleteRequest,
    JoinResponse,
)
from telecare.modules.appointments.service import (
    book_appointment,
    cancel_appointment,
    complete_appointment,
    get_appointment,
    join_appointment,
    list_my_appointments,
)
from telecare.modules.availability.service import get_booked_slots
from telecare.modules.users.models import User

router = APIRouter(tags=["appointments"])


@router.post(
    "/appointments/book",
    response_model=AppointmentPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Book a slot (patient only)",
    responses={409: {"description": "Slot already taken"}},
)
async def appointments_book(
    payload: AppointmentBookRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    try:
        return await book_appointment(session, payload, current_user)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get(
    "/appointments/my",
    response_model=AppointmentListPage,
    summary="Current user's appointments, soonest first",
)
async def appointments_my(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    status_filter: Optional[List[ApptStatus]] = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return await list_my_appointments(session, current_user, limit, offset, status_filter)


@router.get(
    "/appointments/booked-slots/{doctor_id}/{target_date}",
    response_model=BookedSlots,
    summary="Start times already taken on a date",
)
async def appointments_booked_slots(
    doctor_id: UUID,
    target_date: date,
    session: AsyncSession = Depends(get_session),
    _: User = Depends(get_current_user),
):
    try:
        return await get_booked_slots(session, doctor_id, target_date)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get(
    "/appointments/{appointment_id}",
    response_model=AppointmentPublic,
    summary="Read one appointment",
)
async def appointments_get(
    appointment_id: UUID,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    try:
        return await get_appointment(session, appointment_id, current_user)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.put(
    "/appointments/{appointment_id}/cancel",
    response_model=AppointmentPublic,
    summary="Cancel a scheduled appointment",
)
async def appointments_cancel(
    appointment_id: UUID,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    try:
        return await cancel_appointment(session, appointment_id, current_user)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post(
    "/appointments/{appointment_id}/join",
    response_model=JoinResponse,
    summary="Enter the consultation room",
)
async def appointments_join(
    appointment_id: UUID,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    try:
        return await join_appointment(session, appointment_id, current_user)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.put(
    "/appointments/{appointment_id}/complete",
    response_model=AppointmentPublic,
    summary="Doctor completes the consultation with a prescription",
)
async def appointments_complete(
    appointment_id: UUID,
    payload: CompleteRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    try:
        return await complete_appointment(
            session, appointment_id, current_user, payload.prescription, payload.notes
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
