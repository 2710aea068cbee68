# telecare/routers/consultations.py
from __future__ import annotations

from typing import Union
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.errors import SchedulingError, to_http_exception
from telecare.db.sql import get_session
from telecare.dependencies import get_current_user
from telecare.modules.appointments.schemas import AppointmentPublic, JoinResponse
from telecare.modules.consultations import service as consultations
from telecare.modules.consultations.schemas import RoomEventRequest
from telecare.modules.users.models import User

router = APIRouter(tags=["consultations"])


@router.post(
    "/consultations/{appointment_id}/abort",
    response_model=AppointmentPublic,
    summary="Doctor aborts a consultation in progress",
)
async def consultations_abort(
    appointment_id: UUID,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    try:
        return await consultations.abort(session, appointment_id, current_user)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post(
    "/consultations/room-events",
    response_model=Union[JoinResponse, AppointmentPublic],
    summary="Relay a room joined/ended event",
)
async def consultations_room_event(
    payload: RoomEventRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    try:
        return await consultations.handle_room_event(
            session,
            payload.room_token,
            payload.event,
            current_user,
            prescription=payload.prescription,
            notes=payload.notes,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
