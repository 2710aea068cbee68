# telecare/modules/consultations/service.py
"""
Sequencing glue between the real-time provider's room events and the
booking ledger. Holds no state; every call goes straight to the ledger.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.errors import NotFound
from telecare.modules.appointments import service as ledger
from telecare.modules.appointments.models import Appointment
from telecare.modules.appointments.schemas import AppointmentPublic, JoinResponse
from telecare.modules.users.models import User

logger = logging.getLogger(__name__)


class RoomEvent(str, Enum):
    JOINED = "joined"
    ENDED = "ended"


async def resolve_room(session: AsyncSession, room_token: str) -> UUID:
    """Map the provider's room identifier back to the appointment id."""
    stmt = select(Appointment.id).where(Appointment.room_token == room_token)
    appointment_id = (await session.execute(stmt)).scalar_one_or_none()
    if appointment_id is None:
        raise NotFound("room_not_found")
    return appointment_id


async def on_room_join(
    session: AsyncSession,
    appointment_id: UUID,
    current_user: User,
) -> JoinResponse:
    return await ledger.join_appointment(session, appointment_id, current_user)


async def on_room_end(
    session: AsyncSession,
    appointment_id: UUID,
    current_user: User,
    prescription: Optional[str] = None,
    notes: Optional[str] = None,
) -> AppointmentPublic:
    """
    Room closed. With a prescription the consultation is completed now;
    without one the status is left alone and the doctor completes it later.
    """
    if prescription and prescription.strip():
        return await ledger.complete_appointment(
            session, appointment_id, current_user, prescription, notes
        )
    logger.info("Room for appointment %s ended without prescription", appointment_id)
    return await ledger.get_appointment(session, appointment_id, current_user)


async def abort(
    session: AsyncSession,
    appointment_id: UUID,
    current_user: User,
) -> AppointmentPublic:
    return await ledger.abort_appointment(session, appointment_id, current_user)


async def handle_room_event(
    session: AsyncSession,
    room_token: str,
    event: RoomEvent,
    current_user: User,
    prescription: Optional[str] = None,
    notes: Optional[str] = None,
) -> Union[JoinResponse, AppointmentPublic]:
    appointment_id = await resolve_room(session, room_token)
    if event is RoomEvent.JOINED:
        return await on_room_join(session, appointment_id, current_user)
    return await on_room_end(session, appointment_id, current_user, prescription, notes)
