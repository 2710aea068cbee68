from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from telecare.core.errors import NotFound
from telecare.modules.appointments import service as ledger
from telecare.modules.appointments.models import ApptStatus
from telecare.modules.appointments.schemas import AppointmentBookRequest, FeeBreakdown
from telecare.modules.consultations import service as consultations
from telecare.modules.consultations.service import RoomEvent

NINE = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


async def booked(session, doctor, patient):
    return await ledger.book_appointment(
        session,
        AppointmentBookRequest(
            doctor_id=doctor.id,
            slot_start=NINE,
            slot_end=NINE + timedelta(minutes=30),
            consultation_type="voice",
            symptoms="Shortness of breath on exertion",
            fees=FeeBreakdown(
                consultation_fee=Decimal("300"), platform_fee=Decimal("0"), total_amount=Decimal("300")
            ),
        ),
        patient,
    )


@pytest.mark.asyncio
async def test_room_token_resolves_to_appointment(session, doctor, patient):
    appt = await booked(session, doctor, patient)
    assert await consultations.resolve_room(session, appt.room_token) == appt.id

    with pytest.raises(NotFound):
        await consultations.resolve_room(session, "room_unknown")


@pytest.mark.asyncio
async def test_room_end_without_prescription_keeps_status(session, doctor, patient):
    appt = await booked(session, doctor, patient)
    await consultations.handle_room_event(session, appt.room_token, RoomEvent.JOINED, patient)

    after = await consultations.handle_room_event(session, appt.room_token, RoomEvent.ENDED, doctor)
    assert after.status == ApptStatus.IN_PROGRESS
    assert after.consultation_type == "voice"


@pytest.mark.asyncio
async def test_room_end_with_prescription_completes(session, doctor, patient):
    appt = await booked(session, doctor, patient)
    done = await consultations.handle_room_event(
        session, appt.room_token, RoomEvent.ENDED, doctor, prescription="Salbutamol inhaler"
    )
    assert done.status == ApptStatus.COMPLETED


@pytest.mark.asyncio
async def test_abort_cancels_live_consultation(session, doctor, patient):
    appt = await booked(session, doctor, patient)
    await consultations.on_room_join(session, appt.id, doctor)
    aborted = await consultations.abort(session, appt.id, doctor)
    assert aborted.status == ApptStatus.CANCELLED
