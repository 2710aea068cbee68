import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest
import respx

from telecare.core.errors import Forbidden, GatewayUnavailable, InvalidTransition, VerificationFailed
from telecare.modules.appointments import service as ledger
from telecare.modules.appointments.models import PaymentStatus
from telecare.modules.appointments.schemas import AppointmentBookRequest, FeeBreakdown
from telecare.modules.payments import service as payments
from telecare.modules.payments.gateway import PaymentGateway, compute_signature, to_minor_units
from telecare.modules.payments.schemas import PaymentProof

BASE = "https://payments.example.com/v1"
SECRET = "test_secret"
NINE = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)
ORDER = {"id": "order_Abc123", "entity": "order", "amount": 55000, "currency": "INR", "status": "created"}


@pytest.fixture
def gateway() -> PaymentGateway:
    return PaymentGateway(base_url=BASE, key_id="rzp_test_key", key_secret=SECRET, currency="INR", timeout=5)


async def booked(session, doctor, patient):
    return await ledger.book_appointment(
        session,
        AppointmentBookRequest(
            doctor_id=doctor.id,
            slot_start=NINE,
            slot_end=NINE + timedelta(minutes=30),
            symptoms="Recurring migraine in the mornings",
            fees=FeeBreakdown(
                consultation_fee=Decimal("500.00"),
                platform_fee=Decimal("50.00"),
                total_amount=Decimal("550.00"),
            ),
        ),
        patient,
    )


async def ordered(session, appt, patient, gateway):
    with respx.mock(base_url=BASE) as m:
        m.post("/orders").respond(200, json=ORDER)
        return await payments.create_order(session, appt.id, patient, gateway)


def proof(order_id=ORDER["id"], payment_id="pay_Xyz789", secret=SECRET) -> PaymentProof:
    return PaymentProof(
        order_id=order_id,
        payment_id=payment_id,
        signature=compute_signature(secret, order_id, payment_id),
    )


def test_minor_units():
    assert to_minor_units(Decimal("550.00")) == 55000
    assert to_minor_units(Decimal("0.10")) == 10
    assert to_minor_units(Decimal("19.995")) == 2000


def test_signature_check(gateway):
    good = proof()
    assert gateway.verify_signature(order_id=good.order_id, payment_id=good.payment_id, signature=good.signature)
    assert not gateway.verify_signature(order_id=good.order_id, payment_id="pay_other", signature=good.signature)
    assert not gateway.verify_signature(order_id=good.order_id, payment_id=good.payment_id, signature="")


@pytest.mark.asyncio
async def test_create_order_posts_total_in_minor_units(session, doctor, patient, gateway):
    appt = await booked(session, doctor, patient)

    with respx.mock(base_url=BASE) as m:
        route = m.post("/orders").respond(200, json=ORDER)
        order = await payments.create_order(session, appt.id, patient, gateway)

    assert route.called
    request = route.calls.last.request
    body = json.loads(request.content)
    assert body["amount"] == 55000
    assert body["currency"] == "INR"
    assert body["notes"]["appointment_id"] == str(appt.id)
    assert request.headers["authorization"].startswith("Basic ")

    assert order.order_id == ORDER["id"]
    assert order.amount == Decimal("550.00")
    assert order.key == "rzp_test_key"


@pytest.mark.asyncio
async def test_gateway_error_is_reported(session, doctor, patient, gateway):
    appt = await booked(session, doctor, patient)

    with respx.mock(base_url=BASE) as m:
        m.post("/orders").respond(500, json={"error": {"code": "SERVER_ERROR"}})
        with pytest.raises(GatewayUnavailable):
            await payments.create_order(session, appt.id, patient, gateway)


@pytest.mark.asyncio
async def test_gateway_unreachable(session, doctor, patient, gateway):
    appt = await booked(session, doctor, patient)

    with respx.mock(base_url=BASE) as m:
        m.post("/orders").mock(side_effect=httpx.ConnectError("connection refused"))
        with pytest.raises(GatewayUnavailable):
            await payments.create_order(session, appt.id, patient, gateway)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>maintenance</html>"),
        httpx.Response(200, json={"entity": "order", "status": "created"}),
    ],
)
async def test_malformed_order_response(session, doctor, patient, gateway, response):
    appt = await booked(session, doctor, patient)

    with respx.mock(base_url=BASE) as m:
        m.post("/orders").mock(return_value=response)
        with pytest.raises(GatewayUnavailable):
            await payments.create_order(session, appt.id, patient, gateway)

    stored = await ledger.load_appointment(session, appt.id)
    assert stored.payment_order_id is None


@pytest.mark.asyncio
async def test_only_own_appointment_can_be_paid(session, doctor, patient, other_patient, gateway):
    appt = await booked(session, doctor, patient)
    with pytest.raises(Forbidden):
        await payments.create_order(session, appt.id, other_patient, gateway)


@pytest.mark.asyncio
async def test_verified_payment_marks_paid(session, doctor, patient, gateway):
    appt = await booked(session, doctor, patient)
    await ordered(session, appt, patient, gateway)

    paid = await payments.mark_paid(session, appt.id, proof(), patient, gateway)

    assert paid.payment_status == PaymentStatus.PAID
    assert paid.paid_at is not None
    assert paid.status == appt.status
    assert paid.slot_start == appt.slot_start

    with pytest.raises(InvalidTransition) as info:
        await payments.mark_paid(session, appt.id, proof(), patient, gateway)
    assert info.value.code == "appointment_already_paid"


@pytest.mark.asyncio
async def test_forged_signature_rejected(session, doctor, patient, gateway):
    appt = await booked(session, doctor, patient)
    await ordered(session, appt, patient, gateway)

    with pytest.raises(VerificationFailed) as info:
        await payments.mark_paid(session, appt.id, proof(secret="guessed"), patient, gateway)
    assert info.value.code == "signature_mismatch"


@pytest.mark.asyncio
async def test_proof_for_another_order_rejected(session, doctor, patient, gateway):
    appt = await booked(session, doctor, patient)
    await ordered(session, appt, patient, gateway)

    with pytest.raises(VerificationFailed) as info:
        await payments.mark_paid(session, appt.id, proof(order_id="order_Other"), patient, gateway)
    assert info.value.code == "order_mismatch"


@pytest.mark.asyncio
async def test_proof_without_order_rejected(session, doctor, patient, gateway):
    appt = await booked(session, doctor, patient)
    with pytest.raises(VerificationFailed):
        await payments.mark_paid(session, appt.id, proof(), patient, gateway)


@pytest.mark.asyncio
async def test_cancelling_paid_booking_marks_refund(session, doctor, patient, gateway):
    appt = await booked(session, doctor, patient)
    await ordered(session, appt, patient, gateway)
    await payments.mark_paid(session, appt.id, proof(), patient, gateway)

    cancelled = await ledger.cancel_appointment(
        session, appt.id, patient, now=datetime(2024, 12, 1, tzinfo=timezone.utc)
    )
    assert cancelled.payment_status == PaymentStatus.REFUNDED

    with pytest.raises(InvalidTransition) as info:
        await payments.create_order(session, appt.id, patient, gateway)
    assert info.value.code == "appointment_cancelled"
