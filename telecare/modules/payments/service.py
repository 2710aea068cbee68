# telecare/modules/payments/service.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.errors import Forbidden, InvalidTransition, VerificationFailed
from telecare.modules.appointments.models import Appointment, ApptStatus, PaymentStatus
from telecare.modules.appointments.schemas import AppointmentPublic
from telecare.modules.appointments.service import load_appointment, reload_appointment, to_public
from telecare.modules.audit import AuditAction, record_audit
from telecare.modules.payments.gateway import PaymentGateway
from telecare.modules.payments.schemas import OrderPublic, PaymentProof
from telecare.modules.users.models import User, UserRole

logger = logging.getLogger(__name__)


def _ensure_payable(appt: Appointment, current_user: User) -> None:
    if not current_user.has_role(UserRole.PATIENT) or appt.patient_id != current_user.id:
        raise Forbidden("not_your_appointment")
    if appt.payment_status == PaymentStatus.PAID.value:
        raise InvalidTransition("appointment_already_paid")
    if appt.status == ApptStatus.CANCELLED.value:
        raise InvalidTransition("appointment_cancelled")


async def create_order(
    session: AsyncSession,
    appointment_id: UUID,
    current_user: User,
    gateway: PaymentGateway,
) -> OrderPublic:
    """
    Ask the gateway for an order of the appointment's total_amount and
    remember its id; mark_paid only accepts proofs for that order. No row
    lock is held while the gateway is called.
    """
    appt = await load_appointment(session, appointment_id)
    _ensure_payable(appt, current_user)

    order = await gateway.create_order(
        amount=appt.total_amount,
        receipt=f"appt_{appt.id.hex}",
        notes={
            "appointment_id": str(appt.id),
            "doctor_id": str(appt.doctor_id),
            "consultation_type": appt.consultation_type,
            "slot_start": appt.slot_start.isoformat(),
        },
    )
    appt.payment_order_id = order["id"]
    await session.flush()

    await record_audit(
        session, current_user.id, AuditAction.PAYMENT_ORDER_CREATED, appt.id, order_id=order["id"]
    )
    logger.info("Payment order %s created for appointment %s", order["id"], appt.id)
    return OrderPublic(
        order_id=order["id"],
        amount=appt.total_amount,
        currency=gateway.currency,
        key=gateway.key_id,
    )


async def mark_paid(
    session: AsyncSession,
    appointment_id: UUID,
    proof: PaymentProof,
    current_user: User,
    gateway: PaymentGateway,
    now: Optional[datetime] = None,
) -> AppointmentPublic:
    """
    Flip payment_status to paid once the proof checks out against the order
    created for this appointment. The slot reservation is never touched.
    """
    appt = await load_appointment(session, appointment_id, for_update=True)
    _ensure_payable(appt, current_user)

    if not appt.payment_order_id or proof.order_id != appt.payment_order_id:
        logger.warning("Payment proof for appointment %s names an unknown order", appt.id)
        raise VerificationFailed("order_mismatch")
    if not gateway.verify_signature(
        order_id=proof.order_id, payment_id=proof.payment_id, signature=proof.signature
    ):
        logger.warning("Payment signature mismatch for appointment %s", appt.id)
        raise VerificationFailed("signature_mismatch")

    appt.payment_status = PaymentStatus.PAID.value
    appt.payment_reference = proof.payment_id
    appt.paid_at = now or datetime.now(timezone.utc)
    await session.flush()

    await record_audit(
        session, current_user.id, AuditAction.PAYMENT_VERIFIED, appt.id, payment_id=proof.payment_id
    )
    logger.info("Appointment %s paid", appt.id)
    return to_public(await reload_appointment(session, appt.id))
