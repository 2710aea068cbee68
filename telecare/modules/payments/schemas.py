# telecare/modules/payments/schemas.py
from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from telecare.modules.appointments.schemas import AppointmentPublic


class CreateOrderRequest(BaseModel):
    appointment_id: UUID


class OrderPublic(BaseModel):
    """What the checkout widget needs to open the payment dialog."""

    order_id: str
    amount: Decimal
    currency: str
    key: str


class PaymentProof(BaseModel):
    order_id: str
    payment_id: str
    signature: str


class VerifyPaymentRequest(BaseModel):
    appointment_id: UUID
    proof: PaymentProof


class VerifyPaymentResponse(BaseModel):
    appointment: AppointmentPublic
