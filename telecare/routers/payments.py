# telecare/routers/payments.py
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.core.errors import SchedulingError, to_http_exception
from telecare.db.sql import get_session
from telecare.dependencies import require_roles
from telecare.modules.payments.gateway import PaymentGateway, get_payment_gateway
from telecare.modules.payments.schemas import (
    CreateOrderRequest,
    OrderPublic,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from telecare.modules.payments.service import create_order, mark_paid
from telecare.modules.users.models import User, UserRole

router = APIRouter(tags=["payments"])


@router.post(
    "/payments/create-order",
    response_model=OrderPublic,
    status_code=status.HTTP_201_CREATED,
    summary="Open a gateway order for an appointment's total amount",
    responses={502: {"description": "Payment gateway unavailable"}},
)
async def payments_create_order(
    payload: CreateOrderRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.PATIENT)),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    try:
        return await create_order(session, payload.appointment_id, current_user, gateway)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post(
    "/payments/verify",
    response_model=VerifyPaymentResponse,
    summary="Verify the checkout signature and mark the appointment paid",
    responses={400: {"description": "Signature or order mismatch"}},
)
async def payments_verify(
    payload: VerifyPaymentRequest,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(require_roles(UserRole.PATIENT)),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    try:
        appointment = await mark_paid(
            session, payload.appointment_id, payload.proof, current_user, gateway
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    return VerifyPaymentResponse(appointment=appointment)
