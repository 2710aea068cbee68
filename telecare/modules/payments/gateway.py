"""Async client for a Razorpay-compatible orders API.

Only two things are needed from the gateway: creating an order for an
amount, and checking the signature the checkout widget returns.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

import httpx

from telecare.core.config import settings
from telecare.core.errors import GatewayUnavailable

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Decimal rupees -> integer paise."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    body = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class PaymentGateway:
    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        currency: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = (base_url or settings.PAYMENT_API_BASE).rstrip("/")
        self.key_id = key_id if key_id is not None else settings.PAYMENT_KEY_ID
        self.key_secret = key_secret if key_secret is not None else settings.PAYMENT_KEY_SECRET
        self.currency = currency or settings.PAYMENT_CURRENCY
        self.timeout = timeout or settings.PAYMENT_TIMEOUT_SECONDS

    async def create_order(
        self, *, amount: Decimal, receipt: str, notes: Optional[dict[str, Any]] = None
    ) -> dict[str, Any]:
        """POST /orders; returns the gateway's order document."""
        payload = {
            "amount": to_minor_units(amount),
            "currency": self.currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                resp = await client.post(
                    f"{self.base_url}/orders",
                    json=payload,
                    auth=(self.key_id, self.key_secret),
                )
                resp.raise_for_status()
                order = resp.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.error("Payment order creation failed for %s: %s", receipt, exc)
                raise GatewayUnavailable("order_creation_failed") from exc
        if not isinstance(order, dict) or not order.get("id"):
            logger.error("Payment gateway returned an order without an id for %s", receipt)
            raise GatewayUnavailable("order_creation_failed")
        return order

    def verify_signature(self, *, order_id: str, payment_id: str, signature: str) -> bool:
        expected = compute_signature(self.key_secret, order_id, payment_id)
        return hmac.compare_digest(expected, signature or "")


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency; tests override it."""
    return PaymentGateway()
