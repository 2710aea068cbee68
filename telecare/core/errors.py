# telecare/core/errors.py
from __future__ import annotations

from fastapi import HTTPException, status


# Service-level errors; routers map them to HTTP with to_http_exception().
class SchedulingError(Exception):
    """
    Base for every error the scheduling core lets cross its boundary.
    The message is a stable snake_case code, e.g. "slot_already_taken".
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "scheduling_error"

    def __init__(self, code: str = "", detail: str | None = None):
        super().__init__(code or self.default_code)
        self.code = code or self.default_code
        self.detail = detail


class ValidationError(SchedulingError, ValueError):
    """
    Malformed template or booking request. Also a ValueError so that
    pydantic validators may raise it directly.
    """

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_code = "invalid_request"


class TemplateValidationError(ValidationError):
    """Availability template violates its invariants."""

    default_code = "invalid_template"


class SlotUnavailable(SchedulingError):
    """Requested slot overlaps a live booking (pre-check or unique index)."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "slot_already_taken"


class InvalidTransition(SchedulingError):
    """Appointment state machine violation."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "invalid_transition"


class Forbidden(SchedulingError):
    """Actor id / role does not match the appointment."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = "forbidden"


class NotFound(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"


class VerificationFailed(SchedulingError):
    """Payment proof did not match the order created for the appointment."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "payment_verification_failed"


class GatewayUnavailable(SchedulingError):
    """External payment gateway unreachable or refused the request."""

    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "payment_gateway_unavailable"


def to_http_exception(exc: SchedulingError) -> HTTPException:
    detail = exc.code if exc.detail is None else {"code": exc.code, "message": exc.detail}
    return HTTPException(status_code=exc.status_code, detail=detail)


__all__ = [
    "SchedulingError",
    "ValidationError",
    "TemplateValidationError",
    "SlotUnavailable",
    "InvalidTransition",
    "Forbidden",
    "NotFound",
    "VerificationFailed",
    "GatewayUnavailable",
    "to_http_exception",
]
