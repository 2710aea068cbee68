# telecare/modules/appointments/schemas.py
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field

from telecare.modules.appointments.models import ApptStatus, ConsultationType, PaymentStatus
from telecare.modules.users.schemas import UserSummary


class FeeBreakdown(BaseModel):
    """Amounts as quoted to the patient; the ledger stores them verbatim."""

    consultation_fee: Decimal
    platform_fee: Decimal
    total_amount: Decimal


class AppointmentBookRequest(BaseModel):
    """
    Payload to book a slot.
    - patient_id is taken from current_user (role patient), never from the client.
    """

    doctor_id: UUID
    slot_start: AwareDatetime
    slot_end: AwareDatetime
    consultation_type: ConsultationType = ConsultationType.VIDEO
    symptoms: str
    fees: FeeBreakdown


class AppointmentPublic(BaseModel):
    """
    Full appointment with both parties attached for display.
    """

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    doctor_id: UUID
    patient_id: UUID
    slot_start: datetime
    slot_end: datetime
    consultation_type: ConsultationType
    status: ApptStatus
    symptoms: str
    consultation_fee: Decimal
    platform_fee: Decimal
    total_amount: Decimal
    payment_status: PaymentStatus
    prescription: Optional[str] = None
    notes: Optional[str] = None
    room_token: str
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    doctor: Optional[UserSummary] = None
    patient: Optional[UserSummary] = None
    can_join: bool = False


class AppointmentListPage(BaseModel):
    items: List[AppointmentPublic]
    total: int
    limit: int
    offset: int
    has_next: bool


class JoinResponse(BaseModel):
    room_token: str
    appointment: AppointmentPublic


class CompleteRequest(BaseModel):
    prescription: str
    notes: Optional[str] = None


class BookedSlots(BaseModel):
    doctor_id: UUID
    slot_starts: List[datetime] = Field(default_factory=list)
