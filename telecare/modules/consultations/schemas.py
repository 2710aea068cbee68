# telecare/modules/consultations/schemas.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from telecare.modules.consultations.service import RoomEvent


class RoomEventRequest(BaseModel):
    """Lifecycle callback relayed by the client from the RTC provider."""

    room_token: str
    event: RoomEvent
    prescription: Optional[str] = None
    notes: Optional[str] = None
