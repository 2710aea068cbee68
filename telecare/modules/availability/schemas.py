# telecare/modules/availability/schemas.py
from __future__ import annotations

from datetime import date, datetime, time
from typing import List
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from telecare.core.config import settings
from telecare.modules.availability.rules import validate_template


class TimeWindow(BaseModel):
    """Wall-clock window inside a day, e.g. 09:00–12:00."""

    model_config = ConfigDict(frozen=True)

    start: time
    end: time

    @field_validator("start", "end")
    @classmethod
    def _wall_clock_minutes(cls, v: time) -> time:
        # Windows are read in the template's timezone, to the minute
        if v.tzinfo is not None:
            raise ValueError("window times must not carry a UTC offset")
        if v.second or v.microsecond:
            raise ValueError("window times must be whole minutes (HH:MM)")
        return v

    @field_serializer("start", "end")
    def _hhmm(self, v: time) -> str:
        return v.strftime("%H:%M")


class AvailabilityTemplateBase(BaseModel):
    valid_from: date
    valid_until: date
    excluded_weekdays: List[int] = Field(
        default_factory=list, description="0 = Sunday .. 6 = Saturday"
    )
    daily_windows: List[TimeWindow] = Field(default_factory=list)
    slot_duration_minutes: int = 30
    timezone: str = Field(default_factory=lambda: settings.DEFAULT_TIMEZONE)


class AvailabilityTemplateIn(AvailabilityTemplateBase):
    """
    Payload a doctor submits. Invariants are checked before anything is
    persisted.
    """

    daily_windows: List[TimeWindow] = Field(..., min_length=1)
    slot_duration_minutes: int = Field(30, ge=5, le=180)

    @model_validator(mode="after")
    def _check_invariants(self):
        validate_template(self)
        return self


class AvailabilityTemplatePublic(AvailabilityTemplateBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    doctor_id: UUID
    updated_at: datetime


class Slot(BaseModel):
    """A candidate bookable interval. Derived on every query, never stored."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime


class SlotList(BaseModel):
    doctor_id: UUID
    date: date
    timezone: str
    slot_duration_minutes: int
    slots: List[Slot]


class AvailableDates(BaseModel):
    doctor_id: UUID
    dates: List[date]
