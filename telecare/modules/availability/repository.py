# telecare/modules/availability/repository.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from telecare.modules.availability.models import AvailabilityTemplate
from telecare.modules.availability.schemas import AvailabilityTemplateIn


async def get_by_doctor(db: AsyncSession, *, doctor_id: UUID) -> Optional[AvailabilityTemplate]:
    row = await db.execute(
        select(AvailabilityTemplate).where(AvailabilityTemplate.doctor_id == doctor_id)
    )
    return row.scalar_one_or_none()


async def upsert(
    db: AsyncSession, *, doctor_id: UUID, payload: AvailabilityTemplateIn
) -> AvailabilityTemplate:
    """
    Replace the doctor's template. Windows are stored sorted by start so
    derivation in stored order is chronological.
    """
    windows = sorted(payload.daily_windows, key=lambda w: w.start)
    values = dict(
        valid_from=payload.valid_from,
        valid_until=payload.valid_until,
        excluded_weekdays=sorted(set(payload.excluded_weekdays)),
        daily_windows=[w.model_dump(mode="json") for w in windows],
        slot_duration_minutes=payload.slot_duration_minutes,
        timezone=payload.timezone,
    )

    tpl = await get_by_doctor(db, doctor_id=doctor_id)
    if tpl is None:
        tpl = AvailabilityTemplate(doctor_id=doctor_id, **values)
        db.add(tpl)
    else:
        for key, value in values.items():
            setattr(tpl, key, value)

    await db.flush()
    await db.refresh(tpl)
    return tpl
