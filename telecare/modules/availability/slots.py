# telecare/modules/availability/slots.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterable, List, Optional

from telecare.modules.availability.rules import minutes_of, resolve_timezone
from telecare.modules.availability.schemas import AvailabilityTemplateBase, Slot


def weekday_index(d: date) -> int:
    """0 = Sunday .. 6 = Saturday."""
    return d.isoweekday() % 7


def is_offered_day(template: AvailabilityTemplateBase, target_date: date) -> bool:
    if not template.valid_from <= target_date <= template.valid_until:
        return False
    return weekday_index(target_date) not in set(template.excluded_weekdays)


def derive_slots(
    template: AvailabilityTemplateBase,
    target_date: date,
    booked_start_times: Iterable[datetime] = (),
) -> List[Slot]:
    """
    Bookable slots of ``template`` on ``target_date``.

    Windows are walked in their stored order, each in steps of
    ``slot_duration_minutes``; a slot is produced only when it fits entirely
    inside its window, so a trailing remainder is dropped. Slots whose start
    instant equals one of ``booked_start_times`` are left out (exact match on
    the start, not an overlap test). Naive booked times are read as wall-clock
    times in the template's timezone.

    Wall-clock starts skipped by a daylight-saving gap are not offered; a
    slot's end is its start instant plus the duration.

    Pure and deterministic: the caller supplies the booked times.
    """
    if not is_offered_day(template, target_date):
        return []

    tz = resolve_timezone(template.timezone)
    booked = {
        (b if b.tzinfo is not None else b.replace(tzinfo=tz)).astimezone(timezone.utc)
        for b in booked_start_times
    }
    step = template.slot_duration_minutes

    slots: List[Slot] = []
    for window in template.daily_windows:
        end_m = minutes_of(window.end)
        m = minutes_of(window.start)
        while m + step <= end_m:
            wall = datetime.combine(target_date, time(m // 60, m % 60))
            m += step
            start_utc = wall.replace(tzinfo=tz).astimezone(timezone.utc)
            start = start_utc.astimezone(tz)
            if start.replace(tzinfo=None) != wall or start_utc in booked:
                continue
            end = (start_utc + timedelta(minutes=step)).astimezone(tz)
            slots.append(Slot(start=start, end=end))
    return slots


def list_available_dates(
    template: AvailabilityTemplateBase,
    today: date,
    limit: Optional[int] = None,
) -> List[date]:
    """
    Offered dates from max(today, valid_from) through valid_until, skipping
    excluded weekdays.
    """
    dates: List[date] = []
    d = max(today, template.valid_from)
    while d <= template.valid_until and (limit is None or len(dates) < limit):
        if weekday_index(d) not in template.excluded_weekdays:
            dates.append(d)
        d += timedelta(days=1)
    return dates
