# telecare/modules/availability/rules.py
"""
Invariants of an availability template.

Pure checks with no I/O. Called before a doctor's template is persisted;
a template that passes can always produce at least one slot on an offered
day.
"""
from __future__ import annotations

from datetime import time
from typing import TYPE_CHECKING
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from telecare.core.errors import TemplateValidationError

if TYPE_CHECKING:
    from telecare.modules.availability.schemas import AvailabilityTemplateBase


def minutes_of(t: time) -> int:
    return t.hour * 60 + t.minute


def resolve_timezone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise TemplateValidationError("unknown_timezone", f"unknown timezone {name!r}") from exc


def validate_template(template: "AvailabilityTemplateBase") -> None:
    """
    Raise TemplateValidationError if the template breaks an invariant:

    - ``valid_from`` after ``valid_until``
    - a window whose start is not before its end
    - two windows overlapping, whatever their stored order
    - a slot duration that is not positive, or longer than every window
    - weekday indices outside 0..6, unknown timezone
    """
    if template.valid_from > template.valid_until:
        raise TemplateValidationError(
            "invalid_date_range", "valid_from must not be after valid_until"
        )

    for weekday in template.excluded_weekdays:
        if not 0 <= weekday <= 6:
            raise TemplateValidationError(
                "invalid_weekday", f"weekday {weekday} is outside 0..6"
            )

    for window in template.daily_windows:
        if window.start >= window.end:
            raise TemplateValidationError(
                "invalid_window",
                f"window {window.start:%H:%M}-{window.end:%H:%M} must start before it ends",
            )

    ordered = sorted(template.daily_windows, key=lambda w: w.start)
    for prev, cur in zip(ordered, ordered[1:]):
        if cur.start < prev.end:
            raise TemplateValidationError(
                "overlapping_windows",
                f"window {cur.start:%H:%M}-{cur.end:%H:%M} overlaps "
                f"{prev.start:%H:%M}-{prev.end:%H:%M}",
            )

    duration = template.slot_duration_minutes
    if duration <= 0:
        raise TemplateValidationError(
            "invalid_slot_duration", "slot_duration_minutes must be positive"
        )
    longest = max(
        (minutes_of(w.end) - minutes_of(w.start) for w in template.daily_windows),
        default=0,
    )
    if duration > longest:
        raise TemplateValidationError(
            "invalid_slot_duration",
            "slot_duration_minutes is longer than every daily window",
        )

    resolve_timezone(template.timezone)
