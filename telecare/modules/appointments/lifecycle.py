# telecare/modules/appointments/lifecycle.py
from __future__ import annotations

from datetime import datetime, timedelta

from telecare.core.config import settings
from telecare.core.errors import InvalidTransition
from telecare.modules.appointments.models import Appointment, ApptStatus

# scheduled   --join-->      in_progress
# scheduled   --cancel-->    cancelled
# scheduled   --complete-->  completed   (call finished without join tracking)
# in_progress --complete-->  completed
# in_progress --abort-->     cancelled
# completed / cancelled are terminal.
TRANSITIONS: dict[ApptStatus, frozenset[ApptStatus]] = {
    ApptStatus.SCHEDULED: frozenset(
        {ApptStatus.IN_PROGRESS, ApptStatus.COMPLETED, ApptStatus.CANCELLED}
    ),
    ApptStatus.IN_PROGRESS: frozenset({ApptStatus.COMPLETED, ApptStatus.CANCELLED}),
    ApptStatus.COMPLETED: frozenset(),
    ApptStatus.CANCELLED: frozenset(),
}


def can_transition(current: ApptStatus, target: ApptStatus) -> bool:
    return target in TRANSITIONS[current]


def transition(appt: Appointment, target: ApptStatus) -> None:
    """Move ``appt`` to ``target`` or raise InvalidTransition."""
    current = appt.status_enum
    if not can_transition(current, target):
        raise InvalidTransition(
            f"{current.value}_to_{target.value}_not_allowed",
            f"cannot move appointment from {current.value} to {target.value}",
        )
    appt.status = target.value


def can_join_now(appt: Appointment, now: datetime) -> bool:
    """
    Room may be entered from JOIN_EARLY_MINUTES before the slot start to
    JOIN_LATE_MINUTES after it, while the appointment is still live.
    """
    if appt.status_enum not in (ApptStatus.SCHEDULED, ApptStatus.IN_PROGRESS):
        return False
    opens = appt.slot_start - timedelta(minutes=settings.JOIN_EARLY_MINUTES)
    closes = appt.slot_start + timedelta(minutes=settings.JOIN_LATE_MINUTES)
    return opens <= now <= closes
