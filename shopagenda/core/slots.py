# shopagenda/core/slots.py
"""
Slot-start generation and advisory occupancy checks.

Slots are filtered only by working hours. Occupied slots stay in the list;
callers get ``SoftSlotConflict`` notices instead of a rejection.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional, Protocol

from shopagenda.core.config import settings
from shopagenda.core.errors import ValidationError
from shopagenda.core.transitions import AppointmentStatus
from shopagenda.core.working_hours import WeeklySchedule, to_shop_local

MINUTES_PER_DAY = 24 * 60


class BookedSlot(Protocol):
    id: int
    start_datetime: datetime
    duration_minutes: int
    status: AppointmentStatus


@dataclass(frozen=True)
class SoftSlotConflict:
    """Booking is allowed anyway; the booking actor is only warned."""
    kind: str  # "closed" | "occupied"
    message: str
    appointment_ids: tuple = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, "appointment_ids": list(self.appointment_ids)}


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def _check_granularity(granularity_minutes: int) -> None:
    if granularity_minutes <= 0 or MINUTES_PER_DAY % granularity_minutes != 0:
        raise ValidationError("granularity must be a positive divisor of 1440 minutes")


def candidate_starts(
    granularity_minutes: int,
    day_start: Optional[time] = None,
    day_end: Optional[time] = None,
) -> list[time]:
    """Every ``granularity`` minutes from day_start, strictly before day_end."""
    _check_granularity(granularity_minutes)
    day_start = day_start or settings.SLOT_DAY_START
    day_end = day_end or settings.SLOT_DAY_END

    current = day_start.hour * 60 + day_start.minute
    end = day_end.hour * 60 + day_end.minute
    starts = []
    while current < end:
        starts.append(time(current // 60, current % 60))
        current += granularity_minutes
    return starts


def slots_for(
    schedule: WeeklySchedule,
    day: date,
    granularity_minutes: int = 30,
    day_start: Optional[time] = None,
    day_end: Optional[time] = None,
) -> list[time]:
    """Open slot starts on ``day``, ascending; empty if the day is closed."""
    candidates = candidate_starts(granularity_minutes, day_start, day_end)
    if schedule.is_closed_on(day):
        return []
    return [
        t for t in candidates
        if schedule.is_open_at(datetime.combine(day, t))
    ]


def _active(appointments: Iterable[BookedSlot]) -> list[BookedSlot]:
    return [a for a in appointments if not AppointmentStatus(a.status).is_terminal]


def _interval(appt: BookedSlot) -> tuple[datetime, datetime]:
    start = appt.start_datetime
    return start, start + timedelta(minutes=appt.duration_minutes)


def busy_slots_for(
    schedule: WeeklySchedule,
    day: date,
    slots: Iterable[time],
    appointments: Iterable[BookedSlot],
    granularity_minutes: int = 30,
) -> list[time]:
    """The subset of ``slots`` overlapped by a live appointment."""
    active = _active(appointments)
    busy = []
    for t in slots:
        slot_start = to_shop_local(datetime.combine(day, t), schedule.tz)
        slot_end = slot_start + timedelta(minutes=granularity_minutes)
        for appt in active:
            appt_start, appt_end = _interval(appt)
            if overlaps(slot_start, slot_end, appt_start, appt_end):
                busy.append(t)
                break
    return busy


def check_booking(
    schedule: WeeklySchedule,
    start: datetime,
    duration_minutes: int,
    appointments: Iterable[BookedSlot],
    exclude_id: Optional[int] = None,
) -> list[SoftSlotConflict]:
    """Advisory notices for booking ``start`` for ``duration_minutes``."""
    notices = []
    local_start = to_shop_local(start, schedule.tz)
    end = local_start + timedelta(minutes=duration_minutes)

    if not schedule.is_open_at(local_start):
        notices.append(SoftSlotConflict(
            kind="closed",
            message=f"{local_start:%Y-%m-%d %H:%M} is outside working hours",
        ))
    elif not schedule.is_open_between(local_start, end):
        notices.append(SoftSlotConflict(
            kind="closed",
            message=f"{local_start:%Y-%m-%d %H:%M} for {duration_minutes} min runs past working hours",
        ))

    clashing = tuple(
        appt.id for appt in _active(appointments)
        if appt.id != exclude_id and overlaps(local_start, end, *_interval(appt))
    )
    if clashing:
        notices.append(SoftSlotConflict(
            kind="occupied",
            message=f"{len(clashing)} other appointment(s) overlap this slot",
            appointment_ids=clashing,
        ))
    return notices
