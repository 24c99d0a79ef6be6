# shopagenda/services/availability.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shopagenda.core.config import settings
from shopagenda.core.slots import busy_slots_for, slots_for
from shopagenda.core.working_hours import to_utc
from shopagenda.crud.appointment import list_appointments
from shopagenda.crud.working_hours import load_schedule


@dataclass
class DayAvailability:
    day: date
    granularity_minutes: int
    slots: list[time]
    busy: list[time]
    configured: bool


async def day_availability(
    db: AsyncSession,
    *,
    shop_id: int,
    day: date,
    granularity_minutes: Optional[int] = None,
) -> DayAvailability:
    """Open slot starts for ``day`` plus the ones already taken (advisory)."""
    granularity = granularity_minutes or settings.SLOT_GRANULARITY_MINUTES
    schedule = await load_schedule(db, shop_id=shop_id)
    slots = slots_for(schedule, day, granularity)

    midnight = to_utc(datetime.combine(day, time(0, 0)), schedule.tz)
    # start a day early so long appointments from the previous evening count
    booked = await list_appointments(
        db,
        shop_id=shop_id,
        start_utc=midnight - timedelta(days=1),
        end_utc=midnight + timedelta(days=1),
        active_only=True,
    )
    busy = busy_slots_for(schedule, day, slots, booked, granularity)

    return DayAvailability(
        day=day,
        granularity_minutes=granularity,
        slots=slots,
        busy=busy,
        configured=schedule.is_configured,
    )
