# shopagenda/crud/working_hours.py

from __future__ import annotations
from datetime import datetime, time
from typing import Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from shopagenda.core.errors import Conflict
from shopagenda.core.working_hours import (
    DEFAULT_WEEK,
    DayHours,
    WeeklySchedule,
    shop_zone,
    validate_day_hours,
)
from shopagenda.crud.shop import get_shop
from shopagenda.db.models.working_hours import WorkingHours


async def list_working_hours(db: AsyncSession, *, shop_id: int) -> Sequence[WorkingHours]:
    res = await db.execute(
        sa.select(WorkingHours)
        .where(WorkingHours.shop_id == shop_id)
        .order_by(WorkingHours.weekday.asc())
    )
    return res.scalars().all()


async def load_schedule(db: AsyncSession, *, shop_id: int) -> WeeklySchedule:
    shop = await get_shop(db, shop_id)
    tz = shop_zone(shop.timezone if shop else None)
    rows = await list_working_hours(db, shop_id=shop_id)
    return WeeklySchedule.from_rows(rows, tz)


async def hours_for(db: AsyncSession, *, shop_id: int, weekday: int) -> Optional[DayHours]:
    schedule = await load_schedule(db, shop_id=shop_id)
    return schedule.hours_for(weekday)


async def is_open_at(db: AsyncSession, *, shop_id: int, instant: datetime) -> bool:
    schedule = await load_schedule(db, shop_id=shop_id)
    return schedule.is_open_at(instant)


async def initialize_working_hours(db: AsyncSession, *, shop_id: int) -> Sequence[WorkingHours]:
    """Insert the default week; refuses to overwrite an existing configuration."""
    existing = await list_working_hours(db, shop_id=shop_id)
    if existing:
        raise Conflict("Working hours are already configured for this shop")

    for day in DEFAULT_WEEK:
        db.add(WorkingHours(
            shop_id=shop_id,
            weekday=day.weekday,
            is_open=day.is_open,
            start_time=day.start_time,
            end_time=day.end_time,
            break_start=day.break_start,
            break_end=day.break_end,
        ))
    await db.commit()
    return await list_working_hours(db, shop_id=shop_id)


async def upsert_working_hours(
    db: AsyncSession,
    *,
    shop_id: int,
    weekday: int,
    is_open: bool,
    start_time: time,
    end_time: time,
    break_start: Optional[time] = None,
    break_end: Optional[time] = None,
) -> WorkingHours:
    validate_day_hours(weekday, start_time, end_time, break_start, break_end)

    res = await db.execute(
        sa.select(WorkingHours).where(
            WorkingHours.shop_id == shop_id,
            WorkingHours.weekday == weekday,
        )
    )
    row = res.scalar_one_or_none()
    if row is None:
        row = WorkingHours(shop_id=shop_id, weekday=weekday)
        db.add(row)

    row.is_open = is_open
    row.start_time = start_time
    row.end_time = end_time
    row.break_start = break_start
    row.break_end = break_end

    await db.commit()
    await db.refresh(row)
    return row
