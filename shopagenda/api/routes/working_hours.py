# shopagenda/api/routes/working_hours.py
from __future__ import annotations
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shopagenda.api.auth import get_shop_id
from shopagenda.crud import working_hours as crud
from shopagenda.crud.shop import require_shop
from shopagenda.db.session import get_session
from shopagenda.schemas.working_hours import OpenOut, SlotsOut, WorkingHoursIn, WorkingHoursOut
from shopagenda.services.availability import day_availability

router = APIRouter(prefix="/working-hours", tags=["working-hours"])


@router.get("", response_model=list[WorkingHoursOut])
async def list_working_hours(
    shop_id: int = Depends(get_shop_id),
    db: AsyncSession = Depends(get_session),
):
    return await crud.list_working_hours(db, shop_id=shop_id)


@router.post("/initialize", response_model=list[WorkingHoursOut], status_code=201)
async def initialize_working_hours(
    shop_id: int = Depends(get_shop_id),
    db: AsyncSession = Depends(get_session),
):
    """Store the default week: Mon-Fri 9-18 with a 12-14 break, Sat 9-13, Sun closed."""
    await require_shop(db, shop_id)
    return await crud.initialize_working_hours(db, shop_id=shop_id)


@router.put("/{weekday}", response_model=WorkingHoursOut)
async def put_working_hours(
    payload: WorkingHoursIn,
    weekday: int = Path(..., ge=0, le=6, description="0=Monday .. 6=Sunday"),
    shop_id: int = Depends(get_shop_id),
    db: AsyncSession = Depends(get_session),
):
    await require_shop(db, shop_id)
    return await crud.upsert_working_hours(
        db,
        shop_id=shop_id,
        weekday=weekday,
        is_open=payload.is_open,
        start_time=payload.start_time,
        end_time=payload.end_time,
        break_start=payload.break_start,
        break_end=payload.break_end,
    )


@router.get("/slots", response_model=SlotsOut)
async def get_slots(
    day: date = Query(..., alias="date"),
    granularity: Optional[int] = Query(None, gt=0, le=1440),
    shop_id: int = Depends(get_shop_id),
    db: AsyncSession = Depends(get_session),
):
    """Open slot starts for a day; ``busy`` lists the ones already booked."""
    await require_shop(db, shop_id)
    availability = await day_availability(db, shop_id=shop_id, day=day, granularity_minutes=granularity)
    return SlotsOut.model_validate(availability, from_attributes=True)


@router.get("/open", response_model=OpenOut)
async def get_open(
    at: datetime = Query(..., description="Shop-local civil time, or ISO8601 with offset"),
    shop_id: int = Depends(get_shop_id),
    db: AsyncSession = Depends(get_session),
):
    await require_shop(db, shop_id)
    return OpenOut(open=await crud.is_open_at(db, shop_id=shop_id, instant=at))
