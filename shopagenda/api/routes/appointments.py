# shopagenda/api/routes/appointments.py
from __future__ import annotations
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from shopagenda.api.auth import get_dispatcher, get_shop_id
from shopagenda.core.transitions import Action, Actor
from shopagenda.db.session import get_session
from shopagenda.schemas.appointment import (
    ActionIn,
    AppointmentCreate,
    AppointmentOut,
    AppointmentResultOut,
    AppointmentUpdate,
    CountOut,
    EventOut,
)
from shopagenda.services import appointments as svc
from shopagenda.services.notifications import NotificationDispatcher

router = APIRouter(prefix="/appointments", tags=["appointments"])

# URL segment -> staff action
STAFF_ACTIONS = {
    "confirm": Action.CONFIRM,
    "cancel": Action.CANCEL,
    "complete": Action.COMPLETE,
    "no-show": Action.MARK_NO_SHOW,
    "accept-counter": Action.ACCEPT_COUNTER,
    "reject-counter": Action.REJECT_COUNTER,
}


def _out(result: svc.AppointmentResult) -> AppointmentResultOut:
    return AppointmentResultOut.model_validate(result, from_attributes=True)


@router.post("", response_model=AppointmentResultOut, status_code=201)
async def create_appointment(
    payload: AppointmentCreate,
    shop_id: int = Depends(get_shop_id),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = await svc.create_appointment(
        db,
        dispatcher,
        shop_id=shop_id,
        start_datetime=payload.start_datetime,
        duration_minutes=payload.duration_minutes,
        appointment_type=payload.appointment_type,
        actor=Actor.SHOP,
        sav_case_id=payload.sav_case_id,
        customer_id=payload.customer_id,
        technician_id=payload.technician_id,
        notes=payload.notes,
        device_info=payload.device_info,
        channels=payload.channels,
    )
    return _out(result)


@router.get("", response_model=list[AppointmentOut])
async def list_appointments(
    view: str = Query("day", pattern="^(day|week|month)$"),
    day: Optional[date] = Query(None, alias="date"),
    shop_id: int = Depends(get_shop_id),
    db: AsyncSession = Depends(get_session),
):
    """Agenda for the day, week (Monday first) or month containing ``date``."""
    return await svc.list_for_view(db, shop_id=shop_id, view=view, day=day)


@router.get("/pending", response_model=list[AppointmentOut])
async def list_pending(
    shop_id: int = Depends(get_shop_id),
    db: AsyncSession = Depends(get_session),
):
    """Counter-proposals waiting for the shop, most recent first."""
    return await svc.list_pending_counter_proposals(db, shop_id=shop_id)


@router.get("/today/count", response_model=CountOut)
async def today_count(
    shop_id: int = Depends(get_shop_id),
    db: AsyncSession = Depends(get_session),
):
    return CountOut(count=await svc.count_today(db, shop_id=shop_id))


@router.get("/{appointment_id}", response_model=AppointmentOut)
async def get_appointment(
    appointment_id: int,
    shop_id: int = Depends(get_shop_id),
    db: AsyncSession = Depends(get_session),
):
    return await svc.get_appointment(db, shop_id=shop_id, appointment_id=appointment_id)


@router.patch("/{appointment_id}", response_model=AppointmentResultOut)
async def edit_appointment(
    appointment_id: int,
    payload: AppointmentUpdate,
    shop_id: int = Depends(get_shop_id),
    db: AsyncSession = Depends(get_session),
):
    result = await svc.edit_appointment(
        db,
        shop_id=shop_id,
        appointment_id=appointment_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    return _out(result)


@router.delete("/{appointment_id}", status_code=204)
async def delete_appointment(
    appointment_id: int,
    shop_id: int = Depends(get_shop_id),
    db: AsyncSession = Depends(get_session),
):
    await svc.delete_appointment(db, shop_id=shop_id, appointment_id=appointment_id)
    return Response(status_code=204)


@router.get("/{appointment_id}/history", response_model=list[EventOut])
async def appointment_history(
    appointment_id: int,
    shop_id: int = Depends(get_shop_id),
    db: AsyncSession = Depends(get_session),
):
    return await svc.history(db, shop_id=shop_id, appointment_id=appointment_id)


@router.post(
    "/{appointment_id}/{action}",
    response_model=AppointmentResultOut,
    description="One of: " + ", ".join(STAFF_ACTIONS),
)
async def run_action(
    appointment_id: int,
    action: str,
    payload: Optional[ActionIn] = None,
    shop_id: int = Depends(get_shop_id),
    db: AsyncSession = Depends(get_session),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    if action not in STAFF_ACTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown action: {action}")
    channels = payload.channels if payload else svc.DEFAULT_CHANNELS
    appt = await svc.get_appointment(db, shop_id=shop_id, appointment_id=appointment_id)
    result = await svc.apply_action(
        db, dispatcher, appt, STAFF_ACTIONS[action], Actor.SHOP, channels=channels
    )
    return _out(result)
