# shopagenda/services/appointments.py
"""
Appointment lifecycle: creation, edits and status transitions.

Each transition is checked against the transition table on a freshly loaded
row, then written with a conditional update on the status that was read.
Losing that race raises Conflict; nothing is retried here.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shopagenda.core.errors import Conflict, NotFound, ValidationError
from shopagenda.core.logging import get_logger
from shopagenda.core.slots import SoftSlotConflict, check_booking
from shopagenda.core.transitions import (
    Action,
    Actor,
    AppointmentStatus,
    AppointmentType,
    EventKind,
    rule_for,
)
from shopagenda.core.working_hours import shop_zone, to_utc
from shopagenda.crud import appointment as store
from shopagenda.crud.shop import require_shop
from shopagenda.crud.working_hours import load_schedule
from shopagenda.db.models.appointment import Appointment
from shopagenda.services.notifications import NotificationChannel, NotificationDispatcher

logger = get_logger(__name__)

DEFAULT_CHANNELS = (NotificationChannel.CHAT,)
EDITABLE_FIELDS = ("start_datetime", "duration_minutes", "appointment_type", "notes", "technician_id")


@dataclass
class AppointmentResult:
    appointment: Appointment
    warnings: list[str] = field(default_factory=list)
    soft_conflicts: list[SoftSlotConflict] = field(default_factory=list)


def _check_duration(duration_minutes: Any) -> int:
    if not isinstance(duration_minutes, int) or isinstance(duration_minutes, bool) or duration_minutes <= 0:
        raise ValidationError("duration_minutes must be a positive integer")
    return duration_minutes


def _check_datetime(value: Any, name: str) -> datetime:
    if not isinstance(value, datetime):
        raise ValidationError(f"{name} is required and must be a datetime")
    return value


async def _soft_conflicts(
    db: AsyncSession,
    *,
    shop_id: int,
    start_utc: datetime,
    duration_minutes: int,
    exclude_id: Optional[int] = None,
) -> list[SoftSlotConflict]:
    schedule = await load_schedule(db, shop_id=shop_id)
    window_start = start_utc - timedelta(days=1)
    window_end = start_utc + timedelta(minutes=duration_minutes)
    nearby = await store.list_appointments(
        db, shop_id=shop_id, start_utc=window_start, end_utc=window_end, active_only=True
    )
    return check_booking(schedule, start_utc, duration_minutes, nearby, exclude_id=exclude_id)


async def create_appointment(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    *,
    shop_id: int,
    start_datetime: datetime,
    duration_minutes: int,
    appointment_type: AppointmentType,
    actor: Actor = Actor.SHOP,
    sav_case_id: Optional[str] = None,
    customer_id: Optional[int] = None,
    technician_id: Optional[str] = None,
    notes: Optional[str] = None,
    device_info: Optional[dict] = None,
    channels: Iterable[NotificationChannel] = DEFAULT_CHANNELS,
) -> AppointmentResult:
    """Create a `proposed` appointment and tell the other party about it."""
    _check_datetime(start_datetime, "start_datetime")
    _check_duration(duration_minutes)
    shop = await require_shop(db, shop_id)
    start_utc = to_utc(start_datetime, shop_zone(shop.timezone))

    conflicts = await _soft_conflicts(
        db, shop_id=shop_id, start_utc=start_utc, duration_minutes=duration_minutes
    )

    appt = await store.insert_appointment(
        db,
        actor=actor,
        shop_id=shop_id,
        start_datetime=start_utc,
        duration_minutes=duration_minutes,
        appointment_type=AppointmentType(appointment_type),
        sav_case_id=sav_case_id,
        customer_id=customer_id,
        technician_id=technician_id,
        notes=notes,
        device_info=dict(device_info or {}),
    )
    logger.info(
        "appointment_created",
        appointment_id=appt.id,
        shop_id=shop_id,
        proposed_by=actor.value,
        soft_conflicts=[c.kind for c in conflicts],
    )

    if actor is Actor.CLIENT:
        channels = DEFAULT_CHANNELS
    warnings = await dispatcher.dispatch(appt, EventKind.PROPOSED, channels, recipient=actor.other)
    return AppointmentResult(appt, warnings, conflicts)


async def get_appointment(db: AsyncSession, *, shop_id: int, appointment_id: int) -> Appointment:
    appt = await store.get_appointment(db, appointment_id=appointment_id, shop_id=shop_id)
    if appt is None:
        raise NotFound("Appointment not found")
    return appt


async def apply_action(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    appt: Appointment,
    action: Action,
    actor: Actor,
    *,
    counter_datetime: Optional[datetime] = None,
    counter_message: Optional[str] = None,
    channels: Iterable[NotificationChannel] = DEFAULT_CHANNELS,
) -> AppointmentResult:
    """
    Run one status transition against ``appt`` as it was read.

    ``appt`` may be stale: the table check uses the status we saw, and the
    conditional update fails with Conflict if the stored status moved on.
    """
    current = AppointmentStatus(appt.status)
    rule = rule_for(current, action, actor)
    target = rule.target
    if target is None:
        raise ValueError(f"{action.value} is a field edit, use edit_appointment()")
    values: dict[str, Any] = {"status": target}

    if action is Action.COUNTER_PROPOSE:
        _check_datetime(counter_datetime, "counter_proposal_datetime")
        shop = await require_shop(db, appt.shop_id)
        values["counter_proposal_datetime"] = to_utc(counter_datetime, shop_zone(shop.timezone))
        values["counter_proposal_message"] = (counter_message or "").strip() or None
    elif action is Action.ACCEPT_COUNTER:
        if appt.counter_proposal_datetime is None:
            raise ValidationError("No counter-proposal to accept")
        values["start_datetime"] = appt.counter_proposal_datetime

    if rule.clears_counter:
        values["counter_proposal_datetime"] = None
        values["counter_proposal_message"] = None

    appointment_id = appt.id
    if not await store.update_if_status(
        db, appointment_id=appointment_id, expected_status=current, values=values
    ):
        logger.info(
            "appointment_transition_conflict",
            appointment_id=appointment_id,
            action=action.value,
            expected_status=current.value,
        )
        raise Conflict("Appointment was changed by someone else, please refresh")

    store.add_event(
        db,
        appt,
        action=action,
        actor=actor,
        from_status=current,
        to_status=target,
        start_datetime=values.get("start_datetime", appt.start_datetime),
        # keep what was resolved, so clearing the row loses nothing
        counter_proposal_datetime=values.get("counter_proposal_datetime") or appt.counter_proposal_datetime,
        counter_proposal_message=values.get("counter_proposal_message") or appt.counter_proposal_message,
    )
    await db.commit()
    await db.refresh(appt)

    logger.info(
        "appointment_transition",
        appointment_id=appointment_id,
        action=action.value,
        actor=actor.value,
        from_status=current.value,
        to_status=target.value,
    )

    warnings: list[str] = []
    if rule.event is not None:
        if actor is Actor.CLIENT:
            channels = DEFAULT_CHANNELS
        warnings = await dispatcher.dispatch(appt, rule.event, channels, recipient=actor.other)
    return AppointmentResult(appt, warnings)


async def _act(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    *,
    shop_id: int,
    appointment_id: int,
    action: Action,
    actor: Actor = Actor.SHOP,
    channels: Iterable[NotificationChannel] = DEFAULT_CHANNELS,
) -> AppointmentResult:
    appt = await get_appointment(db, shop_id=shop_id, appointment_id=appointment_id)
    return await apply_action(db, dispatcher, appt, action, actor, channels=channels)


async def confirm_appointment(db, dispatcher, *, shop_id: int, appointment_id: int, actor: Actor = Actor.SHOP,
                              channels=DEFAULT_CHANNELS) -> AppointmentResult:
    return await _act(db, dispatcher, shop_id=shop_id, appointment_id=appointment_id,
                      action=Action.CONFIRM, actor=actor, channels=channels)


async def cancel_appointment(db, dispatcher, *, shop_id: int, appointment_id: int, actor: Actor = Actor.SHOP,
                             channels=DEFAULT_CHANNELS) -> AppointmentResult:
    return await _act(db, dispatcher, shop_id=shop_id, appointment_id=appointment_id,
                      action=Action.CANCEL, actor=actor, channels=channels)


async def complete_appointment(db, dispatcher, *, shop_id: int, appointment_id: int) -> AppointmentResult:
    return await _act(db, dispatcher, shop_id=shop_id, appointment_id=appointment_id, action=Action.COMPLETE)


async def mark_no_show(db, dispatcher, *, shop_id: int, appointment_id: int) -> AppointmentResult:
    return await _act(db, dispatcher, shop_id=shop_id, appointment_id=appointment_id, action=Action.MARK_NO_SHOW)


async def accept_counter_proposal(db, dispatcher, *, shop_id: int, appointment_id: int,
                                  channels=DEFAULT_CHANNELS) -> AppointmentResult:
    """Adopt the client's datetime and confirm."""
    return await _act(db, dispatcher, shop_id=shop_id, appointment_id=appointment_id,
                      action=Action.ACCEPT_COUNTER, channels=channels)


async def reject_counter_proposal(db, dispatcher, *, shop_id: int, appointment_id: int,
                                  channels=DEFAULT_CHANNELS) -> AppointmentResult:
    return await _act(db, dispatcher, shop_id=shop_id, appointment_id=appointment_id,
                      action=Action.REJECT_COUNTER, channels=channels)


async def edit_appointment(
    db: AsyncSession,
    *,
    shop_id: int,
    appointment_id: int,
    changes: dict[str, Any],
) -> AppointmentResult:
    """Plain field update while proposed or confirmed; status is untouched."""
    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")

    appt = await get_appointment(db, shop_id=shop_id, appointment_id=appointment_id)
    current = AppointmentStatus(appt.status)
    rule_for(current, Action.EDIT, Actor.SHOP)

    values = dict(changes)
    if "duration_minutes" in values:
        _check_duration(values["duration_minutes"])
    if "appointment_type" in values:
        try:
            values["appointment_type"] = AppointmentType(values["appointment_type"])
        except ValueError:
            raise ValidationError(f"Unknown appointment type: {values['appointment_type']!r}")
    if "start_datetime" in values:
        _check_datetime(values["start_datetime"], "start_datetime")
        shop = await require_shop(db, shop_id)
        values["start_datetime"] = to_utc(values["start_datetime"], shop_zone(shop.timezone))

    conflicts: list[SoftSlotConflict] = []
    if "start_datetime" in values or "duration_minutes" in values:
        conflicts = await _soft_conflicts(
            db,
            shop_id=shop_id,
            start_utc=values.get("start_datetime", appt.start_datetime),
            duration_minutes=values.get("duration_minutes", appt.duration_minutes),
            exclude_id=appt.id,
        )

    if not await store.update_if_status(
        db, appointment_id=appt.id, expected_status=current, values=values
    ):
        raise Conflict("Appointment was changed by someone else, please refresh")

    store.add_event(
        db,
        appt,
        action=Action.EDIT,
        actor=Actor.SHOP,
        from_status=current,
        to_status=current,
        start_datetime=values.get("start_datetime", appt.start_datetime),
    )
    await db.commit()
    await db.refresh(appt)
    logger.info("appointment_edited", appointment_id=appt.id, fields=sorted(changes))
    return AppointmentResult(appt, soft_conflicts=conflicts)


async def delete_appointment(db: AsyncSession, *, shop_id: int, appointment_id: int) -> None:
    if not await store.delete_appointment(db, shop_id=shop_id, appointment_id=appointment_id):
        raise NotFound("Appointment not found")
    logger.info("appointment_deleted", appointment_id=appointment_id, shop_id=shop_id)


# ---------- Agenda views ----------

def view_range(view: str, day: date) -> tuple[date, date]:
    """[first, last) days covered by a day / week / month view. Weeks start Monday."""
    if view == "day":
        return day, day + timedelta(days=1)
    if view == "week":
        start = day - timedelta(days=day.weekday())
        return start, start + timedelta(days=7)
    if view == "month":
        start = day.replace(day=1)
        nxt = (start + timedelta(days=32)).replace(day=1)
        return start, nxt
    raise ValidationError("view must be one of: day, week, month")


async def list_for_view(
    db: AsyncSession, *, shop_id: int, view: str, day: Optional[date] = None
) -> list[Appointment]:
    shop = await require_shop(db, shop_id)
    tz = shop_zone(shop.timezone)
    day = day or datetime.now(tz).date()
    first, last = view_range(view, day)
    rows = await store.list_appointments(
        db,
        shop_id=shop_id,
        start_utc=to_utc(datetime.combine(first, datetime.min.time()), tz),
        end_utc=to_utc(datetime.combine(last, datetime.min.time()), tz),
    )
    return list(rows)


async def list_pending_counter_proposals(db: AsyncSession, *, shop_id: int) -> list[Appointment]:
    return list(await store.list_pending_counter_proposals(db, shop_id=shop_id))


async def count_today(db: AsyncSession, *, shop_id: int, today: Optional[date] = None) -> int:
    shop = await require_shop(db, shop_id)
    tz = shop_zone(shop.timezone)
    today = today or datetime.now(tz).date()
    start = to_utc(datetime.combine(today, datetime.min.time()), tz)
    return await store.count_active_between(
        db, shop_id=shop_id, start_utc=start, end_utc=start + timedelta(days=1)
    )


async def history(db: AsyncSession, *, shop_id: int, appointment_id: int):
    await get_appointment(db, shop_id=shop_id, appointment_id=appointment_id)
    return list(await store.list_events(db, appointment_id=appointment_id))
