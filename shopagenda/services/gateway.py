# shopagenda/services/gateway.py
"""
Public, token-gated access to a single appointment.

The confirmation token is a bearer capability for exactly three things:
viewing the appointment, confirming it, and proposing another time. Both
write actions are only legal while the appointment is `proposed`.
"""
from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from shopagenda.core.errors import InvalidTransition, NotFound, ValidationError
from shopagenda.core.transitions import Action, Actor, AppointmentStatus
from shopagenda.core.working_hours import shop_zone, to_shop_local
from shopagenda.crud import appointment as store
from shopagenda.crud.shop import get_customer, get_shop
from shopagenda.db.models.appointment import Appointment
from shopagenda.services.appointments import AppointmentResult, apply_action
from shopagenda.services.notifications import NotificationDispatcher

INVALID_LINK = "This link is invalid or has expired."
MAX_TOKEN_LENGTH = 128
MAX_MESSAGE_LENGTH = 1000

STATUS_LABELS = {
    AppointmentStatus.PROPOSED: "Awaiting your confirmation",
    AppointmentStatus.CONFIRMED: "Confirmed",
    AppointmentStatus.COUNTER_PROPOSED: "New time proposed",
    AppointmentStatus.CANCELLED: "Cancelled",
    AppointmentStatus.COMPLETED: "Completed",
    AppointmentStatus.NO_SHOW: "Missed",
}


@dataclass
class PublicAppointmentView:
    shop_name: str
    shop_phone: Optional[str]
    shop_address: Optional[str]
    customer_first_name: Optional[str]
    start_local: datetime
    duration_minutes: int
    appointment_type: str
    status: str
    status_label: str
    notes: Optional[str]
    device_info: dict[str, Any]
    sav_case_id: Optional[str]
    counter_proposal_local: Optional[datetime]
    counter_proposal_message: Optional[str]
    actionable: bool


async def resolve(db: AsyncSession, token: str) -> Appointment:
    """Exact, constant-time token match; every miss looks the same."""
    if not token or len(token) > MAX_TOKEN_LENGTH:
        raise NotFound(INVALID_LINK)
    appt = await store.get_by_token_digest(db, store.digest_token(token))
    if appt is None or not secrets.compare_digest(
        appt.confirmation_token.encode(), token.encode()
    ):
        raise NotFound(INVALID_LINK)
    return appt


async def view(db: AsyncSession, token: str) -> PublicAppointmentView:
    appt = await resolve(db, token)
    shop = await get_shop(db, appt.shop_id)
    customer = await get_customer(db, appt.customer_id)
    tz = shop_zone(shop.timezone if shop else None)
    status = AppointmentStatus(appt.status)

    return PublicAppointmentView(
        shop_name=shop.name if shop else "Your repair shop",
        shop_phone=shop.phone if shop else None,
        shop_address=shop.address if shop else None,
        customer_first_name=customer.first_name if customer else None,
        start_local=to_shop_local(appt.start_datetime, tz),
        duration_minutes=appt.duration_minutes,
        appointment_type=appt.appointment_type.value,
        status=status.value,
        status_label=STATUS_LABELS[status],
        notes=appt.notes,
        device_info=dict(appt.device_info or {}),
        sav_case_id=appt.sav_case_id,
        counter_proposal_local=(
            to_shop_local(appt.counter_proposal_datetime, tz) if appt.counter_proposal_datetime else None
        ),
        counter_proposal_message=appt.counter_proposal_message,
        actionable=status is AppointmentStatus.PROPOSED,
    )


def _require_proposed(appt: Appointment, action: Action) -> None:
    status = AppointmentStatus(appt.status)
    if status is not AppointmentStatus.PROPOSED:
        raise InvalidTransition(status, action, Actor.CLIENT)


async def confirm(db: AsyncSession, dispatcher: NotificationDispatcher, token: str) -> AppointmentResult:
    appt = await resolve(db, token)
    _require_proposed(appt, Action.CONFIRM)
    return await apply_action(db, dispatcher, appt, Action.CONFIRM, Actor.CLIENT)


async def counter_propose(
    db: AsyncSession,
    dispatcher: NotificationDispatcher,
    token: str,
    proposed_datetime: Optional[datetime],
    message: Optional[str] = None,
) -> AppointmentResult:
    appt = await resolve(db, token)
    _require_proposed(appt, Action.COUNTER_PROPOSE)
    if proposed_datetime is None:
        raise ValidationError("A new date and time is required")
    if message and len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message is limited to {MAX_MESSAGE_LENGTH} characters")
    return await apply_action(
        db,
        dispatcher,
        appt,
        Action.COUNTER_PROPOSE,
        Actor.CLIENT,
        counter_datetime=proposed_datetime,
        counter_message=message,
    )
