# shopagenda/services/notifications.py
"""
Notification dispatch for appointment events.

Two channels: SMS through Twilio, and an in-app chat message stored next to
the repair case. Delivery problems never propagate: they come back as
warning strings so a committed transition is not undone.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Iterable, Optional

import aiohttp
import phonenumbers
from phonenumbers import PhoneNumberFormat
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from twilio.base.exceptions import TwilioException
from twilio.http.async_http_client import AsyncTwilioHttpClient
from twilio.rest import Client

from shopagenda.core.config import settings
from shopagenda.core.errors import NotificationFailure, log_error
from shopagenda.core.logging import get_logger
from shopagenda.core.transitions import Actor, AppointmentType, EventKind
from shopagenda.core.working_hours import shop_zone, to_shop_local
from shopagenda.crud.shop import get_customer, get_shop
from shopagenda.db.models.appointment import Appointment, AppointmentMessage
from shopagenda.db.types import utcnow

logger = get_logger(__name__)


class NotificationChannel(str, Enum):
    SMS = "sms"
    CHAT = "chat"


TYPE_LABELS = {
    AppointmentType.DEPOSIT: "device drop-off",
    AppointmentType.PICKUP: "device pickup",
    AppointmentType.DIAGNOSTIC: "diagnostic",
    AppointmentType.REPAIR: "repair",
}


def confirmation_link(appt: Appointment) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/rdv/{appt.confirmation_token}"


def to_e164(raw: Optional[str], region: Optional[str] = None) -> Optional[str]:
    """Normalize a stored phone number for Twilio; None if it cannot be parsed."""
    if not raw:
        return None
    try:
        parsed = phonenumbers.parse(raw.strip(), region or settings.DEFAULT_PHONE_REGION)
    except phonenumbers.phonenumberutil.NumberParseException:
        return None
    if not (phonenumbers.is_valid_number(parsed) or phonenumbers.is_possible_number(parsed)):
        return None
    return phonenumbers.format_number(parsed, PhoneNumberFormat.E164)


def compose_message(appt: Appointment, event: EventKind, recipient: Actor, tz) -> str:
    when = to_shop_local(appt.start_datetime, tz).strftime("%A %d %B at %H:%M")
    kind = TYPE_LABELS.get(appt.appointment_type, appt.appointment_type.value)

    if recipient is Actor.SHOP:
        if event is EventKind.COUNTER_PROPOSED and appt.counter_proposal_datetime:
            proposed = to_shop_local(appt.counter_proposal_datetime, tz).strftime("%A %d %B at %H:%M")
            text = f"The client proposed a new time for the {kind} appointment: {proposed}."
            if appt.counter_proposal_message:
                text += f' Message: "{appt.counter_proposal_message}"'
            return text
        return f"The client {event.value.replace('_', ' ')} the {kind} appointment of {when}."

    if event is EventKind.PROPOSED:
        return (
            f"Appointment proposal: {kind} on {when} ({appt.duration_minutes} min). "
            f"Confirm or suggest another time: {confirmation_link(appt)}"
        )
    if event is EventKind.CONFIRMED:
        return f"Your {kind} appointment is confirmed for {when}."
    if event is EventKind.CANCELLED:
        return f"Your {kind} appointment of {when} has been cancelled."
    return f"Your {kind} appointment of {when} was updated."


class TwilioSmsSender:
    """Thin wrapper over the Twilio REST client."""

    def __init__(self, account_sid: str, auth_token: str, from_number: str):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number

    @classmethod
    def from_settings(cls) -> Optional["TwilioSmsSender"]:
        if not settings.sms_enabled:
            return None
        return cls(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN, settings.TWILIO_FROM_NUMBER)

    async def send(self, to: str, body: str) -> str:
        client = Client(self.account_sid, self.auth_token, http_client=AsyncTwilioHttpClient())
        message = await client.messages.create_async(to=to, from_=self.from_number, body=body)
        return message.sid


class NotificationDispatcher:
    """Delivers appointment events to the other party over chosen channels."""

    def __init__(self, db: AsyncSession, sms_sender: Optional[TwilioSmsSender] = None):
        self.db = db
        self.sms_sender = sms_sender

    async def notify(
        self,
        appt: Appointment,
        event: EventKind,
        channel: NotificationChannel,
        *,
        recipient: Actor = Actor.CLIENT,
    ) -> tuple[bool, Optional[str]]:
        """
        Send one notification.

        Returns:
            Tuple of (success, error_message)
        """
        try:
            if channel is NotificationChannel.SMS:
                await self._send_sms(appt, event, recipient)
            else:
                await self._post_chat(appt, event, recipient)
        except NotificationFailure as e:
            log_error(e, {"appointment_id": appt.id, "event_kind": event.value})
            return False, e.message
        logger.info(
            "notification_sent",
            appointment_id=appt.id,
            event_kind=event.value,
            channel=channel.value,
            recipient=recipient.value,
        )
        return True, None

    async def dispatch(
        self,
        appt: Appointment,
        event: EventKind,
        channels: Iterable[NotificationChannel],
        *,
        recipient: Actor,
    ) -> list[str]:
        """Notify over each channel; returns one warning per failed channel."""
        warnings = []
        for channel in dict.fromkeys(channels):
            ok, error = await self.notify(appt, event, channel, recipient=recipient)
            if not ok:
                warnings.append(error)
        return warnings

    async def _tz(self, appt: Appointment):
        shop = await get_shop(self.db, appt.shop_id)
        return shop_zone(shop.timezone if shop else None)

    async def _send_sms(self, appt: Appointment, event: EventKind, recipient: Actor) -> None:
        channel = NotificationChannel.SMS
        if self.sms_sender is None:
            raise NotificationFailure(channel, "SMS is not configured")

        if recipient is Actor.CLIENT:
            customer = await get_customer(self.db, appt.customer_id)
            raw = customer.phone if customer else None
        else:
            shop = await get_shop(self.db, appt.shop_id)
            raw = shop.phone if shop else None
        if not raw:
            raise NotificationFailure(channel, "no phone number for recipient")
        phone = to_e164(raw)
        if phone is None:
            raise NotificationFailure(channel, f"unusable phone number {raw!r}")

        body = compose_message(appt, event, recipient, await self._tz(appt))
        try:
            sid = await self.sms_sender.send(phone, body)
        except (TwilioException, aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            raise NotificationFailure(channel, str(e)) from e
        logger.debug("sms_queued", sid=sid, appointment_id=appt.id)

    async def _post_chat(self, appt: Appointment, event: EventKind, recipient: Actor) -> None:
        body = compose_message(appt, event, recipient, await self._tz(appt))
        self.db.add(AppointmentMessage(
            shop_id=appt.shop_id,
            appointment_id=appt.id,
            sav_case_id=appt.sav_case_id,
            sender_type=recipient.other,
            event_kind=event,
            body=body,
            created_at=utcnow(),
        ))
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise NotificationFailure(NotificationChannel.CHAT, str(e)) from e
