#!/usr/bin/env python3
"""
Tests for notification dispatch: chat rows, SMS through a mocked sender,
and failures surfacing as warnings instead of errors.
"""

from datetime import datetime
from types import SimpleNamespace
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import aiohttp
import pytest
import sqlalchemy as sa
from twilio.base.exceptions import TwilioException

from shopagenda.core.transitions import Actor, AppointmentStatus, AppointmentType, EventKind
from shopagenda.crud import appointment as store
from shopagenda.db.models.appointment import AppointmentMessage
from shopagenda.services import appointments as svc
from shopagenda.services.notifications import (
    NotificationChannel,
    NotificationDispatcher,
    TwilioSmsSender,
    compose_message,
    confirmation_link,
    to_e164,
)

PARIS = ZoneInfo("Europe/Paris")
SMS = NotificationChannel.SMS
CHAT = NotificationChannel.CHAT


@pytest.fixture
def sms_sender():
    sender = AsyncMock(spec=TwilioSmsSender)
    sender.send = AsyncMock(return_value="SM123")
    return sender


@pytest.mark.unit
class TestPhoneNormalisation:

    @pytest.mark.parametrize("raw, expected", [
        ("06 12 34 56 78", "+33612345678"),
        ("+33 6 12 34 56 78", "+33612345678"),
        ("+1-587-555-0123", "+15875550123"),
    ])
    def test_e164(self, raw, expected):
        assert to_e164(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "call me maybe"])
    def test_unusable(self, raw):
        assert to_e164(raw) is None


@pytest.mark.integration
class TestDispatcher:

    async def test_sms_goes_to_customer_in_e164(self, db, shop, customer, make_appointment, sms_sender):
        appt = await make_appointment()
        dispatcher = NotificationDispatcher(db, sms_sender)

        ok, error = await dispatcher.notify(appt, EventKind.PROPOSED, SMS, recipient=Actor.CLIENT)

        assert (ok, error) == (True, None)
        to, body = sms_sender.send.await_args.args
        assert to == "+33612345678"
        assert confirmation_link(appt) in body

    async def test_sms_to_shop_uses_shop_phone(self, db, shop, make_appointment, sms_sender):
        appt = await make_appointment()
        dispatcher = NotificationDispatcher(db, sms_sender)

        ok, _ = await dispatcher.notify(appt, EventKind.CONFIRMED, SMS, recipient=Actor.SHOP)

        assert ok
        assert sms_sender.send.await_args.args[0] == "+33140000000"

    async def test_sms_not_configured_is_a_warning(self, db, make_appointment):
        appt = await make_appointment()
        warnings = await NotificationDispatcher(db).dispatch(appt, EventKind.PROPOSED, [SMS, CHAT], recipient=Actor.CLIENT)

        assert len(warnings) == 1
        assert "sms" in warnings[0]

    async def test_provider_failure_does_not_undo_transition(self, db, shop, make_appointment, sms_sender):
        sms_sender.send.side_effect = TwilioException("carrier unreachable")
        appt = await make_appointment()
        dispatcher = NotificationDispatcher(db, sms_sender)

        result = await svc.confirm_appointment(
            db, dispatcher, shop_id=shop.id, appointment_id=appt.id, channels=(SMS, CHAT)
        )

        assert result.appointment.status == AppointmentStatus.CONFIRMED
        assert len(result.warnings) == 1
        assert "carrier unreachable" in result.warnings[0]
        stored = await store.get_appointment(db, appointment_id=appt.id)
        assert stored.status == AppointmentStatus.CONFIRMED

    async def test_connection_drop_is_a_warning(self, db, shop, make_appointment, sms_sender):
        sms_sender.send.side_effect = aiohttp.ServerDisconnectedError()
        appt = await make_appointment()
        dispatcher = NotificationDispatcher(db, sms_sender)

        result = await svc.confirm_appointment(
            db, dispatcher, shop_id=shop.id, appointment_id=appt.id, channels=(SMS,)
        )

        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("sms notification failed")
        stored = await store.get_appointment(db, appointment_id=appt.id)
        assert stored.status == AppointmentStatus.CONFIRMED

    async def test_shop_confirm_posts_chat_message(self, db, shop, make_appointment):
        appt = await make_appointment()

        result = await svc.confirm_appointment(
            db, NotificationDispatcher(db), shop_id=shop.id, appointment_id=appt.id, channels=(CHAT,)
        )

        assert result.warnings == []
        res = await db.execute(sa.select(AppointmentMessage).where(AppointmentMessage.appointment_id == appt.id))
        messages = res.scalars().all()
        assert len(messages) == 1
        assert messages[0].sender_type == Actor.SHOP
        assert messages[0].event_kind == EventKind.CONFIRMED
        assert "confirmed" in messages[0].body

    async def test_unconfigured_sms_on_cancel_keeps_the_cancel(self, db, shop, make_appointment):
        appt = await make_appointment()

        result = await svc.cancel_appointment(
            db, NotificationDispatcher(db), shop_id=shop.id, appointment_id=appt.id, channels=(SMS,)
        )

        assert result.warnings == ["sms notification failed: SMS is not configured"]
        stored = await store.get_appointment(db, appointment_id=appt.id)
        assert stored.status == AppointmentStatus.CANCELLED

    async def test_duplicate_channels_sent_once(self, db, make_appointment, sms_sender):
        appt = await make_appointment()
        dispatcher = NotificationDispatcher(db, sms_sender)

        await dispatcher.dispatch(appt, EventKind.CANCELLED, [SMS, SMS], recipient=Actor.CLIENT)

        assert sms_sender.send.await_count == 1


@pytest.mark.unit
def test_messages_mention_time_in_shop_zone(make_appointment_stub):
    body = compose_message(make_appointment_stub, EventKind.CONFIRMED, Actor.CLIENT, PARIS)
    assert "10:00" in body
    assert "drop-off" in body


@pytest.fixture
def make_appointment_stub():
    return SimpleNamespace(
        start_datetime=datetime(2025, 3, 10, 9, 0, tzinfo=ZoneInfo("UTC")),
        appointment_type=AppointmentType.DEPOSIT,
        duration_minutes=30,
        confirmation_token="tok",
        counter_proposal_datetime=None,
        counter_proposal_message=None,
    )
