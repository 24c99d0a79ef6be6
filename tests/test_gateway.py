#!/usr/bin/env python3
"""
Tests for the public, token-gated appointment access.
"""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from shopagenda.core.errors import InvalidTransition, NotFound, ValidationError
from shopagenda.core.transitions import AppointmentStatus, AppointmentType
from shopagenda.crud import appointment as store
from shopagenda.services import appointments as svc
from shopagenda.services import gateway

PARIS = ZoneInfo("Europe/Paris")

pytestmark = pytest.mark.integration


@pytest.mark.parametrize("token", ["", "nope", "x" * 500])
async def test_unknown_or_malformed_token_is_not_found(db, make_appointment, token):
    await make_appointment()
    with pytest.raises(NotFound) as exc:
        await gateway.resolve(db, token)
    assert exc.value.message == gateway.INVALID_LINK


async def test_near_miss_token_is_not_found(db, make_appointment):
    appt = await make_appointment()
    with pytest.raises(NotFound):
        await gateway.resolve(db, appt.confirmation_token[:-1])


async def test_view_is_read_only_summary(db, shop, customer, make_appointment):
    appt = await make_appointment(
        start=datetime(2025, 3, 10, 10, 0),
        duration=45,
        appointment_type=AppointmentType.REPAIR,
        notes="cracked screen",
        device_info={"brand": "Fairphone", "model": "5"},
        sav_case_id="SAV-0042",
    )
    before = await store.get_appointment(db, appointment_id=appt.id)
    updated_at = before.updated_at

    summary = await gateway.view(db, appt.confirmation_token)

    assert summary.shop_name == shop.name
    assert summary.shop_address == shop.address
    assert summary.customer_first_name == "Camille"
    assert summary.start_local == datetime(2025, 3, 10, 10, 0, tzinfo=PARIS)
    assert summary.start_local.hour == 10
    assert summary.duration_minutes == 45
    assert summary.appointment_type == "repair"
    assert summary.status == "proposed"
    assert summary.actionable is True
    assert summary.device_info == {"brand": "Fairphone", "model": "5"}
    assert summary.sav_case_id == "SAV-0042"
    assert summary.counter_proposal_local is None

    after = await store.get_appointment(db, appointment_id=appt.id)
    assert after.updated_at == updated_at


async def test_confirm_through_token(db, dispatcher, make_appointment):
    appt = await make_appointment()
    result = await gateway.confirm(db, dispatcher, appt.confirmation_token)

    assert result.appointment.status == AppointmentStatus.CONFIRMED
    summary = await gateway.view(db, appt.confirmation_token)
    assert summary.actionable is False
    assert summary.status_label == "Confirmed"


async def test_actions_only_from_proposed(db, dispatcher, make_appointment):
    appt = await make_appointment()
    await gateway.counter_propose(db, dispatcher, appt.confirmation_token, datetime(2025, 3, 11, 14, 0))

    with pytest.raises(InvalidTransition):
        await gateway.confirm(db, dispatcher, appt.confirmation_token)
    with pytest.raises(InvalidTransition):
        await gateway.counter_propose(db, dispatcher, appt.confirmation_token, datetime(2025, 3, 12, 14, 0))

    summary = await gateway.view(db, appt.confirmation_token)
    assert summary.counter_proposal_local == datetime(2025, 3, 11, 14, 0, tzinfo=PARIS)


async def test_counter_proposal_validation(db, dispatcher, make_appointment):
    appt = await make_appointment()
    with pytest.raises(ValidationError):
        await gateway.counter_propose(db, dispatcher, appt.confirmation_token, None)
    with pytest.raises(ValidationError):
        await gateway.counter_propose(
            db, dispatcher, appt.confirmation_token, datetime(2025, 3, 11, 14, 0), "x" * 1001
        )
    current = await store.get_appointment(db, appointment_id=appt.id)
    assert current.status == AppointmentStatus.PROPOSED


async def test_gateway_cannot_touch_other_fields(db, dispatcher, shop, make_appointment):
    appt = await make_appointment(notes="keep me")
    token = appt.confirmation_token

    await gateway.counter_propose(db, dispatcher, token, datetime(2025, 3, 11, 14, 0), "afternoon please")
    await svc.accept_counter_proposal(db, dispatcher, shop_id=shop.id, appointment_id=appt.id)

    current = await store.get_appointment(db, appointment_id=appt.id)
    assert current.shop_id == shop.id
    assert current.confirmation_token == token
    assert current.notes == "keep me"
    assert current.duration_minutes == 30
