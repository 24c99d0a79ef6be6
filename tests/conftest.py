#!/usr/bin/env python3
"""
Shared fixtures: an in-memory SQLite store, a shop with a customer, and a
dispatcher that records what it was asked to send.
"""

import os

# Settings are read once at import time; point them at the test store first
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["SHOP_API_KEY"] = "test_api_key"
os.environ["PUBLIC_BASE_URL"] = "https://agenda.test"
for _name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_NUMBER"):
    os.environ.pop(_name, None)

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio

import shopagenda.db.base  # noqa: F401  registers the models
from shopagenda.core.transitions import AppointmentType
from shopagenda.db.models.shop import Customer, Shop
from shopagenda.db.session import Base, make_engine, make_session_factory
from shopagenda.services.appointments import create_appointment
from shopagenda.services.notifications import NotificationDispatcher

PARIS = ZoneInfo("Europe/Paris")
UTC = ZoneInfo("UTC")


class RecordingDispatcher(NotificationDispatcher):
    """Real dispatcher that also keeps (event, channel, recipient) per call."""

    def __init__(self, db, sms_sender=None):
        super().__init__(db, sms_sender)
        self.sent = []

    async def notify(self, appt, event, channel, *, recipient):
        self.sent.append((event, channel, recipient))
        return await super().notify(appt, event, channel, recipient=recipient)


async def _make_engine(url: str):
    engine = make_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine


@pytest_asyncio.fixture
async def engine():
    engine = await _make_engine(TEST_DATABASE_URL)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    """On-disk store so two sessions really use two connections."""
    engine = await _make_engine(f"sqlite+aiosqlite:///{tmp_path / 'agenda.db'}")
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def dispatcher(db):
    return RecordingDispatcher(db)


@pytest_asyncio.fixture
async def shop(db):
    shop = Shop(
        name="Atelier Réparation",
        phone="01 40 00 00 00",
        address="12 rue des Lilas, Paris",
        timezone="Europe/Paris",
    )
    db.add(shop)
    await db.commit()
    await db.refresh(shop)
    return shop


@pytest_asyncio.fixture
async def customer(db, shop):
    customer = Customer(shop_id=shop.id, first_name="Camille", last_name="Martin", phone="06 12 34 56 78")
    db.add(customer)
    await db.commit()
    await db.refresh(customer)
    return customer


@pytest.fixture
def make_appointment(db, dispatcher, shop, customer):
    """Create a proposed appointment without notifying anyone."""

    async def _make(start=datetime(2025, 3, 10, 10, 0), duration=30, **kwargs):
        kwargs.setdefault("appointment_type", AppointmentType.DEPOSIT)
        kwargs.setdefault("channels", ())
        result = await create_appointment(
            db,
            dispatcher,
            shop_id=shop.id,
            customer_id=customer.id,
            start_datetime=start,
            duration_minutes=duration,
            **kwargs,
        )
        return result.appointment

    return _make


# Pytest configuration hooks
def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "unit: Pure unit tests with no external dependencies")
    config.addinivalue_line("markers", "integration: Tests running against the SQLite store")
