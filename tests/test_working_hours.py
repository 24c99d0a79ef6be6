#!/usr/bin/env python3
"""
Tests for the working-hours resolver: open/closed decisions and validation.
"""

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo

import pytest

from shopagenda.core.errors import Conflict, ValidationError
from shopagenda.core.working_hours import (
    DEFAULT_WEEK,
    DayHours,
    WeeklySchedule,
    to_shop_local,
    to_utc,
    validate_day_hours,
)
from shopagenda.crud import working_hours as crud

PARIS = ZoneInfo("Europe/Paris")
MONDAY = date(2025, 3, 10)


def _week(*days):
    return WeeklySchedule(days, PARIS)


@pytest.mark.unit
class TestDayHours:

    def test_open_window_and_half_open_break(self):
        day = DayHours(0, True, time(9, 0), time(18, 0), time(12, 0), time(13, 0))

        assert not day.is_open_at(time(8, 59))
        assert day.is_open_at(time(9, 0))
        assert day.is_open_at(time(11, 59))
        assert not day.is_open_at(time(12, 0))
        assert not day.is_open_at(time(12, 59))
        assert day.is_open_at(time(13, 0))  # break end is open again
        assert day.is_open_at(time(17, 59))
        assert not day.is_open_at(time(18, 0))

    def test_closed_day_is_closed_all_day(self):
        day = DayHours(6, False, time(9, 0), time(18, 0))
        assert not any(day.is_open_at(time(h, m)) for h in range(24) for m in (0, 30))


@pytest.mark.unit
class TestWeeklySchedule:

    def test_unconfigured_shop_is_always_open(self):
        schedule = _week()
        instant = datetime(2025, 3, 10, 0, 0)
        for minutes in range(0, 7 * 24 * 60, 37):
            assert schedule.is_open_at(instant + timedelta(minutes=minutes))
        assert not schedule.is_closed_on(MONDAY)

    def test_weekday_without_row_is_closed(self):
        schedule = _week(DayHours(0, True, time(9, 0), time(18, 0)))
        tuesday = datetime(2025, 3, 11, 10, 0)

        assert schedule.is_configured
        assert schedule.hours_for(1) is None
        assert not schedule.is_open_at(tuesday)
        assert schedule.is_closed_on(tuesday.date())

    def test_closed_weekday_never_open(self):
        schedule = WeeklySchedule(DEFAULT_WEEK, PARIS)
        sunday = datetime(2025, 3, 16, 0, 0)
        for minutes in range(0, 24 * 60, 15):
            assert not schedule.is_open_at(sunday + timedelta(minutes=minutes))

    def test_aware_instants_use_shop_civil_time(self):
        schedule = WeeklySchedule(DEFAULT_WEEK, PARIS)
        # 08:30 UTC is 09:30 in Paris in March (CET)
        assert schedule.is_open_at(datetime(2025, 3, 10, 8, 30, tzinfo=ZoneInfo("UTC")))
        # 07:30 UTC is 08:30 in Paris
        assert not schedule.is_open_at(datetime(2025, 3, 10, 7, 30, tzinfo=ZoneInfo("UTC")))

    def test_open_between_checks_the_whole_interval(self):
        schedule = WeeklySchedule(DEFAULT_WEEK, PARIS)
        at = lambda h, m: datetime(2025, 3, 10, h, m)  # noqa: E731

        assert schedule.is_open_between(at(10, 0), at(11, 0))
        assert schedule.is_open_between(at(11, 0), at(12, 0))
        assert not schedule.is_open_between(at(11, 30), at(12, 30))
        assert not schedule.is_open_between(at(17, 45), at(18, 45))
        assert schedule.is_open_between(at(17, 0), at(18, 0))
        assert _week().is_open_between(at(23, 0), datetime(2025, 3, 11, 1, 0))

    def test_default_week_shape(self):
        schedule = WeeklySchedule(DEFAULT_WEEK, PARIS)
        assert [d.weekday for d in schedule.days()] == list(range(7))
        assert schedule.hours_for(0).break_start == time(12, 0)
        assert schedule.hours_for(5).end_time == time(13, 0)
        assert not schedule.hours_for(5).has_break
        assert not schedule.hours_for(6).is_open


@pytest.mark.unit
class TestValidation:

    @pytest.mark.parametrize("args", [
        (7, time(9), time(18), None, None),
        (0, time(18), time(9), None, None),
        (0, time(9), time(18), time(12), None),
        (0, time(9), time(18), time(14), time(12)),
        (0, time(9), time(18), time(8), time(10)),
        (0, time(9), time(18), time(17), time(18)),
    ])
    def test_rejected(self, args):
        with pytest.raises(ValidationError):
            validate_day_hours(*args)

    def test_accepted(self):
        validate_day_hours(0, time(9), time(18), time(12), time(14))
        validate_day_hours(5, time(9), time(13))


@pytest.mark.unit
def test_timezone_helpers():
    naive = datetime(2025, 3, 10, 10, 0)
    assert to_shop_local(naive, PARIS).tzinfo is PARIS
    assert to_utc(naive, PARIS) == datetime(2025, 3, 10, 9, 0, tzinfo=ZoneInfo("UTC"))


@pytest.mark.integration
class TestWorkingHoursStore:

    async def test_initialize_writes_default_week_once(self, db, shop):
        rows = await crud.initialize_working_hours(db, shop_id=shop.id)
        assert len(rows) == 7
        assert [r.weekday for r in rows] == list(range(7))

        with pytest.raises(Conflict):
            await crud.initialize_working_hours(db, shop_id=shop.id)

    async def test_upsert_then_resolve(self, db, shop):
        await crud.upsert_working_hours(
            db, shop_id=shop.id, weekday=0, is_open=True,
            start_time=time(10, 0), end_time=time(16, 0),
        )
        hours = await crud.hours_for(db, shop_id=shop.id, weekday=0)
        assert hours.start_time == time(10, 0)
        assert await crud.is_open_at(db, shop_id=shop.id, instant=datetime(2025, 3, 10, 10, 0))
        assert not await crud.is_open_at(db, shop_id=shop.id, instant=datetime(2025, 3, 10, 9, 30))
        # only Monday configured: Tuesday is closed
        assert not await crud.is_open_at(db, shop_id=shop.id, instant=datetime(2025, 3, 11, 10, 0))

        updated = await crud.upsert_working_hours(
            db, shop_id=shop.id, weekday=0, is_open=False,
            start_time=time(10, 0), end_time=time(16, 0),
        )
        assert updated.is_open is False
        assert len(await crud.list_working_hours(db, shop_id=shop.id)) == 1

    async def test_upsert_rejects_bad_break(self, db, shop):
        with pytest.raises(ValidationError):
            await crud.upsert_working_hours(
                db, shop_id=shop.id, weekday=0, is_open=True,
                start_time=time(9, 0), end_time=time(18, 0),
                break_start=time(12, 0), break_end=None,
            )
        assert await crud.list_working_hours(db, shop_id=shop.id) == []
