#!/usr/bin/env python3
"""
Tests for slot generation and the advisory booking checks.
"""

from datetime import date, datetime, time
from types import SimpleNamespace
from zoneinfo import ZoneInfo

import pytest

from shopagenda.core.errors import ValidationError
from shopagenda.core.slots import busy_slots_for, candidate_starts, check_booking, slots_for
from shopagenda.core.transitions import AppointmentStatus
from shopagenda.core.working_hours import DEFAULT_WEEK, DayHours, WeeklySchedule
from shopagenda.services.availability import day_availability

PARIS = ZoneInfo("Europe/Paris")
UTC = ZoneInfo("UTC")
MONDAY = date(2025, 3, 10)


@pytest.fixture
def lunch_break_week():
    return WeeklySchedule([DayHours(0, True, time(9, 0), time(18, 0), time(12, 0), time(13, 0))], PARIS)


def _booked(id, start_utc, minutes=30, status=AppointmentStatus.CONFIRMED):
    return SimpleNamespace(id=id, start_datetime=start_utc, duration_minutes=minutes, status=status)


@pytest.mark.unit
class TestSlots:

    def test_break_is_excluded(self, lunch_break_week):
        slots = slots_for(lunch_break_week, MONDAY, 30)

        assert time(11, 30) in slots
        assert time(12, 0) not in slots
        assert time(12, 30) not in slots
        assert time(13, 0) in slots
        assert slots[0] == time(9, 0)
        assert slots[-1] == time(17, 30)
        assert slots == sorted(slots)
        assert len(slots) == 16

    def test_closed_day_has_no_slots(self, lunch_break_week):
        assert slots_for(lunch_break_week, date(2025, 3, 11)) == []
        assert slots_for(WeeklySchedule(DEFAULT_WEEK, PARIS), date(2025, 3, 16)) == []

    def test_unconfigured_shop_gets_full_day(self):
        slots = slots_for(WeeklySchedule([], PARIS), MONDAY, 60)
        assert slots == [time(h, 0) for h in range(7, 20)]

    def test_candidates_stop_before_day_end(self):
        starts = candidate_starts(30)
        assert starts[0] == time(7, 0)
        assert starts[-1] == time(19, 30)

    @pytest.mark.parametrize("granularity", [0, -15, 7, 25])
    def test_bad_granularity(self, granularity):
        with pytest.raises(ValidationError):
            candidate_starts(granularity)

    def test_occupied_slots_stay_listed_and_are_marked_busy(self, lunch_break_week):
        slots = slots_for(lunch_break_week, MONDAY, 30)
        # 10:00 Paris is 09:00 UTC in March
        booked = [
            _booked(1, datetime(2025, 3, 10, 9, 0, tzinfo=UTC), 60),
            _booked(2, datetime(2025, 3, 10, 14, 0, tzinfo=UTC), 30, AppointmentStatus.CANCELLED),
        ]
        busy = busy_slots_for(lunch_break_week, MONDAY, slots, booked, 30)

        assert busy == [time(10, 0), time(10, 30)]
        assert time(10, 0) in slots_for(lunch_break_week, MONDAY, 30)


@pytest.mark.unit
class TestCheckBooking:

    def test_inside_hours_and_free(self, lunch_break_week):
        assert check_booking(lunch_break_week, datetime(2025, 3, 10, 10, 0), 30, []) == []

    def test_during_break_is_flagged_not_refused(self, lunch_break_week):
        notices = check_booking(lunch_break_week, datetime(2025, 3, 10, 12, 15), 30, [])
        assert [n.kind for n in notices] == ["closed"]

    @pytest.mark.parametrize("start, minutes", [
        (datetime(2025, 3, 10, 17, 45), 60),  # past closing
        (datetime(2025, 3, 10, 11, 45), 30),  # into the break
    ])
    def test_running_past_open_hours_is_flagged(self, lunch_break_week, start, minutes):
        notices = check_booking(lunch_break_week, start, minutes, [])
        assert [n.kind for n in notices] == ["closed"]
        assert "runs past" in notices[0].message

    def test_ending_exactly_at_break_is_fine(self, lunch_break_week):
        assert check_booking(lunch_break_week, datetime(2025, 3, 10, 11, 30), 30, []) == []
        assert check_booking(lunch_break_week, datetime(2025, 3, 10, 17, 0), 60, []) == []

    def test_overlap_reports_ids(self, lunch_break_week):
        booked = [
            _booked(7, datetime(2025, 3, 10, 9, 15, tzinfo=UTC)),
            _booked(8, datetime(2025, 3, 10, 13, 0, tzinfo=UTC)),
        ]
        notices = check_booking(lunch_break_week, datetime(2025, 3, 10, 10, 0), 30, booked)

        assert len(notices) == 1
        assert notices[0].kind == "occupied"
        assert notices[0].appointment_ids == (7,)
        assert notices[0].to_dict()["appointment_ids"] == [7]

    def test_excluded_id_is_ignored(self, lunch_break_week):
        booked = [_booked(7, datetime(2025, 3, 10, 9, 0, tzinfo=UTC))]
        assert check_booking(lunch_break_week, datetime(2025, 3, 10, 10, 0), 30, booked, exclude_id=7) == []

    def test_back_to_back_does_not_overlap(self, lunch_break_week):
        booked = [_booked(7, datetime(2025, 3, 10, 9, 0, tzinfo=UTC), 30)]
        assert check_booking(lunch_break_week, datetime(2025, 3, 10, 10, 30), 30, booked) == []


@pytest.mark.integration
async def test_day_availability_marks_booked_slot(db, shop, make_appointment):
    await make_appointment(start=datetime(2025, 3, 10, 15, 0), duration=30)

    availability = await day_availability(db, shop_id=shop.id, day=MONDAY, granularity_minutes=30)

    assert not availability.configured
    assert time(15, 0) in availability.slots
    assert availability.busy == [time(15, 0)]
