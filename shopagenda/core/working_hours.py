# shopagenda/core/working_hours.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterable, Optional, Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from shopagenda.core.config import settings
from shopagenda.core.errors import ValidationError

UTC = ZoneInfo("UTC")


class HoursRow(Protocol):
    weekday: int
    is_open: bool
    start_time: time
    end_time: time
    break_start: Optional[time]
    break_end: Optional[time]


@dataclass(frozen=True)
class DayHours:
    weekday: int  # 0=Mon .. 6=Sun
    is_open: bool
    start_time: time
    end_time: time
    break_start: Optional[time] = None
    break_end: Optional[time] = None

    @classmethod
    def from_row(cls, row: HoursRow) -> "DayHours":
        return cls(
            weekday=row.weekday,
            is_open=row.is_open,
            start_time=row.start_time,
            end_time=row.end_time,
            break_start=row.break_start,
            break_end=row.break_end,
        )

    @property
    def has_break(self) -> bool:
        return self.break_start is not None and self.break_end is not None

    def is_open_at(self, t: time) -> bool:
        if not self.is_open:
            return False
        if t < self.start_time or t >= self.end_time:
            return False
        # break end minute itself is open
        if self.has_break and self.break_start <= t < self.break_end:
            return False
        return True


# 0=Mon .. 6=Sun
DEFAULT_WEEK = (
    DayHours(0, True, time(9, 0), time(18, 0), time(12, 0), time(14, 0)),
    DayHours(1, True, time(9, 0), time(18, 0), time(12, 0), time(14, 0)),
    DayHours(2, True, time(9, 0), time(18, 0), time(12, 0), time(14, 0)),
    DayHours(3, True, time(9, 0), time(18, 0), time(12, 0), time(14, 0)),
    DayHours(4, True, time(9, 0), time(18, 0), time(12, 0), time(14, 0)),
    DayHours(5, True, time(9, 0), time(13, 0)),   # Sat (short)
    DayHours(6, False, time(9, 0), time(18, 0)),  # Sun (closed)
)


def validate_day_hours(
    weekday: int,
    start_time: time,
    end_time: time,
    break_start: Optional[time] = None,
    break_end: Optional[time] = None,
) -> None:
    if not 0 <= weekday <= 6:
        raise ValidationError("weekday must be between 0 (Monday) and 6 (Sunday)")
    if start_time >= end_time:
        raise ValidationError("start_time must be before end_time")
    if (break_start is None) != (break_end is None):
        raise ValidationError("break_start and break_end must be given together")
    if break_start is not None and not (start_time < break_start < break_end < end_time):
        raise ValidationError("break must sit strictly inside opening hours")


def shop_zone(tz_name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name or settings.DEFAULT_TIMEZONE)
    except ZoneInfoNotFoundError:
        raise ValidationError(f"Unknown timezone: {tz_name}")


def to_shop_local(instant: datetime, tz: ZoneInfo) -> datetime:
    """Naive datetimes are already shop-local civil time."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=tz)
    return instant.astimezone(tz)


def to_utc(instant: datetime, tz: ZoneInfo) -> datetime:
    return to_shop_local(instant, tz).astimezone(UTC)


class WeeklySchedule:
    """A shop's week as configured, with the open-by-default fallback."""

    def __init__(self, days: Iterable[DayHours], tz: ZoneInfo):
        self.tz = tz
        self._days = {d.weekday: d for d in days}

    @classmethod
    def from_rows(cls, rows: Iterable[HoursRow], tz: ZoneInfo) -> "WeeklySchedule":
        return cls((DayHours.from_row(r) for r in rows), tz)

    @property
    def is_configured(self) -> bool:
        return bool(self._days)

    def hours_for(self, weekday: int) -> Optional[DayHours]:
        return self._days.get(weekday)

    def is_open_at(self, instant: datetime) -> bool:
        if not self.is_configured:
            return True
        local = to_shop_local(instant, self.tz)
        hours = self.hours_for(local.weekday())
        if hours is None:
            return False
        return hours.is_open_at(local.time().replace(tzinfo=None))

    def is_open_between(self, start: datetime, end: datetime) -> bool:
        """Open at ``start`` with no break or closing time before ``end``."""
        if not self.is_open_at(start):
            return False
        if not self.is_configured:
            return True
        local_start = to_shop_local(start, self.tz)
        local_end = to_shop_local(end, self.tz)
        hours = self.hours_for(local_start.weekday())
        closings = [hours.end_time]
        if hours.has_break:
            closings.append(hours.break_start)
        for t in closings:
            closing = datetime.combine(local_start.date(), t, tzinfo=self.tz)
            if local_start < closing < local_end:
                return False
        return True

    def is_closed_on(self, day: date) -> bool:
        if not self.is_configured:
            return False
        hours = self.hours_for(day.weekday())
        return hours is None or not hours.is_open

    def days(self) -> list[DayHours]:
        return [self._days[k] for k in sorted(self._days)]
