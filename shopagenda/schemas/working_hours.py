# shopagenda/schemas/working_hours.py

from datetime import date, time
from typing import Optional
from pydantic import BaseModel, Field, model_validator
from pydantic.config import ConfigDict


class WorkingHoursIn(BaseModel):
    is_open: bool = True
    start_time: time
    end_time: time
    break_start: Optional[time] = None
    break_end: Optional[time] = None

    @model_validator(mode="after")
    def _check_order(self):
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        if (self.break_start is None) != (self.break_end is None):
            raise ValueError("break_start and break_end must be given together")
        if self.break_start is not None and not (
            self.start_time < self.break_start < self.break_end < self.end_time
        ):
            raise ValueError("break must sit strictly inside opening hours")
        return self


class WorkingHoursOut(BaseModel):
    weekday: int = Field(..., ge=0, le=6, description="0=Monday .. 6=Sunday")
    is_open: bool
    start_time: time
    end_time: time
    break_start: Optional[time] = None
    break_end: Optional[time] = None
    model_config = ConfigDict(from_attributes=True)


class SlotsOut(BaseModel):
    day: date
    granularity_minutes: int
    configured: bool
    slots: list[time]
    busy: list[time]
    model_config = ConfigDict(from_attributes=True)


class OpenOut(BaseModel):
    open: bool
