# shopagenda/schemas/appointment.py

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

from shopagenda.core.transitions import Action, Actor, AppointmentStatus, AppointmentType
from shopagenda.services.notifications import NotificationChannel


class AppointmentCreate(BaseModel):
    start_datetime: datetime = Field(..., description="Shop-local civil time, or ISO8601 with offset")
    duration_minutes: int = Field(30, gt=0, le=24 * 60)
    appointment_type: AppointmentType
    sav_case_id: Optional[str] = Field(None, max_length=64)
    customer_id: Optional[int] = None
    technician_id: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = None
    device_info: dict[str, Any] = Field(default_factory=dict)
    channels: list[NotificationChannel] = Field(default_factory=lambda: [NotificationChannel.CHAT])

    @field_validator("notes")
    @classmethod
    def _clean_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


class AppointmentUpdate(BaseModel):
    """Plain field edit. Status never changes through this payload."""
    model_config = ConfigDict(extra="forbid")

    start_datetime: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, gt=0, le=24 * 60)
    appointment_type: Optional[AppointmentType] = None
    notes: Optional[str] = None
    technician_id: Optional[str] = Field(None, max_length=64)


class ActionIn(BaseModel):
    channels: list[NotificationChannel] = Field(default_factory=lambda: [NotificationChannel.CHAT])


class AppointmentOut(BaseModel):
    id: int
    shop_id: int
    sav_case_id: Optional[str] = None
    customer_id: Optional[int] = None
    technician_id: Optional[str] = None
    start_datetime: datetime
    duration_minutes: int
    status: AppointmentStatus
    appointment_type: AppointmentType
    proposed_by: Actor
    confirmation_token: str
    counter_proposal_datetime: Optional[datetime] = None
    counter_proposal_message: Optional[str] = None
    notes: Optional[str] = None
    device_info: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)


class SoftConflictOut(BaseModel):
    kind: str
    message: str
    appointment_ids: list[int] = Field(default_factory=list)
    model_config = ConfigDict(from_attributes=True)


class AppointmentResultOut(BaseModel):
    appointment: AppointmentOut
    warnings: list[str] = Field(default_factory=list)
    soft_conflicts: list[SoftConflictOut] = Field(default_factory=list)
    model_config = ConfigDict(from_attributes=True)


class EventOut(BaseModel):
    id: int
    action: Action
    actor: Actor
    from_status: Optional[AppointmentStatus] = None
    to_status: AppointmentStatus
    start_datetime: datetime
    counter_proposal_datetime: Optional[datetime] = None
    counter_proposal_message: Optional[str] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class CountOut(BaseModel):
    count: int
