# shopagenda/schemas/public.py

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict


class PublicAppointmentOut(BaseModel):
    """What the token holder gets to see; no internal ids."""
    shop_name: str
    shop_phone: Optional[str] = None
    shop_address: Optional[str] = None
    customer_first_name: Optional[str] = None
    start_local: datetime
    duration_minutes: int
    appointment_type: str
    status: str
    status_label: str
    notes: Optional[str] = None
    device_info: dict[str, Any] = Field(default_factory=dict)
    sav_case_id: Optional[str] = None
    counter_proposal_local: Optional[datetime] = None
    counter_proposal_message: Optional[str] = None
    actionable: bool
    model_config = ConfigDict(from_attributes=True)


class CounterProposalIn(BaseModel):
    proposed_datetime: datetime
    message: Optional[str] = Field(None, max_length=1000)

    @field_validator("message")
    @classmethod
    def _clean_message(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return v.strip() or None


class PublicActionOut(BaseModel):
    status: str
    status_label: str
    message: str
