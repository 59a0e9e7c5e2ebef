"""Pydantic models for appointment records and the admin statistics."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from vetchat.models.conversation import utcnow


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @classmethod
    def values(cls) -> list[str]:
        return [s.value for s in cls]


class AppointmentCreate(BaseModel):
    """Payload the booking flow hands to the appointment store."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str
    owner_name: str
    pet_name: str
    phone: str
    preferred_date_time: datetime
    notes: str = ""


class Appointment(AppointmentCreate):
    id: str
    status: AppointmentStatus = AppointmentStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)


class AppointmentStats(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total: int = 0
    pending: int = 0
    confirmed: int = 0
    today_count: int = 0
