"""Pydantic models for the booking dialogue embedded in a conversation."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel


class BookingStep(str, Enum):
    IDLE = "idle"
    COLLECTING_OWNER = "collecting_owner"
    COLLECTING_PET = "collecting_pet"
    COLLECTING_PHONE = "collecting_phone"
    COLLECTING_DATETIME = "collecting_datetime"
    CONFIRMING = "confirming"


class CollectedData(BaseModel):
    """Fields gathered from the pet owner, all empty until collected."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    owner_name: Optional[str] = None
    pet_name: Optional[str] = None
    phone: Optional[str] = None
    preferred_date_time: Optional[str] = None  # ISO-8601

    def is_empty(self) -> bool:
        return all(v is None for v in self.model_dump().values())

    def is_complete(self) -> bool:
        return all(v is not None for v in self.model_dump().values())


class BookingState(BaseModel):
    """Where a conversation stands in the booking flow.

    ``is_active`` is False exactly when the step is ``idle`` and no data has
    been collected, and ``confirming`` is only reachable with every field
    filled. Both rules are checked on construction, so a state that breaks
    them cannot be stored.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    is_active: bool = False
    current_step: BookingStep = BookingStep.IDLE
    collected_data: CollectedData = CollectedData()

    @model_validator(mode="after")
    def _check_invariants(self) -> "BookingState":
        idle = self.current_step == BookingStep.IDLE
        if self.is_active == idle:
            raise ValueError(
                f"is_active={self.is_active} is inconsistent with step {self.current_step.value}"
            )
        if idle and not self.collected_data.is_empty():
            raise ValueError("an idle booking state cannot carry collected data")
        if self.current_step == BookingStep.CONFIRMING and not self.collected_data.is_complete():
            raise ValueError("confirming requires every booking field")
        return self

    @classmethod
    def idle(cls) -> "BookingState":
        return cls()

    @classmethod
    def at(cls, step: BookingStep, data: CollectedData) -> "BookingState":
        return cls(is_active=True, current_step=step, collected_data=data)
