"""Pydantic models for a chat conversation and its caller-supplied context."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from vetchat.models.booking import BookingState


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Message(BaseModel):
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class ConversationContext(BaseModel):
    """Hints from the embedding page, used to personalise replies and pre-fill bookings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: Optional[str] = None
    user_name: Optional[str] = None
    pet_name: Optional[str] = None
    source: Optional[str] = None

    def merged_with(self, other: "ConversationContext | None") -> "ConversationContext":
        """Overlay the keys ``other`` actually sets, keeping everything else."""
        if other is None:
            return self
        updates = other.model_dump(exclude_none=True)
        return self.model_copy(update=updates)


class Conversation(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str
    messages: list[Message] = []
    context: ConversationContext = ConversationContext()
    booking_state: BookingState = BookingState()
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def last_message_at(self) -> Optional[datetime]:
        return self.messages[-1].timestamp if self.messages else None
