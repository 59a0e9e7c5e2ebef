"""Data models for the chat and booking layers."""

from .appointment import Appointment, AppointmentCreate, AppointmentStats, AppointmentStatus
from .booking import BookingState, BookingStep, CollectedData
from .conversation import Conversation, ConversationContext, Message, MessageRole

__all__ = [
    "Appointment",
    "AppointmentCreate",
    "AppointmentStats",
    "AppointmentStatus",
    "BookingState",
    "BookingStep",
    "CollectedData",
    "Conversation",
    "ConversationContext",
    "Message",
    "MessageRole",
]
