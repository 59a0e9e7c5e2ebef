"""Abstract base classes for conversation and appointment storage.

Any backend (in-memory, JSONL files, a document database) implements these
ABCs. Every method is a suspend point; write failures surface as
``PersistenceFailure`` and unknown keys as ``NotFoundError``.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from vetchat.models import (
    Appointment,
    AppointmentCreate,
    AppointmentStats,
    AppointmentStatus,
    BookingState,
    Conversation,
    ConversationContext,
    MessageRole,
)


class ConversationStore(ABC):
    """Conversations keyed by session identifier."""

    @abstractmethod
    async def get_or_create(
        self, session_id: str, context: Optional[ConversationContext] = None
    ) -> Conversation:
        """Return the conversation for ``session_id``, creating it if needed.

        On repeat calls the keys set in ``context`` are merged into the stored
        context; keys it leaves unset keep their stored values.
        """

    @abstractmethod
    async def get(self, session_id: str) -> Optional[Conversation]:
        """Return the conversation, or None if the session is unknown."""

    @abstractmethod
    async def append_message(
        self, session_id: str, role: MessageRole, content: str
    ) -> Conversation:
        """Append one message to the history.

        Raises:
            NotFoundError: no conversation exists for ``session_id``.
        """

    @abstractmethod
    async def update_booking_state(
        self, session_id: str, state: BookingState
    ) -> Conversation:
        """Replace the stored booking state wholesale.

        Raises:
            NotFoundError: no conversation exists for ``session_id``.
        """

    @abstractmethod
    async def list_conversations(self, limit: int = 50, skip: int = 0) -> list[Conversation]:
        """Most recently updated first."""


class AppointmentStore(ABC):
    """Appointment records keyed by a generated identifier."""

    @abstractmethod
    async def create_appointment(self, payload: AppointmentCreate) -> Appointment:
        """Persist a new appointment with status ``pending``."""

    @abstractmethod
    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Return the appointment, or None if the id is unknown."""

    @abstractmethod
    async def list_appointments(
        self,
        status: Optional[AppointmentStatus] = None,
        from_date: Optional[datetime] = None,
        limit: int = 50,
        skip: int = 0,
    ) -> list[Appointment]:
        """Appointments ordered by preferred time, earliest first."""

    @abstractmethod
    async def list_by_session(self, session_id: str) -> list[Appointment]:
        """Appointments booked from one conversation, newest first."""

    @abstractmethod
    async def update_appointment_status(
        self, appointment_id: str, status: str
    ) -> Appointment:
        """Set the status of an appointment.

        Raises:
            InvalidArgumentError: ``status`` is not one of the four statuses.
            NotFoundError: no appointment has ``appointment_id``.
        """

    @abstractmethod
    async def get_stats(self, now: Optional[datetime] = None) -> AppointmentStats:
        """Totals for the admin dashboard.

        ``today_count`` counts appointments whose preferred time is at or
        after local midnight of ``now``.
        """
