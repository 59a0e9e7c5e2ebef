"""Dict-backed stores. The default backend and the base of the JSONL stores.

Records are copied on the way in and out so callers never share mutable
state with the store, just as they would not with a database.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime
from typing import Optional

from vetchat.errors import InvalidArgumentError, NotFoundError
from vetchat.models import (
    Appointment,
    AppointmentCreate,
    AppointmentStats,
    AppointmentStatus,
    BookingState,
    Conversation,
    ConversationContext,
    Message,
    MessageRole,
)
from vetchat.models.conversation import utcnow
from vetchat.stores.base import AppointmentStore, ConversationStore

log = logging.getLogger("vetchat.stores.memory")


def _parse_status(status: str) -> AppointmentStatus:
    try:
        return AppointmentStatus(status)
    except ValueError:
        raise InvalidArgumentError(
            f"Invalid status {status!r}. Allowed: {', '.join(AppointmentStatus.values())}"
        ) from None


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.astimezone()


class InMemoryConversationStore(ConversationStore):
    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}
        self._lock = asyncio.Lock()

    async def _write(self, conversation: Conversation) -> None:
        """Commit one record. Subclasses persist before committing."""
        self._conversations[conversation.session_id] = conversation

    def _require(self, session_id: str) -> Conversation:
        conversation = self._conversations.get(session_id)
        if conversation is None:
            raise NotFoundError(f"Conversation not found: {session_id}")
        return conversation

    async def get_or_create(
        self, session_id: str, context: Optional[ConversationContext] = None
    ) -> Conversation:
        async with self._lock:
            existing = self._conversations.get(session_id)
            if existing is None:
                conversation = Conversation(
                    session_id=session_id,
                    context=context or ConversationContext(),
                )
                await self._write(conversation)
                log.info("Conversation created: %s", session_id)
            elif context is not None and context.model_dump(exclude_none=True):
                conversation = existing.model_copy(
                    update={"context": existing.context.merged_with(context), "updated_at": utcnow()}
                )
                await self._write(conversation)
                log.info("Conversation context updated: %s", session_id)
            else:
                conversation = existing
            return conversation.model_copy(deep=True)

    async def get(self, session_id: str) -> Optional[Conversation]:
        conversation = self._conversations.get(session_id)
        return conversation.model_copy(deep=True) if conversation else None

    async def append_message(
        self, session_id: str, role: MessageRole, content: str
    ) -> Conversation:
        async with self._lock:
            existing = self._require(session_id)
            conversation = existing.model_copy(update={
                "messages": [*existing.messages, Message(role=role, content=content)],
                "updated_at": utcnow(),
            })
            await self._write(conversation)
            log.debug("Message appended to %s (%d total)", session_id, len(conversation.messages))
            return conversation.model_copy(deep=True)

    async def update_booking_state(
        self, session_id: str, state: BookingState
    ) -> Conversation:
        async with self._lock:
            existing = self._require(session_id)
            conversation = existing.model_copy(
                update={"booking_state": state, "updated_at": utcnow()}
            )
            await self._write(conversation)
            log.info("Booking state for %s → %s", session_id, state.current_step.value)
            return conversation.model_copy(deep=True)

    async def list_conversations(self, limit: int = 50, skip: int = 0) -> list[Conversation]:
        ordered = sorted(self._conversations.values(), key=lambda c: c.updated_at, reverse=True)
        return [c.model_copy(deep=True) for c in ordered[skip:skip + limit]]


class InMemoryAppointmentStore(AppointmentStore):
    def __init__(self) -> None:
        self._appointments: dict[str, Appointment] = {}
        self._lock = asyncio.Lock()

    async def _write(self, appointment: Appointment) -> None:
        """Commit one record. Subclasses persist before committing."""
        self._appointments[appointment.id] = appointment

    async def create_appointment(self, payload: AppointmentCreate) -> Appointment:
        appointment = Appointment(
            id=uuid.uuid4().hex,
            **payload.model_dump(),
        )
        async with self._lock:
            await self._write(appointment)
        log.info("Created appointment %s for session %s", appointment.id, appointment.session_id)
        return appointment.model_copy()

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        appointment = self._appointments.get(appointment_id)
        return appointment.model_copy() if appointment else None

    async def list_appointments(
        self,
        status: Optional[AppointmentStatus] = None,
        from_date: Optional[datetime] = None,
        limit: int = 50,
        skip: int = 0,
    ) -> list[Appointment]:
        results = list(self._appointments.values())
        if status is not None:
            results = [a for a in results if a.status == status]
        if from_date is not None:
            cutoff = _aware(from_date)
            results = [a for a in results if _aware(a.preferred_date_time) >= cutoff]
        results.sort(key=lambda a: _aware(a.preferred_date_time))
        return [a.model_copy() for a in results[skip:skip + limit]]

    async def list_by_session(self, session_id: str) -> list[Appointment]:
        results = [a for a in self._appointments.values() if a.session_id == session_id]
        results.sort(key=lambda a: a.created_at, reverse=True)
        return [a.model_copy() for a in results]

    async def update_appointment_status(
        self, appointment_id: str, status: str
    ) -> Appointment:
        new_status = _parse_status(status)
        async with self._lock:
            existing = self._appointments.get(appointment_id)
            if existing is None:
                raise NotFoundError(f"Appointment not found: {appointment_id}")
            appointment = existing.model_copy(update={"status": new_status})
            await self._write(appointment)
        log.info("Appointment %s status → %s", appointment_id, new_status.value)
        return appointment.model_copy()

    async def get_stats(self, now: Optional[datetime] = None) -> AppointmentStats:
        now = _aware(now) if now else datetime.now().astimezone()
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        appointments = list(self._appointments.values())
        return AppointmentStats(
            total=len(appointments),
            pending=sum(1 for a in appointments if a.status == AppointmentStatus.PENDING),
            confirmed=sum(1 for a in appointments if a.status == AppointmentStatus.CONFIRMED),
            today_count=sum(1 for a in appointments if _aware(a.preferred_date_time) >= midnight),
        )
