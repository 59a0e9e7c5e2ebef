"""Per-session chat handling: routes each message to the LLM or the booking flow.

For every inbound message the ChatService:
  1. Loads (or creates) the conversation and appends the user message
  2. Resets a booking the user abandoned longer ago than the TTL
  3. If a booking is active, feeds the message to the booking state machine,
     persisting any finished appointment (once per booking) before the new
     booking state
  4. Otherwise asks the text generator for a reply; a booking-intent marker
     in that reply starts the booking flow instead of being shown
  5. Appends and returns the assistant reply

Turns for the same session are serialized with a per-session lock, so the
read-modify-write of the booking state never interleaves.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Optional

from vetchat.booking import machine
from vetchat.booking.machine import BookingTurn
from vetchat.errors import BookingSaveIncomplete, NotFoundError, PersistenceFailure
from vetchat.generation import TextGenerator, has_booking_intent
from vetchat.models import (
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
    BookingState,
    Conversation,
    ConversationContext,
    MessageRole,
)
from vetchat.stores.base import AppointmentStore, ConversationStore

log = logging.getLogger("vetchat.chat")

GREETING = (
    "Hello! I'm your veterinary assistant. I can help you with questions about pet care, "
    "vaccinations, nutrition, and common health concerns. I can also help you book an "
    "appointment with our veterinary team. How can I assist you today?"
)


def redact_pii(value: str) -> str:
    """Mask PII for logging, showing the first 3 and last 2 chars only."""
    if not value or len(value) <= 5:
        return "***"
    return value[:3] + "***" + value[-2:]


def _same_booking(existing: Appointment, payload: AppointmentCreate) -> bool:
    return (
        existing.owner_name == payload.owner_name
        and existing.pet_name == payload.pet_name
        and existing.phone == payload.phone
        and existing.preferred_date_time == payload.preferred_date_time
    )


@dataclass
class ChatReply:
    response: str
    session_id: str
    is_booking_flow: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "response": self.response,
            "sessionId": self.session_id,
            "isBookingFlow": self.is_booking_flow,
        }


class ChatService:
    """Handler layer shared by the HTTP routes.

    Typical lifecycle::

        service = ChatService(conversations, appointments, generator)
        session_id, greeting = await service.init_session(context)
        reply = await service.handle_message("I'd like to book a visit", session_id)
        # reply.is_booking_flow → True, reply.response asks for the owner's name
    """

    def __init__(
        self,
        conversations: ConversationStore,
        appointments: AppointmentStore,
        generator: TextGenerator,
        booking_ttl: Optional[timedelta] = None,
    ) -> None:
        self._conversations = conversations
        self._appointments = appointments
        self._generator = generator
        self._booking_ttl = booking_ttl or None

        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @property
    def generator(self) -> TextGenerator:
        return self._generator

    # ── Public API ────────────────────────────────────────────

    async def init_session(
        self, context: Optional[ConversationContext] = None,
    ) -> tuple[str, str]:
        """Create a new conversation and return (session_id, greeting)."""
        session_id = str(uuid.uuid4())
        await self._conversations.get_or_create(session_id, context)
        log.info("Session initialised: %s", session_id)
        return session_id, GREETING

    async def handle_message(
        self,
        message: str,
        session_id: Optional[str] = None,
        context: Optional[ConversationContext] = None,
        now: Optional[datetime] = None,
    ) -> ChatReply:
        """Process one user message and return the assistant reply.

        Raises:
            NotFoundError: ``session_id`` was given but no conversation exists.
            PersistenceFailure: a store write failed; the booking state is
                left as it was before this message.
            BookingSaveIncomplete: the appointment was stored but a later
                write for this turn failed. Resending "yes" does not book twice.
        """
        message = message.strip()

        if session_id:
            if await self._conversations.get(session_id) is None:
                raise NotFoundError(f"Conversation not found: {session_id}")
        else:
            session_id = str(uuid.uuid4())

        async with self._session_lock(session_id):
            conversation = await self._conversations.get_or_create(session_id, context)
            conversation = await self._expire_abandoned_booking(conversation, now)
            conversation = await self._conversations.append_message(
                session_id, MessageRole.USER, message,
            )

            booked = None
            if conversation.booking_state.is_active:
                turn = machine.advance(conversation.booking_state, message, session_id, now)
                booked = await self._apply_turn(session_id, conversation.booking_state, turn)
                response, is_booking_flow = turn.response_text, turn.is_booking_flow
            else:
                response = await self._generator.generate(
                    conversation.messages, conversation.context,
                )
                if has_booking_intent(response):
                    log.info("Booking intent detected for %s", session_id)
                    turn = machine.start(conversation.context)
                    await self._apply_turn(session_id, conversation.booking_state, turn)
                    response, is_booking_flow = turn.response_text, True
                else:
                    is_booking_flow = False

            try:
                await self._conversations.append_message(session_id, MessageRole.ASSISTANT, response)
            except PersistenceFailure as e:
                if booked is None:
                    raise
                raise BookingSaveIncomplete(
                    f"Appointment {booked.id} stored but reply not recorded: {e}"
                ) from e

        return ChatReply(response=response, session_id=session_id, is_booking_flow=is_booking_flow)

    # ── Internal ──────────────────────────────────────────────

    async def _apply_turn(
        self, session_id: str, previous: BookingState, turn: BookingTurn,
    ) -> Optional[Appointment]:
        """Persist a booking turn: the appointment first, then the new state.

        Returns the appointment booked by this turn, if any.
        """
        appointment = None
        if turn.appointment_to_create is not None:
            appointment = await self._book_once(session_id, turn.appointment_to_create)

        if turn.next_state != previous:
            try:
                await self._conversations.update_booking_state(session_id, turn.next_state)
            except PersistenceFailure as e:
                if appointment is None:
                    raise
                raise BookingSaveIncomplete(
                    f"Appointment {appointment.id} stored but booking state not reset: {e}"
                ) from e
        return appointment

    async def _book_once(self, session_id: str, payload: AppointmentCreate) -> Appointment:
        """Create the appointment unless this session already has the same pending one.

        A "yes" resent after a failed state write finds the record stored the
        first time and returns it.
        """
        for existing in await self._appointments.list_by_session(session_id):
            if existing.status == AppointmentStatus.PENDING and _same_booking(existing, payload):
                log.info("Appointment %s already booked for %s", existing.id, session_id)
                return existing

        appointment = await self._appointments.create_appointment(payload)
        log.info(
            "Appointment %s booked for %s (phone %s)",
            appointment.id,
            redact_pii(appointment.owner_name),
            redact_pii(appointment.phone),
        )
        return appointment

    async def _expire_abandoned_booking(
        self, conversation: Conversation, now: Optional[datetime],
    ) -> Conversation:
        if not self._booking_ttl or not conversation.booking_state.is_active:
            return conversation

        last = conversation.last_message_at
        if last is None:
            return conversation

        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.astimezone()
        if now - last <= self._booking_ttl:
            return conversation

        log.info(
            "Booking for %s abandoned at %s; resetting",
            conversation.session_id,
            conversation.booking_state.current_step.value,
        )
        return await self._conversations.update_booking_state(
            conversation.session_id, BookingState.idle(),
        )

    @asynccontextmanager
    async def _session_lock(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if not self._lock_users[session_id]:
                del self._lock_users[session_id]
                del self._locks[session_id]
