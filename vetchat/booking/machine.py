"""Booking dialogue state machine.

Turns one user utterance into the next booking state::

    turn = start(context)                    # → collecting_owner / _pet / _phone
    turn = advance(turn.next_state, "Jane Doe", session_id)
    ...
    turn = advance(state, "yes", session_id)  # → idle, appointment_to_create set

The machine is synchronous and never touches storage. The caller persists
``appointment_to_create`` (when set) before storing ``next_state``, so a
failed write leaves the conversation at ``confirming`` with its data intact.

Transitions:

  collecting_owner     name   → collecting_pet (collecting_phone if pet known)
  collecting_pet       name   → collecting_phone
  collecting_phone     phone  → collecting_datetime
  collecting_datetime  future → confirming
  confirming           yes    → idle + appointment
                       no     → idle
Invalid input at any step returns the input state unchanged with a re-prompt.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from vetchat.booking.prompts import (
    CANCELLED_MESSAGE,
    RETRY_PROMPTS,
    step_prompt,
    success_message,
)
from vetchat.booking.validators import parse_future_datetime, validate_name, validate_phone
from vetchat.errors import ValidationError
from vetchat.models.appointment import AppointmentCreate
from vetchat.models.booking import BookingState, BookingStep, CollectedData
from vetchat.models.conversation import ConversationContext

log = logging.getLogger("vetchat.booking.machine")

# Loose substring matches, yes checked first. "yesterday" counts as yes.
CONFIRM_WORDS = ("yes", "confirm", "correct")
DECLINE_WORDS = ("no", "cancel", "restart")


@dataclass
class BookingTurn:
    """Result of feeding one utterance (or the start signal) to the machine."""

    response_text: str
    next_state: BookingState
    appointment_to_create: Optional[AppointmentCreate] = None
    is_complete: bool = False

    @property
    def is_booking_flow(self) -> bool:
        return self.next_state.is_active


# ── Field steps ──────────────────────────────────────────────────

def _parse_name(text: str, now: datetime) -> str:
    if not validate_name(text):
        raise ValidationError("name shorter than 2 characters")
    return text.strip()


def _parse_phone(text: str, now: datetime) -> str:
    if not validate_phone(text):
        raise ValidationError("phone number rejected")
    return text.strip()


def _parse_datetime(text: str, now: datetime) -> str:
    parsed = parse_future_datetime(text, now)
    if parsed is None:
        raise ValidationError("no future date found")
    return parsed.isoformat()


@dataclass(frozen=True)
class FieldStep:
    """A collecting step: which field it fills and how the input is checked."""

    step: BookingStep
    field: str
    parse: Callable[[str, datetime], str]


FIELD_STEPS: tuple[FieldStep, ...] = (
    FieldStep(BookingStep.COLLECTING_OWNER, "owner_name", _parse_name),
    FieldStep(BookingStep.COLLECTING_PET, "pet_name", _parse_name),
    FieldStep(BookingStep.COLLECTING_PHONE, "phone", _parse_phone),
    FieldStep(BookingStep.COLLECTING_DATETIME, "preferred_date_time", _parse_datetime),
)

_FIELD_STEP_BY_STATE = {fs.step: fs for fs in FIELD_STEPS}

STEP_ORDER: list[BookingStep] = [fs.step for fs in FIELD_STEPS] + [BookingStep.CONFIRMING]


def next_missing_step(data: CollectedData) -> BookingStep:
    """First step whose field is still empty, or ``confirming`` when all are set."""
    for fs in FIELD_STEPS:
        if getattr(data, fs.field) is None:
            return fs.step
    return BookingStep.CONFIRMING


# ── Public API ───────────────────────────────────────────────────

def start(context: Optional[ConversationContext] = None) -> BookingTurn:
    """Begin a booking, pre-filling owner and pet names from the context.

    Known fields are skipped, so a context with both names lands directly
    on ``collecting_phone``.
    """
    context = context or ConversationContext()
    data = CollectedData(
        owner_name=(context.user_name or "").strip() or None,
        pet_name=(context.pet_name or "").strip() or None,
    )
    step = next_missing_step(data)
    log.info("Booking started at %s", step.value)
    return BookingTurn(
        response_text=step_prompt(step, data),
        next_state=BookingState.at(step, data),
    )


def advance(
    state: BookingState,
    utterance: str,
    session_id: str,
    now: Optional[datetime] = None,
) -> BookingTurn:
    """Apply one user utterance to an active booking state."""
    if not state.is_active:
        log.warning("advance() called on an idle booking for session %s", session_id)
        return BookingTurn(response_text="", next_state=state)

    if state.current_step == BookingStep.CONFIRMING:
        return _handle_confirmation(state, utterance, session_id)

    field_step = _FIELD_STEP_BY_STATE[state.current_step]
    if now is None:
        now = datetime.now().astimezone()

    try:
        value = field_step.parse(utterance or "", now)
    except ValidationError as e:
        log.info("Re-prompting at %s: %s", state.current_step.value, e)
        return BookingTurn(
            response_text=RETRY_PROMPTS[state.current_step],
            next_state=state,
        )

    data = state.collected_data.model_copy(update={field_step.field: value})
    step = next_missing_step(data)
    log.info("Booking advance: %s → %s", state.current_step.value, step.value)
    return BookingTurn(
        response_text=step_prompt(step, data),
        next_state=BookingState.at(step, data),
    )


def _handle_confirmation(state: BookingState, utterance: str, session_id: str) -> BookingTurn:
    lowered = (utterance or "").lower()
    data = state.collected_data

    if any(word in lowered for word in CONFIRM_WORDS):
        appointment = AppointmentCreate(
            session_id=session_id,
            owner_name=data.owner_name,
            pet_name=data.pet_name,
            phone=data.phone,
            preferred_date_time=datetime.fromisoformat(data.preferred_date_time),
        )
        log.info("Booking confirmed for session %s", session_id)
        return BookingTurn(
            response_text=success_message(data),
            next_state=BookingState.idle(),
            appointment_to_create=appointment,
            is_complete=True,
        )

    if any(word in lowered for word in DECLINE_WORDS):
        log.info("Booking cancelled for session %s", session_id)
        return BookingTurn(
            response_text=CANCELLED_MESSAGE,
            next_state=BookingState.idle(),
            is_complete=True,
        )

    return BookingTurn(
        response_text=RETRY_PROMPTS[BookingStep.CONFIRMING],
        next_state=state,
    )
