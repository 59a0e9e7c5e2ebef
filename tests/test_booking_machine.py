"""Tests for the booking state machine.

Drives start()/advance() directly with a fixed clock; no stores involved.
"""

import os
import sys
from datetime import datetime, timezone

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from vetchat.booking.machine import STEP_ORDER, advance, next_missing_step, start
from vetchat.booking.prompts import CANCELLED_MESSAGE, RETRY_PROMPTS, STEP_PROMPTS
from vetchat.models import BookingState, BookingStep, CollectedData, ConversationContext

NOW = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
SESSION = "sess-1"

FULL_DATA = CollectedData(
    owner_name="Jane Doe",
    pet_name="Fido",
    phone="555-111-2222",
    preferred_date_time="2099-01-01T10:00:00+00:00",
)


def _state(step: BookingStep, **fields) -> BookingState:
    return BookingState.at(step, CollectedData(**fields))


def _confirming() -> BookingState:
    return BookingState.at(BookingStep.CONFIRMING, FULL_DATA)


# ── start() ─────────────────────────────────────────────────────

class TestStart:
    def test_no_context_starts_with_owner(self):
        turn = start()
        assert turn.next_state.current_step == BookingStep.COLLECTING_OWNER
        assert turn.next_state.is_active
        assert turn.next_state.collected_data.is_empty()
        assert turn.response_text == STEP_PROMPTS[BookingStep.COLLECTING_OWNER]

    def test_owner_known_skips_to_pet(self):
        turn = start(ConversationContext(user_name="Amy"))
        assert turn.next_state.current_step == BookingStep.COLLECTING_PET
        assert turn.next_state.collected_data.owner_name == "Amy"
        assert turn.response_text == STEP_PROMPTS[BookingStep.COLLECTING_PET]

    def test_both_known_skips_to_phone(self):
        turn = start(ConversationContext(user_name="Amy", pet_name="Rex"))
        state = turn.next_state
        assert state.current_step == BookingStep.COLLECTING_PHONE
        assert state.collected_data == CollectedData(owner_name="Amy", pet_name="Rex")
        assert turn.response_text == STEP_PROMPTS[BookingStep.COLLECTING_PHONE]

    def test_pet_only_still_asks_owner(self):
        turn = start(ConversationContext(pet_name="Rex"))
        assert turn.next_state.current_step == BookingStep.COLLECTING_OWNER
        assert turn.next_state.collected_data.pet_name == "Rex"

    def test_blank_context_names_ignored(self):
        turn = start(ConversationContext(user_name="  ", pet_name=""))
        assert turn.next_state.current_step == BookingStep.COLLECTING_OWNER
        assert turn.next_state.collected_data.is_empty()

    def test_start_never_creates_appointment(self):
        turn = start(ConversationContext(user_name="Amy", pet_name="Rex"))
        assert turn.appointment_to_create is None
        assert not turn.is_complete


# ── Field steps ─────────────────────────────────────────────────

class TestFieldSteps:
    def test_owner_then_pet(self):
        turn = advance(_state(BookingStep.COLLECTING_OWNER), "  Jane Doe ", SESSION, NOW)
        assert turn.next_state.current_step == BookingStep.COLLECTING_PET
        assert turn.next_state.collected_data.owner_name == "Jane Doe"
        assert turn.response_text == STEP_PROMPTS[BookingStep.COLLECTING_PET]

    def test_owner_with_pet_known_goes_to_phone(self):
        state = _state(BookingStep.COLLECTING_OWNER, pet_name="Rex")
        turn = advance(state, "Amy", SESSION, NOW)
        assert turn.next_state.current_step == BookingStep.COLLECTING_PHONE
        assert turn.response_text == STEP_PROMPTS[BookingStep.COLLECTING_PHONE]

    def test_pet_to_phone(self):
        state = _state(BookingStep.COLLECTING_PET, owner_name="Jane Doe")
        turn = advance(state, "Fido", SESSION, NOW)
        assert turn.next_state.current_step == BookingStep.COLLECTING_PHONE
        assert turn.next_state.collected_data.pet_name == "Fido"

    def test_phone_to_datetime(self):
        state = _state(BookingStep.COLLECTING_PHONE, owner_name="Jane Doe", pet_name="Fido")
        turn = advance(state, "555-111-2222", SESSION, NOW)
        assert turn.next_state.current_step == BookingStep.COLLECTING_DATETIME
        assert turn.next_state.collected_data.phone == "555-111-2222"
        assert turn.response_text == STEP_PROMPTS[BookingStep.COLLECTING_DATETIME]

    def test_datetime_to_confirming_with_summary(self):
        state = _state(
            BookingStep.COLLECTING_DATETIME,
            owner_name="Jane Doe", pet_name="Fido", phone="555-111-2222",
        )
        turn = advance(state, "2099-01-01 10:00", SESSION, NOW)
        assert turn.next_state.current_step == BookingStep.CONFIRMING
        assert turn.next_state.collected_data.preferred_date_time == "2099-01-01T10:00:00+00:00"
        for expected in ("Jane Doe", "Fido", "555-111-2222", "January 01, 2099", "10:00 AM"):
            assert expected in turn.response_text
        assert "yes" in turn.response_text

    def test_valid_steps_never_complete(self):
        turn = advance(_state(BookingStep.COLLECTING_OWNER), "Jane", SESSION, NOW)
        assert not turn.is_complete
        assert turn.appointment_to_create is None
        assert turn.is_booking_flow


# ── Invalid input leaves state untouched ───────────────────────

INVALID_CASES = [
    (_state(BookingStep.COLLECTING_OWNER), "J"),
    (_state(BookingStep.COLLECTING_PET, owner_name="Jane"), " "),
    (_state(BookingStep.COLLECTING_PHONE, owner_name="Jane", pet_name="Fido"), "123"),
    (
        _state(BookingStep.COLLECTING_DATETIME, owner_name="Jane", pet_name="Fido", phone="5551112222"),
        "2020-01-01",
    ),
    (
        _state(BookingStep.COLLECTING_DATETIME, owner_name="Jane", pet_name="Fido", phone="5551112222"),
        "banana pancakes",
    ),
    (
        _state(BookingStep.COLLECTING_DATETIME, owner_name="Jane", pet_name="Fido", phone="5551112222"),
        "5",
    ),
    (_confirming(), "maybe later"),
]


class TestInvalidInput:
    @pytest.mark.parametrize("state,utterance", INVALID_CASES)
    def test_state_unchanged(self, state, utterance):
        before = state.model_dump_json()
        turn = advance(state, utterance, SESSION, NOW)
        assert turn.next_state.model_dump_json() == before
        assert turn.next_state == state
        assert not turn.is_complete
        assert turn.appointment_to_create is None

    @pytest.mark.parametrize("state,utterance", INVALID_CASES)
    def test_reprompt_matches_step(self, state, utterance):
        turn = advance(state, utterance, SESSION, NOW)
        assert turn.response_text == RETRY_PROMPTS[state.current_step]

    def test_phone_reprompt_has_example(self):
        state = _state(BookingStep.COLLECTING_PHONE, owner_name="Jane", pet_name="Fido")
        turn = advance(state, "call me", SESSION, NOW)
        assert "555-123-4567" in turn.response_text

    def test_datetime_reprompt_wording(self):
        state = _state(BookingStep.COLLECTING_DATETIME, owner_name="Jane", pet_name="Fido", phone="5551112222")
        turn = advance(state, "whenever", SESSION, NOW)
        assert "couldn't understand that date" in turn.response_text


# ── Confirmation ───────────────────────────────────────────────

class TestConfirmation:
    @pytest.mark.parametrize("utterance", ["yes", "YES please", "Confirm", "that's correct"])
    def test_yes_creates_appointment_and_resets(self, utterance):
        turn = advance(_confirming(), utterance, SESSION, NOW)
        assert turn.is_complete
        assert turn.next_state == BookingState.idle()
        assert not turn.next_state.is_active
        assert turn.next_state.current_step == BookingStep.IDLE
        assert turn.next_state.collected_data.is_empty()

        appt = turn.appointment_to_create
        assert appt is not None
        assert appt.session_id == SESSION
        assert appt.owner_name == "Jane Doe"
        assert appt.pet_name == "Fido"
        assert appt.phone == "555-111-2222"
        assert appt.preferred_date_time == datetime(2099, 1, 1, 10, 0, tzinfo=timezone.utc)
        assert "booked successfully" in turn.response_text

    @pytest.mark.parametrize("utterance", ["no", "Cancel it", "let's restart"])
    def test_no_resets_without_appointment(self, utterance):
        turn = advance(_confirming(), utterance, SESSION, NOW)
        assert turn.is_complete
        assert turn.appointment_to_create is None
        assert turn.next_state == BookingState.idle()
        assert turn.response_text == CANCELLED_MESSAGE

    def test_yes_wins_over_no(self):
        turn = advance(_confirming(), "yes, no changes needed", SESSION, NOW)
        assert turn.appointment_to_create is not None

    def test_loose_match_yesterday_counts_as_yes(self):
        turn = advance(_confirming(), "yesterday", SESSION, NOW)
        assert turn.appointment_to_create is not None

    def test_unrelated_reply_reprompts(self):
        turn = advance(_confirming(), "hmm", SESSION, NOW)
        assert turn.response_text == RETRY_PROMPTS[BookingStep.CONFIRMING]
        assert turn.next_state == _confirming()


# ── Full walk ──────────────────────────────────────────────────

class TestFullWalk:
    UTTERANCES = ["Jane Doe", "Fido", "555-111-2222", "2099-01-01 10:00"]

    def _walk(self, final: str):
        turn = start()
        visited = [turn.next_state.current_step]
        appointments = []
        for text in self.UTTERANCES + [final]:
            turn = advance(turn.next_state, text, SESSION, NOW)
            visited.append(turn.next_state.current_step)
            if turn.appointment_to_create:
                appointments.append(turn.appointment_to_create)
        return turn, visited, appointments

    def test_yes_path_visits_every_step(self):
        turn, visited, appointments = self._walk("yes")
        assert visited == STEP_ORDER + [BookingStep.IDLE]
        assert len(appointments) == 1
        assert turn.next_state == BookingState.idle()

    def test_no_path(self):
        turn, _, appointments = self._walk("no")
        assert appointments == []
        assert turn.next_state == BookingState.idle()


class TestIdleAndInvariants:
    def test_advance_on_idle_is_noop(self):
        turn = advance(BookingState.idle(), "hello", SESSION, NOW)
        assert turn.next_state == BookingState.idle()
        assert not turn.is_complete

    def test_next_missing_step(self):
        assert next_missing_step(CollectedData()) == BookingStep.COLLECTING_OWNER
        assert next_missing_step(FULL_DATA) == BookingStep.CONFIRMING

    def test_inactive_with_step_rejected(self):
        with pytest.raises(ValueError):
            BookingState(is_active=False, current_step=BookingStep.COLLECTING_PET)

    def test_idle_with_data_rejected(self):
        with pytest.raises(ValueError):
            BookingState(collected_data=CollectedData(owner_name="Jane"))

    def test_confirming_requires_all_fields(self):
        with pytest.raises(ValueError):
            BookingState.at(BookingStep.CONFIRMING, CollectedData(owner_name="Jane"))
