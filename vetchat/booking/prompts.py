"""Text the booking flow sends back at each step."""

from __future__ import annotations

from datetime import datetime

from vetchat.models.booking import BookingStep, CollectedData

STEP_PROMPTS: dict[BookingStep, str] = {
    BookingStep.COLLECTING_OWNER: (
        "I'd be happy to help you book an appointment! Let's get started. "
        "What is the pet owner's full name?"
    ),
    BookingStep.COLLECTING_PET: "Great! And what is your pet's name?",
    BookingStep.COLLECTING_PHONE: (
        "Perfect! What phone number can we reach you at for appointment confirmation?"
    ),
    BookingStep.COLLECTING_DATETIME: (
        "Almost done! When would you prefer to schedule the appointment? "
        "Please provide a date and time (e.g., 'January 15th at 2pm' or '2025-01-15 14:00')."
    ),
}

RETRY_PROMPTS: dict[BookingStep, str] = {
    BookingStep.COLLECTING_OWNER: "Please provide a valid name (at least 2 characters).",
    BookingStep.COLLECTING_PET: "Please provide your pet's name (at least 2 characters).",
    BookingStep.COLLECTING_PHONE: (
        "Please provide a valid phone number (e.g., 555-123-4567 or 5551234567)."
    ),
    BookingStep.COLLECTING_DATETIME: (
        "I couldn't understand that date/time. Please try again "
        "(e.g., 'January 15th at 2pm' or 'tomorrow at 10am')."
    ),
    BookingStep.CONFIRMING: (
        "Please confirm by saying 'yes' to book this appointment, "
        "or 'no' to cancel and start over."
    ),
}

CANCELLED_MESSAGE = (
    "No problem! The booking has been cancelled. Feel free to ask any veterinary "
    "questions or start a new booking whenever you're ready."
)


def format_datetime(iso_value: str) -> str:
    """Render a stored ISO instant for people, e.g. 'Friday, January 01, 2099 at 10:00 AM'."""
    return datetime.fromisoformat(iso_value).strftime("%A, %B %d, %Y at %I:%M %p")


def _details(data: CollectedData, time_label: str) -> str:
    return (
        f"- Pet Owner: {data.owner_name}\n"
        f"- Pet: {data.pet_name}\n"
        f"- Phone: {data.phone}\n"
        f"- {time_label}: {format_datetime(data.preferred_date_time)}"
    )


def step_prompt(step: BookingStep, data: CollectedData) -> str:
    """Prompt for the step the flow just moved to."""
    if step == BookingStep.CONFIRMING:
        return confirmation_message(data)
    return STEP_PROMPTS[step]


def confirmation_message(data: CollectedData) -> str:
    return (
        "Perfect! Let me confirm your appointment details:\n\n"
        "**Booking Summary:**\n"
        f"{_details(data, 'Preferred Date/Time')}\n\n"
        "Is this information correct? (Reply 'yes' to confirm or 'no' to start over)"
    )


def success_message(data: CollectedData) -> str:
    return (
        "Wonderful! Your appointment has been booked successfully!\n\n"
        "**Appointment Details:**\n"
        f"{_details(data, 'Date/Time')}\n\n"
        f"We'll contact you at {data.phone} to confirm. "
        "Is there anything else I can help you with?"
    )
