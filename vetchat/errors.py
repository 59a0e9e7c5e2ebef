"""Error taxonomy shared by the stores, the chat service and the HTTP layer.

  ValidationError     malformed field input, re-prompted inside the booking flow
  NotFoundError       unknown session or appointment id            → 404
  InvalidArgumentError  value outside an allowed set (e.g. status) → 400
  UpstreamFailure     text generation failed, recovered by canned replies
  PersistenceFailure  a store write failed                          → 500
  BookingSaveIncomplete  appointment stored, a later write failed  → 500
"""

from __future__ import annotations


class VetChatError(Exception):
    """Base class for errors raised by this package."""

    status_code = 500
    public_message = "An unexpected error occurred."


class ValidationError(VetChatError):
    status_code = 400
    public_message = "Validation failed."


class NotFoundError(VetChatError):
    status_code = 404
    public_message = "Not found."


class InvalidArgumentError(VetChatError):
    status_code = 400
    public_message = "Invalid argument."


class UpstreamFailure(VetChatError):
    status_code = 502
    public_message = "The assistant is temporarily unavailable."


class PersistenceFailure(VetChatError):
    status_code = 500
    public_message = (
        "Sorry, I couldn't save that just now. "
        "Please send your last message again in a moment."
    )


class BookingSaveIncomplete(PersistenceFailure):
    """The appointment was stored but a later write for the same turn failed."""

    public_message = (
        "Your appointment request has been received, but something went wrong "
        "while saving our chat. There's no need to book it again; our team will "
        "contact you to confirm."
    )
