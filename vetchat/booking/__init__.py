"""Deterministic booking flow: validators, prompts and the state machine."""

from .machine import BookingTurn, advance, start

__all__ = ["BookingTurn", "advance", "start"]
