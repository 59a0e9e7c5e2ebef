"""Conversation and appointment storage backends."""

from __future__ import annotations

import logging

from .base import AppointmentStore, ConversationStore
from .jsonl import JsonlAppointmentStore, JsonlConversationStore
from .memory import InMemoryAppointmentStore, InMemoryConversationStore

__all__ = [
    "AppointmentStore",
    "ConversationStore",
    "InMemoryAppointmentStore",
    "InMemoryConversationStore",
    "JsonlAppointmentStore",
    "JsonlConversationStore",
    "create_stores",
]

log = logging.getLogger("vetchat.stores")


def create_stores(data_dir: str = "") -> tuple[ConversationStore, AppointmentStore]:
    """Build the store pair: JSONL files under ``data_dir``, or in-memory when empty."""
    if data_dir:
        log.info("Using JSONL stores in %s", data_dir)
        return JsonlConversationStore(data_dir), JsonlAppointmentStore(data_dir)
    log.info("Using in-memory stores")
    return InMemoryConversationStore(), InMemoryAppointmentStore()
