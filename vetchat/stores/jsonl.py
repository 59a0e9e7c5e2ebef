"""JSONL-file stores: one record per line, one file per collection.

The whole file is rewritten on each write (temp file + rename), and the
in-memory copy is only updated once the file is on disk. Fine for a single
clinic's volume; swap in a database-backed store beyond that.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Iterable, TypeVar

from pydantic import BaseModel

from vetchat.errors import PersistenceFailure
from vetchat.models import Appointment, Conversation
from vetchat.stores.memory import InMemoryAppointmentStore, InMemoryConversationStore

log = logging.getLogger("vetchat.stores.jsonl")

CONVERSATIONS_FILE = "conversations.jsonl"
APPOINTMENTS_FILE = "appointments.jsonl"

M = TypeVar("M", bound=BaseModel)


def load_records(path: str | Path, model: type[M]) -> list[M]:
    """Read every non-empty line of a JSONL file as ``model``."""
    path = Path(path)
    if not path.exists():
        return []
    records = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line:
            continue
        records.append(model.model_validate_json(line))
    return records


def save_records(records: Iterable[BaseModel], path: str | Path) -> None:
    """Atomically replace a JSONL file with ``records``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    lines = [r.model_dump_json(by_alias=True) for r in records]
    tmp_path.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")
    os.replace(tmp_path, path)


async def _save_async(records: list[BaseModel], path: Path) -> None:
    loop = asyncio.get_running_loop()
    try:
        await loop.run_in_executor(None, save_records, records, path)
    except OSError as e:
        log.error("Failed to write %s: %s", path, e)
        raise PersistenceFailure(f"Could not write {path.name}: {e}") from e


class JsonlConversationStore(InMemoryConversationStore):
    def __init__(self, data_dir: str | Path) -> None:
        super().__init__()
        self._path = Path(data_dir) / CONVERSATIONS_FILE
        for conversation in load_records(self._path, Conversation):
            self._conversations[conversation.session_id] = conversation
        log.info("Loaded %d conversations from %s", len(self._conversations), self._path)

    async def _write(self, conversation: Conversation) -> None:
        pending = dict(self._conversations)
        pending[conversation.session_id] = conversation
        await _save_async(list(pending.values()), self._path)
        await super()._write(conversation)


class JsonlAppointmentStore(InMemoryAppointmentStore):
    def __init__(self, data_dir: str | Path) -> None:
        super().__init__()
        self._path = Path(data_dir) / APPOINTMENTS_FILE
        for appointment in load_records(self._path, Appointment):
            self._appointments[appointment.id] = appointment
        log.info("Loaded %d appointments from %s", len(self._appointments), self._path)

    async def _write(self, appointment: Appointment) -> None:
        pending = dict(self._appointments)
        pending[appointment.id] = appointment
        await _save_async(list(pending.values()), self._path)
        await super()._write(appointment)
