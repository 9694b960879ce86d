"""Device-side walk accounting.

A submitted walk lands here first as a *tentative* entry. Once the backend
confirms it the entry becomes *synced* (same slot, server id attached). If the
backend could not be reached the entry stays as *unsynced* until a retry. A
rejected walk is rolled back and disappears.
"""

import logging
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pawwalk.core.errors import NotFound
from pawwalk.tracking.models import WalkSession

logger = logging.getLogger(__name__)


class EntryState(str, Enum):
    tentative = "tentative"
    synced = "synced"
    unsynced = "unsynced"


@dataclass
class LedgerEntry:
    pending_id: str
    session: WalkSession
    state: EntryState
    server_id: Optional[int] = None


@dataclass(frozen=True)
class LedgerTotals:
    total_walks: int
    total_distance_km: float
    total_duration_minutes: int
    total_steps: int
    total_calories: int


class LocalLedger:
    def __init__(self):
        self._lock = threading.Lock()
        self._entries: dict[str, LedgerEntry] = {}

    def apply_tentative(self, session: WalkSession) -> str:
        pending_id = uuid.uuid4().hex
        with self._lock:
            self._entries[pending_id] = LedgerEntry(pending_id, session, EntryState.tentative)
        return pending_id

    def _entry(self, pending_id: str) -> LedgerEntry:
        entry = self._entries.get(pending_id)
        if entry is None:
            raise NotFound(f"No local walk {pending_id}")
        return entry

    def confirm(self, pending_id: str, server_id: int) -> LedgerEntry:
        with self._lock:
            entry = self._entry(pending_id)
            entry.server_id = server_id
            entry.session.id = server_id
            entry.state = EntryState.synced
            return entry

    def mark_unsynced(self, pending_id: str) -> LedgerEntry:
        with self._lock:
            entry = self._entry(pending_id)
            entry.state = EntryState.unsynced
            return entry

    def rollback(self, pending_id: str) -> None:
        with self._lock:
            if self._entries.pop(pending_id, None) is not None:
                logger.info("Rolled back local walk %s", pending_id)

    def get(self, pending_id: str) -> LedgerEntry:
        with self._lock:
            return self._entry(pending_id)

    def entries(self, state: Optional[EntryState] = None) -> list[LedgerEntry]:
        with self._lock:
            return [e for e in self._entries.values() if state is None or e.state == state]

    def unsynced(self) -> list[LedgerEntry]:
        return self.entries(EntryState.unsynced)

    def totals(self) -> LedgerTotals:
        entries = self.entries()
        return LedgerTotals(
            total_walks=len(entries),
            total_distance_km=round(sum(e.session.distance_km for e in entries), 2),
            total_duration_minutes=sum(e.session.duration_minutes for e in entries),
            total_steps=sum(e.session.steps for e in entries),
            total_calories=sum(e.session.calories_burned for e in entries),
        )
