from __future__ import annotations

from threading import Lock
from typing import List

from application.ports.entry_log import EntryLogPort
from domain.har import Entry


class InMemoryEntryLog(EntryLogPort):
    def __init__(self) -> None:
        self._entries: List[Entry] = []
        self._lock = Lock()

    def append(self, entry: Entry) -> None:
        with self._lock:
            self._entries.append(entry)

    def list(self) -> List[Entry]:
        with self._lock:
            return list(self._entries)

    def count(self) -> int:
        with self._lock:
            return len(self._entries)
