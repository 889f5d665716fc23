# application/ports/entry_log.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from domain.har import Entry


class EntryLogPort(ABC):
    """Append-only, ordered entry storage. Implementations must be thread-safe."""

    @abstractmethod
    def append(self, entry: Entry) -> None:
        ...

    @abstractmethod
    def list(self) -> List[Entry]:
        ...

    @abstractmethod
    def count(self) -> int:
        ...
