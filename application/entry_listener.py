# application/entry_listener.py
from __future__ import annotations

from abc import ABC, abstractmethod

from application.ports.logger import LoggerPort
from domain.har import Entry


class EntryListener(ABC):
    @abstractmethod
    def on_recorded(self, entry: Entry, logger: LoggerPort) -> None:
        ...
