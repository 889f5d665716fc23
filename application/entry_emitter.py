# application/entry_emitter.py
from __future__ import annotations

from typing import Iterable

from application.entry_listener import EntryListener
from application.ports.logger import LoggerPort
from domain.har import Entry


class EntryEmitter:
    def __init__(self, listeners: Iterable[EntryListener]):
        self._listeners = list(listeners)

    def emit(self, entry: Entry, logger: LoggerPort) -> None:
        for listener in self._listeners:
            try:
                listener.on_recorded(entry, logger)
            except Exception as exc:
                # the entry is already in the log; a listener must not undo the call
                logger.error(
                    "har.listener_failed",
                    listener=type(listener).__name__,
                    error=str(exc),
                )
