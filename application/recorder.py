# application/recorder.py
"""
Transaction recorder: the part shared by client-side (transport adapter)
and server-side (ASGI middleware) capture.

A transaction is recorded in two steps. `capture_request` runs before the
wrapped call and may raise CaptureError; `commit` runs after a successful
call, builds the entry and appends it. A failed wrapped call never reaches
`commit`, so it leaves no entry behind.
"""
from __future__ import annotations

from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Iterable, List, Optional

from application.entry_emitter import EntryEmitter
from application.entry_listener import EntryListener
from application.exceptions import PersistenceError
from application.http_trace import CapturedRequest, CapturedResponse, header_value
from application.ports.har_sink import HarSinkPort
from application.ports.logger import LoggerPort
from application.services.entry_builder import EntryBuilder
from application.services.har_serializer import HarSerializer
from application.services.log_accumulator import LogAccumulator
from application.services.phase_timer import PhaseTimer
from domain.har import Entry, Log, Request


def server_date(captured: CapturedResponse) -> Optional[datetime]:
    raw = header_value(captured.headers, "Date")
    if not raw:
        return None
    try:
        return parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        return None


class HarRecorder:
    def __init__(
        self,
        accumulator: LogAccumulator,
        logger: LoggerPort,
        builder: Optional[EntryBuilder] = None,
        serializer: Optional[HarSerializer] = None,
        listeners: Iterable[EntryListener] = (),
    ):
        self._log = accumulator
        self._logger = logger
        self._builder = builder or EntryBuilder()
        self._serializer = serializer or HarSerializer()
        self._emitter = EntryEmitter(listeners)

    @property
    def logger(self) -> LoggerPort:
        return self._logger

    def capture_request(self, captured: CapturedRequest) -> Request:
        return self._builder.build_request(captured)

    def commit(
        self,
        request: Request,
        captured: CapturedResponse,
        timer: PhaseTimer,
        use_server_date: bool = True,
    ) -> Entry:
        response = self._builder.build_response(captured)
        timings = timer.timings(server_date(captured) if use_server_date else None)
        entry = self._builder.build_entry(
            request=request,
            response=response,
            timings=timings,
            started=timer.started_at or datetime.now().astimezone(),
            server_ip=timer.server_ip,
        )
        self._log.append(entry)
        self._emitter.emit(entry, self._logger)
        return entry

    # --- log access ------------------------------------------------------

    def snapshot(self) -> Log:
        return self._log.snapshot()

    def entries(self) -> List[Entry]:
        return list(self._log.snapshot().entries)

    def __len__(self) -> int:
        return len(self._log)

    def serialize(self) -> bytes:
        return self._serializer.serialize(self._log.snapshot())

    def flush(self, sink: HarSinkPort) -> int:
        """
        Serialize the current state and hand it to `sink`. Entries appended
        after the snapshot show up in the next flush.
        """
        snapshot = self._log.snapshot()
        data = self._serializer.serialize(snapshot)
        try:
            written = sink.write(data)
        except PersistenceError as exc:
            self._logger.error("har.flush_failed", error=str(exc))
            raise
        except OSError as exc:
            self._logger.error("har.flush_failed", error=str(exc))
            raise PersistenceError(f"Unable to persist HAR archive: {exc}", data=data) from exc

        self._logger.info(
            "har.flush",
            entries=len(snapshot.entries),
            bytes=written,
            kb=round(written / 1024.0, 1),
        )
        return written
