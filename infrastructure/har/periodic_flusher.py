# infrastructure/har/periodic_flusher.py
from __future__ import annotations

from threading import Event, Lock, Thread
from typing import Optional

from application.exceptions import PersistenceError
from application.ports.har_sink import HarSinkPort
from application.recorder import HarRecorder


class PeriodicFlusher:
    """
    Rewrites the archive every `interval_sec` seconds, but only when entries
    were appended since the last successful write.
    """

    def __init__(self, recorder: HarRecorder, sink: HarSinkPort, interval_sec: float = 5.0) -> None:
        if interval_sec <= 0:
            raise ValueError("interval_sec must be positive")
        self._recorder = recorder
        self._sink = sink
        self._interval = interval_sec
        self._stop = Event()
        self._lock = Lock()
        self._thread: Optional[Thread] = None
        self._last_count = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def flush_if_changed(self) -> Optional[int]:
        with self._lock:
            count = len(self._recorder)
            if count == self._last_count:
                return None
            written = self._recorder.flush(self._sink)
            self._last_count = count
            return written

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = Thread(target=self._run, name="har-flusher", daemon=True)
        self._thread.start()

    def stop(self, final_flush: bool = True) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval + 1.0)
            self._thread = None
        if final_flush:
            self.flush_if_changed()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self.flush_if_changed()
            except PersistenceError:
                # already logged as har.flush_failed; the next tick retries
                continue
