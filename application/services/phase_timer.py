# application/services/phase_timer.py
"""
Phase-level timing of one in-flight transaction.

The transport fires lifecycle marks on the timer that is active in the
current context (see `armed`). Marks that never fire, for instance DNS and
connect on a reused pooled connection, leave their phase UNMEASURED. When no
transport hook fired at all the timer falls back to wall-clock only.
"""
from __future__ import annotations

import time
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Callable, Dict, Iterator, Optional

from domain.har import UNMEASURED, Timings

active_timer: ContextVar[Optional["PhaseTimer"]] = ContextVar("active_timer", default=None)


def current_timer() -> Optional["PhaseTimer"]:
    return active_timer.get()


@contextmanager
def armed(timer: "PhaseTimer") -> Iterator["PhaseTimer"]:
    token = active_timer.set(timer)
    try:
        yield timer
    finally:
        active_timer.reset(token)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PhaseTimer:
    def __init__(
        self,
        clock: Callable[[], float] = time.perf_counter,
        wall_clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._clock = clock
        self._wall_clock = wall_clock
        self._marks: Dict[str, float] = {}
        self.started_at: Optional[datetime] = None
        self.server_ip: Optional[str] = None

    # --- lifecycle marks -------------------------------------------------

    def start(self) -> None:
        self.started_at = self._wall_clock()
        self._mark("start")

    def get_conn(self) -> None:
        self._mark("get_conn")

    def got_conn(self, server_ip: Optional[str] = None) -> None:
        self._mark("got_conn")
        if server_ip:
            self.server_ip = server_ip

    def dns_start(self) -> None:
        self._mark("dns_start")

    def dns_done(self) -> None:
        self._mark("dns_done")

    def connect_start(self) -> None:
        self._mark("connect_start")

    def connect_done(self, server_ip: Optional[str] = None) -> None:
        self._mark("connect_done")
        if server_ip:
            self.server_ip = server_ip

    def tls_start(self) -> None:
        self._mark("tls_start")

    def tls_done(self) -> None:
        self._mark("tls_done")

    def wrote_request(self) -> None:
        self._mark("wrote_request")

    def got_first_byte(self) -> None:
        self._mark("got_first_byte")

    def done(self) -> None:
        self._mark("done")

    # --- reduction -------------------------------------------------------

    @property
    def instrumented(self) -> bool:
        """True when the transport exposed connection-level hooks."""
        return "got_conn" in self._marks

    def has(self, mark: str) -> bool:
        return mark in self._marks

    def elapsed_ms(self) -> int:
        end = self._marks.get("done", self._clock())
        start = self._marks.get("start", end)
        return max(_ms(end - start), 0)

    def timings(self, server_date: Optional[datetime] = None) -> Timings:
        if not self.instrumented:
            return self._fallback(server_date)

        connect_end = "tls_done" if self.has("tls_done") else "connect_done"
        send_start = self._latest("got_conn", "connect_done", "tls_done")

        return Timings(
            blocked=self._span("get_conn", "got_conn"),
            dns=self._span("dns_start", "dns_done"),
            connect=self._span("connect_start", connect_end),
            ssl=self._span("tls_start", "tls_done"),
            send=self._span(send_start, "wrote_request"),
            wait=self._span("wrote_request", "got_first_byte"),
            receive=self._span("got_first_byte", "done"),
        )

    def _fallback(self, server_date: Optional[datetime]) -> Timings:
        total = self.elapsed_ms()
        if server_date is not None and self.started_at is not None:
            if server_date.tzinfo is None:
                server_date = server_date.replace(tzinfo=timezone.utc)
            wait = _ms((server_date - self.started_at).total_seconds())
            receive = total - wait
            # Date has one-second resolution; only trust it inside the window
            if wait >= 0 and receive >= 0:
                return Timings(wait=wait, receive=receive)
        return Timings(receive=total)

    def _mark(self, name: str) -> None:
        self._marks[name] = self._clock()

    def _latest(self, *names: str) -> Optional[str]:
        present = [n for n in names if n in self._marks]
        if not present:
            return None
        return max(present, key=lambda n: self._marks[n])

    def _span(self, begin: Optional[str], end: str) -> int:
        if begin is None or begin not in self._marks or end not in self._marks:
            return UNMEASURED
        delta = _ms(self._marks[end] - self._marks[begin])
        return delta if delta >= 0 else UNMEASURED


def _ms(seconds: float) -> int:
    return int(round(seconds * 1000.0))
