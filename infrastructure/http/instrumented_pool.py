# infrastructure/http/instrumented_pool.py
"""
urllib3 pool/connection subclasses that report lifecycle marks to the
PhaseTimer active in the current context. With no active timer they
behave exactly like the stock classes.

Marks fired:
  _get_conn              get_conn / got_conn     (blocked)
  _new_conn              dns_start / dns_done, connect_start / connect_done
                         (every resolved address is tried in order)
  HTTPS connect          tls_start / tls_done
  request                wrote_request
  getresponse            got_first_byte (end of status line and headers)

Requests sent through a proxy use urllib3's ProxyManager, which is not
instrumented; those transactions get the wall-clock fallback.
"""
from __future__ import annotations

import socket
from typing import Any, Optional

from requests.adapters import HTTPAdapter
from urllib3.connection import HTTPConnection, HTTPSConnection
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool
from urllib3.exceptions import ConnectTimeoutError, NewConnectionError
from urllib3.util.connection import allowed_gai_family

from application.services.phase_timer import current_timer


def _peer_ip(sock: Any) -> Optional[str]:
    if sock is None:
        return None
    try:
        return str(sock.getpeername()[0])
    except (OSError, AttributeError, IndexError, TypeError):
        return None


class _TimedConnectionMixin:
    def _new_conn(self) -> socket.socket:
        timer = current_timer()
        if timer is None:
            return super()._new_conn()  # type: ignore[misc]

        host = self._dns_host  # type: ignore[attr-defined]
        timer.dns_start()
        try:
            infos = socket.getaddrinfo(host, self.port, allowed_gai_family(), socket.SOCK_STREAM)  # type: ignore[attr-defined]
        except OSError:
            # let urllib3 resolve again so it raises its own error type
            return super()._new_conn()  # type: ignore[misc]
        timer.dns_done()

        # try every resolved address in order, as urllib3's create_connection does
        timer.connect_start()
        sock = None
        last_error: Optional[Exception] = None
        for _family, _type, _proto, _canon, sockaddr in infos:
            self._dns_host = sockaddr[0]  # type: ignore[attr-defined]
            try:
                sock = super()._new_conn()  # type: ignore[misc]
                break
            except (NewConnectionError, ConnectTimeoutError) as exc:
                last_error = exc
            finally:
                self._dns_host = host  # type: ignore[attr-defined]

        if sock is None:
            if isinstance(last_error, ConnectTimeoutError):
                raise last_error
            reason = last_error.__cause__ if last_error is not None and last_error.__cause__ else last_error
            raise NewConnectionError(  # type: ignore[arg-type]
                self, f"Failed to establish a new connection: {reason}"
            ) from last_error
        timer.connect_done(server_ip=_peer_ip(sock))
        return sock

    def request(self, *args: Any, **kwargs: Any) -> None:
        super().request(*args, **kwargs)  # type: ignore[misc]
        timer = current_timer()
        if timer is not None:
            timer.wrote_request()

    def getresponse(self, *args: Any, **kwargs: Any) -> Any:
        resp = super().getresponse(*args, **kwargs)  # type: ignore[misc]
        timer = current_timer()
        if timer is not None:
            timer.got_first_byte()
        return resp


class TimedHTTPConnection(_TimedConnectionMixin, HTTPConnection):
    pass


class TimedHTTPSConnection(_TimedConnectionMixin, HTTPSConnection):
    def _new_conn(self) -> socket.socket:
        sock = super()._new_conn()
        timer = current_timer()
        if timer is not None:
            timer.tls_start()
        return sock

    def connect(self) -> None:
        super().connect()
        timer = current_timer()
        if timer is not None and timer.has("tls_start"):
            timer.tls_done()


class _TimedPoolMixin:
    def _get_conn(self, timeout: Optional[float] = None) -> Any:
        timer = current_timer()
        if timer is not None:
            timer.get_conn()
        conn = super()._get_conn(timeout=timeout)  # type: ignore[misc]
        if timer is not None:
            timer.got_conn(server_ip=_peer_ip(getattr(conn, "sock", None)))
        return conn


class TimedHTTPConnectionPool(_TimedPoolMixin, HTTPConnectionPool):
    ConnectionCls = TimedHTTPConnection


class TimedHTTPSConnectionPool(_TimedPoolMixin, HTTPSConnectionPool):
    ConnectionCls = TimedHTTPSConnection


TIMED_POOL_CLASSES = {
    "http": TimedHTTPConnectionPool,
    "https": TimedHTTPSConnectionPool,
}


class InstrumentedHTTPAdapter(HTTPAdapter):
    """HTTPAdapter whose direct (non-proxied) pools report phase timings."""

    def init_poolmanager(self, *args: Any, **kwargs: Any) -> None:
        super().init_poolmanager(*args, **kwargs)
        self.poolmanager.pool_classes_by_scheme = dict(TIMED_POOL_CLASSES)
