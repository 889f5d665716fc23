from __future__ import annotations

import socket
from urllib.parse import urlsplit

import pytest
import requests

from application.services.phase_timer import PhaseTimer, armed
from infrastructure.http.instrumented_pool import (
    InstrumentedHTTPAdapter,
    TimedHTTPConnectionPool,
    TimedHTTPSConnectionPool,
    _peer_ip,
)


class FakeSocket:
    def __init__(self, peer=None, error=None) -> None:
        self.peer = peer
        self.error = error

    def getpeername(self):
        if self.error:
            raise self.error
        return self.peer


def test_adapter_installs_timed_pools() -> None:
    adapter = InstrumentedHTTPAdapter()

    classes = adapter.poolmanager.pool_classes_by_scheme

    assert classes["http"] is TimedHTTPConnectionPool
    assert classes["https"] is TimedHTTPSConnectionPool


def test_peer_ip() -> None:
    assert _peer_ip(None) is None
    assert _peer_ip(FakeSocket(peer=("10.1.2.3", 443))) == "10.1.2.3"
    assert _peer_ip(FakeSocket(error=OSError("not connected"))) is None


def test_without_armed_timer_adapter_behaves_like_httpadapter(local_server) -> None:
    session = requests.Session()
    session.mount("http://", InstrumentedHTTPAdapter())

    resp = session.get(f"{local_server}/hello")

    assert resp.status_code == 200
    assert resp.text == "hello world"


def test_armed_timer_receives_connection_marks(local_server) -> None:
    session = requests.Session()
    session.mount("http://", InstrumentedHTTPAdapter())
    timer = PhaseTimer()

    with armed(timer):
        timer.start()
        resp = session.get(f"{local_server}/hello")
        timer.done()

    assert resp.status_code == 200
    for mark in ("get_conn", "got_conn", "dns_start", "dns_done", "connect_start",
                 "connect_done", "wrote_request", "got_first_byte"):
        assert timer.has(mark), mark
    assert not timer.has("tls_start")
    assert timer.server_ip == "127.0.0.1"


def _resolve_to(monkeypatch, name: str, addresses) -> None:
    real = socket.getaddrinfo

    def fake(host, port, *args, **kwargs):
        if host == name:
            return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (ip, port)) for ip in addresses]
        return real(host, port, *args, **kwargs)

    monkeypatch.setattr(socket, "getaddrinfo", fake)


def test_armed_timer_falls_through_to_next_resolved_address(local_server, monkeypatch) -> None:
    # Arrange: first address refuses, second is the local server
    port = urlsplit(local_server).port
    _resolve_to(monkeypatch, "multi.test", ["127.0.0.2", "127.0.0.1"])
    session = requests.Session()
    session.mount("http://", InstrumentedHTTPAdapter())
    timer = PhaseTimer()

    # Act
    with armed(timer):
        timer.start()
        resp = session.get(f"http://multi.test:{port}/hello")
        timer.done()

    # Assert
    assert resp.status_code == 200
    assert resp.text == "hello world"
    assert timer.has("dns_done")
    assert timer.has("connect_done")
    assert timer.server_ip == "127.0.0.1"


def test_armed_timer_reports_host_when_every_address_fails(local_server, monkeypatch) -> None:
    port = urlsplit(local_server).port
    _resolve_to(monkeypatch, "multi.test", ["127.0.0.2", "127.0.0.3"])
    session = requests.Session()
    session.mount("http://", InstrumentedHTTPAdapter(max_retries=0))
    timer = PhaseTimer()

    with armed(timer):
        timer.start()
        with pytest.raises(requests.ConnectionError) as excinfo:
            session.get(f"http://multi.test:{port}/hello")

    assert "host='multi.test'" in str(excinfo.value)
    assert "127.0.0.3" not in str(excinfo.value)
    assert not timer.has("connect_done")
