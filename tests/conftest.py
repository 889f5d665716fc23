from __future__ import annotations

import gzip
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Iterator

import pytest


class _Handler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def log_message(self, format, *args):  # noqa: A002
        pass

    def _reply(self, status: int, body: bytes, headers=()) -> None:
        self.send_response(status)
        for k, v in headers:
            self.send_header(k, v)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def do_GET(self):
        if self.path.startswith("/hello"):
            self._reply(
                200,
                b"hello world",
                [("Content-Type", "text/plain; charset=utf-8"), ("Set-Cookie", "sid=abc; Path=/; HttpOnly")],
            )
        elif self.path == "/gzip":
            self._reply(
                200,
                gzip.compress(b"compressible " * 200),
                [("Content-Type", "text/plain"), ("Content-Encoding", "gzip")],
            )
        elif self.path == "/redirect":
            self._reply(302, b"", [("Location", "/hello")])
        else:
            self._reply(404, b"not found", [("Content-Type", "text/plain")])

    def do_HEAD(self):
        self.do_GET()

    def do_POST(self):
        length = int(self.headers.get("Content-Length", "0"))
        body = self.rfile.read(length)
        ctype = self.headers.get("Content-Type", "application/octet-stream")
        self._reply(201, body, [("Content-Type", ctype)])


@pytest.fixture
def local_server() -> Iterator[str]:
    """Base URL of a keep-alive HTTP/1.1 server on 127.0.0.1."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _Handler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()
