# infrastructure/asgi/recording_middleware.py
"""
Server-side recorder: pure ASGI middleware that records every HTTP
request/response cycle handled by the wrapped app.

The request body is drained before the app runs and replayed through a
replacement `receive`. Response messages are held until the app returns,
then replayed unchanged to the real `send`; status, headers and body are
read from the held messages for the entry.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

from starlette.requests import Request as StarletteRequest
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from application.http_trace import CapturedRequest, CapturedResponse
from application.recorder import HarRecorder
from application.services.phase_timer import PhaseTimer
from domain.exceptions import CaptureError, HarError
from domain.har import Request
from infrastructure.http.content import decode_body


def _decode_headers(raw: List[Tuple[bytes, bytes]]) -> List[Tuple[str, str]]:
    return [(k.decode("latin-1"), v.decode("latin-1")) for k, v in raw or []]


async def _drain_request(receive: Receive) -> Tuple[bytes, bool]:
    chunks: List[bytes] = []
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            return b"".join(chunks), True
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            return b"".join(chunks), False


class _ReplayReceive:
    def __init__(self, body: bytes, receive: Receive, disconnected: bool) -> None:
        self._body = body
        self._receive = receive
        self._disconnected = disconnected
        self._replayed = False

    async def __call__(self) -> Message:
        if not self._replayed:
            self._replayed = True
            return {"type": "http.request", "body": self._body, "more_body": False}
        if self._disconnected:
            return {"type": "http.disconnect"}
        # after the body, only a disconnect can arrive
        return await self._receive()


class _ResponseBuffer:
    """Holds every response message until the app returns, then replays them in order."""

    def __init__(self) -> None:
        self.status: Optional[int] = None
        self.headers: List[Tuple[str, str]] = []
        self.chunks: List[bytes] = []
        self.messages: List[Message] = []

    @property
    def started(self) -> bool:
        return self.status is not None

    async def __call__(self, message: Message) -> None:
        kind = message["type"]
        if kind == "http.response.start":
            self.status = int(message["status"])
            self.headers = _decode_headers(message.get("headers", []))
        elif kind == "http.response.body":
            if not self.started:
                # a body with no start behaves like an implicit 200
                self.status = 200
                self.messages.append({"type": "http.response.start", "status": 200, "headers": []})
            self.chunks.append(message.get("body", b""))
        self.messages.append(message)

    async def replay(self, send: Send) -> None:
        for message in self.messages:
            await send(message)

    @property
    def body(self) -> bytes:
        return b"".join(self.chunks)


class HarRecordingMiddleware:
    def __init__(self, app: ASGIApp, recorder: HarRecorder) -> None:
        self.app = app
        self.recorder = recorder

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        logger = self.recorder.logger
        timer = PhaseTimer()
        timer.start()

        body, disconnected = await _drain_request(receive)
        http_version = f"HTTP/{scope.get('http_version', '1.1')}"
        url = str(StarletteRequest(scope).url)

        har_request: Optional[Request] = None
        try:
            har_request = self.recorder.capture_request(
                CapturedRequest(
                    method=scope["method"],
                    url=url,
                    http_version=http_version,
                    headers=_decode_headers(scope.get("headers", [])),
                    body=body,
                )
            )
        except CaptureError as exc:
            logger.warning("har.capture_failed", stage="request", url=url, error=str(exc))

        response = _ResponseBuffer()
        await self.app(scope, _ReplayReceive(body, receive, disconnected), response)
        timer.done()
        await response.replay(send)

        if har_request is None or not response.started:
            return

        status = response.status
        headers = response.headers
        wire = response.body
        try:
            self.recorder.commit(
                har_request,
                CapturedResponse(
                    status=status,
                    http_version=http_version,
                    headers=headers,
                    body=decode_body(wire, headers, status, scope["method"]),
                    wire_size=len(wire),
                ),
                timer,
                use_server_date=False,
            )
        except HarError as exc:
            logger.warning("har.capture_failed", stage="response", url=url, error=str(exc))
