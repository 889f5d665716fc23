# infrastructure/http/recording_adapter.py
"""
Client-side recorder: a requests transport adapter that wraps another
adapter and records every successful round trip into a HarRecorder.
"""
from __future__ import annotations

from typing import Any, Optional, Tuple

import requests
from requests.adapters import BaseAdapter
from requests.exceptions import ChunkedEncodingError, ConnectionError, ContentDecodingError
from urllib3.exceptions import DecodeError, ProtocolError, ReadTimeoutError, SSLError
from urllib3.response import BaseHTTPResponse

from application.http_trace import CapturedRequest, CapturedResponse
from application.recorder import HarRecorder
from application.services.body_capture import capture_request_body
from application.services.phase_timer import PhaseTimer, armed
from domain.exceptions import CaptureError, HarError
from domain.har import Request
from infrastructure.http.content import decode_body, header_pairs, http_version_string, replay_response
from infrastructure.http.instrumented_pool import InstrumentedHTTPAdapter


class HarRecordingAdapter(BaseAdapter):
    def __init__(self, recorder: HarRecorder, inner: Optional[BaseAdapter] = None):
        super().__init__()
        self._recorder = recorder
        self._inner = inner if inner is not None else InstrumentedHTTPAdapter()

    @property
    def inner(self) -> BaseAdapter:
        return self._inner

    def send(
        self,
        request: requests.PreparedRequest,
        stream: bool = False,
        timeout: Any = None,
        verify: Any = True,
        cert: Any = None,
        proxies: Any = None,
    ) -> requests.Response:
        logger = self._recorder.logger

        # an unreadable body stream cannot be sent either; CaptureError goes to the caller
        body, replacement = capture_request_body(request.body)
        request.body = replacement

        har_request: Optional[Request] = None
        try:
            har_request = self._recorder.capture_request(
                CapturedRequest(
                    method=request.method or "GET",
                    url=request.url or "",
                    headers=list(request.headers.items()),
                    body=body,
                )
            )
        except CaptureError as exc:
            logger.warning("har.capture_failed", stage="request", url=request.url, error=str(exc))

        timer = PhaseTimer()
        with armed(timer):
            timer.start()
            try:
                response = self._inner.send(
                    request,
                    stream=stream,
                    timeout=timeout,
                    verify=verify,
                    cert=cert,
                    proxies=proxies,
                )
            except Exception as exc:
                logger.warning(
                    "har.transport_failed",
                    method=request.method,
                    url=request.url,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                raise

            wire, headers = _drain(response)
            timer.done()

        if har_request is None:
            return response

        try:
            self._recorder.commit(
                har_request,
                CapturedResponse(
                    status=response.status_code,
                    reason=response.reason or "",
                    http_version=_version_of(response),
                    headers=headers,
                    body=decode_body(wire, headers, response.status_code, request.method),
                    wire_size=len(wire),
                ),
                timer,
            )
        except HarError as exc:
            logger.warning("har.capture_failed", stage="response", url=request.url, error=str(exc))
        return response

    def close(self) -> None:
        self._inner.close()


def _version_of(response: requests.Response) -> str:
    raw = response.raw
    return http_version_string(getattr(raw, "version", None))


def _drain(response: requests.Response) -> Tuple[bytes, list]:
    """
    Read the body exactly as it came off the wire and put an unread copy
    back in `response.raw`. Read errors are raised the way requests raises
    them when it reads the body itself.
    """
    raw = response.raw
    if not isinstance(raw, BaseHTTPResponse):
        content = response.content or b""
        return content, list(response.headers.items())

    try:
        wire = raw.read(decode_content=False)
    except ProtocolError as e:
        raise ChunkedEncodingError(e)
    except DecodeError as e:
        raise ContentDecodingError(e)
    except ReadTimeoutError as e:
        raise ConnectionError(e)
    except SSLError as e:
        raise requests.exceptions.SSLError(e)

    response.raw = replay_response(
        wire,
        raw.headers,
        status=raw.status,
        version=raw.version,
        reason=raw.reason,
        request_method=response.request.method if response.request is not None else None,
        original_response=getattr(raw, "_original_response", None),
        msg=getattr(raw, "msg", None),
        retries=getattr(raw, "retries", None),
    )
    return wire, header_pairs(raw.headers)


def recording_session(recorder: HarRecorder, inner: Optional[BaseAdapter] = None) -> requests.Session:
    """A Session whose http:// and https:// traffic is recorded."""
    session = requests.Session()
    adapter = HarRecordingAdapter(recorder, inner)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session
