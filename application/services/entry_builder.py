# application/services/entry_builder.py
from __future__ import annotations

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from http import HTTPStatus
from http.cookies import CookieError, SimpleCookie
from typing import List, Optional, Tuple
from urllib.parse import parse_qsl, urlsplit

from application.http_trace import CapturedRequest, CapturedResponse, PairList, header_value, header_values
from application.services.body_capture import DEFAULT_MAX_MULTIPART_BYTES, build_post_data, decode_text
from domain.har import (
    DEFAULT_MIME_TYPE,
    Content,
    Cookie,
    Entry,
    NameValuePair,
    Request,
    Response,
    Timings,
)


def headers_size(headers: PairList) -> int:
    """Bytes of the header block as sent: one "Name: value" line each plus the blank line."""
    size = 0
    for k, v in headers or []:
        size += len(f"{k}: {v}\r\n".encode("latin-1", errors="replace"))
    return size + len(b"\r\n")


def status_text(status: int, reason: str = "") -> str:
    if reason:
        return reason
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return ""


def to_pairs(pairs: PairList) -> Tuple[NameValuePair, ...]:
    return tuple(NameValuePair(name=k, value=v) for k, v in pairs or [])


def query_pairs(url: str) -> PairList:
    return parse_qsl(urlsplit(url).query, keep_blank_values=True)


def _iso_expires(raw: str) -> Optional[str]:
    if not raw:
        return None
    try:
        dt = parsedate_to_datetime(raw)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat()


def request_cookies(headers: PairList) -> List[Cookie]:
    out: List[Cookie] = []
    for raw in header_values(headers, "Cookie"):
        jar = SimpleCookie()
        try:
            jar.load(raw)
        except CookieError:
            continue
        out.extend(Cookie(name=m.key, value=m.value) for m in jar.values())
    return out


def response_cookies(headers: PairList) -> List[Cookie]:
    out: List[Cookie] = []
    # one Set-Cookie header per cookie; never split on commas (Expires contains one)
    for raw in header_values(headers, "Set-Cookie"):
        jar = SimpleCookie()
        try:
            jar.load(raw)
        except CookieError:
            continue
        for m in jar.values():
            out.append(
                Cookie(
                    name=m.key,
                    value=m.value,
                    path=m["path"] or None,
                    domain=m["domain"] or None,
                    expires=_iso_expires(m["expires"]),
                    secure=bool(m["secure"]),
                    http_only=bool(m["httponly"]),
                )
            )
    return out


class EntryBuilder:
    """
    Pure transformation of captured request/response data into HAR entries.
    Nothing here touches the log.
    """

    def __init__(self, max_multipart_bytes: int = DEFAULT_MAX_MULTIPART_BYTES) -> None:
        self._max_multipart_bytes = max_multipart_bytes

    def build_request(self, captured: CapturedRequest) -> Request:
        post_data = None
        if captured.body:
            post_data = build_post_data(captured.body, captured.content_type, self._max_multipart_bytes)

        return Request(
            method=captured.method.upper(),
            url=captured.url,
            http_version=captured.http_version,
            headers=to_pairs(captured.headers),
            cookies=tuple(request_cookies(captured.headers)),
            query_string=to_pairs(query_pairs(captured.url)),
            post_data=post_data,
            headers_size=headers_size(captured.headers),
            body_size=len(captured.body) if captured.body else 0,
        )

    def build_response(self, captured: CapturedResponse) -> Response:
        mime_type = captured.content_type or DEFAULT_MIME_TYPE
        size = len(captured.body)
        body_size = captured.wire_size if captured.wire_size is not None else size
        compression = size - body_size if size > body_size else None

        return Response(
            status=captured.status,
            status_text=status_text(captured.status, captured.reason),
            http_version=captured.http_version,
            headers=to_pairs(captured.headers),
            cookies=tuple(response_cookies(captured.headers)),
            content=Content(
                size=size,
                mime_type=mime_type,
                text=decode_text(captured.body, mime_type),
                compression=compression,
            ),
            redirect_url=header_value(captured.headers, "Location") or "",
            headers_size=headers_size(captured.headers),
            body_size=body_size,
        )

    def build_entry(
        self,
        request: Request,
        response: Response,
        timings: Timings,
        started: datetime,
        server_ip: Optional[str] = None,
    ) -> Entry:
        return Entry(
            started=started,
            time=timings.total(),
            request=request,
            response=response,
            timings=timings,
            server_ip=server_ip,
        )

    def build(
        self,
        request: CapturedRequest,
        response: CapturedResponse,
        timings: Timings,
        started: datetime,
        server_ip: Optional[str] = None,
    ) -> Entry:
        return self.build_entry(
            self.build_request(request),
            self.build_response(response),
            timings,
            started,
            server_ip,
        )
