# infrastructure/http/content.py
from __future__ import annotations

import io
from typing import Any, List, Optional, Tuple

from urllib3.exceptions import DecodeError
from urllib3.response import HTTPResponse

HTTP_VERSIONS = {9: "HTTP/0.9", 10: "HTTP/1.0", 11: "HTTP/1.1", 20: "HTTP/2.0", 30: "HTTP/3.0"}


def http_version_string(version: Any, default: str = "HTTP/1.1") -> str:
    return HTTP_VERSIONS.get(version, default)


def header_pairs(headers: Any) -> List[Tuple[str, str]]:
    """Header pairs in source order, one pair per value (urllib3 keeps duplicates)."""
    if headers is None:
        return []
    if hasattr(headers, "iteritems"):
        return [(str(k), str(v)) for k, v in headers.iteritems()]
    return [(str(k), str(v)) for k, v in headers.items()]


def replay_response(
    wire: bytes,
    headers: Any,
    status: int = 200,
    version: int = 11,
    reason: Optional[str] = None,
    request_method: Optional[str] = None,
    original_response: Any = None,
    msg: Any = None,
    retries: Any = None,
) -> HTTPResponse:
    """
    A fresh, unread urllib3 response over bytes already taken off the wire.
    Like the responses HTTPAdapter builds, it decodes only when asked to.
    """
    return HTTPResponse(
        body=io.BytesIO(wire),
        headers=headers,
        status=status,
        version=version,
        reason=reason,
        preload_content=False,
        decode_content=False,
        original_response=original_response,
        msg=msg,
        retries=retries,
        enforce_content_length=False,
        request_method=request_method,
    )


def decode_body(wire: bytes, headers: Any, status: int = 200, request_method: Optional[str] = None) -> bytes:
    """
    Undo Content-Encoding (gzip, deflate, br, zstd when available) the same
    way the client would. A body that fails to decode is kept as sent.
    """
    if not wire:
        return b""
    resp = replay_response(wire, headers, status=status, request_method=request_method)
    try:
        return resp.read(decode_content=True)
    except DecodeError:
        return wire
