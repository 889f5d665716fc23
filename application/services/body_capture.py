# application/services/body_capture.py
from __future__ import annotations

import io
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from domain.exceptions import CaptureError
from domain.har import (
    DEFAULT_MIME_TYPE,
    ParamsPostData,
    PostData,
    PostParam,
    TextPostData,
)

DEFAULT_MAX_MULTIPART_BYTES = 32 << 20

MULTIPART_TYPES = {"multipart/form-data", "form-data"}
URLENCODED_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class CapturedBody:
    data: bytes
    stream: Optional[io.BytesIO]


def capture_stream(stream: Any) -> CapturedBody:
    """
    Drain a readable stream and hand back an independent stream over the
    same bytes. The caller swaps the returned stream in for the original.
    """
    if stream is None:
        return CapturedBody(data=b"", stream=None)
    try:
        data = stream.read()
    except (OSError, ValueError) as exc:
        raise CaptureError(f"Unable to read body stream: {exc}") from exc
    if isinstance(data, str):
        data = data.encode("utf-8")
    data = bytes(data or b"")
    return CapturedBody(data=data, stream=io.BytesIO(data))


def capture_request_body(body: Any) -> Tuple[Optional[bytes], Any]:
    """
    Capture a `requests` PreparedRequest body.

    Returns (captured bytes or None when there is no body, replacement body).
    Bytes and str are immutable and returned as-is; file-like objects become
    a BytesIO; other iterables (generators) become a single-chunk list.
    """
    if body is None:
        return None, None
    if isinstance(body, bytes):
        return body, body
    if isinstance(body, str):
        return body.encode("utf-8"), body
    if hasattr(body, "read"):
        captured = capture_stream(body)
        return captured.data, captured.stream
    try:
        chunks = [c.encode("utf-8") if isinstance(c, str) else bytes(c) for c in body]
    except TypeError as exc:
        raise CaptureError(f"Unsupported request body type: {type(body).__name__}") from exc
    data = b"".join(chunks)
    return data, [data]


def media_type_of(content_type: Optional[str]) -> str:
    return (content_type or "").split(";", 1)[0].strip().lower()


def charset_of(content_type: Optional[str]) -> Optional[str]:
    m = re.search(r"charset\s*=\s*([^\s;]+)", content_type or "", re.I)
    if not m:
        return None
    return m.group(1).strip().strip('"').strip("'")


def decode_text(data: bytes, content_type: Optional[str]) -> str:
    # lossy for binary payloads; invalid sequences become U+FFFD
    enc = charset_of(content_type) or "utf-8"
    try:
        return data.decode(enc, errors="replace")
    except LookupError:
        return data.decode("utf-8", errors="replace")


def build_post_data(
    data: bytes,
    content_type: Optional[str],
    max_multipart_bytes: int = DEFAULT_MAX_MULTIPART_BYTES,
) -> PostData:
    mime_type = content_type or DEFAULT_MIME_TYPE
    media = media_type_of(mime_type)

    if media in MULTIPART_TYPES:
        params = parse_multipart(data, mime_type, max_multipart_bytes)
        return ParamsPostData(mime_type=mime_type, params=tuple(params))

    if media == URLENCODED_TYPE:
        return ParamsPostData(mime_type=mime_type, params=tuple(parse_urlencoded(data, mime_type)))

    return TextPostData(mime_type=mime_type, text=decode_text(data, mime_type))


def parse_urlencoded(data: bytes, content_type: Optional[str] = None) -> List[PostParam]:
    enc = charset_of(content_type) or "utf-8"
    try:
        pairs = parse_qsl(
            data.decode(enc, errors="replace"),
            keep_blank_values=True,
            encoding=enc,
            errors="replace",
        )
    except (LookupError, ValueError) as exc:
        raise CaptureError(f"Invalid form-encoded body: {exc}") from exc
    return [PostParam(name=k, value=v) for k, v in pairs]


def parse_multipart(data: bytes, content_type: str, max_bytes: int = DEFAULT_MAX_MULTIPART_BYTES) -> List[PostParam]:
    if len(data) > max_bytes:
        raise CaptureError(f"Multipart body exceeds {max_bytes} bytes")

    _ctype, options = parse_options_header(content_type)
    boundary = options.get(b"boundary")
    if not boundary:
        raise CaptureError("Multipart body without boundary")

    collector = _MultipartCollector()
    try:
        parser = MultipartParser(boundary, collector.callbacks(), max_size=max_bytes)
        parser.write(data)
        parser.finalize()
    except MultipartParseError as exc:
        raise CaptureError(f"Invalid multipart body: {exc}") from exc
    if not collector.complete:
        raise CaptureError("Truncated multipart body: closing boundary not found")
    return collector.params


class _MultipartCollector:
    """Collects parts from python-multipart's push parser into PostParams."""

    def __init__(self) -> None:
        self.params: List[PostParam] = []
        self._headers: Dict[bytes, bytes] = {}
        self._header_field = b""
        self._header_value = b""
        self._data = bytearray()
        self.complete = False

    def callbacks(self) -> Dict[str, Callable[..., None]]:
        return {
            "on_part_begin": self.on_part_begin,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_end": self.on_end,
        }

    def on_part_begin(self) -> None:
        self._headers = {}
        self._data = bytearray()

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[self._header_field.lower()] = self._header_value
        self._header_field = b""
        self._header_value = b""

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._data.extend(data[start:end])

    def on_part_end(self) -> None:
        _disposition, options = parse_options_header(self._headers.get(b"content-disposition"))
        name = options.get(b"name")
        if name is None:
            raise CaptureError("Multipart part without a field name")

        value = bytes(self._data).decode("utf-8", errors="replace")
        file_name = options.get(b"filename")
        if file_name is None:
            self.params.append(PostParam(name=name.decode("utf-8", errors="replace"), value=value))
            return

        part_type = self._headers.get(b"content-type")
        self.params.append(
            PostParam(
                name=name.decode("utf-8", errors="replace"),
                value=value,
                file_name=file_name.decode("utf-8", errors="replace"),
                content_type=part_type.decode("latin-1").strip() if part_type else None,
            )
        )

    def on_end(self) -> None:
        self.complete = True
