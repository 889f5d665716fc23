# application/http_trace.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

PairList = List[Tuple[str, str]]


def header_value(headers: PairList, name: str) -> Optional[str]:
    lowered = name.lower()
    for k, v in headers or []:
        if k.lower() == lowered:
            return v
    return None


def header_values(headers: PairList, name: str) -> List[str]:
    lowered = name.lower()
    return [v for k, v in headers or [] if k.lower() == lowered]


@dataclass(frozen=True)
class CapturedRequest:
    method: str
    url: str
    http_version: str = "HTTP/1.1"
    headers: PairList = field(default_factory=list)
    body: Optional[bytes] = None   # None: the request carried no body

    @property
    def content_type(self) -> Optional[str]:
        return header_value(self.headers, "Content-Type")


@dataclass(frozen=True)
class CapturedResponse:
    status: int
    reason: str = ""
    http_version: str = "HTTP/1.1"
    headers: PairList = field(default_factory=list)
    body: bytes = b""                  # decoded content
    wire_size: Optional[int] = None    # bytes before content decoding

    @property
    def content_type(self) -> Optional[str]:
        return header_value(self.headers, "Content-Type")
