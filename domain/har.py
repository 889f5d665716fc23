# domain/har.py
"""
HTTP Archive (HAR 1.2) domain model
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple, Union

HAR_VERSION = "1.2"
UNMEASURED = -1
DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class NameValuePair:
    name: str
    value: str


@dataclass(frozen=True)
class Cookie:
    name: str
    value: str
    path: Optional[str] = None
    domain: Optional[str] = None
    expires: Optional[str] = None
    secure: bool = False
    http_only: bool = False


@dataclass(frozen=True)
class PostParam:
    name: str
    value: Optional[str] = None
    file_name: Optional[str] = None
    content_type: Optional[str] = None


@dataclass(frozen=True)
class TextPostData:
    mime_type: str
    text: str


@dataclass(frozen=True)
class ParamsPostData:
    mime_type: str
    params: Tuple[PostParam, ...] = ()


# exactly one arm is populated per body
PostData = Union[TextPostData, ParamsPostData]


@dataclass(frozen=True)
class Content:
    size: int
    mime_type: str
    text: str = ""
    compression: Optional[int] = None
    encoding: Optional[str] = None


@dataclass(frozen=True)
class Request:
    method: str
    url: str
    http_version: str
    headers: Tuple[NameValuePair, ...] = ()
    cookies: Tuple[Cookie, ...] = ()
    query_string: Tuple[NameValuePair, ...] = ()
    post_data: Optional[PostData] = None
    headers_size: int = UNMEASURED
    body_size: int = 0


@dataclass(frozen=True)
class Response:
    status: int
    status_text: str
    http_version: str
    content: Content
    headers: Tuple[NameValuePair, ...] = ()
    cookies: Tuple[Cookie, ...] = ()
    redirect_url: str = ""
    headers_size: int = UNMEASURED
    body_size: int = UNMEASURED


@dataclass(frozen=True)
class Timings:
    """
    Phase durations in milliseconds. UNMEASURED (-1) marks a phase that
    could not be observed; ssl is contained in connect.
    """
    send: int = UNMEASURED
    wait: int = UNMEASURED
    receive: int = UNMEASURED
    blocked: int = UNMEASURED
    dns: int = UNMEASURED
    connect: int = UNMEASURED
    ssl: int = UNMEASURED

    def total(self) -> int:
        phases = (self.blocked, self.dns, self.connect, self.send, self.wait, self.receive)
        return sum(p for p in phases if p >= 0)


@dataclass(frozen=True)
class Entry:
    started: datetime
    time: int
    request: Request
    response: Response
    timings: Timings
    server_ip: Optional[str] = None
    connection: Optional[str] = None
    comment: Optional[str] = None


@dataclass(frozen=True)
class Creator:
    name: str
    version: str
    comment: Optional[str] = None


@dataclass(frozen=True)
class Log:
    creator: Creator
    entries: List[Entry] = field(default_factory=list)
    version: str = HAR_VERSION
    comment: Optional[str] = None


@dataclass(frozen=True)
class Archive:
    log: Log
