# application/services/har_serializer.py
"""
Archive -> canonical HAR JSON.

Field names follow the public HAR 1.2 layout; optional fields are left out
when unset. Output is deterministic for a given archive.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from domain.exceptions import SerializationError
from domain.har import (
    Archive,
    Content,
    Cookie,
    Creator,
    Entry,
    Log,
    NameValuePair,
    ParamsPostData,
    PostData,
    PostParam,
    Request,
    Response,
    Timings,
)


def _put(d: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        d[key] = value


def iso_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat(timespec="microseconds")


class HarSerializer:
    def __init__(self, indent: Optional[int] = None) -> None:
        self._indent = indent

    def serialize(self, source: Union[Archive, Log]) -> bytes:
        archive = source if isinstance(source, Archive) else Archive(log=source)
        try:
            text = json.dumps(self.archive_dict(archive), ensure_ascii=False, indent=self._indent)
            return text.encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Unable to encode HAR archive: {exc}") from exc

    def archive_dict(self, archive: Archive) -> Dict[str, Any]:
        return {"log": self.log_dict(archive.log)}

    def log_dict(self, log: Log) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "version": log.version,
            "creator": self.creator_dict(log.creator),
            "entries": [self.entry_dict(e) for e in log.entries],
        }
        _put(d, "comment", log.comment)
        return d

    def creator_dict(self, creator: Creator) -> Dict[str, Any]:
        d: Dict[str, Any] = {"name": creator.name, "version": creator.version}
        _put(d, "comment", creator.comment)
        return d

    def entry_dict(self, entry: Entry) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "startedDateTime": iso_timestamp(entry.started),
            "time": entry.time,
            "request": self.request_dict(entry.request),
            "response": self.response_dict(entry.response),
            "cache": {},
            "timings": self.timings_dict(entry.timings),
        }
        _put(d, "serverIPAddress", entry.server_ip)
        _put(d, "connection", entry.connection)
        _put(d, "comment", entry.comment)
        return d

    def request_dict(self, req: Request) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "method": req.method,
            "url": req.url,
            "httpVersion": req.http_version,
            "cookies": [self.cookie_dict(c) for c in req.cookies],
            "headers": self.pairs(req.headers),
            "queryString": self.pairs(req.query_string),
        }
        if req.post_data is not None:
            d["postData"] = self.post_data_dict(req.post_data)
        d["headersSize"] = req.headers_size
        d["bodySize"] = req.body_size
        return d

    def response_dict(self, resp: Response) -> Dict[str, Any]:
        return {
            "status": resp.status,
            "statusText": resp.status_text,
            "httpVersion": resp.http_version,
            "cookies": [self.cookie_dict(c) for c in resp.cookies],
            "headers": self.pairs(resp.headers),
            "content": self.content_dict(resp.content),
            "redirectURL": resp.redirect_url,
            "headersSize": resp.headers_size,
            "bodySize": resp.body_size,
        }

    def post_data_dict(self, body: PostData) -> Dict[str, Any]:
        if isinstance(body, ParamsPostData):
            return {
                "mimeType": body.mime_type,
                "params": [self.param_dict(p) for p in body.params],
            }
        return {"mimeType": body.mime_type, "text": body.text}

    def param_dict(self, param: PostParam) -> Dict[str, Any]:
        d: Dict[str, Any] = {"name": param.name}
        _put(d, "value", param.value)
        _put(d, "fileName", param.file_name)
        _put(d, "contentType", param.content_type)
        return d

    def content_dict(self, content: Content) -> Dict[str, Any]:
        d: Dict[str, Any] = {"size": content.size}
        _put(d, "compression", content.compression)
        d["mimeType"] = content.mime_type
        d["text"] = content.text
        _put(d, "encoding", content.encoding)
        return d

    def cookie_dict(self, cookie: Cookie) -> Dict[str, Any]:
        d: Dict[str, Any] = {"name": cookie.name, "value": cookie.value}
        _put(d, "path", cookie.path)
        _put(d, "domain", cookie.domain)
        _put(d, "expires", cookie.expires)
        if cookie.http_only:
            d["httpOnly"] = True
        if cookie.secure:
            d["secure"] = True
        return d

    def timings_dict(self, t: Timings) -> Dict[str, int]:
        return {
            "blocked": t.blocked,
            "dns": t.dns,
            "connect": t.connect,
            "send": t.send,
            "wait": t.wait,
            "receive": t.receive,
            "ssl": t.ssl,
        }

    @staticmethod
    def pairs(items: Iterable[NameValuePair]) -> List[Dict[str, str]]:
        return [{"name": p.name, "value": p.value} for p in items]
