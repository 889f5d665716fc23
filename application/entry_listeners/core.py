# application/entry_listeners/core.py
from __future__ import annotations

from application.entry_listener import EntryListener
from application.ports.logger import LoggerPort
from application.services.redactor import cookie_names, mask_pairs
from domain.har import Entry


class EntrySummaryLogger(EntryListener):
    def on_recorded(self, entry: Entry, logger: LoggerPort) -> None:
        req = entry.request
        resp = entry.response

        logger.info(
            "har.entry.recorded",
            method=req.method,
            url=req.url,
            status=resp.status,
            time_ms=entry.time,
            request_body_size=req.body_size,
            response_body_size=resp.body_size,
            content_size=resp.content.size,
            mime_type=resp.content.mime_type,
            server_ip=entry.server_ip,
        )

        logger.debug(
            "har.request",
            method=req.method,
            url=req.url,
            headers=mask_pairs(req.headers),
            cookies=cookie_names(req.cookies),
            query_count=len(req.query_string),
            post_mime_type=req.post_data.mime_type if req.post_data else None,
        )

        logger.debug(
            "har.response",
            status=resp.status,
            status_text=resp.status_text,
            headers=mask_pairs(resp.headers),
            cookies=cookie_names(resp.cookies),
            redirect_url=resp.redirect_url or None,
        )

        t = entry.timings
        logger.debug(
            "har.timings",
            url=req.url,
            blocked=t.blocked,
            dns=t.dns,
            connect=t.connect,
            ssl=t.ssl,
            send=t.send,
            wait=t.wait,
            receive=t.receive,
        )
