"""FastAPI application - recording reverse proxy (HAR endpoints + passthrough)"""
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urlsplit

import sys

# プロジェクトルートをPythonパスに追加
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import requests
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import Response
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from application.exceptions import PersistenceError
from application.ports.logger import LoggerPort
from application.recorder import HarRecorder
from domain.exceptions import SerializationError
from infrastructure.asgi.recording_middleware import HarRecordingMiddleware
from infrastructure.config.settings import RecorderSettings, load_settings
from infrastructure.har.factory import new_recorder
from infrastructure.har.file_sink import FileHarSink
from infrastructure.har.periodic_flusher import PeriodicFlusher
from infrastructure.http.instrumented_pool import InstrumentedHTTPAdapter
from infrastructure.http.recording_adapter import recording_session
from infrastructure.logging.console_logger import ConsoleLogger

PROXY_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

# recomputed by requests / the ASGI server for the relayed message
_REQUEST_SKIP = {"host", "content-length", "transfer-encoding", "connection"}
_RESPONSE_SKIP = {"content-encoding", "content-length", "transfer-encoding", "connection"}


class FlushResponse(BaseModel):
    """Result of writing the archive"""
    path: str = Field(description="HAR file written")
    entries: int = Field(description="Entries in the written archive")
    bytes: int = Field(description="Bytes written")
    kb: float = Field(description="Size in kilobytes")


class StatsResponse(BaseModel):
    """Recorder state"""
    entries: int = Field(description="Entries recorded so far")
    creator: str = Field(description="Creator name")
    creator_version: str = Field(description="Creator version")
    mode: str = Field(description="'client' or 'server' side recording")
    upstream: str = Field(description="Upstream prefix requests are forwarded to")
    output_path: str = Field(description="HAR file written by flushes")


def _build_logger() -> LoggerPort:
    return ConsoleLogger().bind(component="harprox")


def upstream_url(prefix: str, path: str, query: str) -> str:
    url = prefix.rstrip("/") + "/" + path.lstrip("/")
    if query:
        url += "?" + query
    return url


def forward_headers(
    incoming: Iterable[Tuple[str, str]],
    overrides: Iterable[Tuple[str, str]] = (),
) -> List[Tuple[str, str]]:
    out = [(k, v) for k, v in incoming if k.lower() not in _REQUEST_SKIP]
    for name, value in overrides:
        out = [(k, v) for k, v in out if k.lower() != name.lower()]
        out.append((name, value))
    return out


def _merge(pairs: List[Tuple[str, str]]) -> dict:
    # requests takes a mapping; repeated request headers are comma-joined
    merged: dict = {}
    for k, v in pairs:
        merged[k] = f"{merged[k]}, {v}" if k in merged else v
    return merged


def _build_proxy(
    settings: RecorderSettings,
    session: requests.Session,
    logger: LoggerPort,
) -> FastAPI:
    proxy = FastAPI(openapi_url=None, docs_url=None, redoc_url=None)
    upstream_host = urlsplit(settings.upstream).netloc

    @proxy.api_route("/{path:path}", methods=PROXY_METHODS)
    async def forward(path: str, request: Request):
        """Passthrough to the upstream prefix"""
        if not settings.upstream:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="No upstream configured (HARLOG_UPSTREAM)",
            )

        body = await request.body()
        url = upstream_url(settings.upstream, request.url.path, request.url.query)
        headers = forward_headers(request.headers.items(), settings.override_headers)

        try:
            upstream = await run_in_threadpool(
                session.request,
                request.method,
                url,
                data=body or None,
                headers=_merge(headers),
                timeout=settings.request_timeout_sec,
                allow_redirects=False,
            )
        except requests.RequestException as exc:
            logger.error("proxy.upstream_failed", url=url, host=upstream_host, error=str(exc))
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"Upstream request failed: {exc}",
            ) from exc

        relayed = Response(content=upstream.content, status_code=upstream.status_code)
        for k, v in _response_headers(upstream):
            if k.lower() not in _RESPONSE_SKIP:
                relayed.headers.append(k, v)
        return relayed

    return proxy


def _response_headers(upstream: requests.Response) -> List[Tuple[str, str]]:
    raw = getattr(upstream.raw, "headers", None)
    if raw is not None and hasattr(raw, "iteritems"):
        return [(str(k), str(v)) for k, v in raw.iteritems()]
    return list(upstream.headers.items())


def create_app(
    settings: Optional[RecorderSettings] = None,
    recorder: Optional[HarRecorder] = None,
    upstream_session: Optional[requests.Session] = None,
) -> FastAPI:
    settings = settings or load_settings()
    logger = _build_logger()
    recorder = recorder or new_recorder(
        logger=logger,
        creator_name=settings.creator_name or "harprox",
        creator_version=settings.creator_version,
        comment=settings.comment,
        max_multipart_bytes=settings.max_multipart_bytes,
    )
    sink = FileHarSink(settings.output_path)
    flusher = PeriodicFlusher(recorder, sink, settings.flush_interval_sec) if settings.flush_interval_sec > 0 else None

    if upstream_session is not None:
        session = upstream_session
    elif settings.server_side:
        # server-side mode records at the ASGI layer; forwarding stays unrecorded
        session = requests.Session()
        session.mount("http://", InstrumentedHTTPAdapter())
        session.mount("https://", InstrumentedHTTPAdapter())
    else:
        session = recording_session(recorder)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "proxy.start",
            upstream=settings.upstream,
            mode="server" if settings.server_side else "client",
            output_path=settings.output_path,
            flush_interval_sec=settings.flush_interval_sec,
        )
        if flusher is not None:
            flusher.start()
        try:
            yield
        finally:
            if flusher is not None:
                try:
                    flusher.stop(final_flush=True)
                except PersistenceError:
                    pass  # logged by the recorder as har.flush_failed
            session.close()

    app = FastAPI(
        title="harlog recording proxy",
        description="Forwards requests to an upstream prefix and records them as HAR 1.2",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.recorder = recorder
    app.state.settings = settings

    @app.get("/_har")
    def get_archive():
        """Current archive as HAR JSON"""
        try:
            data = recorder.serialize()
        except SerializationError as e:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
        return Response(content=data, media_type="application/json")

    @app.post("/_har/flush", response_model=FlushResponse)
    def flush_archive():
        """Write the archive to the configured output file"""
        entries = len(recorder)
        try:
            written = recorder.flush(sink)
        except (PersistenceError, SerializationError) as e:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
        return FlushResponse(
            path=str(sink.path),
            entries=entries,
            bytes=written,
            kb=round(written / 1024.0, 1),
        )

    @app.get("/_har/stats", response_model=StatsResponse)
    def stats():
        snapshot = recorder.snapshot()
        return StatsResponse(
            entries=len(snapshot.entries),
            creator=snapshot.creator.name,
            creator_version=snapshot.creator.version,
            mode="server" if settings.server_side else "client",
            upstream=settings.upstream,
            output_path=settings.output_path,
        )

    proxy = _build_proxy(settings, session, logger)
    if settings.server_side:
        app.mount("/", HarRecordingMiddleware(proxy, recorder))
    else:
        app.mount("/", proxy)
    return app
