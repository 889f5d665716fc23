# infrastructure/har/factory.py
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Union

from application.entry_listener import EntryListener
from application.entry_listeners.core import EntrySummaryLogger
from application.ports.logger import LoggerPort
from application.recorder import HarRecorder
from application.services.body_capture import DEFAULT_MAX_MULTIPART_BYTES
from application.services.entry_builder import EntryBuilder
from application.services.har_serializer import HarSerializer
from application.services.log_accumulator import LogAccumulator, default_creator
from infrastructure.har.file_sink import FileHarSink
from infrastructure.har.in_memory_entry_log import InMemoryEntryLog
from infrastructure.logging.console_logger import ConsoleLogger


def new_recorder(
    logger: Optional[LoggerPort] = None,
    creator_name: Optional[str] = None,
    creator_version: Optional[str] = None,
    comment: Optional[str] = None,
    max_multipart_bytes: int = DEFAULT_MAX_MULTIPART_BYTES,
    indent: Optional[int] = None,
    listeners: Optional[Iterable[EntryListener]] = None,
) -> HarRecorder:
    """An empty recorder with in-memory storage and the summary listener."""
    accumulator = LogAccumulator(
        creator=default_creator(creator_name, creator_version),
        store=InMemoryEntryLog(),
        comment=comment,
    )
    return HarRecorder(
        accumulator=accumulator,
        logger=logger or ConsoleLogger(),
        builder=EntryBuilder(max_multipart_bytes=max_multipart_bytes),
        serializer=HarSerializer(indent=indent),
        listeners=[EntrySummaryLogger()] if listeners is None else listeners,
    )


def write_har_file(recorder: HarRecorder, path: Union[str, Path]) -> int:
    return recorder.flush(FileHarSink(path))
