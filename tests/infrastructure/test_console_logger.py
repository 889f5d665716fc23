from __future__ import annotations

import json
from datetime import datetime
from typing import Iterator, List

import pytest
from loguru import logger as loguru_logger

from infrastructure.logging.console_logger import ConsoleLogger


@pytest.fixture
def records() -> Iterator[List]:
    collected: List = []
    handler_id = loguru_logger.add(lambda msg: collected.append(msg.record), level="DEBUG", format="{message}")
    try:
        yield collected
    finally:
        loguru_logger.remove(handler_id)


def _payload(message: str, event: str) -> dict:
    assert message.startswith(f"{event} ")
    return json.loads(message[len(event) + 1:])


def test_console_logger_emits_type_field(records) -> None:
    logger = ConsoleLogger()

    logger.info("har.flush", entries=3)

    assert records[-1]["level"].name == "INFO"
    payload = _payload(records[-1]["message"], "har.flush")
    assert payload["type"] == "har.flush"
    assert payload["entries"] == 3


def test_console_logger_levels(records) -> None:
    logger = ConsoleLogger()

    logger.debug("a")
    logger.warning("b")
    logger.error("c")

    assert [r["level"].name for r in records[-3:]] == ["DEBUG", "WARNING", "ERROR"]


def test_bind_merges_fields_without_mutating_parent(records) -> None:
    parent = ConsoleLogger().bind(component="harprox")
    child = parent.bind(url="http://h/")

    child.info("har.entry.recorded", status=200)
    parent.info("proxy.start")

    first = _payload(records[-2]["message"], "har.entry.recorded")
    second = _payload(records[-1]["message"], "proxy.start")
    assert first["component"] == "harprox"
    assert first["url"] == "http://h/"
    assert "url" not in second


def test_non_json_values_are_stringified(records) -> None:
    ConsoleLogger().info("evt", at=datetime(2024, 1, 1))

    assert _payload(records[-1]["message"], "evt")["at"] == "2024-01-01 00:00:00"
