from __future__ import annotations

from dataclasses import FrozenInstanceError

import pytest

from domain.har import HAR_VERSION, UNMEASURED, Creator, Log, NameValuePair, Timings


def test_timings_default_to_unmeasured():
    t = Timings()

    assert (t.blocked, t.dns, t.connect, t.ssl, t.send, t.wait, t.receive) == (UNMEASURED,) * 7
    assert t.total() == 0


def test_timings_total_skips_unmeasured_phases():
    t = Timings(blocked=-1, dns=-1, connect=-1, send=2, wait=30, receive=8)

    assert t.total() == 40


def test_timings_total_excludes_ssl_because_connect_contains_it():
    t = Timings(connect=50, ssl=30, send=1, wait=10, receive=4)

    assert t.total() == 65


def test_log_defaults_to_har_1_2():
    log = Log(creator=Creator(name="harlog", version="20240101000000"))

    assert log.version == HAR_VERSION == "1.2"
    assert log.entries == []


def test_model_is_immutable():
    pair = NameValuePair(name="a", value="1")

    with pytest.raises(FrozenInstanceError):
        pair.value = "2"  # type: ignore[misc]
