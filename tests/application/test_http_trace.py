from __future__ import annotations

from application.http_trace import CapturedRequest, CapturedResponse, header_value, header_values


def test_header_value_is_case_insensitive_and_first_wins() -> None:
    headers = [("content-type", "text/plain"), ("Content-Type", "text/html")]

    assert header_value(headers, "Content-Type") == "text/plain"
    assert header_value(headers, "Location") is None


def test_header_values_keep_duplicates_in_order() -> None:
    headers = [("Set-Cookie", "a=1"), ("X", "y"), ("set-cookie", "b=2")]

    assert header_values(headers, "set-cookie") == ["a=1", "b=2"]


def test_captured_messages_expose_content_type() -> None:
    req = CapturedRequest(method="POST", url="http://h/", headers=[("Content-Type", "application/json")], body=b"{}")
    resp = CapturedResponse(status=204)

    assert req.content_type == "application/json"
    assert resp.content_type is None
    assert resp.body == b""
