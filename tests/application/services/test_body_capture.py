# tests/application/services/test_body_capture.py
import io

import pytest

from application.services.body_capture import (
    build_post_data,
    capture_request_body,
    capture_stream,
    charset_of,
    decode_text,
    media_type_of,
    parse_multipart,
)
from domain.exceptions import CaptureError
from domain.har import ParamsPostData, PostParam, TextPostData

BOUNDARY = "XyZ123"
MULTIPART_TYPE = f"multipart/form-data; boundary={BOUNDARY}"
MULTIPART_BODY = (
    f"--{BOUNDARY}\r\n"
    'Content-Disposition: form-data; name="field"\r\n'
    "\r\n"
    "hello\r\n"
    f"--{BOUNDARY}\r\n"
    'Content-Disposition: form-data; name="upload"; filename="a.txt"\r\n'
    "Content-Type: text/plain\r\n"
    "\r\n"
    "file body\r\n"
    f"--{BOUNDARY}--\r\n"
).encode("utf-8")


class _BrokenStream:
    def read(self):
        raise OSError("connection reset")


class TestCaptureStream:
    def test_returns_bytes_and_fresh_stream(self):
        original = io.BytesIO(b"payload")

        captured = capture_stream(original)

        assert captured.data == b"payload"
        assert captured.stream.read() == b"payload"

    def test_replacement_is_independent_of_later_reads(self):
        captured = capture_stream(io.BytesIO(b"abc"))

        captured.stream.read()
        again = capture_stream(io.BytesIO(captured.data))

        assert again.stream.read() == b"abc"

    def test_none_stream(self):
        captured = capture_stream(None)

        assert captured.data == b""
        assert captured.stream is None

    def test_read_failure_raises_capture_error(self):
        with pytest.raises(CaptureError):
            capture_stream(_BrokenStream())


class TestCaptureRequestBody:
    def test_no_body(self):
        assert capture_request_body(None) == (None, None)

    def test_bytes_are_returned_as_is(self):
        data, replacement = capture_request_body(b"a=1")

        assert data == b"a=1"
        assert replacement == b"a=1"

    def test_str_is_captured_utf8(self):
        data, replacement = capture_request_body("café")

        assert data == "café".encode("utf-8")
        assert replacement == "café"

    def test_file_like_is_replaced_with_unread_copy(self):
        data, replacement = capture_request_body(io.BytesIO(b"file content"))

        assert data == b"file content"
        assert replacement.read() == b"file content"

    def test_generator_becomes_single_chunk(self):
        def chunks():
            yield b"one,"
            yield "two"

        data, replacement = capture_request_body(chunks())

        assert data == b"one,two"
        assert list(replacement) == [b"one,two"]


class TestContentTypeHelpers:
    def test_media_type_strips_parameters(self):
        assert media_type_of("Text/HTML; charset=UTF-8") == "text/html"
        assert media_type_of(None) == ""

    def test_charset(self):
        assert charset_of('text/plain; charset="iso-8859-1"') == "iso-8859-1"
        assert charset_of("application/json") is None

    def test_decode_text_uses_declared_charset(self):
        assert decode_text("é".encode("latin-1"), "text/plain; charset=latin-1") == "é"

    def test_decode_text_replaces_invalid_bytes(self):
        assert decode_text(b"\xff\xfe", "text/plain") == "��"

    def test_decode_text_unknown_charset_falls_back_to_utf8(self):
        assert decode_text(b"ok", "text/plain; charset=nope-9") == "ok"


class TestBuildPostData:
    def test_urlencoded_keeps_order_duplicates_and_blanks(self):
        post = build_post_data(b"a=1&b=&a=2&c=x%20y", "application/x-www-form-urlencoded")

        assert isinstance(post, ParamsPostData)
        assert post.mime_type == "application/x-www-form-urlencoded"
        assert post.params == (
            PostParam(name="a", value="1"),
            PostParam(name="b", value=""),
            PostParam(name="a", value="2"),
            PostParam(name="c", value="x y"),
        )

    def test_multipart_fields_and_files(self):
        post = build_post_data(MULTIPART_BODY, MULTIPART_TYPE)

        assert isinstance(post, ParamsPostData)
        assert post.mime_type == MULTIPART_TYPE
        assert post.params == (
            PostParam(name="field", value="hello"),
            PostParam(name="upload", value="file body", file_name="a.txt", content_type="text/plain"),
        )

    def test_legacy_form_data_type_is_parsed_as_multipart(self):
        post = build_post_data(MULTIPART_BODY, f"form-data; boundary={BOUNDARY}")

        assert isinstance(post, ParamsPostData)
        assert [p.name for p in post.params] == ["field", "upload"]

    def test_other_types_become_text(self):
        post = build_post_data(b'{"k": 1}', "application/json")

        assert post == TextPostData(mime_type="application/json", text='{"k": 1}')

    def test_missing_content_type_defaults_to_octet_stream(self):
        post = build_post_data(b"raw", None)

        assert post == TextPostData(mime_type="application/octet-stream", text="raw")


class TestParseMultipart:
    def test_limit_exceeded_raises(self):
        with pytest.raises(CaptureError):
            parse_multipart(MULTIPART_BODY, MULTIPART_TYPE, max_bytes=10)

    def test_missing_boundary_raises(self):
        with pytest.raises(CaptureError):
            parse_multipart(MULTIPART_BODY, "multipart/form-data")

    def test_part_without_name_raises(self):
        body = (
            f"--{BOUNDARY}\r\n"
            "Content-Disposition: form-data\r\n"
            "\r\n"
            "orphan\r\n"
            f"--{BOUNDARY}--\r\n"
        ).encode("utf-8")

        with pytest.raises(CaptureError):
            parse_multipart(body, MULTIPART_TYPE)

    def test_body_cut_before_closing_boundary_raises(self):
        body = (
            f"--{BOUNDARY}\r\n"
            'Content-Disposition: form-data; name="a"\r\n'
            "\r\n"
            "1\r\n"
            f"--{BOUNDARY}\r\n"
            'Content-Disposition: form-data; name="b"\r\n'
            "\r\n"
            "2"
        ).encode("utf-8")

        with pytest.raises(CaptureError, match="Truncated"):
            build_post_data(body, MULTIPART_TYPE)

    def test_closing_boundary_without_trailing_newline_is_complete(self):
        body = (
            f"--{BOUNDARY}\r\n"
            'Content-Disposition: form-data; name="a"\r\n'
            "\r\n"
            "1\r\n"
            f"--{BOUNDARY}--"
        ).encode("utf-8")

        params = parse_multipart(body, MULTIPART_TYPE)

        assert [(p.name, p.value) for p in params] == [("a", "1")]
