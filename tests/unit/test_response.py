"""
Unit tests for the response accumulator and body rendering.
"""

from datetime import datetime, timezone

import pytest

from httpdispatch.http.response import (
    Response,
    format_http_date,
    is_empty_body,
    render_body,
)
from httpdispatch.http.status_codes import HTTPStatus


class TestResponse:
    """Tests for Response."""

    def test_defaults(self):
        """A new response is an empty 200."""
        response = Response()
        assert response.status == 200
        assert response.headers == []
        assert response.body == b""
        assert not response.is_redirect

    def test_status_line(self):
        """Status line uses the reason phrase."""
        assert Response(status=HTTPStatus.NOT_FOUND).status_line == "HTTP/1.1 404 Not Found"
        assert Response(status=499).status_line == "HTTP/1.1 499 Token Required"

    def test_headers_keep_order_and_duplicates(self):
        """Headers are an ordered list of pairs."""
        response = Response()
        response.add_header("Set-Cookie", "a=1").add_header("Set-Cookie", "b=2")

        assert response.headers == [("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")]
        assert response.get_header("set-cookie") == "b=2"
        assert response.has_header("SET-COOKIE")
        assert response.get_header("X-Missing") is None

    def test_redirect_last_write_wins(self):
        """Only one redirect target is kept."""
        response = Response().redirect("/a").redirect("/b")
        assert response.redirect_to == "/b"
        assert response.is_redirect

    def test_set_body_encodes_text(self):
        """Strings are encoded as UTF-8."""
        assert Response().set_body("héllo").body == "héllo".encode("utf-8")
        assert Response().set_body(b"raw").content_length == 3

    def test_to_bytes(self):
        """Serialization adds Content-Length, Date and Server."""
        response = Response(status=HTTPStatus.OK)
        response.add_header("Content-Type", "text/plain").set_body("hi")

        raw = response.to_bytes(server_name="test/1.0")

        assert raw.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Content-Type: text/plain\r\n" in raw
        assert b"Content-Length: 2\r\n" in raw
        assert b"Date: " in raw
        assert b"Server: test/1.0\r\n" in raw
        assert raw.endswith(b"\r\n\r\nhi")

    def test_to_bytes_keeps_explicit_headers(self):
        """Explicit Content-Length is not duplicated."""
        response = Response().add_header("Content-Length", "0")
        assert response.to_bytes().count(b"Content-Length") == 1

    def test_to_bytes_no_content_drops_body(self):
        """204 keeps the callback body in memory but never serializes it."""
        response = Response(status=HTTPStatus.NO_CONTENT)
        response.add_header("Content-Type", "text/plain").set_body("No Content")

        raw = response.to_bytes()

        assert response.body == b"No Content"
        assert raw.endswith(b"\r\n\r\n")
        assert b"Content-Length" not in raw
        assert b"Content-Type" not in raw

    def test_to_bytes_head_request(self):
        """HEAD advertises the length but sends no body."""
        raw = Response().set_body("hello").to_bytes(head_request=True)

        assert b"Content-Length: 5\r\n" in raw
        assert raw.endswith(b"\r\n\r\n")

    @pytest.mark.parametrize("status, allowed", [
        (100, False), (200, True), (204, False), (304, False), (404, True),
    ])
    def test_allows_body(self, status, allowed):
        assert Response(status=status).allows_body is allowed


class TestRenderBody:
    """Tests for render_body."""

    def test_none(self):
        assert render_body(None) == (b"", None)

    def test_text(self):
        assert render_body("hello") == (b"hello", "text/plain; charset=utf-8")

    def test_bytes_untouched(self):
        """Bytes pass through without a content type."""
        assert render_body(b"\x89PNG") == (b"\x89PNG", None)
        assert render_body(bytearray(b"ab")) == (b"ab", None)

    def test_json(self):
        """dict and list results become JSON."""
        body, content_type = render_body({"id": 42})
        assert body == b'{"id": 42}'
        assert content_type == "application/json; charset=utf-8"
        assert render_body([1, 2])[0] == b"[1, 2]"

    def test_pretty_json(self):
        body, _ = render_body({"a": 1}, pretty_json=True)
        assert body == b'{\n  "a": 1\n}'

    def test_other_values_as_text(self):
        """Numbers and other objects use str()."""
        assert render_body(42) == (b"42", "text/plain; charset=utf-8")

    def test_charset(self):
        body, content_type = render_body("é", charset="latin-1")
        assert body == b"\xe9"
        assert content_type == "text/plain; charset=latin-1"


class TestEmptyBody:
    """Tests for is_empty_body."""

    @pytest.mark.parametrize("value", [None, "", b"", {}, []])
    def test_empty(self, value):
        """Absent and zero-length results are empty."""
        assert is_empty_body(value)

    @pytest.mark.parametrize("value", ["x", b"x", {"a": 1}, [0], 0, False])
    def test_not_empty(self, value):
        """Anything with content, and scalars, count as a body."""
        assert not is_empty_body(value)


class TestHttpDate:
    """Tests for format_http_date."""

    def test_imf_fixdate(self):
        dt = datetime(1994, 11, 6, 8, 49, 37, tzinfo=timezone.utc)
        assert format_http_date(dt) == "Sun, 06 Nov 1994 08:49:37 GMT"
