"""
Unit tests for the WSGI adapter.
"""

import io

import pytest

from httpdispatch import Dispatcher
from httpdispatch.wsgi import WSGIApp


class StartResponse:
    """Records what the app passes to start_response."""

    def __init__(self):
        self.status = None
        self.headers = None

    def __call__(self, status, headers):
        self.status = status
        self.headers = headers

    def header(self, name):
        for key, value in self.headers:
            if key.lower() == name.lower():
                return value
        return None


def environ_for(method="GET", path="/", query="", body=b"", content_type=""):
    environ = {
        "REQUEST_METHOD": method,
        "PATH_INFO": path,
        "QUERY_STRING": query,
        "SERVER_PROTOCOL": "HTTP/1.1",
        "REMOTE_ADDR": "127.0.0.1",
        "wsgi.input": io.BytesIO(body),
        "CONTENT_LENGTH": str(len(body)),
    }
    if content_type:
        environ["CONTENT_TYPE"] = content_type
    return environ


@pytest.fixture
def app() -> WSGIApp:
    dispatcher = Dispatcher()
    dispatcher.get("/users/{id}", lambda request: {"id": request.param("id"), "q": request.get("q")})
    dispatcher.post("/users", lambda request: f"created {request.post('name')}")
    dispatcher.delete("/users/{id}", lambda request: None)
    dispatcher.match(["get", "head"], "/ping", lambda request: "pong")
    return WSGIApp(dispatcher)


class TestWSGIApp:
    """Tests for WSGIApp."""

    def test_success(self, app):
        start_response = StartResponse()

        body = b"".join(app(environ_for(path="/users/3", query="q=x"), start_response))

        assert start_response.status == "200 OK"
        assert body == b'{"id": "3", "q": "x"}'
        assert start_response.header("Content-Type") == "application/json; charset=utf-8"
        assert start_response.header("Content-Length") == str(len(body))

    def test_form_post(self, app):
        start_response = StartResponse()
        environ = environ_for(
            method="POST",
            path="/users",
            body=b"name=Ada",
            content_type="application/x-www-form-urlencoded",
        )

        body = b"".join(app(environ, start_response))

        assert start_response.status == "200 OK"
        assert body == b"created Ada"

    def test_not_found(self, app):
        start_response = StartResponse()

        body = b"".join(app(environ_for(path="/nope"), start_response))

        assert start_response.status == "404 Not Found"
        assert body == b"Not Found"

    def test_method_not_allowed(self, app):
        start_response = StartResponse()

        app(environ_for(method="DELETE", path="/users/1"), start_response)

        assert start_response.status == "405 Method Not Allowed"
        assert start_response.header("Allow") == "GET"

    def test_bad_json_is_400(self, app):
        """Undecodable bodies never reach the dispatcher."""
        start_response = StartResponse()
        environ = environ_for(method="POST", path="/users", body=b"{", content_type="application/json")

        body = b"".join(app(environ, start_response))

        assert start_response.status == "400 Bad Request"
        assert b"Invalid JSON" in body

    def test_wsgi_app_alias(self, app):
        """__call__ and wsgi_app are the same entry point."""
        assert WSGIApp.__call__ is WSGIApp.wsgi_app


class TestFraming:
    """Bodies the wire must not carry."""

    def test_no_content_has_no_body(self, app):
        """An empty handler result is a 204 with nothing after the headers."""
        start_response = StartResponse()

        body = b"".join(app(environ_for(method="DELETE", path="/users/1"), start_response))

        assert start_response.status == "204 No Content"
        assert body == b""
        assert start_response.header("Content-Length") is None
        assert start_response.header("Content-Type") is None

    def test_head_has_no_body(self, app):
        start_response = StartResponse()

        body = b"".join(app(environ_for(method="HEAD", path="/ping"), start_response))

        assert start_response.status == "200 OK"
        assert body == b""
        assert start_response.header("Content-Length") == "4"

    def test_get_keeps_body(self, app):
        start_response = StartResponse()

        body = b"".join(app(environ_for(path="/ping"), start_response))

        assert body == b"pong"

    def test_not_modified_has_no_body(self):
        dispatcher = Dispatcher()
        dispatcher.get("/cached", lambda request: dispatcher.abort(304))
        start_response = StartResponse()

        body = b"".join(WSGIApp(dispatcher)(environ_for(path="/cached"), start_response))

        assert start_response.status == "304 Not Modified"
        assert body == b""
