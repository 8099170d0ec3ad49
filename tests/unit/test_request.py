"""
Unit tests for the request context.
"""

import io
import json

import pytest

from httpdispatch.http.request import Request, RequestParseError


def make_environ(method="GET", path="/", query="", body=b"", content_type="", **extra):
    """Minimal WSGI environ for testing."""
    environ = {
        "REQUEST_METHOD": method,
        "PATH_INFO": path,
        "QUERY_STRING": query,
        "SERVER_NAME": "localhost",
        "SERVER_PORT": "8080",
        "SERVER_PROTOCOL": "HTTP/1.1",
        "REMOTE_ADDR": "127.0.0.1",
        "wsgi.url_scheme": "http",
        "wsgi.input": io.BytesIO(body),
        "CONTENT_LENGTH": str(len(body)) if body else "",
    }
    if content_type:
        environ["CONTENT_TYPE"] = content_type
    environ.update(extra)
    return environ


class TestMethodAndUri:
    """Tests for method and URI accessors."""

    def test_method_uppercased(self):
        """Methods are reported uppercase."""
        assert Request("get", "/").method == "GET"

    def test_verb_override_on_post(self):
        """A POST form carrying 'verb' becomes that verb."""
        request = Request("POST", "/users/1", form={"verb": "delete"})
        assert request.method == "DELETE"
        assert request.raw_method == "POST"

    def test_verb_override_only_on_post(self):
        """The field is ignored for other methods."""
        assert Request("GET", "/", form={"verb": "delete"}).method == "GET"

    def test_empty_override_ignored(self):
        """An empty override field keeps POST."""
        assert Request("POST", "/", form={"verb": ""}).method == "POST"

    def test_custom_verb_field(self):
        """The override field name is configurable."""
        request = Request("POST", "/", form={"_method": "put"}, verb_field="_method")
        assert request.method == "PUT"

    def test_uri_strips_query(self):
        """The query string is not part of the URI."""
        assert Request("GET", "/search?q=x").uri == "/search"


class TestParams:
    """Tests for captured route parameters."""

    def test_attach_and_read(self):
        """Attached parameters are readable by name."""
        request = Request("GET", "/users/42")
        request.attach_params({"id": "42"})

        assert request.param("id") == "42"
        assert request["id"] == "42"
        assert "id" in request
        assert request.params == {"id": "42"}

    def test_missing_param(self):
        """Unknown names fall back to the default."""
        request = Request("GET", "/")
        assert request.param("id") is None
        assert request.param("id", "0") == "0"
        with pytest.raises(KeyError):
            request["id"]

    def test_params_is_a_copy(self):
        """Mutating the returned dict does not touch the request."""
        request = Request("GET", "/")
        request.attach_params({"id": "1"})
        request.params["id"] = "2"
        assert request.param("id") == "1"


class TestData:
    """Tests for query, form and header access."""

    def test_get(self):
        """Query values with defaults."""
        request = Request("GET", "/", query={"page": "2"})
        assert request.get("page") == "2"
        assert request.get("limit", "10") == "10"

    def test_post_prefers_form_then_json(self):
        """Form values win over JSON body values."""
        request = Request("POST", "/", form={"name": "form"}, json_body={"name": "json", "age": 3})
        assert request.post("name") == "form"
        assert request.post("age") == 3
        assert request.post("missing", "x") == "x"

    def test_header_case_insensitive(self):
        """Header lookup ignores case."""
        request = Request("GET", "/", headers={"user-agent": "pytest"})
        assert request.header("User-Agent") == "pytest"
        assert request.header("Accept") == ""


class TestServerInfo:
    """Tests for server-derived properties."""

    def test_port_and_protocol(self):
        request = Request("GET", "/", server={"SERVER_PORT": 8080, "SERVER_PROTOCOL": "HTTP/1.0"})
        assert request.port == "8080"
        assert request.protocol == "HTTP/1.0"

    def test_secure(self):
        """HTTPS flag, url scheme or port 443 mean secure."""
        assert Request("GET", "/", server={"HTTPS": "on"}).secure
        assert not Request("GET", "/", server={"HTTPS": "off"}).secure
        assert Request("GET", "/", server={"wsgi.url_scheme": "https"}).secure
        assert Request("GET", "/", server={"SERVER_PORT": "443"}).secure
        assert not Request("GET", "/").secure

    def test_localhost(self):
        assert Request("GET", "/", server={"REMOTE_ADDR": "127.0.0.1"}).is_localhost
        assert Request("GET", "/", server={"REMOTE_ADDR": "::1"}).is_localhost
        assert not Request("GET", "/", server={"REMOTE_ADDR": "10.1.2.3"}).is_localhost

    def test_xhr(self):
        """X-Requested-With: XMLHttpRequest marks AJAX requests."""
        assert Request("GET", "/", headers={"x-requested-with": "XMLHttpRequest"}).is_xhr
        assert not Request("GET", "/").is_xhr

    def test_unbound_dispatcher_view(self):
        """Without a dispatcher the read-through fields are empty."""
        request = Request("GET", "/")
        assert request.response_code is None
        assert request.response_message == ""
        assert request.route is None


class TestFromEnviron:
    """Tests for building requests from a WSGI environ."""

    def test_basic_get(self):
        """Method, path, query and headers are read."""
        environ = make_environ(
            path="/api/users",
            query="page=1&limit=10&page=2",
            HTTP_USER_AGENT="pytest",
            HTTP_X_REQUESTED_WITH="XMLHttpRequest",
        )
        request = Request.from_environ(environ)

        assert request.method == "GET"
        assert request.uri == "/api/users"
        assert request.get("page") == "1"
        assert request.get("limit") == "10"
        assert request.header("user-agent") == "pytest"
        assert request.is_xhr
        assert request.port == "8080"

    def test_request_uri_wins(self):
        """REQUEST_URI takes precedence over PATH_INFO."""
        environ = make_environ(path="/ignored", REQUEST_URI="/real/path?x=1")
        request = Request.from_environ(environ)

        assert request.uri == "/real/path"
        assert request.get("x") == "1"

    def test_empty_path_is_root(self):
        assert Request.from_environ(make_environ(path="")).uri == "/"

    def test_form_body(self):
        """URL-encoded bodies become form data."""
        environ = make_environ(
            method="POST",
            path="/users/1",
            body=b"verb=delete&reason=spam",
            content_type="application/x-www-form-urlencoded",
        )
        request = Request.from_environ(environ)

        assert request.form == {"verb": "delete", "reason": "spam"}
        assert request.method == "DELETE"

    def test_json_body(self):
        """JSON object bodies are decoded."""
        body = json.dumps({"name": "Ada"}).encode()
        environ = make_environ(method="POST", body=body, content_type="application/json; charset=utf-8")
        request = Request.from_environ(environ)

        assert request.post("name") == "Ada"
        assert request.header("content-type") == "application/json"

    def test_invalid_json(self):
        """Malformed JSON is a 400 parse error."""
        environ = make_environ(method="POST", body=b"{nope", content_type="application/json")

        with pytest.raises(RequestParseError) as exc_info:
            Request.from_environ(environ)
        assert exc_info.value.status_code == 400

    def test_streams_not_kept(self):
        """The input stream is not copied into server info."""
        request = Request.from_environ(make_environ())
        assert "wsgi.input" not in request.server
        assert request.server["REMOTE_ADDR"] == "127.0.0.1"

    def test_custom_verb_field(self):
        environ = make_environ(
            method="POST",
            body=b"_method=patch",
            content_type="application/x-www-form-urlencoded",
        )
        assert Request.from_environ(environ, verb_field="_method").method == "PATCH"
