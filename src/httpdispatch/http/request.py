"""
=============================================================================
REQUEST CONTEXT
=============================================================================

The per-request view handlers, middleware and hooks receive.

The host environment has already parsed the raw HTTP text; a Request just
wraps the results and adds two things the dispatcher needs:

1. the effective METHOD, honoring a verb override on POST forms
2. the captured route PARAMETERS, attached once a route is resolved

=============================================================================
REQUEST ANATOMY
=============================================================================

    POST /users/42?lang=en          form: verb=DELETE&reason=spam
    ────┬ ───┬──── ───┬───                ──────┬────
        │    │        │                         │
        │    │        └─ query  {"lang": "en"}  │
        │    └─ uri   "/users/42"               │
        └─ raw method "POST" ───── overridden ──┴──► method == "DELETE"

    After matching "/users/{id}":
        request.param("id")  → "42"
        request["id"]        → "42"
        request.params       → {"id": "42"}

=============================================================================
VERB OVERRIDE
=============================================================================

HTML forms can only send GET and POST. A POST carrying a ``verb`` field
is treated as that verb, so a form can reach a DELETE route:

    <form method="post" action="/users/42">
      <input type="hidden" name="verb" value="delete">
    </form>

The field name is configurable (DispatcherConfig.verb_override_field).

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, TYPE_CHECKING
from urllib.parse import parse_qs, unquote, urlsplit
import json

if TYPE_CHECKING:
    from ..dispatcher import Dispatcher
    from .router import Route


DEFAULT_VERB_FIELD = "verb"

LOCAL_ADDRESSES = ("127.0.0.1", "::1")

# WSGI environ entries that are streams, not values
_STREAM_KEYS = ("wsgi.input", "wsgi.errors")


class RequestParseError(Exception):
    """
    Raised when request data handed over by the host cannot be decoded.

    Carries the status code the host should answer with (400 by default).
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class Request:
    """
    One incoming request.

    Attributes:
        raw_method: Method as received, any case
        raw_uri:    Request URI as received, may include a query string
        query:      Query string values (first value per name)
        form:       URL-encoded body values (first value per name)
        json_body:  Decoded JSON body when it was an object
        server:     CGI/WSGI-style environment values (SERVER_PORT, ...)
        headers:    Request headers with lowercase names
        verb_field: Form field that overrides the method on POST
        attributes: Scratch space middleware uses to pass values along
    """

    raw_method: str
    raw_uri: str = "/"
    query: Dict[str, Any] = field(default_factory=dict)
    form: Dict[str, Any] = field(default_factory=dict)
    json_body: Dict[str, Any] = field(default_factory=dict)
    server: Dict[str, Any] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    verb_field: str = DEFAULT_VERB_FIELD
    attributes: Dict[str, Any] = field(default_factory=dict)

    # Attached by the dispatcher during run()
    _params: Dict[str, str] = field(default_factory=dict, repr=False)
    _dispatcher: Optional["Dispatcher"] = field(default=None, repr=False)

    # =========================================================================
    # METHOD AND URI
    # =========================================================================

    @property
    def method(self) -> str:
        """
        Effective request method, uppercased.

        A POST whose form data carries the override field is reported as
        the verb in that field.
        """
        method = self.raw_method.upper()
        if method == "POST" and self.verb_field in self.form:
            override = self.form[self.verb_field]
            if override:
                method = str(override).upper()
        return method

    @property
    def uri(self) -> str:
        """Request path with the query string stripped."""
        return self.raw_uri.split("?", 1)[0]

    # =========================================================================
    # ROUTE PARAMETERS
    # =========================================================================

    @property
    def params(self) -> Dict[str, str]:
        """Captured route parameters (a copy; empty before matching)."""
        return dict(self._params)

    def param(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """
        Get a captured route parameter.

        Example:
            # route "/users/{id}", request "/users/42"
            request.param("id")   # "42"
        """
        return self._params.get(name, default)

    def __getitem__(self, name: str) -> str:
        return self._params[name]

    def __contains__(self, name: object) -> bool:
        return name in self._params

    def attach_params(self, params: Mapping[str, str]) -> None:
        """Attach the parameters captured for the resolved route."""
        self._params = dict(params)

    # =========================================================================
    # QUERY AND BODY DATA
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """Get a query string value."""
        value = self.query.get(key)
        return default if value is None else value

    def post(self, key: str, default: Any = None) -> Any:
        """
        Get a body value.

        Form data is checked first, then the decoded JSON body.
        """
        value = self.form.get(key)
        if value is None:
            value = self.json_body.get(key)
        return default if value is None else value

    def header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    # =========================================================================
    # SERVER INFORMATION
    # =========================================================================

    @property
    def port(self) -> Optional[str]:
        value = self.server.get("SERVER_PORT")
        return None if value is None else str(value)

    @property
    def protocol(self) -> Optional[str]:
        return self.server.get("SERVER_PROTOCOL")

    @property
    def secure(self) -> bool:
        """True for HTTPS (an ``HTTPS`` flag other than "off", or port 443)."""
        https = self.server.get("HTTPS")
        if https and str(https).lower() != "off":
            return True
        return self.server.get("wsgi.url_scheme") == "https" or self.port == "443"

    @property
    def is_localhost(self) -> bool:
        return self.server.get("REMOTE_ADDR") in LOCAL_ADDRESSES

    @property
    def is_xhr(self) -> bool:
        """True when sent by XMLHttpRequest (X-Requested-With header)."""
        requested_with = self.server.get("HTTP_X_REQUESTED_WITH") or self.header("x-requested-with")
        return requested_with == "XMLHttpRequest"

    # =========================================================================
    # DISPATCHER VIEW
    # =========================================================================
    #
    # Error callbacks usually want to know which code they are rendering.
    # These read through to the dispatcher that is serving this request.
    #
    # =========================================================================

    def bind(self, dispatcher: "Dispatcher") -> None:
        self._dispatcher = dispatcher

    @property
    def response_code(self) -> Optional[int]:
        if self._dispatcher is None:
            return None
        return self._dispatcher.response_code

    @property
    def response_message(self) -> str:
        if self._dispatcher is None:
            return ""
        return self._dispatcher.response_message

    @property
    def route(self) -> Optional["Route"]:
        if self._dispatcher is None:
            return None
        return self._dispatcher.route

    # =========================================================================
    # CONSTRUCTION FROM A HOST ENVIRONMENT
    # =========================================================================

    @classmethod
    def from_environ(
        cls,
        environ: Mapping[str, Any],
        verb_field: str = DEFAULT_VERB_FIELD,
    ) -> "Request":
        """
        Build a Request from a WSGI (PEP 3333) or CGI environment.

        Reads:
            REQUEST_METHOD              raw method
            REQUEST_URI | PATH_INFO     path (REQUEST_URI wins when present)
            QUERY_STRING                query values
            CONTENT_TYPE, wsgi.input    url-encoded form or JSON body
            HTTP_*                      headers

        Raises:
            RequestParseError: If a JSON body is not valid JSON.
        """
        method = str(environ.get("REQUEST_METHOD", "GET"))

        raw_uri = environ.get("REQUEST_URI")
        if raw_uri:
            parts = urlsplit(str(raw_uri))
            path = unquote(parts.path) or "/"
            query_string = parts.query or str(environ.get("QUERY_STRING", ""))
        else:
            path = str(environ.get("PATH_INFO", "")) or "/"
            query_string = str(environ.get("QUERY_STRING", ""))

        headers = {
            key[5:].replace("_", "-").lower(): str(value)
            for key, value in environ.items()
            if key.startswith("HTTP_")
        }
        content_type = str(environ.get("CONTENT_TYPE", "")).split(";")[0].strip().lower()
        if content_type:
            headers.setdefault("content-type", content_type)

        body = _read_body(environ)
        form: Dict[str, Any] = {}
        json_body: Dict[str, Any] = {}

        if body and content_type == "application/x-www-form-urlencoded":
            form = _first_values(parse_qs(body.decode("utf-8", errors="replace"), keep_blank_values=True))
        elif body and content_type == "application/json":
            try:
                decoded = json.loads(body.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise RequestParseError(f"Invalid JSON body: {e}")
            if isinstance(decoded, dict):
                json_body = decoded

        return cls(
            raw_method=method,
            raw_uri=path,
            query=_first_values(parse_qs(query_string, keep_blank_values=True)),
            form=form,
            json_body=json_body,
            server={k: v for k, v in environ.items() if k not in _STREAM_KEYS},
            headers=headers,
            verb_field=verb_field,
        )


def _first_values(parsed: Dict[str, list]) -> Dict[str, Any]:
    """parse_qs gives lists; keep the first value per name."""
    return {name: values[0] if values else "" for name, values in parsed.items()}


def _read_body(environ: Mapping[str, Any]) -> bytes:
    stream = environ.get("wsgi.input")
    if stream is None:
        return b""
    try:
        length = int(environ.get("CONTENT_LENGTH") or 0)
    except ValueError:
        length = 0
    if length <= 0:
        return b""
    return stream.read(length)
