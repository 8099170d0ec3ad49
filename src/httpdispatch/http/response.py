"""
=============================================================================
RESPONSE ACCUMULATOR
=============================================================================

Collects what the dispatcher emits for one request: status code, headers
(in the order they were applied), an optional redirect target and the body.

=============================================================================
WHAT run() HANDS BACK
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                         Response                                    │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   status       HTTPStatus.OK                                         │
    │   headers      [("X-Trace", "a1"), ("Content-Type", "text/plain")]   │
    │   redirect_to  None              (or "/login" → Location header)     │
    │   body         b"hello"                                              │
    │                                                                      │
    │   to_bytes() ─►  HTTP/1.1 200 OK\r\n                                 │
    │                  X-Trace: a1\r\n                                     │
    │                  Content-Type: text/plain; charset=utf-8\r\n         │
    │                  Content-Length: 5\r\n                               │
    │                  Date: ...\r\n                                       │
    │                  Server: httpdispatch/1.0\r\n                        │
    │                  \r\n                                                │
    │                  hello                                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Headers are a LIST of pairs, not a dict: the same name may be applied more
than once and the order is the order the application set them in.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple, Union
import json

from .status_codes import HTTPStatus, reason_phrase


DEFAULT_SERVER_NAME = "httpdispatch/1.0"

# Never sent with a body, whatever the application produced
BODYLESS_STATUSES = (HTTPStatus.NO_CONTENT, HTTPStatus.NOT_MODIFIED)


@dataclass
class Response:
    """
    The outgoing response for one request.

    ``status`` is a plain int so that codes outside HTTPStatus can still be
    emitted; use ``phrase`` for the reason text.
    """

    status: int = HTTPStatus.OK
    headers: List[Tuple[str, str]] = field(default_factory=list)
    redirect_to: Optional[str] = None
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def phrase(self) -> str:
        return reason_phrase(self.status)

    @property
    def status_line(self) -> str:
        """e.g. ``"HTTP/1.1 404 Not Found"``"""
        return f"{self.version} {int(self.status)} {self.phrase}"

    @property
    def content_length(self) -> int:
        return len(self.body)

    @property
    def allows_body(self) -> bool:
        """False for statuses that never carry a body on the wire (1xx, 204, 304)."""
        code = int(self.status)
        return not (100 <= code < 200 or code in BODYLESS_STATUSES)

    def wire_payload(self, head_request: bool = False) -> Tuple[List[Tuple[str, str]], bytes]:
        """
        Headers and body as a host should write them.

        The dispatcher keeps whatever body the error callback produced; this
        is where HTTP framing rules are applied:

        - 1xx, 204, 304: no body, no Content-Length, no Content-Type
        - HEAD: Content-Length of the body a GET would get, but no body
        - otherwise: Content-Length added unless already set
        """
        if not self.allows_body:
            headers = [
                (name, value) for name, value in self.headers
                if name.lower() not in ("content-length", "content-type")
            ]
            return headers, b""

        headers = list(self.headers)
        if not self.has_header("Content-Length"):
            headers.append(("Content-Length", str(self.content_length)))

        return headers, (b"" if head_request else self.body)

    @property
    def is_redirect(self) -> bool:
        return self.redirect_to is not None

    def add_header(self, name: str, value: str) -> "Response":
        """Append a header; earlier headers with the same name are kept."""
        self.headers.append((name, str(value)))
        return self

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Last value applied for ``name`` (case-insensitive), or ``default``."""
        wanted = name.lower()
        for header_name, value in reversed(self.headers):
            if header_name.lower() == wanted:
                return value
        return default

    def has_header(self, name: str) -> bool:
        return self.get_header(name) is not None

    def redirect(self, location: str) -> "Response":
        """Set the redirect target; a later call replaces an earlier one."""
        self.redirect_to = location
        return self

    def set_body(self, body: Union[str, bytes]) -> "Response":
        """Set the body, encoding strings as UTF-8."""
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = body
        return self

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME, head_request: bool = False) -> bytes:
        """
        Serialize to raw HTTP/1.1 bytes.

        Content-Length, Date and Server are added when the application did
        not set them. Framing follows ``wire_payload()``.
        """
        headers, body = self.wire_payload(head_request)

        if not self.has_header("Date"):
            headers.append(("Date", format_http_date(datetime.now(timezone.utc))))
        if not self.has_header("Server"):
            headers.append(("Server", server_name))

        lines = [self.status_line]
        for name, value in headers:
            lines.append(f"{name}: {value}")
        lines.append("")

        return "\r\n".join(lines).encode("utf-8") + b"\r\n" + body


# =============================================================================
# BODY RENDERING
# =============================================================================
#
# Handlers return whatever is natural for them. The dispatcher turns that
# value into bytes plus, when it can tell, a Content-Type:
#
#     "hello"          → b"hello"          text/plain; charset=utf-8
#     b"\x89PNG..."    → unchanged         (no Content-Type added)
#     {"id": 42}       → b'{"id": 42}'     application/json; charset=utf-8
#     [1, 2, 3]        → b'[1, 2, 3]'      application/json; charset=utf-8
#     42               → b"42"             text/plain; charset=utf-8
#     None             → b""               (no Content-Type added)
#
# =============================================================================

def render_body(
    value: Any,
    charset: str = "utf-8",
    pretty_json: bool = False,
) -> Tuple[bytes, Optional[str]]:
    """
    Convert a handler result into ``(body_bytes, content_type)``.

    ``content_type`` is None when nothing sensible can be inferred.
    """
    if value is None:
        return b"", None

    if isinstance(value, bytes):
        return value, None

    if isinstance(value, (bytearray, memoryview)):
        return bytes(value), None

    if isinstance(value, (dict, list, tuple)):
        indent = 2 if pretty_json else None
        text = json.dumps(value, indent=indent, ensure_ascii=False)
        return text.encode(charset), f"application/json; charset={charset}"

    return str(value).encode(charset), f"text/plain; charset={charset}"


def is_empty_body(value: Any) -> bool:
    """
    True for results that count as "no body": None and empty values
    ("", b"", {}, []).
    """
    if value is None:
        return True
    try:
        return len(value) == 0
    except TypeError:
        return False


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP date (RFC 7231 IMF-fixdate).

        Sun, 06 Nov 1994 08:49:37 GMT
    """
    weekdays = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
    dt = dt.astimezone(timezone.utc)
    return (
        f"{weekdays[dt.weekday()]}, {dt.day:02d} {months[dt.month - 1]} "
        f"{dt.year} {dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
