"""
=============================================================================
REQUEST LOGGING MIDDLEWARE
=============================================================================

Access logging with timing and correlation IDs, split across the two
middleware chains:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   BEFORE chain                                AFTER chain            │
    │   ┌──────────────────────┐   ┌────────┐   ┌──────────────────────┐   │
    │   │ RequestLogger.before │ → │ action │ → │ RequestLogger.after  │   │
    │   │  - request id        │   └────────┘   │  - duration          │   │
    │   │  - start time        │                │  - one access line   │   │
    │   │  - X-Request-ID      │                └──────────────────────┘   │
    │   └──────────────────────┘                                           │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Aborted requests never reach the after chain; the dispatcher logs those
itself when abort() runs.

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (Apache combined style, default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 127.0.0.1 - - [10/Jun/2024:10:55:36 +0000] "GET /users/42" 200 ... │
    └─────────────────────────────────────────────────────────────────────┘

    JSON (for log aggregators):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"request_id": "a1b2c3d4", "method": "GET", "path": "/users/42",   │
    │  "route": "/users/{id}", "status_code": 200, "duration_ms": 0.41}  │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import time
import json
import uuid
import logging
from typing import Any, Optional, TYPE_CHECKING
from dataclasses import dataclass

from ..http.request import Request

if TYPE_CHECKING:
    from ..dispatcher import Dispatcher


# Namespaced so access lines can be routed separately:
#   logging.getLogger("httpdispatch.access").addHandler(file_handler)
logger = logging.getLogger("httpdispatch.access")

REQUEST_ID_KEY = "request_id"
START_TIME_KEY = "request_start"
REQUEST_ID_HEADER = "X-Request-ID"


@dataclass
class RequestLog:
    """One access-log entry."""

    request_id: str
    method: str
    path: str
    route: str
    client_ip: str
    user_agent: str
    status_code: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "method": self.method,
            "path": self.path,
            "route": self.route,
            "client_ip": self.client_ip,
            "user_agent": self.user_agent,
            "status_code": self.status_code,
            "duration_ms": round(self.duration_ms, 2),
            "timestamp": self.timestamp,
        }

    def to_text(self) -> str:
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.route} {self.duration_ms:.2f}ms [{self.request_id}]'
        )


class RequestLogger:
    """
    Before/after middleware pair that writes one access line per request.

    Usage:
        RequestLogger(log_format="json").install(dispatcher)

        # or by hand
        access = RequestLogger()
        dispatcher.middleware(access.before)
        dispatcher.after_middleware(access.after)
    """

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[list[str]] = None,
    ):
        """
        Args:
            log_format: "text" (combined style) or "json"
            include_request_id: Send the id back in an X-Request-ID header
            log_level: Level access lines are logged at
            skip_paths: Paths that are never logged (e.g. ["/health"])
        """
        if log_format not in ("text", "json"):
            raise ValueError(f"Invalid log_format: {log_format}")

        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = set(skip_paths or [])
        self._dispatcher: Optional["Dispatcher"] = None

    def install(self, dispatcher: "Dispatcher") -> "RequestLogger":
        """Append ``before`` to the before chain and ``after`` to the after chain."""
        self._dispatcher = dispatcher
        dispatcher.middleware(self.before)
        dispatcher.after_middleware(self.after)
        return self

    def before(self, request: Request, next_index: int) -> None:
        # An incoming X-Request-ID is reused so ids survive across services
        request_id = request.header("x-request-id") or str(uuid.uuid4())[:8]
        request.attributes[REQUEST_ID_KEY] = request_id
        request.attributes[START_TIME_KEY] = time.time()

        if self.include_request_id and self._dispatcher is not None:
            self._dispatcher.set_header(REQUEST_ID_HEADER, request_id)

    def after(self, request: Request, next_index: int) -> None:
        if request.uri in self.skip_paths:
            return

        entry = self.build_entry(request)
        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())

    def build_entry(self, request: Request) -> RequestLog:
        started: Any = request.attributes.get(START_TIME_KEY)
        duration_ms = (time.time() - started) * 1000 if started else 0.0
        route = request.route

        return RequestLog(
            request_id=request.attributes.get(REQUEST_ID_KEY, "-"),
            method=request.method,
            path=request.uri,
            route=route.pattern if route is not None else "-",
            client_ip=str(request.server.get("REMOTE_ADDR") or "-"),
            user_agent=request.header("user-agent") or "-",
            status_code=request.response_code or 0,
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )
