"""
=============================================================================
HTTPDISPATCH - Request Router and Lifecycle Dispatcher
=============================================================================

Maps an incoming request (method + URI) to a handler, runs it between
before/after middleware chains, fires lifecycle hooks along the way and
maps every failure to a uniform abort path.

The host (a WSGI server, a CGI script, the CLI) has already parsed the
request. The dispatcher decides WHAT runs and in WHICH order.

=============================================================================
PROJECT OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    HTTPDISPATCH ARCHITECTURE                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Host (WSGI / CLI)                                                  │
    │        │  Request                                                    │
    │        ▼                                                             │
    │   ┌──────────────────────────────────────────────────────────┐       │
    │   │ Dispatcher.run()                                         │       │
    │   │                                                          │       │
    │   │   hooks ── route table ── matcher ── before chain ──►    │       │
    │   │   action ── after chain ── headers ── redirect/body      │       │
    │   │                                                          │       │
    │   │   abort(code) ── error callback ── same tail             │       │
    │   └──────────────────────────────────────────────────────────┘       │
    │        │  Response                                                   │
    │        ▼                                                             │
    │   Host writes status, headers, body                                  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    httpdispatch/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m httpdispatch)
    ├── dispatcher.py        # Dispatcher: lifecycle state machine
    ├── hooks.py             # Hook enum + single-slot registry
    ├── config.py            # DispatcherConfig + logging setup
    ├── errors.py            # Exception hierarchy
    ├── wsgi.py              # WSGI adapter
    ├── http/
    │   ├── request.py       # Request context
    │   ├── response.py      # Response accumulator
    │   ├── router.py        # Route table + pattern matcher
    │   ├── actions.py       # Inline / named handler invocation
    │   └── status_codes.py  # Supported status codes
    └── middleware/
        ├── base.py          # MiddlewareChain
        └── logging.py       # Access logging

=============================================================================
QUICK START
=============================================================================

    from httpdispatch import Dispatcher, Request

    app = Dispatcher()

    @app.get("/")
    def index(request):
        return {"message": "Hello, World!"}

    @app.get("/users/{id}")
    def show_user(request):
        return {"id": request.param("id")}

    app.post("/users", "myapp.controllers.UserController@create")

    app.set_error_callback(404, lambda request: {"error": "not found"})

    response = app.run(Request("GET", "/users/42"))
    print(response.status, response.body)

Serve it with any WSGI server:

    from httpdispatch.wsgi import WSGIApp
    application = WSGIApp(app)

=============================================================================
"""

__version__ = "1.0.0"

from .config import DispatcherConfig, configure_logging
from .dispatcher import Dispatcher
from .errors import (
    ConfigurationError,
    DispatchError,
    HTTPError,
    MethodNotAllowed,
    NotFound,
    ServiceUnavailable,
)
from .hooks import Hook
from .http.request import Request
from .http.response import Response
from .http.status_codes import HTTPStatus

__all__ = [
    "Dispatcher",
    "DispatcherConfig",
    "configure_logging",
    "Request",
    "Response",
    "HTTPStatus",
    "Hook",
    "DispatchError",
    "ConfigurationError",
    "HTTPError",
    "NotFound",
    "MethodNotAllowed",
    "ServiceUnavailable",
    "__version__",
]
