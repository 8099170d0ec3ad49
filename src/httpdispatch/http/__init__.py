"""
=============================================================================
HTTP BUILDING BLOCKS
=============================================================================

The pieces the dispatcher is assembled from. None of them know about the
lifecycle; each can be used and tested on its own.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      MODULE COMPONENTS                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   request.py       Request context (method, uri, params, data)       │
    │   response.py      Response accumulator + body rendering             │
    │   router.py        Route table + segment pattern matcher             │
    │   actions.py       Inline / named handler invocation                 │
    │   status_codes.py  Supported status codes and reason phrases         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .request import Request, RequestParseError
from .response import Response, render_body
from .router import (
    Route,
    RouteTable,
    RouteMatch,
    MatchOutcome,
    MatchResult,
    match,
    split_uri,
)
from .actions import Action, CallableAction, NamedAction, as_action
from .status_codes import HTTPStatus, reason_phrase

__all__ = [
    # Request context
    "Request",
    "RequestParseError",

    # Response
    "Response",
    "render_body",

    # Routing
    "Route",
    "RouteTable",
    "RouteMatch",
    "MatchOutcome",
    "MatchResult",
    "match",
    "split_uri",

    # Handlers
    "Action",
    "CallableAction",
    "NamedAction",
    "as_action",

    # Status codes
    "HTTPStatus",
    "reason_phrase",
]
