"""
=============================================================================
MIDDLEWARE
=============================================================================

Middleware entries run before and after the action, in registration order.

    dispatcher.middleware(check_token)          # before chain
    dispatcher.after_middleware(add_cache_tag)  # after chain

Each entry is called as ``entry(request, next_index)``. Every entry runs;
the only way to stop a chain is ``dispatcher.abort(code)``.

AVAILABLE MIDDLEWARE
--------------------

RequestLogger:
    Access log line per request, with timing and an X-Request-ID header.

=============================================================================
"""

from .base import MiddlewareChain
from .logging import RequestLogger, RequestLog

__all__ = [
    "MiddlewareChain",
    "RequestLogger",
    "RequestLog",
]
