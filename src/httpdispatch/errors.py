"""
=============================================================================
DISPATCHER EXCEPTIONS
=============================================================================

Two kinds of failure exist in the dispatcher, and they travel differently:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ERROR TAXONOMY                               │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   CONFIGURATION ERRORS                REQUEST-OUTCOME ERRORS         │
    │   ────────────────────                ──────────────────────         │
    │   ConfigurationError                  HTTPError (404, 405, 503 ...)  │
    │   - unknown handler class             - no route matched             │
    │   - unknown handler method            - verb not accepted            │
    │   - bad route definition              - service marked down          │
    │                                                                      │
    │   Propagates out of run()             Converted to abort(status)     │
    │   (a process fault)                   inside the same request        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

RequestTerminated is not an error at all. It is the signal abort() raises
to unwind back to run() once the response has been finalized. It derives
from BaseException, like SystemExit, and passes through ``except Exception``
blocks in handler code.

=============================================================================
"""

from typing import Optional


class DispatchError(Exception):
    """Base for all httpdispatch errors."""


class ConfigurationError(DispatchError):
    """
    Raised when the dispatcher is wired up wrongly.

    Typical causes: a named handler whose class cannot be imported, or
    whose method does not exist. These are never turned into a status code.
    """


class HTTPError(DispatchError):
    """
    An error that maps directly to a status code.

    Handlers and middleware may raise it instead of calling
    ``dispatcher.abort()``; the dispatcher catches it and aborts with
    ``status``.

        def show_user(request):
            user = USERS.get(request.param("id"))
            if user is None:
                raise HTTPError(404, "no such user")
            return user
    """

    def __init__(self, status: int, detail: str = ""):
        self.status = int(status)
        self.detail = detail
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class NotFound(HTTPError):
    """404: no route matched the request URI."""

    def __init__(self, detail: str = "Not Found"):
        super().__init__(404, detail)


class MethodNotAllowed(HTTPError):
    """405: a route matched the URI but none accepts the verb."""

    def __init__(self, allowed: Optional[list[str]] = None, detail: str = ""):
        self.allowed = sorted(allowed or [])
        if not detail and self.allowed:
            detail = f"Method not allowed. Allowed methods: {', '.join(self.allowed)}"
        super().__init__(405, detail or "Method Not Allowed")


class ServiceUnavailable(HTTPError):
    """503: the dispatcher has been taken down."""

    def __init__(self, detail: str = "Service Unavailable"):
        super().__init__(503, detail)


class RequestTerminated(BaseException):
    """
    Control-flow signal raised by ``Dispatcher.abort()``.

    Carries the final status code so the top of ``run()`` can log it.
    """

    def __init__(self, status: int):
        self.status = status
        super().__init__(status)
