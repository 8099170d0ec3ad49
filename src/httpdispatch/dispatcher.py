"""
=============================================================================
DISPATCHER
=============================================================================

The orchestrator: owns the route table, the middleware chains, the hooks,
the error callbacks and the availability flag, and drives one request at a
time through a fixed lifecycle.

=============================================================================
LIFECYCLE STATE MACHINE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          NORMAL PATH                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Created              oncreate                                      │
    │      │                                                               │
    │   Availability-Check   down?  ──────────────► abort(503)             │
    │      │                                                               │
    │   Method-Validation    verb unsupported? ───► abort(405)             │
    │      │                                                               │
    │   Route-Resolution     pre-assigned? skip matcher                    │
    │      │                 empty table ─────────► abort(404)             │
    │      │                 no URI match ────────► abort(404)             │
    │      │                 no verb match ───────► abort(405)             │
    │      │                 onroutematched                                │
    │   Before-Middleware    onbeforemiddleware, before chain              │
    │      │                                                               │
    │   Action-Invocation    code = 200, onbeforeaction, action            │
    │      │                 empty body? ─────────► abort(204)             │
    │   After-Action-Hook    onafteraction                                 │
    │      │                                                               │
    │   After-Middleware     after chain                                   │
    │      │                                                               │
    │   Header-Finalization  set_header() pairs copied onto the response   │
    │      │                                                               │
    │   Redirect-Check       redirect set? onredirect, Location ──┐        │
    │      │                                                      │        │
    │   Body-Send            onbodysent, body                     │        │
    │      │                                                      │        │
    │   Terminate  ◄──────────────────────────────────────────────┘        │
    │                        ondestroy                                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
THE ABORT PATH
=============================================================================

abort(code) can be called from any state: by the dispatcher itself, by a
handler, by middleware or by a hook callback. It never returns:

    abort(code)
      ├── onmiddlewareabort            if called inside a chain
      ├── code != 200:
      │     ├── pick error callback    code-specific, else the default
      │     ├── status = code
      │     └── onerror
      ├── body = callback(request)     (a no-op for code 200)
      ├── Redirect-Check
      ├── Body-Send
      └── Terminate  ─► raise RequestTerminated ─► caught by run()

RequestTerminated unwinds the Python stack back to run(), which returns
the finished Response. Nothing after the abort() call runs.

Handlers that do not hold a dispatcher reference can raise HTTPError
instead; run() turns it into abort(error.status). Error callbacks and
hooks on the abort path may raise HTTPError as well: it is honoured once
more, and a further failure is answered by the built-in callback with no
user code involved.

=============================================================================
PROCESS-WIDE vs PER-REQUEST STATE
=============================================================================

    Dispatcher (long-lived)              _Exchange (one per run())
    ───────────────────────              ─────────────────────────
    route table                          request, response
    before / after chains                status code (starts at 500)
    hooks, error callbacks               resolved route
    availability flag                    headers, redirect target
                                         in-middleware / terminated flags

set_route(), set_header() and redirect() called BEFORE run() are staged
and handed to the next exchange.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, NoReturn, Optional, Tuple, Union
import logging

from .config import DispatcherConfig
from .errors import ConfigurationError, DispatchError, HTTPError, MethodNotAllowed, RequestTerminated
from .hooks import Hook, HookRegistry
from .http.actions import Action, CallableAction, HandlerRef, as_action
from .http.request import Request
from .http.response import Response, is_empty_body, render_body
from .http.router import ANY_METHOD, MatchOutcome, Route, RouteTable, match
from .http.status_codes import HTTPStatus, reason_phrase
from .middleware.base import MiddlewareChain


logger = logging.getLogger(__name__)


def _default_error_callback(request: Request) -> str:
    """Render the reason phrase of the current status code."""
    return request.response_message


_NOOP_ACTION = CallableAction(lambda request: None)


@dataclass
class _Staged:
    """State that may be set before run() and is consumed by it."""

    route: Optional[Route] = None
    params: Dict[str, str] = field(default_factory=dict)
    headers: List[Tuple[str, str]] = field(default_factory=list)
    redirect_to: Optional[str] = None


@dataclass
class _Exchange(_Staged):
    """Everything that belongs to one run() and to nothing else."""

    request: Optional[Request] = None
    response: Response = field(default_factory=Response)
    code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    in_middleware: bool = False
    terminated: bool = False


class Dispatcher:
    """
    Route registry and request lifecycle driver.

    Usage:
        app = Dispatcher()

        @app.get("/users/{id}")
        def show_user(request):
            return {"id": request.param("id")}

        app.post("/users", "myapp.controllers.Users@create")
        app.set_error_callback(404, lambda request: "nothing here")

        response = app.run(Request("GET", "/users/42"))
        response.status   # 200
        response.body     # b'{"id": "42"}'
    """

    _SUPPORTED_VERBS = ("get", "post", "put", "patch", "delete", "head")

    def __init__(self, config: Optional[DispatcherConfig] = None):
        self.config = config or DispatcherConfig()
        self.config.validate()

        self._routes = RouteTable()
        self._before = MiddlewareChain("before")
        self._after = MiddlewareChain("after")
        self._hooks = HookRegistry()

        self._error_callbacks: Dict[int, Action] = {}
        self._default_error_callback: Action = CallableAction(_default_error_callback)

        self._available = self.config.start_available

        self._staged = _Staged()
        self._exchange: Optional[_Exchange] = None
        self._running = False

    # =========================================================================
    # CLASS-LEVEL INFORMATION
    # =========================================================================

    @classmethod
    def supported_verbs(cls) -> Tuple[str, ...]:
        """Verbs the dispatcher accepts, lowercase."""
        return cls._SUPPORTED_VERBS

    @classmethod
    def version(cls) -> str:
        from . import __version__
        return __version__

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================
    #
    # Every registration method works two ways:
    #
    #     app.get("/users", list_users)          # returns app, chainable
    #
    #     @app.get("/users")                     # decorator, returns the
    #     def list_users(request): ...           # function unchanged
    #
    # =========================================================================

    def get(self, uri: str, handler: Optional[HandlerRef] = None):
        return self._register("get", uri, handler)

    def post(self, uri: str, handler: Optional[HandlerRef] = None):
        return self._register("post", uri, handler)

    def put(self, uri: str, handler: Optional[HandlerRef] = None):
        return self._register("put", uri, handler)

    def patch(self, uri: str, handler: Optional[HandlerRef] = None):
        return self._register("patch", uri, handler)

    def delete(self, uri: str, handler: Optional[HandlerRef] = None):
        return self._register("delete", uri, handler)

    def head(self, uri: str, handler: Optional[HandlerRef] = None):
        return self._register("head", uri, handler)

    def any(self, uri: str, handler: Optional[HandlerRef] = None):
        """Register a route that accepts every verb."""
        return self._register(ANY_METHOD, uri, handler)

    def match(self, methods: Iterable[str], uri: str, handler: Optional[HandlerRef] = None):
        """
        Register a route for several verbs.

            app.match(["get", "post"], "/search", search)
        """
        methods = list(methods)
        for method in methods:
            if method != ANY_METHOD and method.lower() not in self._SUPPORTED_VERBS:
                raise ConfigurationError(
                    f"Unsupported verb {method!r}; expected one of {', '.join(self._SUPPORTED_VERBS)}"
                )
        return self._register(methods, uri, handler)

    def _register(self, methods: Union[str, List[str]], uri: str, handler: Optional[HandlerRef]):
        if handler is None:
            def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
                self._routes.register(uri, methods, func)
                return func
            return decorator

        self._routes.register(uri, methods, handler)
        return self

    def routes(self) -> List[Route]:
        """Registered routes in match-precedence order."""
        return self._routes.routes()

    def format_routes(self) -> str:
        return self._routes.format_routes()

    # =========================================================================
    # LIFECYCLE HOOKS
    # =========================================================================

    def on_create(self, callback: Optional[HandlerRef]) -> "Dispatcher":
        self._hooks.set(Hook.CREATE, callback)
        return self

    def on_destroy(self, callback: Optional[HandlerRef]) -> "Dispatcher":
        self._hooks.set(Hook.DESTROY, callback)
        return self

    def on_error(self, callback: Optional[HandlerRef]) -> "Dispatcher":
        self._hooks.set(Hook.ERROR, callback)
        return self

    def on_route_matched(self, callback: Optional[HandlerRef]) -> "Dispatcher":
        self._hooks.set(Hook.ROUTE_MATCHED, callback)
        return self

    def on_before_middleware(self, callback: Optional[HandlerRef]) -> "Dispatcher":
        self._hooks.set(Hook.BEFORE_MIDDLEWARE, callback)
        return self

    def on_middleware_execute(self, callback: Optional[HandlerRef]) -> "Dispatcher":
        """``callback(request, index)`` runs after every middleware entry."""
        self._hooks.set(Hook.MIDDLEWARE_EXECUTE, callback)
        return self

    def on_middleware_abort(self, callback: Optional[HandlerRef]) -> "Dispatcher":
        self._hooks.set(Hook.MIDDLEWARE_ABORT, callback)
        return self

    def on_before_action(self, callback: Optional[HandlerRef]) -> "Dispatcher":
        self._hooks.set(Hook.BEFORE_ACTION, callback)
        return self

    def on_after_action(self, callback: Optional[HandlerRef]) -> "Dispatcher":
        self._hooks.set(Hook.AFTER_ACTION, callback)
        return self

    def on_redirect(self, callback: Optional[HandlerRef]) -> "Dispatcher":
        self._hooks.set(Hook.REDIRECT, callback)
        return self

    def on_body_sent(self, callback: Optional[HandlerRef]) -> "Dispatcher":
        self._hooks.set(Hook.BODY_SENT, callback)
        return self

    @property
    def hooks(self) -> HookRegistry:
        return self._hooks

    # =========================================================================
    # ERROR CALLBACKS AND MIDDLEWARE
    # =========================================================================

    def set_error_callback(self, code: int, callback: HandlerRef) -> "Dispatcher":
        """
        Produce the body for ``abort(code)``.

        The callback receives the request; ``request.response_code`` is
        already set to ``code`` when it runs.
        """
        self._error_callbacks[int(code)] = as_action(callback)
        return self

    def set_default_error_callback(self, callback: HandlerRef) -> "Dispatcher":
        """Fallback for codes with no specific callback."""
        self._default_error_callback = as_action(callback)
        return self

    def middleware(self, entry: HandlerRef) -> "Dispatcher":
        """Append ``entry(request, next_index)`` to the before chain."""
        self._before.add(entry)
        return self

    def after_middleware(self, entry: HandlerRef) -> "Dispatcher":
        """Append ``entry(request, next_index)`` to the after chain."""
        self._after.add(entry)
        return self

    # =========================================================================
    # AVAILABILITY
    # =========================================================================

    def up(self) -> "Dispatcher":
        self._available = True
        logger.info("Dispatcher marked available")
        return self

    def down(self) -> "Dispatcher":
        """Every request answers 503 until up() is called."""
        self._available = False
        logger.info("Dispatcher marked unavailable")
        return self

    @property
    def is_available(self) -> bool:
        return self._available

    # =========================================================================
    # PER-REQUEST STATE
    # =========================================================================

    def _state(self) -> _Staged:
        if self._running and self._exchange is not None:
            return self._exchange
        return self._staged

    def set_header(self, key: str, value: str) -> "Dispatcher":
        """
        Record a response header.

        Headers are applied in the order recorded, and only when the
        request completes normally (not on the abort path).
        """
        self._state().headers.append((key, str(value)))
        return self

    def redirect(self, location: str) -> "Dispatcher":
        """Set the redirect target; the last call wins."""
        self._state().redirect_to = location
        return self

    def set_route(self, route: Union[Route, str], params: Optional[Mapping[str, str]] = None) -> "Dispatcher":
        """
        Pre-assign the route for the current (or next) request.

        A pre-assigned route is trusted: the matcher is skipped and no
        verb check is made against it. ``route`` may be a Route or the id
        returned at registration.
        """
        if isinstance(route, str):
            found = self._routes.get(route)
            if found is None:
                raise ConfigurationError(f"No route with id {route!r}")
            route = found

        state = self._state()
        state.route = route
        state.params = dict(params or {})
        return self

    @property
    def route(self) -> Optional[Route]:
        """
        The route of the current request.

        Between requests this is the staged route if one is set, otherwise
        the route the last request resolved to.
        """
        if not self._running and self._staged.route is not None:
            return self._staged.route
        return self._exchange.route if self._exchange else None

    @property
    def request(self) -> Optional[Request]:
        """The request being dispatched, or the last one dispatched."""
        return self._exchange.request if self._exchange else None

    @property
    def response_code(self) -> Optional[int]:
        if self._exchange is None:
            return None
        return int(self._exchange.code)

    @property
    def response_message(self) -> str:
        """Reason phrase for the current status code."""
        if self._exchange is None:
            return ""
        return reason_phrase(self._exchange.code)

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    def run(self, request: Request) -> Response:
        """
        Drive ``request`` through the lifecycle and return the Response.

        Request-outcome errors (404, 405, 503, 204, explicit aborts,
        HTTPError raised by handlers) end up in the returned Response.
        ConfigurationError and any other exception propagate.

        Raises:
            DispatchError: If called again while a request is running.
        """
        if self._running:
            raise DispatchError("run() is not re-entrant")

        staged, self._staged = self._staged, _Staged()
        exchange = _Exchange(
            route=staged.route,
            params=staged.params,
            headers=staged.headers,
            redirect_to=staged.redirect_to,
            request=request,
        )
        exchange.response.version = request.protocol or exchange.response.version

        self._exchange = exchange
        self._running = True
        request.bind(self)
        logger.debug(f"Dispatching {request.method} {request.uri}")

        try:
            try:
                self._lifecycle(exchange)
            except HTTPError as e:
                self._abort_for_error(exchange, e)
        except RequestTerminated as signal:
            logger.debug(f"Request terminated with {signal.status}")
        finally:
            self._running = False

        return exchange.response

    def _lifecycle(self, exchange: _Exchange) -> None:
        request = exchange.request

        # Created
        self._hooks.fire(Hook.CREATE, request)

        # Availability-Check
        if not self._available:
            self.abort(HTTPStatus.SERVICE_UNAVAILABLE)

        # Method-Validation
        if request.method.lower() not in self._SUPPORTED_VERBS:
            logger.info(f"Unsupported verb {request.method} for {request.uri}")
            self.abort(HTTPStatus.METHOD_NOT_ALLOWED)

        # Route-Resolution
        self._resolve_route(exchange)

        # Before-Middleware
        exchange.in_middleware = True
        self._hooks.fire(Hook.BEFORE_MIDDLEWARE, request)
        self._before.run(request, on_execute=self._middleware_executed)
        exchange.in_middleware = False

        # Action-Invocation
        body = self._invoke_action(exchange)
        if is_empty_body(body):
            self.abort(HTTPStatus.NO_CONTENT)

        # After-Action-Hook
        self._hooks.fire(Hook.AFTER_ACTION, request)

        # After-Middleware
        exchange.in_middleware = True
        self._after.run(request, on_execute=self._middleware_executed)
        exchange.in_middleware = False

        # Header-Finalization
        for key, value in exchange.headers:
            exchange.response.add_header(key, value)

        self._finish(exchange, body)

    # =========================================================================
    # LIFECYCLE STAGES
    # =========================================================================

    def _resolve_route(self, exchange: _Exchange) -> None:
        request = exchange.request

        if exchange.route is not None:
            logger.debug(f"Using pre-assigned route {exchange.route.pattern}")
            request.attach_params(exchange.params)
            return

        if len(self._routes) == 0:
            logger.info(f"No routes registered; {request.method} {request.uri} -> 404")
            self.abort(HTTPStatus.NOT_FOUND)

        result = match(request.method, request.uri, self._routes)

        if result.outcome is MatchOutcome.NOT_FOUND:
            logger.info(f"No route for {request.method} {request.uri} -> 404")
            self.abort(HTTPStatus.NOT_FOUND)

        if result.outcome is MatchOutcome.METHOD_NOT_ALLOWED:
            logger.info(
                f"{request.method} not allowed for {request.uri} "
                f"(allowed: {', '.join(result.allowed) or 'none'}) -> 405"
            )
            if result.allowed:
                exchange.response.add_header("Allow", ", ".join(result.allowed))
            self.abort(HTTPStatus.METHOD_NOT_ALLOWED)

        exchange.route = result.route
        exchange.params = result.params
        request.attach_params(result.params)
        logger.debug(f"Matched {request.uri} to {result.route.pattern} {result.params}")

        self._hooks.fire(Hook.ROUTE_MATCHED, request)

    def _middleware_executed(self, request: Request, index: int) -> None:
        self._hooks.fire(Hook.MIDDLEWARE_EXECUTE, request, index)

    def _invoke_action(self, exchange: _Exchange) -> Any:
        request = exchange.request
        exchange.code = HTTPStatus.OK
        self._hooks.fire(Hook.BEFORE_ACTION, request)

        action = self._routes.action_for(exchange.route)
        logger.debug(f"Invoking {action.name}")
        return action.invoke(request)

    def _finish(self, exchange: _Exchange, body: Any) -> NoReturn:
        """Redirect-Check, Body-Send, Terminate."""
        self._redirect_check(exchange)
        self._send_body(exchange, body)
        self._terminate(exchange)

    def _redirect_check(self, exchange: _Exchange) -> None:
        location = exchange.redirect_to
        if location is None:
            return

        self._hooks.fire(Hook.REDIRECT, exchange.request)

        code = int(exchange.code)
        if not (300 <= code < 400 or code == HTTPStatus.CREATED):
            code = HTTPStatus.FOUND

        response = exchange.response
        response.status = code
        response.redirect(location)
        response.add_header("Location", location)
        response.body = b""
        logger.debug(f"Redirecting to {location} with {code}")

        self._terminate(exchange)

    def _send_body(self, exchange: _Exchange, body: Any) -> None:
        self._hooks.fire(Hook.BODY_SENT, exchange.request)
        self._write_body(exchange, body)

    def _write_body(self, exchange: _Exchange, body: Any) -> None:
        data, content_type = render_body(
            body,
            charset=self.config.default_charset,
            pretty_json=self.config.json_pretty,
        )
        response = exchange.response
        response.status = int(exchange.code)
        response.body = data
        if content_type and not response.has_header("Content-Type"):
            response.add_header("Content-Type", content_type)

    def _terminate(self, exchange: _Exchange) -> NoReturn:
        exchange.terminated = True
        self._hooks.fire(Hook.DESTROY, exchange.request)
        raise RequestTerminated(exchange.response.status)

    # =========================================================================
    # ABORT
    # =========================================================================

    def abort(self, code: int) -> NoReturn:
        """
        End the current request with ``code``.

        Never returns. Inside run() the remaining lifecycle is skipped and
        run() returns the Response built here.

        Raises:
            DispatchError: If no request is being dispatched.
        """
        exchange = self._exchange
        if not self._running or exchange is None:
            raise DispatchError(f"abort({code}) called outside of run()")
        if exchange.terminated:
            raise RequestTerminated(exchange.response.status)

        code = int(code)
        request = exchange.request

        if code >= 500:
            logger.warning(f"Aborting {request.method} {request.uri} with {code}")
        else:
            logger.info(f"Aborting {request.method} {request.uri} with {code}")

        if exchange.in_middleware:
            exchange.in_middleware = False
            self._hooks.fire(Hook.MIDDLEWARE_ABORT, request)

        action = _NOOP_ACTION
        if code != HTTPStatus.OK:
            action = self._error_callbacks.get(code, self._default_error_callback)
            exchange.code = code
            self._hooks.fire(Hook.ERROR, request)

        exchange.code = code
        body = action.invoke(request)

        self._finish(exchange, body)

    def _abort_for_error(self, exchange: _Exchange, error: HTTPError) -> NoReturn:
        """Turn an HTTPError raised during run() into abort(error.status)."""
        for _ in range(2):
            if exchange.terminated:
                raise RequestTerminated(exchange.response.status)

            logger.debug(f"Converting {error!r} into abort({error.status})")
            if isinstance(error, MethodNotAllowed) and error.allowed:
                if not exchange.response.has_header("Allow"):
                    exchange.response.add_header("Allow", ", ".join(m.upper() for m in error.allowed))

            try:
                self.abort(error.status)
            except HTTPError as e:
                logger.warning(f"{e!r} raised while aborting with {error.status}")
                error = e

        self._abort_without_callbacks(exchange, error.status)

    def _abort_without_callbacks(self, exchange: _Exchange, code: int) -> NoReturn:
        # Last resort: no hooks, no user callbacks, no redirect
        exchange.code = code
        exchange.in_middleware = False
        self._write_body(exchange, _default_error_callback(exchange.request))
        exchange.terminated = True
        raise RequestTerminated(exchange.response.status)
