"""
=============================================================================
ROUTE TABLE AND PATTERN MATCHER
=============================================================================

Stores registered routes and finds the one an incoming request targets.

Patterns are slash-delimited segments. Each segment is either:

- a LITERAL:      users, api, v1          (case-insensitive equality)
- a PLACEHOLDER:  {id}, {slug}            (captures one non-empty segment)

=============================================================================
MATCHING ALGORITHM
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        MATCHING FLOW                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   GET /users/42                                                      │
    │        │                                                             │
    │        ▼                                                             │
    │   split_uri → ("users", "42")                                        │
    │        │                                                             │
    │        ▼                                                             │
    │   For every route, IN REGISTRATION ORDER:                            │
    │   ┌────────────────────────────────────────────────────────────┐    │
    │   │ #1 ANY  /users/me       ("users","me")   → "me"≠"42"  ✗     │    │
    │   │ #2 POST /users/{id}     ("users","{id}") → full match ✓     │    │
    │   │ #3 GET  /users/{id}     ("users","{id}") → full match ✓     │    │
    │   │ #4 GET  /users/{id}/x   3 segments       → count ≠ 2  ✗     │    │
    │   └────────────────────────────────────────────────────────────┘    │
    │        │                                                             │
    │        ▼                                                             │
    │   Full matches: [#2, #3]                                             │
    │   First accepting GET: #3   → FOUND, params = {"id": "42"}           │
    │                                                                      │
    │   (no full matches               → NOT_FOUND           → 404)       │
    │   (full matches, none accept GET → METHOD_NOT_ALLOWED  → 405)       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Precedence is registration order. It is NOT "most specific wins" and NOT
"last registered wins": register /users/me before /users/{id} if "me"
should be special.

=============================================================================
SEGMENT RULES
=============================================================================

1. Both URIs lose exactly one leading and one trailing slash, then split
   on "/". A lone "/" is the empty tuple.

       "/users/42/" → ("users", "42")
       "/"          → ()
       "/a//b"      → ("a", "", "b")

2. Segment counts must be equal. "/users/{id}" never matches "/users".

3. Literal equality is checked first (case-insensitive). Otherwise a
   placeholder captures the request segment, but only if it is non-empty:
   "/a//b" does NOT satisfy "/a/{x}/b".

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Union
import logging
import uuid

from ..errors import ConfigurationError
from .actions import Action, HandlerRef, as_action, is_inline


logger = logging.getLogger(__name__)


# Wildcard method list: the route accepts any verb
ANY_METHOD = "*"

PLACEHOLDER_OPEN = "{"
PLACEHOLDER_CLOSE = "}"

MethodSpec = Union[str, Iterable[str], None]


# =============================================================================
# SEGMENT HELPERS
# =============================================================================

def split_uri(uri: str) -> tuple[str, ...]:
    """
    Split a URI or pattern into segments.

    Trims exactly one leading and one trailing slash before splitting,
    so interior empty segments (double slashes) survive.

    Examples:
        split_uri("/")            → ()
        split_uri("/users/42")    → ("users", "42")
        split_uri("users/42/")    → ("users", "42")
        split_uri("/a//b")        → ("a", "", "b")
    """
    if uri.endswith("/"):
        uri = uri[:-1]
    if uri.startswith("/"):
        uri = uri[1:]
    if not uri:
        return ()
    return tuple(uri.split("/"))


def placeholder_name(segment: str) -> Optional[str]:
    """Return the name inside ``{name}``, or None for a literal segment."""
    if (
        len(segment) >= 2
        and segment.startswith(PLACEHOLDER_OPEN)
        and segment.endswith(PLACEHOLDER_CLOSE)
    ):
        return segment[1:-1]
    return None


def normalize_methods(methods: MethodSpec) -> Optional[FrozenSet[str]]:
    """
    Turn a method list into a frozenset of lowercase verbs.

    ``None`` and ``"*"`` mean any verb and normalize to ``None``.
    """
    if methods is None:
        return None
    if isinstance(methods, str):
        if methods == ANY_METHOD:
            return None
        return frozenset({methods.lower()})

    verbs = [m for m in methods]
    if ANY_METHOD in verbs:
        return None
    if not verbs:
        raise ConfigurationError("A route needs at least one method")
    return frozenset(m.lower() for m in verbs)


# =============================================================================
# DATA TYPES
# =============================================================================

@dataclass(frozen=True)
class Route:
    """
    A registered route. Immutable once registered.

    Captured parameters are NOT stored here: they are match-scoped and
    live on the RouteMatch produced for one request.

    Attributes:
        id:       Unique opaque token generated at registration
        pattern:  The pattern as registered, e.g. "/users/{id}"
        methods:  Lowercase verbs, or None for any verb
        action:   Named handler reference; None for inline callables,
                  which the RouteTable keeps keyed by ``id``
        inline:   True when the handler is an inline callable
        segments: Pre-split pattern segments
    """

    id: str
    pattern: str
    methods: Optional[FrozenSet[str]]
    action: Optional[Action] = field(default=None, repr=False)
    inline: bool = False
    segments: tuple[str, ...] = field(default=(), repr=False)

    def accepts(self, method: str) -> bool:
        """Check whether this route accepts ``method`` (case-insensitive)."""
        return self.methods is None or method.lower() in self.methods

    @property
    def method_label(self) -> str:
        """Printable verb list: "GET", "GET|POST" or "ANY"."""
        if self.methods is None:
            return "ANY"
        return "|".join(sorted(m.upper() for m in self.methods))


@dataclass
class RouteMatch:
    """A resolved route plus the parameters captured for this request."""

    route: Route
    params: Dict[str, str] = field(default_factory=dict)


class MatchOutcome(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"


@dataclass
class MatchResult:
    """
    Result of running the matcher.

    ``match`` is set only for FOUND. ``allowed`` lists the verbs of every
    full URI match, which is what a 405 response wants to report.
    """

    outcome: MatchOutcome
    match: Optional[RouteMatch] = None
    allowed: List[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.outcome is MatchOutcome.FOUND

    @property
    def status(self) -> int:
        """Status code an unsuccessful result maps to (200 when found)."""
        if self.outcome is MatchOutcome.NOT_FOUND:
            return 404
        if self.outcome is MatchOutcome.METHOD_NOT_ALLOWED:
            return 405
        return 200

    @property
    def route(self) -> Optional[Route]:
        return self.match.route if self.match else None

    @property
    def params(self) -> Dict[str, str]:
        return self.match.params if self.match else {}


# =============================================================================
# ROUTE TABLE
# =============================================================================

class RouteTable:
    """
    Ordered, append-only collection of routes.

    Registration order is match precedence, so there is no way to remove
    or reorder entries.

    Inline callables are kept in a side table keyed by route id; named
    references sit on the Route itself:

        ┌──────────────────────────────┐     ┌──────────────────────────┐
        │ _routes                      │     │ _inline_actions          │
        │  #1 /users      inline=True ─┼────►│  "9f2c…" → list_users    │
        │  #2 /users/{id} action=Users@show  │                          │
        └──────────────────────────────┘     └──────────────────────────┘
    """

    def __init__(self):
        self._routes: List[Route] = []
        self._by_id: Dict[str, Route] = {}
        self._inline_actions: Dict[str, Action] = {}

    def register(self, pattern: str, methods: MethodSpec, handler: HandlerRef) -> str:
        """
        Append a route and return its identifier.

        Args:
            pattern: URI pattern, e.g. "/users/{id}"
            methods: A verb, a list of verbs, or "*" / None for any verb
            handler: Inline callable or named reference (see as_action)

        Returns:
            The new route's unique id
        """
        action = as_action(handler)
        inline = is_inline(handler)
        route_id = uuid.uuid4().hex
        while route_id in self._by_id:
            route_id = uuid.uuid4().hex

        route = Route(
            id=route_id,
            pattern=pattern,
            methods=normalize_methods(methods),
            action=None if inline else action,
            inline=inline,
            segments=split_uri(pattern),
        )

        if inline:
            self._inline_actions[route_id] = action

        self._routes.append(route)
        self._by_id[route_id] = route
        logger.debug(f"Registered route {route.method_label:8} {pattern} ({action.name})")
        return route_id

    def action_for(self, route: Route) -> Action:
        """
        Get the action to invoke for ``route``.

        Raises:
            ConfigurationError: If an inline route has no stored callable
                (e.g. a Route built by hand and pre-assigned).
        """
        if route.inline:
            action = self._inline_actions.get(route.id)
            if action is None:
                raise ConfigurationError(f"No callable stored for route {route.id}")
            return action
        if route.action is None:
            raise ConfigurationError(f"Route {route.pattern} has no action")
        return route.action

    def get(self, route_id: str) -> Optional[Route]:
        """Look a route up by id."""
        return self._by_id.get(route_id)

    def routes(self) -> List[Route]:
        """Snapshot of all routes in registration order."""
        return list(self._routes)

    def format_routes(self) -> str:
        """
        Render the table for debugging:

              GET      /users
              ANY      /health
              GET|POST /users/{id}
        """
        lines = ["Registered Routes:", "-" * 60]
        for route in self._routes:
            lines.append(f"  {route.method_label:8} {route.pattern}")
        lines.append("-" * 60)
        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self._routes)

    def __iter__(self) -> Iterator[Route]:
        return iter(self._routes)


# =============================================================================
# PATTERN MATCHER
# =============================================================================

def match_segments(route_segments: tuple[str, ...], request_segments: tuple[str, ...]) -> Optional[Dict[str, str]]:
    """
    Match one route against the request segments.

    Returns the captured parameters on a full match, or None.
    """
    if len(route_segments) != len(request_segments):
        return None

    params: Dict[str, str] = {}
    matched = 0

    for pattern_segment, value in zip(route_segments, request_segments):
        if pattern_segment.lower() == value.lower():
            matched += 1
            continue

        name = placeholder_name(pattern_segment)
        if name is not None and value != "":
            params[name] = value
            matched += 1

    if matched != len(route_segments):
        return None
    return params


def match(method: str, uri: str, routes: Iterable[Route]) -> MatchResult:
    """
    Resolve ``method`` + ``uri`` against ``routes``.

    Pure function: it reads the routes and builds a fresh result (with a
    fresh params dict) on every call.

    Args:
        method: Request verb, any case
        uri:    Request path without query string
        routes: Routes in registration order (a RouteTable works)

    Returns:
        MatchResult with outcome FOUND, NOT_FOUND or METHOD_NOT_ALLOWED
    """
    request_segments = split_uri(uri)
    full_matches: List[RouteMatch] = []

    for route in routes:
        params = match_segments(route.segments, request_segments)
        if params is not None:
            full_matches.append(RouteMatch(route=route, params=params))

    if not full_matches:
        return MatchResult(outcome=MatchOutcome.NOT_FOUND)

    for candidate in full_matches:
        if candidate.route.accepts(method):
            return MatchResult(outcome=MatchOutcome.FOUND, match=candidate)

    allowed = sorted({m.upper() for c in full_matches for m in (c.route.methods or ())})
    return MatchResult(outcome=MatchOutcome.METHOD_NOT_ALLOWED, allowed=allowed)

