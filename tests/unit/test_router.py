"""
Unit tests for the route table and pattern matcher.
"""

import pytest

from httpdispatch.errors import ConfigurationError
from httpdispatch.http.actions import CallableAction, NamedAction
from httpdispatch.http.router import (
    MatchOutcome,
    Route,
    RouteTable,
    match,
    match_segments,
    normalize_methods,
    placeholder_name,
    split_uri,
)


def dummy_handler(request):
    """Dummy handler for testing."""
    return "ok"


def make_table(*definitions) -> RouteTable:
    """Helper: RouteTable from (pattern, methods) pairs."""
    table = RouteTable()
    for pattern, methods in definitions:
        table.register(pattern, methods, dummy_handler)
    return table


class TestSplitUri:
    """Tests for URI segmentation."""

    def test_root_is_empty(self):
        """A lone slash has no segments."""
        assert split_uri("/") == ()
        assert split_uri("") == ()

    def test_trims_one_slash_each_side(self):
        """One leading and one trailing slash are removed."""
        assert split_uri("/users/42") == ("users", "42")
        assert split_uri("/users/42/") == ("users", "42")
        assert split_uri("users/42") == ("users", "42")

    def test_interior_empty_segments_survive(self):
        """Double slashes produce empty segments."""
        assert split_uri("/a//b") == ("a", "", "b")

    def test_only_one_trailing_slash_trimmed(self):
        """A second trailing slash becomes an empty segment."""
        assert split_uri("/a//") == ("a", "")


class TestPlaceholders:
    """Tests for placeholder detection."""

    def test_placeholder_name(self):
        """Braces mark a placeholder."""
        assert placeholder_name("{id}") == "id"
        assert placeholder_name("{user_id}") == "user_id"

    def test_literal_is_not_placeholder(self):
        """Segments without both braces are literals."""
        assert placeholder_name("users") is None
        assert placeholder_name("{id") is None
        assert placeholder_name("id}") is None
        assert placeholder_name("{") is None


class TestNormalizeMethods:
    """Tests for method list normalization."""

    def test_wildcard(self):
        """None and '*' mean any verb."""
        assert normalize_methods(None) is None
        assert normalize_methods("*") is None
        assert normalize_methods(["get", "*"]) is None

    def test_single_and_list(self):
        """Verbs are lowercased into a frozenset."""
        assert normalize_methods("GET") == frozenset({"get"})
        assert normalize_methods(["Get", "POST"]) == frozenset({"get", "post"})

    def test_empty_list_rejected(self):
        """A route with no verbs is a configuration error."""
        with pytest.raises(ConfigurationError):
            normalize_methods([])


class TestRouteTable:
    """Tests for RouteTable."""

    def test_register_returns_unique_ids(self):
        """Each registration gets its own id."""
        table = RouteTable()
        first = table.register("/users", "get", dummy_handler)
        second = table.register("/users", "get", dummy_handler)

        assert first != second
        assert len(table) == 2
        assert table.get(first).pattern == "/users"

    def test_registration_order_preserved(self):
        """Routes iterate in the order they were registered."""
        table = make_table(("/b", "get"), ("/a", "get"), ("/c", "get"))
        assert [route.pattern for route in table] == ["/b", "/a", "/c"]

    def test_inline_handler_kept_out_of_route(self):
        """Inline callables live in the side table, keyed by route id."""
        table = RouteTable()
        route_id = table.register("/users", "get", dummy_handler)
        route = table.get(route_id)

        assert route.inline is True
        assert route.action is None
        action = table.action_for(route)
        assert isinstance(action, CallableAction)
        assert action.invoke(None) == "ok"

    def test_named_handler_stored_on_route(self):
        """Named references are carried by the Route itself."""
        table = RouteTable()
        route = table.get(table.register("/users", "get", "myapp.controllers.Users@index"))

        assert route.inline is False
        assert isinstance(route.action, NamedAction)
        assert table.action_for(route) is route.action

    def test_action_for_unknown_inline_route(self):
        """A hand-built inline route has no stored callable."""
        table = RouteTable()
        route = Route(id="x", pattern="/", methods=None, inline=True)

        with pytest.raises(ConfigurationError):
            table.action_for(route)

    def test_format_routes(self):
        """Route listing shows verbs and patterns."""
        table = make_table(("/users", "get"), ("/health", "*"), ("/users/{id}", ["get", "post"]))
        listing = table.format_routes()

        assert "GET      /users" in listing
        assert "ANY      /health" in listing
        assert "GET|POST /users/{id}" in listing

    def test_route_accepts(self):
        """Method checks are case-insensitive; None accepts everything."""
        table = make_table(("/a", ["get", "post"]), ("/b", "*"))
        limited, anything = table.routes()

        assert limited.accepts("GET")
        assert limited.accepts("post")
        assert not limited.accepts("DELETE")
        assert anything.accepts("PATCH")


class TestMatchSegments:
    """Tests for single-route segment matching."""

    def test_literal_match_has_no_params(self):
        """Exact literal match captures nothing."""
        assert match_segments(("users", "me"), ("users", "me")) == {}

    def test_literal_case_insensitive(self):
        """Literal comparison ignores case."""
        assert match_segments(("Users",), ("users",)) == {}

    def test_placeholder_captures_verbatim(self):
        """Captured values keep their original case."""
        assert match_segments(("users", "{id}"), ("USERS", "AbC")) == {"id": "AbC"}

    def test_count_mismatch(self):
        """Different segment counts never match."""
        assert match_segments(("users", "{id}"), ("users",)) is None
        assert match_segments(("users",), ("users", "42")) is None

    def test_empty_segment_does_not_fill_placeholder(self):
        """A placeholder needs a non-empty value."""
        assert match_segments(("a", "{x}", "b"), ("a", "", "b")) is None

    def test_literal_checked_before_placeholder(self):
        """A request segment spelled like the placeholder is a literal hit."""
        assert match_segments(("{id}",), ("{id}",)) == {}


class TestMatch:
    """Tests for the full matcher."""

    def test_exact_literal(self):
        """A literal URI resolves with an empty parameter map."""
        table = make_table(("/users", "get"), ("/posts", "get"))
        result = match("GET", "/posts", table)

        assert result.outcome is MatchOutcome.FOUND
        assert result.route.pattern == "/posts"
        assert result.params == {}

    def test_placeholder(self):
        """GET /users/42 against /users/{id} captures id."""
        table = make_table(("/users/{id}", "get"))
        result = match("get", "/users/42", table)

        assert result.found
        assert result.params == {"id": "42"}

    def test_extra_segment_is_404(self):
        """GET /users/42/x has no route."""
        table = make_table(("/users/{id}", "get"))
        result = match("GET", "/users/42/x", table)

        assert result.outcome is MatchOutcome.NOT_FOUND
        assert result.status == 404

    def test_wrong_method_is_405(self):
        """POST /users/42 with only a GET route is method-not-allowed."""
        table = make_table(("/users/{id}", "get"))
        result = match("POST", "/users/42", table)

        assert result.outcome is MatchOutcome.METHOD_NOT_ALLOWED
        assert result.status == 405
        assert result.allowed == ["GET"]
        assert result.route is None

    def test_first_registered_wins(self):
        """Registration order beats specificity."""
        table = make_table(("/users/{id}", "get"), ("/users/me", "get"))
        result = match("GET", "/users/me", table)

        assert result.route.pattern == "/users/{id}"
        assert result.params == {"id": "me"}

    def test_first_accepting_method_wins(self):
        """Among full matches, the first accepting the verb is chosen."""
        table = make_table(
            ("/users/{id}", "post"),
            ("/users/{id}", "get"),
            ("/users/{name}", "get"),
        )
        result = match("GET", "/users/7", table)

        assert result.route is table.routes()[1]
        assert result.params == {"id": "7"}

    def test_wildcard_route_accepts_any_verb(self):
        """A '*' route matches every method."""
        table = make_table(("/echo", "*"))
        assert match("DELETE", "/echo", table).found

    def test_root(self):
        """'/' matches the root pattern."""
        table = make_table(("/", "get"))
        assert match("GET", "/", table).found

    def test_trailing_slash_equivalent(self):
        """/users/ and /users resolve to the same route."""
        table = make_table(("/users", "get"))
        assert match("GET", "/users/", table).found

    def test_fresh_params_per_call(self):
        """Each match builds a new parameter map."""
        table = make_table(("/users/{id}", "get"))
        first = match("GET", "/users/1", table)
        second = match("GET", "/users/2", table)

        assert first.params == {"id": "1"}
        assert second.params == {"id": "2"}

    def test_empty_table(self):
        """No routes means no match."""
        assert match("GET", "/", []).outcome is MatchOutcome.NOT_FOUND
