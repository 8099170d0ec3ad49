"""
=============================================================================
MIDDLEWARE CHAIN
=============================================================================

An ordered, append-only list of callables run around the action.

The dispatcher owns two chains, BEFORE and AFTER:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    MIDDLEWARE EXECUTION ORDER                       │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   BEFORE chain              ACTION             AFTER chain           │
    │   ┌─────┐ ┌─────┐ ┌─────┐   ┌────────┐   ┌─────┐ ┌─────┐             │
    │   │ mw0 │→│ mw1 │→│ mw2 │ → │ handler│ → │ mw0 │→│ mw1 │             │
    │   └──┬──┘ └──┬──┘ └──┬──┘   └────────┘   └──┬──┘ └──┬──┘             │
    │      ▼       ▼       ▼                      ▼       ▼                │
    │   execute execute execute                execute execute             │
    │   hook(0) hook(1) hook(2)                hook(0) hook(1)             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
NOT A CHAIN OF RESPONSIBILITY
=============================================================================

Each entry is called as ``entry(request, next_index)`` and every entry
runs, one after another, whatever the previous entry did. There is no
``next()`` to forget to call and nothing to short-circuit with a return
value.

The one way to stop a chain early is to abort the request:

    def require_token(request, next_index):
        if not request.get("token"):
            dispatcher.abort(499)     # never returns; later entries skipped

=============================================================================
"""

from typing import Any, Callable, Iterator, List, Optional
import logging

from ..http.actions import Action, HandlerRef, as_action


logger = logging.getLogger(__name__)


# Called after every entry with (request, index)
ExecuteCallback = Callable[[Any, int], None]


class MiddlewareChain:
    """
    Append-only, ordered middleware sequence.

    Entries are anything ``as_action`` accepts: a function, an Action, a
    ``"module.Class@method"`` string or a ``(Class, "method")`` tuple.

    Usage:
        chain = MiddlewareChain("before")
        chain.add(load_session).add(check_token)
        chain.run(request, on_execute=lambda req, i: print("ran", i))
    """

    def __init__(self, name: str = "middleware"):
        self.name = name
        self._entries: List[Action] = []

    def add(self, entry: HandlerRef) -> "MiddlewareChain":
        """
        Append a middleware entry.

        Returns:
            Self for method chaining
        """
        action = as_action(entry)
        self._entries.append(action)
        logger.debug(f"Added {self.name} middleware #{len(self._entries) - 1}: {action.name}")
        return self

    def use(self, *entries: HandlerRef) -> "MiddlewareChain":
        """Append several entries at once, in the order given."""
        for entry in entries:
            self.add(entry)
        return self

    def run(self, request: Any, on_execute: Optional[ExecuteCallback] = None) -> None:
        """
        Run every entry in registration order.

        Each entry receives the request and the index of the entry that
        follows it. ``on_execute`` is called after each entry with the
        request and that entry's own index.
        """
        for index, entry in enumerate(self._entries):
            entry.invoke(request, index + 1)
            if on_execute is not None:
                on_execute(request, index)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Action]:
        return iter(self._entries)

    def __repr__(self) -> str:
        return f"MiddlewareChain({self.name!r}, entries={len(self._entries)})"
