"""
=============================================================================
LIFECYCLE HOOKS
=============================================================================

Named extension points fired by the dispatcher as a request moves through
its lifecycle.

=============================================================================
WHERE EACH HOOK FIRES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    REQUEST LIFECYCLE + HOOKS                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   run(request)                                                       │
    │     ├── oncreate                 (request)                           │
    │     ├── availability / method checks                                 │
    │     ├── route resolution                                             │
    │     │     └── onroutematched     (request)                           │
    │     ├── onbeforemiddleware       (request)                           │
    │     ├── before middleware                                            │
    │     │     └── onmiddlewareexecute (request, index)   × each entry    │
    │     ├── onbeforeaction           (request)                           │
    │     ├── action                                                       │
    │     ├── onafteraction            (request)                           │
    │     ├── after middleware                                             │
    │     │     └── onmiddlewareexecute (request, index)   × each entry    │
    │     ├── headers applied                                              │
    │     ├── onredirect               (request)   if a redirect is set    │
    │     ├── onbodysent               (request)   otherwise               │
    │     └── ondestroy                (request)                           │
    │                                                                      │
    │   abort(code), from anywhere:                                        │
    │     ├── onmiddlewareabort        (request)   if inside a chain       │
    │     ├── onerror                  (request)   if code != 200          │
    │     └── redirect / body / ondestroy as above                         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ONE SLOT PER HOOK
=============================================================================

Each hook holds AT MOST ONE callback. Setting a hook again replaces the
previous callback; it does not add a second subscriber:

    registry.set(Hook.CREATE, first)
    registry.set(Hook.CREATE, second)
    registry.fire(Hook.CREATE, request)   # only `second` runs

=============================================================================
"""

from enum import Enum
from typing import Any, Dict, Optional, Union
import logging

from .http.actions import Action, HandlerRef, as_action


logger = logging.getLogger(__name__)


class Hook(Enum):
    """The fixed set of lifecycle points. Values are the canonical names."""

    CREATE = "oncreate"
    BEFORE_MIDDLEWARE = "onbeforemiddleware"
    MIDDLEWARE_EXECUTE = "onmiddlewareexecute"
    MIDDLEWARE_ABORT = "onmiddlewareabort"
    BEFORE_ACTION = "onbeforeaction"
    AFTER_ACTION = "onafteraction"
    REDIRECT = "onredirect"
    BODY_SENT = "onbodysent"
    DESTROY = "ondestroy"
    ERROR = "onerror"
    ROUTE_MATCHED = "onroutematched"

    @classmethod
    def lookup(cls, hook: Union["Hook", str]) -> "Hook":
        """
        Accept a Hook or its name ("oncreate", "on_create", "CREATE").

        Raises:
            KeyError: For a name that is not a lifecycle point.
        """
        if isinstance(hook, cls):
            return hook

        key = str(hook).strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower(), "on_" + member.name.lower()):
                return member
            if key.replace("_", "") == member.value:
                return member
        raise KeyError(f"Unknown lifecycle hook: {hook!r}")


class HookRegistry:
    """
    Fixed-size table of hook callbacks, one slot per Hook member.

    Usage:
        hooks = HookRegistry()
        hooks.set(Hook.ROUTE_MATCHED, lambda request: audit(request))
        hooks.fire(Hook.ROUTE_MATCHED, request)
    """

    def __init__(self):
        self._slots: Dict[Hook, Optional[Action]] = {hook: None for hook in Hook}

    def set(self, hook: Union[Hook, str], callback: Optional[HandlerRef]) -> "HookRegistry":
        """
        Put ``callback`` in the slot for ``hook``, replacing any previous one.

        Passing None empties the slot.
        """
        member = Hook.lookup(hook)
        self._slots[member] = as_action(callback) if callback is not None else None
        logger.debug(f"Hook {member.value} {'set' if callback is not None else 'cleared'}")
        return self

    def get(self, hook: Union[Hook, str]) -> Optional[Action]:
        return self._slots[Hook.lookup(hook)]

    def is_set(self, hook: Union[Hook, str]) -> bool:
        return self.get(hook) is not None

    def fire(self, hook: Union[Hook, str], *arguments: Any) -> None:
        """Invoke the callback for ``hook``; no-op when the slot is empty."""
        callback = self._slots[Hook.lookup(hook)]
        if callback is None:
            return
        callback.invoke(*arguments)

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, hook: object) -> bool:
        try:
            return self.is_set(hook)  # type: ignore[arg-type]
        except KeyError:
            return False
