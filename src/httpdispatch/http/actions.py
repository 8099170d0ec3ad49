"""
=============================================================================
ACTION INVOKER
=============================================================================

Every piece of user code the dispatcher calls is wrapped in an Action:
route handlers, middleware entries, hook callbacks and error callbacks.

=============================================================================
TWO KINDS OF HANDLER REFERENCE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      HANDLER REFERENCES                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   INLINE CALLABLE                    NAMED REFERENCE                 │
    │   ───────────────                    ───────────────                 │
    │   def show(request): ...             "app.controllers.Users@show"    │
    │   lambda request: "hi"               (UsersController, "show")       │
    │                                                                      │
    │   invoke(request)                    invoke(request)                 │
    │     └── show(request)                  ├── obj = Users(request)      │
    │                                        └── obj.show(request)         │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

A named reference is resolved at invocation time, not at registration.
Registering "pkg.Missing@show" succeeds; dispatching to it raises
ConfigurationError. That error is fatal and is never mapped to a status.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Union
import importlib
import logging

from ..errors import ConfigurationError


logger = logging.getLogger(__name__)


# Separator between class path and method name in string references
METHOD_SEPARATOR = "@"


class Action(ABC):
    """Something the dispatcher can invoke with positional arguments."""

    @abstractmethod
    def invoke(self, *arguments: Any) -> Any:
        """Run the action and return its result (a body, or None)."""

    def __call__(self, *arguments: Any) -> Any:
        return self.invoke(*arguments)

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for logs and route listings."""


class CallableAction(Action):
    """An inline callable, invoked directly with the arguments."""

    def __init__(self, func: Callable[..., Any]):
        self.func = func

    def invoke(self, *arguments: Any) -> Any:
        return self.func(*arguments)

    @property
    def name(self) -> str:
        return getattr(self.func, "__qualname__", None) or repr(self.func)

    def __repr__(self) -> str:
        return f"CallableAction({self.name})"


class NamedAction(Action):
    """
    A "type + method" reference.

    ``type_ref`` is either a class or a dotted import path such as
    ``"myapp.controllers.UserController"``. On invoke the class is
    constructed with the arguments and ``method_name`` is called on the
    instance with the same arguments:

        NamedAction("myapp.controllers.UserController", "show").invoke(request)

        # is equivalent to

        UserController(request).show(request)
    """

    def __init__(self, type_ref: Union[str, type], method_name: str):
        if not method_name:
            raise ConfigurationError(f"Named action for {type_ref!r} has no method name")
        self.type_ref = type_ref
        self.method_name = method_name

    @classmethod
    def parse(cls, reference: str) -> "NamedAction":
        """
        Build a NamedAction from ``"package.module.Class@method"``.

        Raises:
            ConfigurationError: If the string has no ``@`` separator.
        """
        type_path, sep, method_name = reference.rpartition(METHOD_SEPARATOR)
        if not sep or not type_path or not method_name:
            raise ConfigurationError(
                f"Invalid handler reference {reference!r}: "
                f"expected 'module.Class{METHOD_SEPARATOR}method'"
            )
        return cls(type_path, method_name)

    def resolve_type(self) -> type:
        """
        Import and return the referenced class.

        Raises:
            ConfigurationError: If the module or class cannot be found.
        """
        if isinstance(self.type_ref, type):
            return self.type_ref

        module_path, _, class_name = self.type_ref.rpartition(".")
        if not module_path:
            raise ConfigurationError(
                f"Handler type {self.type_ref!r} must be a dotted path 'module.Class'"
            )

        try:
            module = importlib.import_module(module_path)
        except ImportError as e:
            raise ConfigurationError(f"Cannot import handler module {module_path!r}: {e}") from e

        handler_type = getattr(module, class_name, None)
        if not isinstance(handler_type, type):
            raise ConfigurationError(f"Handler type {self.type_ref!r} not found")
        return handler_type

    def invoke(self, *arguments: Any) -> Any:
        handler_type = self.resolve_type()
        instance = handler_type(*arguments)

        method = getattr(instance, self.method_name, None)
        if not callable(method):
            raise ConfigurationError(
                f"Handler method {self.method_name!r} not found on {handler_type.__name__}"
            )

        logger.debug(f"Invoking {handler_type.__name__}.{self.method_name}")
        return method(*arguments)

    @property
    def name(self) -> str:
        type_name = (
            self.type_ref.__qualname__ if isinstance(self.type_ref, type) else self.type_ref
        )
        return f"{type_name}{METHOD_SEPARATOR}{self.method_name}"

    def __repr__(self) -> str:
        return f"NamedAction({self.name})"


# Anything accepted where a handler is expected
HandlerRef = Union[Action, Callable[..., Any], str, tuple]


def is_inline(handler: HandlerRef) -> bool:
    """True for handlers that are plain callables rather than named references."""
    if isinstance(handler, (NamedAction, str, tuple)):
        return False
    if isinstance(handler, type):
        return False
    return isinstance(handler, CallableAction) or callable(handler)


def as_action(handler: HandlerRef) -> Action:
    """
    Normalize any handler reference into an Action.

    Accepts:
        - an Action              → returned unchanged
        - a callable             → CallableAction
        - "module.Class@method"  → NamedAction
        - (Class, "method")      → NamedAction
        - ("module.Class", "method") → NamedAction

    A bare class is rejected: without a method name there is nothing to
    call on the instance.

    Raises:
        ConfigurationError: If the reference has none of these shapes.
    """
    if isinstance(handler, Action):
        return handler

    if isinstance(handler, str):
        return NamedAction.parse(handler)

    if isinstance(handler, tuple):
        if len(handler) != 2:
            raise ConfigurationError(f"Handler tuple must be (type, method), got {handler!r}")
        type_ref, method_name = handler
        return NamedAction(type_ref, method_name)

    if isinstance(handler, type):
        raise ConfigurationError(
            f"Handler class {handler.__name__} needs a method: use ({handler.__name__}, 'method')"
        )

    if callable(handler):
        return CallableAction(handler)

    raise ConfigurationError(f"Unsupported handler reference: {handler!r}")
