"""
pytest configuration and fixtures.
"""

from typing import Any, Callable, List, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from httpdispatch import Dispatcher, DispatcherConfig, Hook
from httpdispatch.http import Request


def build_request(method: str = "GET", uri: str = "/", **kwargs: Any) -> Request:
    """Create a request the way a host would hand it over."""
    return Request(raw_method=method, raw_uri=uri, **kwargs)


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """Factory for requests: make_request("POST", "/users", form={...})."""
    return build_request


@pytest.fixture
def config() -> DispatcherConfig:
    """Default test configuration."""
    return DispatcherConfig(log_level="DEBUG")


@pytest.fixture
def dispatcher(config: DispatcherConfig) -> Dispatcher:
    """A fresh dispatcher with no routes."""
    return Dispatcher(config)


class HookRecorder:
    """Registers a callback on every hook and records the firing order."""

    def __init__(self, dispatcher: Dispatcher):
        self.events: List[Tuple[Any, ...]] = []
        for hook in Hook:
            dispatcher.hooks.set(hook, self._recorder(hook))

    def _recorder(self, hook: Hook) -> Callable[..., None]:
        def record(request: Request, *extra: Any) -> None:
            self.events.append((hook.value,) + extra)
        return record

    @property
    def names(self) -> List[str]:
        return [event[0] for event in self.events]

    def fired(self, name: str) -> bool:
        return name in self.names


@pytest.fixture
def recorder(dispatcher: Dispatcher) -> HookRecorder:
    """Record every hook the dispatcher fires."""
    return HookRecorder(dispatcher)
