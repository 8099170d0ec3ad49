"""
Unit tests for lifecycle hooks.
"""

import pytest

from httpdispatch.hooks import Hook, HookRegistry


class TestHookLookup:
    """Tests for Hook.lookup name resolution."""

    def test_member_passthrough(self):
        """A Hook member resolves to itself."""
        assert Hook.lookup(Hook.ERROR) is Hook.ERROR

    def test_canonical_value(self):
        """Canonical names resolve."""
        assert Hook.lookup("oncreate") is Hook.CREATE
        assert Hook.lookup("onroutematched") is Hook.ROUTE_MATCHED

    def test_member_name_and_snake_case(self):
        """Enum names and on_* spellings resolve too."""
        assert Hook.lookup("BODY_SENT") is Hook.BODY_SENT
        assert Hook.lookup("on_before_action") is Hook.BEFORE_ACTION
        assert Hook.lookup("on_middleware_execute") is Hook.MIDDLEWARE_EXECUTE

    def test_unknown(self):
        """Unknown names raise KeyError."""
        with pytest.raises(KeyError):
            Hook.lookup("onexplode")

    def test_fixed_set(self):
        """There are exactly eleven lifecycle points."""
        assert len(list(Hook)) == 11


class TestHookRegistry:
    """Tests for HookRegistry."""

    def test_one_slot_per_hook(self):
        """The registry is sized by the enum, all slots empty."""
        hooks = HookRegistry()
        assert len(hooks) == len(list(Hook))
        assert not any(hooks.is_set(hook) for hook in Hook)

    def test_fire_empty_slot_is_noop(self):
        """Firing an unset hook does nothing."""
        HookRegistry().fire(Hook.DESTROY, "request")

    def test_fire_passes_arguments(self):
        """The callback gets the fired arguments."""
        seen = []
        hooks = HookRegistry()
        hooks.set(Hook.MIDDLEWARE_EXECUTE, lambda request, index: seen.append((request, index)))

        hooks.fire(Hook.MIDDLEWARE_EXECUTE, "req", 2)

        assert seen == [("req", 2)]

    def test_last_write_wins(self):
        """Setting a hook again replaces the previous callback."""
        seen = []
        hooks = HookRegistry()
        hooks.set("oncreate", lambda request: seen.append("first"))
        hooks.set("oncreate", lambda request: seen.append("second"))

        hooks.fire(Hook.CREATE, "req")

        assert seen == ["second"]

    def test_clear_with_none(self):
        """None empties the slot."""
        hooks = HookRegistry()
        hooks.set(Hook.ERROR, lambda request: None)
        hooks.set(Hook.ERROR, None)

        assert hooks.get(Hook.ERROR) is None
        assert Hook.ERROR not in hooks

    def test_contains(self):
        """'in' reports whether a slot is filled."""
        hooks = HookRegistry()
        hooks.set(Hook.REDIRECT, lambda request: None)

        assert Hook.REDIRECT in hooks
        assert "onredirect" in hooks
        assert "onbodysent" not in hooks
        assert "not-a-hook" not in hooks

    def test_set_returns_registry(self):
        """set() chains."""
        hooks = HookRegistry()
        assert hooks.set(Hook.CREATE, print) is hooks
