"""
Tests for livesubset/events.py.

Tests cover:
- bind/trigger ordering
- the "all" wildcard
- unbind variants
- dispatch over a snapshot of the handler list
"""

import pytest
from unittest.mock import MagicMock

from livesubset.events import Events


class TestBindTrigger:
    """Test binding and firing events."""

    def test_handlers_run_in_registration_order(self):
        """Handlers for one event run in the order they were bound."""
        bus = Events()
        calls = []
        bus.bind("ping", lambda: calls.append("first"))
        bus.bind("ping", lambda: calls.append("second"))

        bus.trigger("ping")

        assert calls == ["first", "second"]

    def test_arguments_are_passed_through(self):
        """Event arguments reach the handler unchanged."""
        bus = Events()
        handler = MagicMock()
        bus.bind("ping", handler)

        bus.trigger("ping", 1, "two")

        handler.assert_called_once_with(1, "two")

    def test_other_events_do_not_fire(self):
        bus = Events()
        handler = MagicMock()
        bus.bind("ping", handler)

        bus.trigger("pong")

        handler.assert_not_called()

    def test_bind_returns_self(self):
        """bind() can be chained."""
        bus = Events()
        assert bus.bind("ping", MagicMock()) is bus


class TestWildcard:
    """Test the "all" event."""

    def test_all_receives_event_name(self):
        """Wildcard handlers get the event name before the arguments."""
        bus = Events()
        handler = MagicMock()
        bus.bind("all", handler)

        bus.trigger("ping", 1)

        handler.assert_called_once_with("ping", 1)

    def test_all_runs_after_specific_handlers(self):
        bus = Events()
        calls = []
        bus.bind("all", lambda name: calls.append("all"))
        bus.bind("ping", lambda: calls.append("ping"))

        bus.trigger("ping")

        assert calls == ["ping", "all"]


class TestUnbind:
    """Test removing handlers."""

    def test_unbind_single_handler(self):
        bus = Events()
        keep, drop = MagicMock(), MagicMock()
        bus.bind("ping", keep)
        bus.bind("ping", drop)

        bus.unbind("ping", drop)
        bus.trigger("ping")

        keep.assert_called_once()
        drop.assert_not_called()

    def test_unbind_by_name(self):
        """unbind(name) removes every handler of that event only."""
        bus = Events()
        ping, pong = MagicMock(), MagicMock()
        bus.bind("ping", ping)
        bus.bind("ping", ping)
        bus.bind("pong", pong)

        bus.unbind("ping")
        bus.trigger("ping")
        bus.trigger("pong")

        ping.assert_not_called()
        pong.assert_called_once()

    def test_unbind_everything(self):
        bus = Events()
        bus.bind("ping", MagicMock())
        bus.bind("all", MagicMock())

        bus.unbind()

        assert bus.has_listeners() is False

    def test_double_bind_needs_double_unbind(self):
        """Each unbind removes one registration."""
        bus = Events()
        handler = MagicMock()
        bus.bind("ping", handler)
        bus.bind("ping", handler)

        bus.unbind("ping", handler)
        bus.trigger("ping")

        assert handler.call_count == 1

    def test_unbind_unknown_is_noop(self):
        bus = Events()
        bus.unbind("ping", MagicMock())
        assert bus.has_listeners("ping") is False


class TestDispatchSnapshot:
    """Test binding and unbinding while an event is in flight."""

    def test_handler_bound_during_dispatch_waits_for_next_trigger(self):
        bus = Events()
        late = MagicMock()
        bus.bind("ping", lambda: bus.bind("ping", late))

        bus.trigger("ping")
        late.assert_not_called()

        bus.trigger("ping")
        late.assert_called_once()

    def test_handler_unbound_during_dispatch_still_runs_once(self):
        bus = Events()
        second = MagicMock()
        bus.bind("ping", lambda: bus.unbind("ping", second))
        bus.bind("ping", second)

        bus.trigger("ping")
        bus.trigger("ping")

        assert second.call_count == 1

    def test_handler_exceptions_propagate(self):
        bus = Events()
        bus.bind("ping", MagicMock(side_effect=RuntimeError("boom")))

        with pytest.raises(RuntimeError, match="boom"):
            bus.trigger("ping")


class TestHasListeners:
    """Test listener introspection."""

    def test_wildcard_counts_for_every_event(self):
        bus = Events()
        bus.bind("all", MagicMock())
        assert bus.has_listeners("anything") is True

    def test_empty_bus(self):
        assert Events().has_listeners() is False
