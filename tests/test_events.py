"""
Unit tests for the event bus.
"""
import logging
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from rotation.events import EVENTS, GAME_STARTED, PLAYER_ADDED, EventBus


class TestEventBus:
    """Tests for subscribing and emitting."""

    def test_listeners_called_in_order(self):
        """Test delivery follows subscription order."""
        bus = EventBus()
        calls = []
        bus.on(GAME_STARTED, lambda data: calls.append(('first', data)))
        bus.on(GAME_STARTED, lambda data: calls.append(('second', data)))
        bus.emit(GAME_STARTED, {'court_id': 'court-1'})
        assert calls == [('first', {'court_id': 'court-1'}), ('second', {'court_id': 'court-1'})]

    def test_failing_listener_does_not_stop_others(self, caplog):
        """Test a raising listener is logged and the rest still run."""
        bus = EventBus()
        calls = []

        def broken(data):
            raise RuntimeError('boom')

        bus.on(PLAYER_ADDED, broken)
        bus.on(PLAYER_ADDED, calls.append)
        with caplog.at_level(logging.ERROR, logger='rotation.events'):
            bus.emit(PLAYER_ADDED, 'payload')
        assert calls == ['payload']
        assert 'Error in listener 1 for player:added' in caplog.text

    def test_unknown_event_rejected(self):
        """Test subscribing to an undeclared event raises."""
        with pytest.raises(ValueError):
            EventBus().on('game:paused', print)

    def test_duplicate_subscription_ignored(self):
        """Test the same callback is only registered once."""
        bus = EventBus()
        calls = []
        bus.on(GAME_STARTED, calls.append)
        bus.on(GAME_STARTED, calls.append)
        bus.emit(GAME_STARTED, 1)
        assert calls == [1]

    def test_off_removes_listener(self):
        """Test unsubscribed callbacks are no longer called."""
        bus = EventBus()
        calls = []
        bus.on(GAME_STARTED, calls.append)
        bus.off(GAME_STARTED, calls.append)
        bus.off(GAME_STARTED, calls.append)
        bus.emit(GAME_STARTED, 1)
        assert calls == []

    def test_emit_without_listeners(self):
        """Test emitting with nobody listening is a no-op."""
        EventBus().emit(GAME_STARTED)

    def test_event_names(self):
        """Test the declared event names."""
        assert 'operation:failed' in EVENTS
        assert 'court:updated' in EVENTS
        assert len(EVENTS) == 7
