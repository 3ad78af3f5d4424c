"""
Publish/subscribe channel for engine notifications.
"""
import logging
from typing import Any, Callable, Dict, List


logger = logging.getLogger(__name__)

PLAYER_ADDED = 'player:added'
PLAYER_UPDATED = 'player:updated'
PLAYERS_UPDATED = 'players:updated'
COURT_UPDATED = 'court:updated'
GAME_STARTED = 'game:started'
GAME_COMPLETED = 'game:completed'
OPERATION_FAILED = 'operation:failed'

EVENTS = (
    PLAYER_ADDED,
    PLAYER_UPDATED,
    PLAYERS_UPDATED,
    COURT_UPDATED,
    GAME_STARTED,
    GAME_COMPLETED,
    OPERATION_FAILED,
)


class EventBus:
    """Listeners run in subscription order; one failing listener does not stop the rest."""

    def __init__(self):
        self.listeners: Dict[str, List[Callable[[Any], None]]] = {}

    def on(self, event: str, callback: Callable[[Any], None]):
        if event not in EVENTS:
            raise ValueError(f"Unknown event: {event}")
        callbacks = self.listeners.setdefault(event, [])
        if callback not in callbacks:
            callbacks.append(callback)
        return callback

    def off(self, event: str, callback: Callable[[Any], None]):
        callbacks = self.listeners.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def emit(self, event: str, data: Any = None):
        for index, callback in enumerate(list(self.listeners.get(event, []))):
            try:
                callback(data)
            except Exception:
                logger.exception('Error in listener %d for %s', index + 1, event)
