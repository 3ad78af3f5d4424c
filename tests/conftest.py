"""
Shared pytest fixtures for court rotation tests.

Running tests:
    pytest tests/
"""
import pytest
import random
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from rotation.engine import GameManager
from rotation.events import EventBus
from rotation.models import Player
from rotation.storage import MemoryStore


START_MS = 1_700_000_000_000


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start=START_MS):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, minutes=0, seconds=0):
        self.now += int((minutes * 60 + seconds) * 1000)


class FixedRandom(random.Random):
    """Random source whose draws always return the same value."""

    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


def make_player(name, skill_level=1, games_played=0, last_game_time=None, status=None):
    player = Player(name, skill_level=skill_level, player_id=name.lower())
    player.games_played = games_played
    player.last_game_time = last_game_time
    if status is not None:
        player.status = status
    return player


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def manager(store, event_bus, clock, rng):
    """Engine with two courts, an in-memory store and a fake clock."""
    return GameManager(storage=store, event_bus=event_bus, settings={'court_count': 2}, clock=clock, rng=rng)


@pytest.fixture
def add_players(manager):
    """Add named players with skill levels, returning them in order."""
    def _add(names, skills=None):
        skills = skills or [1] * len(names)
        return [manager.add_player(name, skill) for name, skill in zip(names, skills)]
    return _add


@pytest.fixture
def four_players(add_players):
    """Alice and Bob at level 5, Carol and Dave at level 1."""
    return add_players(['Alice', 'Bob', 'Carol', 'Dave'], [5, 5, 1, 1])


@pytest.fixture
def failures(event_bus):
    """Collects operation:failed payloads."""
    collected = []
    event_bus.on('operation:failed', collected.append)
    return collected
