"""
Players, courts and game records for the court rotation.
"""
import uuid
from enum import Enum
from typing import List, Optional

from rotation.errors import CapacityError


COURT_CAPACITY = 4

SKILL_LEVEL_NAMES = {
    1: 'Novice',
    2: 'Rookie',
    3: 'Beginner',
    4: 'Amateur',
    5: 'Intermediate',
    6: 'Advanced',
    7: 'Expert',
    8: 'Elite',
    9: 'Master',
    10: 'Champion',
}


class PlayerStatus(str, Enum):
    NO_GAMES = 'nogames'
    WAITING = 'waiting'
    PLAYING = 'playing'
    QUEUED = 'queued'
    RESTING = 'resting'


class CourtStatus(str, Enum):
    EMPTY = 'empty'
    ACTIVE = 'active'  # 1-3 players assigned
    READY = 'ready'
    IN_PROGRESS = 'in_progress'


def skill_level_name(level: int) -> str:
    """Get the display name of a skill level."""
    return SKILL_LEVEL_NAMES.get(level, 'Unknown')


def generate_id() -> str:
    return str(uuid.uuid4())


class Player:
    def __init__(self, name, skill_level=1, player_id=None):
        self.id = player_id or generate_id()
        self.name = name
        self.status = PlayerStatus.NO_GAMES
        self.court_id = None
        self.games_played = 0
        self.last_game_time = None  # ms since epoch
        self.skill_level = skill_level

    @property
    def is_attached(self) -> bool:
        return self.court_id is not None

    def minutes_since_last_game(self, now: int) -> Optional[float]:
        if self.last_game_time is None:
            return None
        return (now - self.last_game_time) / 60000

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'name': self.name,
            'status': self.status.value,
            'court_id': self.court_id,
            'games_played': self.games_played,
            'last_game_time': self.last_game_time,
            'skill_level': self.skill_level,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Player':
        player = cls(data['name'], skill_level=data.get('skill_level') or 1, player_id=data['id'])
        player.status = PlayerStatus(data.get('status') or PlayerStatus.NO_GAMES.value)
        player.court_id = data.get('court_id')
        player.games_played = int(data.get('games_played') or 0)
        player.last_game_time = data.get('last_game_time')
        return player

    def __repr__(self):
        return f"Player(name={self.name}, status={self.status.value}, skill_level={self.skill_level})"


class Court:
    def __init__(self, court_id):
        self.id = court_id
        self.status = CourtStatus.EMPTY
        self.players: List[Player] = []  # slots 0-1 team A, 2-3 team B
        self.queue: List[Player] = []    # consecutive groups of 4
        self.start_time = None
        self.started_from_queue = False
        self.processing_magic_queue = False

    def can_add_player(self) -> bool:
        return len(self.players) < COURT_CAPACITY

    def add_player(self, player: Player):
        """Append a player to the active slots and refresh the court status.

        Raises CapacityError when the court already holds four players; the
        court is left untouched in that case.
        """
        if not self.can_add_player():
            raise CapacityError(f"Court {self.id} is full")
        self.players.append(player)
        self._refresh_status()

    def _refresh_status(self):
        if len(self.players) == COURT_CAPACITY:
            self.status = CourtStatus.READY
        elif self.players:
            self.status = CourtStatus.ACTIVE
        else:
            self.status = CourtStatus.EMPTY

    def start_game(self, now: int):
        self.status = CourtStatus.IN_PROGRESS
        self.start_time = now

    def teams(self):
        """Return (team_a, team_b) from the active slots."""
        return self.players[0:2], self.players[2:4]

    def queued_groups(self) -> List[List[Player]]:
        """Complete groups of four in queue order; a partial trailing group is ignored."""
        full = len(self.queue) - len(self.queue) % COURT_CAPACITY
        return [self.queue[i:i + COURT_CAPACITY] for i in range(0, full, COURT_CAPACITY)]

    def drain_queue(self) -> bool:
        """Move the next queued group into the active slots, or clear the court.

        Returns True when a queued group was moved in.
        """
        self.start_time = None
        self.started_from_queue = False
        if len(self.queue) >= COURT_CAPACITY:
            self.players = self.queue[:COURT_CAPACITY]
            del self.queue[:COURT_CAPACITY]
            self.status = CourtStatus.READY
            self.started_from_queue = True
            return True
        self.players = []
        self.status = CourtStatus.EMPTY
        return False

    def clear(self):
        self.players = []
        self.queue = []
        self.status = CourtStatus.EMPTY
        self.start_time = None
        self.started_from_queue = False
        self.processing_magic_queue = False

    def elapsed_time(self, now: int):
        """Return (minutes, seconds) since the game started, or None."""
        if not self.start_time:
            return None
        elapsed = max(0, (now - self.start_time) // 1000)
        return elapsed // 60, elapsed % 60

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'status': self.status.value,
            'players': [p.id for p in self.players],
            'queue': [p.id for p in self.queue],
            'start_time': self.start_time,
            'started_from_queue': self.started_from_queue,
        }

    @classmethod
    def from_dict(cls, data: dict, players_by_id: dict) -> 'Court':
        court = cls(data['id'])
        court.players = [players_by_id[pid] for pid in data.get('players') or [] if pid in players_by_id]
        court.queue = [players_by_id[pid] for pid in data.get('queue') or [] if pid in players_by_id]
        court.start_time = data.get('start_time')
        court.started_from_queue = bool(data.get('started_from_queue', False))
        status = CourtStatus(data.get('status') or CourtStatus.EMPTY.value)
        if status == CourtStatus.IN_PROGRESS and len(court.players) == COURT_CAPACITY:
            court.status = status
        else:
            # Dropped player ids can leave a short court that is no longer ready
            court._refresh_status()
            court.start_time = None
        return court

    def __repr__(self):
        return f"Court(id={self.id}, status={self.status.value}, players={len(self.players)}, queue={len(self.queue)})"


class GameRecord:
    def __init__(self, record_id, timestamp, court_id, team_a, team_b):
        self.id = record_id
        self.timestamp = timestamp
        self.court_id = court_id
        self.team_a = list(team_a)
        self.team_b = list(team_b)

    @classmethod
    def from_court(cls, court: Court, now: int) -> 'GameRecord':
        team_a, team_b = court.teams()
        return cls(
            record_id=f"{court.id}-{now}",
            timestamp=now,
            court_id=court.id,
            team_a=[p.id for p in team_a],
            team_b=[p.id for p in team_b],
        )

    def involves(self, player_id) -> bool:
        return player_id in self.team_a or player_id in self.team_b

    def were_partners(self, player_id_1, player_id_2) -> bool:
        for team in (self.team_a, self.team_b):
            if player_id_1 in team and player_id_2 in team:
                return True
        return False

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'timestamp': self.timestamp,
            'court_id': self.court_id,
            'team_a': list(self.team_a),
            'team_b': list(self.team_b),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'GameRecord':
        return cls(data['id'], data['timestamp'], data['court_id'], data['team_a'], data['team_b'])

    def __repr__(self):
        return f"GameRecord(id={self.id}, team_a={self.team_a}, team_b={self.team_b})"
