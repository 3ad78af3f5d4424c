"""
Scheduling engine: owns the roster, the courts and the game history.

Court lifecycle:   empty -> (4 assigned) ready -> in_progress -> ready (next queued group) | empty
Player lifecycle:  nogames|waiting|resting -> waiting (on a court) -> playing -> resting
                   nogames|waiting|resting -> queued -> waiting (moved onto the court)

Every public command runs under one re-entrant lock, validates before it
mutates, reports expected failures on the `operation:failed` event and then
re-raises them, and saves the snapshot when it succeeds.
"""
import logging
import random
import re
import threading
import time
from functools import wraps
from typing import Dict, List, Optional

from rotation import events as ev
from rotation.balancing import Teams, TeamBalancer
from rotation.errors import (
    CapacityError,
    InsufficientPlayersError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    RotationError,
    ValidationError,
)
from rotation.history import GameHistory
from rotation.models import COURT_CAPACITY, Court, CourtStatus, GameRecord, Player, PlayerStatus
from rotation.scoring import PriorityScorer
from rotation.selection import Selector
from rotation.settings import court_ids, merge_settings
from rotation.storage import default_state, is_valid_state


logger = logging.getLogger(__name__)

ELIGIBLE_STATUSES = (PlayerStatus.NO_GAMES, PlayerStatus.WAITING, PlayerStatus.RESTING)
WAITING_HIGH_MINUTES = 15


def current_time_ms() -> int:
    return int(time.time() * 1000)


def normalize_name(raw: str) -> str:
    """Trim, drop a leading "12. " style ordinal and title-case each word."""
    name = re.sub(r'^\d+\.\s*', '', raw.strip())
    return ' '.join(word[:1].upper() + word[1:].lower() for word in name.split(' '))


def parse_player_names(raw_text: str) -> List[str]:
    names = [normalize_name(line) for line in (raw_text or '').split('\n')]
    return [name for name in names if name]


def command(func):
    """Serialise, report failures and persist for a mutating engine command."""
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            try:
                result = func(self, *args, **kwargs)
            except RotationError as e:
                self._report_failure(func.__name__, e)
                raise
            self.save_state()
            return result
    return wrapper


class GameManager:
    def __init__(self, storage=None, event_bus=None, settings=None, clock=None, rng=None):
        self.storage = storage
        self.events = event_bus or ev.EventBus()
        self.settings = merge_settings(settings)
        self.clock = clock or current_time_ms
        self.rng = rng or random.Random()
        self.players: Dict[str, Player] = {}
        self.courts: Dict[str, Court] = {court_id: Court(court_id) for court_id in court_ids(self.settings)}
        self.history = GameHistory(limit=self.settings['history_limit'])
        self._lock = threading.RLock()
        if self.storage is not None:
            self.load_state()

    # ------------------------------------------------------------------ helpers

    def now(self) -> int:
        return self.clock()

    def _report_failure(self, operation: str, error: Exception):
        logger.warning('%s failed: %s', operation, error)
        self.events.emit(ev.OPERATION_FAILED, {'operation': operation, 'error': error})

    def get_player(self, player_id) -> Player:
        player = self.players.get(player_id)
        if player is None:
            raise NotFoundError(f"Player {player_id} not found")
        return player

    def get_court(self, court_id) -> Court:
        court = self.courts.get(court_id)
        if court is None:
            raise NotFoundError(f"Court {court_id} not found")
        return court

    def _find_player_by_name(self, name) -> Optional[Player]:
        for player in self.players.values():
            if player.name == name:
                return player
        return None

    def _clamp_level(self, level) -> int:
        try:
            level = int(level)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid skill level: {level!r}")
        return max(self.settings['min_skill_level'], min(self.settings['max_skill_level'], level))

    def _release(self, player: Player):
        """Return a player to the pool, detached from any court."""
        player.court_id = None
        player.status = PlayerStatus.WAITING if player.games_played > 0 else PlayerStatus.NO_GAMES

    def _emit_court(self, court: Court):
        self.events.emit(ev.COURT_UPDATED, court)
        self.events.emit(ev.PLAYERS_UPDATED, list(self.players.values()))

    # ------------------------------------------------------------------ roster

    @command
    def add_player(self, name, skill_level=1) -> Player:
        name = normalize_name(name or '')
        if not name:
            raise ValidationError('Player name is required')
        if self._find_player_by_name(name):
            raise ValidationError(f"Player {name} already exists")
        player = Player(name, skill_level=self._clamp_level(skill_level))
        self.players[player.id] = player
        logger.info('Added player %s', player.name)
        self.events.emit(ev.PLAYER_ADDED, player)
        self.events.emit(ev.PLAYERS_UPDATED, list(self.players.values()))
        return player

    @command
    def import_players(self, raw_text) -> int:
        """Add one player per line of text; returns how many were new.

        Exact duplicates (of the roster or earlier lines) are skipped. Raises
        ValidationError when there are no names or none of them is new.
        """
        names = parse_player_names(raw_text)
        if not names:
            raise ValidationError('Please enter at least one player name')

        new_names = []
        for name in names:
            if name not in new_names and not self._find_player_by_name(name):
                new_names.append(name)
        if not new_names:
            raise ValidationError('All players already exist')

        for name in new_names:
            player = Player(name)
            self.players[player.id] = player
            self.events.emit(ev.PLAYER_ADDED, player)
        logger.info('Imported %d new players (%d skipped)', len(new_names), len(names) - len(new_names))
        self.events.emit(ev.PLAYERS_UPDATED, list(self.players.values()))
        return len(new_names)

    @command
    def adjust_player_level(self, player_id, new_level) -> Player:
        player = self.get_player(player_id)
        player.skill_level = self._clamp_level(new_level)
        logger.info('%s level set to %d', player.name, player.skill_level)
        if player.court_id and player.court_id in self.courts:
            self.events.emit(ev.COURT_UPDATED, self.courts[player.court_id])
        self.events.emit(ev.PLAYER_UPDATED, player)
        self.events.emit(ev.PLAYERS_UPDATED, list(self.players.values()))
        return player

    def get_available_players(self) -> List[Player]:
        return list(self.players.values())

    def get_queueable_players(self) -> List[Player]:
        """Players free to be matched: not playing, not queued, not on any court."""
        return [p for p in self.players.values() if p.status in ELIGIBLE_STATUSES and not p.is_attached]

    def get_recent_games(self, player_id, limit=1) -> List[GameRecord]:
        self.get_player(player_id)
        return self.history.recent_games(player_id, limit)

    # ------------------------------------------------------------------ courts

    @command
    def assign_player_to_court(self, player_id, court_id) -> Court:
        player = self.get_player(player_id)
        court = self.get_court(court_id)
        if not court.can_add_player():
            raise CapacityError(f"Court {court.id} is full")
        if court.status == CourtStatus.IN_PROGRESS:
            raise InvalidStateError(f"Court {court.id} has a game in progress")
        if player.is_attached:
            raise InvalidStateError(f"{player.name} is already on {player.court_id}")
        court.add_player(player)
        player.status = PlayerStatus.WAITING
        player.court_id = court.id
        logger.info('Assigned %s to %s (%d/4)', player.name, court.id, len(court.players))
        self._emit_court(court)
        return court

    @command
    def start_game(self, court_id) -> Court:
        return self._start_game(self.get_court(court_id))

    def _start_game(self, court: Court) -> Court:
        if court.status == CourtStatus.IN_PROGRESS:
            raise InvalidStateError(f"Court {court.id} already has a game in progress")
        if len(court.players) != COURT_CAPACITY:
            raise InvalidStateError(f"Court {court.id} needs 4 players to start, has {len(court.players)}")

        now = self.now()
        court.start_game(now)
        for player in court.players:
            player.status = PlayerStatus.PLAYING
            player.court_id = court.id
            player.games_played += 1
            player.last_game_time = now
        logger.info('Game started on %s: %s', court.id, [p.name for p in court.players])
        self.events.emit(ev.GAME_STARTED, court)
        self._emit_court(court)
        return court

    @command
    def complete_game(self, court_id) -> GameRecord:
        court = self.get_court(court_id)
        if court.status != CourtStatus.IN_PROGRESS:
            raise InvalidStateError(f"Court {court.id} has no game in progress")

        now = self.now()
        record = GameRecord.from_court(court, now)
        self.history.append(record)
        for player in court.players:
            player.status = PlayerStatus.RESTING
            player.last_game_time = now
            player.court_id = None

        if court.drain_queue():
            for player in court.players:
                player.status = PlayerStatus.WAITING
                player.court_id = court.id
            logger.info('Next group moved onto %s from the queue', court.id)
        logger.info('Game completed on %s', court.id)

        self.events.emit(ev.GAME_COMPLETED, court)
        self._emit_court(court)
        return record

    @command
    def add_to_queue(self, court_id, player_ids) -> List[Player]:
        """Queue players on a court; unknown or already attached ids are reported and skipped."""
        return self._add_to_queue(self.get_court(court_id), player_ids)

    def _add_to_queue(self, court: Court, player_ids) -> List[Player]:
        added = []
        for player_id in player_ids:
            player = self.players.get(player_id)
            if player is None:
                self._report_failure('add_to_queue', NotFoundError(f"Player {player_id} not found"))
                continue
            if player.is_attached:
                self._report_failure('add_to_queue',
                                     InvalidStateError(f"{player.name} is already on {player.court_id}"))
                continue
            player.status = PlayerStatus.QUEUED
            player.court_id = court.id
            court.queue.append(player)
            added.append(player)

        if added:
            logger.info('Added %d players to the %s queue', len(added), court.id)
            self._emit_court(court)
        return added

    @command
    def remove_queue_group(self, court_id, index) -> List[Player]:
        """Drop the index-th queued match (0-based) and return its players to the pool."""
        court = self.get_court(court_id)
        groups = court.queued_groups()
        if not 0 <= index < len(groups):
            raise NotFoundError(f"Court {court.id} has no queued match #{index + 1}")
        start = index * COURT_CAPACITY
        removed = court.queue[start:start + COURT_CAPACITY]
        del court.queue[start:start + COURT_CAPACITY]
        for player in removed:
            self._release(player)
        self._emit_court(court)
        return removed

    @command
    def reset_court(self, court_id) -> Court:
        court = self.get_court(court_id)
        if court.status == CourtStatus.IN_PROGRESS:
            raise InvalidStateError(f"Court {court.id} has a game in progress")
        for player in court.players + court.queue:
            self._release(player)
        court.clear()
        self._emit_court(court)
        return court

    # ------------------------------------------------------------------ matchmaking

    def scorer(self) -> PriorityScorer:
        return PriorityScorer(self.settings['scoring'], self.history.partner_counts())

    def balancer(self) -> TeamBalancer:
        return TeamBalancer(
            self.history.teammate_history(),
            self.settings['balancing'],
            rng=self.rng,
            variety_mode=self.settings['variety_mode'],
        )

    def select_players(self) -> Teams:
        """Pick and balance the next four eligible players without changing any state."""
        pool = self.get_queueable_players()
        if len(pool) < COURT_CAPACITY:
            raise InsufficientPlayersError(
                f"Need at least {COURT_CAPACITY} available players, only {len(pool)} available"
            )
        balancer = self.balancer()
        selector = Selector(
            self.settings['selection_mode'],
            rng=self.rng,
            balancer=balancer,
            tiered_candidate_count=self.settings['tiered_candidate_count'],
        )
        selected = selector.select(self.scorer().score_all(pool, self.now()))
        recent_games = self.history.last_game_by_player(p.id for p in selected)
        return balancer.balance(selected, recent_games)

    @command
    def handle_magic_queue(self, court_id) -> Optional[Teams]:
        """Fill a court automatically.

        Empty court: the chosen four take the court and start playing.
        In-progress court: the chosen four are queued behind the current game.
        Ready court: the waiting four start. A call made while the same court
        is still being processed is ignored and returns None.
        """
        return self._handle_magic_queue(self.get_court(court_id))

    def _handle_magic_queue(self, court: Court) -> Optional[Teams]:
        if court.processing_magic_queue:
            logger.warning('Magic queue already processing for %s', court.id)
            return None
        court.processing_magic_queue = True
        try:
            if court.status == CourtStatus.READY:
                self._start_game(court)
                team_a, team_b = court.teams()
                return Teams(team_a, team_b)
            if court.status == CourtStatus.ACTIVE:
                raise InvalidStateError(f"Court {court.id} is partially filled")
            if court.status == CourtStatus.IN_PROGRESS and len(court.queue) % COURT_CAPACITY:
                raise InvalidStateError(f"Court {court.id} has an incomplete queued match")

            teams = self.select_players()
            if court.status == CourtStatus.EMPTY:
                for player in teams.players:
                    court.add_player(player)
                    player.status = PlayerStatus.WAITING
                    player.court_id = court.id
                self._start_game(court)
            else:
                self._add_to_queue(court, [p.id for p in teams.players])
            logger.info('Magic queue on %s: %r', court.id, teams)
            return teams
        finally:
            court.processing_magic_queue = False

    @command
    def magic_queue(self) -> Optional[Teams]:
        """Run the magic queue on the first empty court."""
        for court in self.courts.values():
            if court.status == CourtStatus.EMPTY:
                return self._handle_magic_queue(court)
        raise InvalidStateError('No available courts')

    # ------------------------------------------------------------------ status views

    def queue_position(self, player_id) -> Optional[int]:
        """1-based queued match number for a queued player, or None."""
        for court in self.courts.values():
            for index, player in enumerate(court.queue):
                if player.id == player_id:
                    return index // COURT_CAPACITY + 1
        return None

    def describe_player_status(self, player_id, now=None) -> str:
        player = self.get_player(player_id)
        now = self.now() if now is None else now

        if player.status == PlayerStatus.PLAYING:
            return 'Playing'
        position = self.queue_position(player.id)
        if position is not None:
            return f'Queued (#{position})'

        minutes = player.minutes_since_last_game(now)
        if minutes is not None and minutes < self.settings['resting_threshold_minutes']:
            return 'Resting'
        if player.games_played > 0 and minutes is not None:
            if minutes >= WAITING_HIGH_MINUTES:
                return f'Waiting {int(minutes)}m'
            return 'Available'
        return 'No Games Yet'

    # ------------------------------------------------------------------ state

    @command
    def reset(self):
        self.players.clear()
        for court in self.courts.values():
            court.clear()
        self.history.clear()
        if self.storage is not None:
            try:
                self.storage.clear()
            except PersistenceError as e:
                self._report_failure('reset', e)
        logger.info('All data has been reset')
        self.events.emit(ev.PLAYERS_UPDATED, [])
        for court in self.courts.values():
            self.events.emit(ev.COURT_UPDATED, court)

    def snapshot(self) -> dict:
        return {
            'players': [player.to_dict() for player in self.players.values()],
            'courts': {court_id: court.to_dict() for court_id, court in self.courts.items()},
            'game_history': self.history.to_list(),
        }

    def load_state(self):
        state = default_state()
        if self.storage is not None:
            try:
                state = self.storage.load()
            except PersistenceError as e:
                logger.warning(f'Failed to load saved state, starting empty: {e}')
                self.events.emit(ev.OPERATION_FAILED, {'operation': 'load_state', 'error': e})
        try:
            self._apply_state(state)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f'Ignoring malformed saved state: {e}')
            self._apply_state(default_state())

    def _apply_state(self, state: dict):
        if not is_valid_state(state):
            state = default_state()
        players = {}
        for data in state['players']:
            player = Player.from_dict(data)
            players[player.id] = player
        courts = {}
        for court_id in court_ids(self.settings):
            data = state['courts'].get(court_id)
            courts[court_id] = Court.from_dict(data, players) if data else Court(court_id)
        history = GameHistory(
            (GameRecord.from_dict(r) for r in state.get('game_history') or []),
            limit=self.settings['history_limit'],
        )
        self.players, self.courts, self.history = players, courts, history

    def save_state(self):
        if self.storage is None:
            return
        try:
            self.storage.save(self.snapshot())
        except PersistenceError as e:
            logger.error('Failed to save state: %s', e)
            self.events.emit(ev.OPERATION_FAILED, {'operation': 'save_state', 'error': e})
