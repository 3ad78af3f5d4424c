"""
Game history and teammate/opponent familiarity.

Familiarity is derived from the bounded log of completed games. Pair keys are
the two player ids sorted and joined with ':', so they do not depend on slot
order. Teammate familiarity is super-linear (count ** exponent, 1.5 by default)
so that even a single repeat partnership weighs more than one opponent repeat;
opponent familiarity is a linear sum over the four cross pairs.
"""
from typing import Dict, Iterable, List, Optional

from rotation.models import GameRecord


DEFAULT_HISTORY_LIMIT = 100
DEFAULT_FAMILIARITY_EXPONENT = 1.5


def pair_key(id_1, id_2) -> str:
    first, second = sorted([str(id_1), str(id_2)])
    return f"{first}:{second}"


def count_partnerships(team: List, count_map: Dict[str, int]) -> Dict[str, int]:
    """Increment the pair count for a recorded team of exactly two ids."""
    if len(team) != 2:
        return count_map
    key = pair_key(team[0], team[1])
    count_map[key] = count_map.get(key, 0) + 1
    return count_map


def teammate_history(records: Iterable[GameRecord]) -> Dict[str, int]:
    """Map each pair key to how often the two players were teammates."""
    counts = {}
    for record in records:
        count_partnerships(record.team_a, counts)
        count_partnerships(record.team_b, counts)
    return counts


def team_familiarity(team: List, history: Dict[str, int], exponent: float = DEFAULT_FAMILIARITY_EXPONENT) -> float:
    if len(team) != 2:
        return 0
    count = history.get(pair_key(team[0].id, team[1].id), 0)
    return count ** exponent


def cross_team_familiarity(team_a: List, team_b: List, history: Dict[str, int]) -> int:
    total = 0
    for player_a in team_a:
        for player_b in team_b:
            total += history.get(pair_key(player_a.id, player_b.id), 0)
    return total


def partner_counts(records: Iterable[GameRecord]) -> Dict[str, int]:
    """Number of distinct historical partners per player id."""
    partners = {}
    for record in records:
        for team in (record.team_a, record.team_b):
            if len(team) != 2:
                continue
            id_1, id_2 = team
            partners.setdefault(id_1, set()).add(id_2)
            partners.setdefault(id_2, set()).add(id_1)
    return {player_id: len(ids) for player_id, ids in partners.items()}


class GameHistory:
    """Append-only log of completed games, capped at the most recent entries."""

    def __init__(self, records: Optional[Iterable[GameRecord]] = None, limit: int = DEFAULT_HISTORY_LIMIT):
        self.limit = limit
        self.records: List[GameRecord] = []
        for record in records or []:
            self.append(record)

    def append(self, record: GameRecord):
        self.records.append(record)
        if len(self.records) > self.limit:
            del self.records[:len(self.records) - self.limit]

    def clear(self):
        self.records = []

    def teammate_history(self) -> Dict[str, int]:
        return teammate_history(self.records)

    def partner_counts(self) -> Dict[str, int]:
        return partner_counts(self.records)

    def recent_games(self, player_id, limit: int = 1) -> List[GameRecord]:
        """Most recent records involving the player, newest first."""
        games = [r for r in reversed(self.records) if r.involves(player_id)]
        return games[:limit]

    def last_game_by_player(self, player_ids: Iterable) -> Dict[str, GameRecord]:
        last_games = {}
        for player_id in player_ids:
            games = self.recent_games(player_id, 1)
            if games:
                last_games[player_id] = games[0]
        return last_games

    def to_list(self) -> List[dict]:
        return [record.to_dict() for record in self.records]

    def __len__(self):
        return len(self.records)

    def __iter__(self):
        return iter(self.records)
