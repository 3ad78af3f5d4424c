"""
Choosing the next four players from scored candidates.
"""
import logging
import random
from typing import List, Optional, Tuple

from rotation.errors import InsufficientPlayersError
from rotation.models import COURT_CAPACITY, Player


logger = logging.getLogger(__name__)

SELECTION_MODES = ('weighted', 'top', 'tiered')


def _require_enough(player_scores, count):
    if len(player_scores) < count:
        raise InsufficientPlayersError(
            f"Need at least {count} players for a game, only {len(player_scores)} available"
        )


def select_top_n(player_scores: List[Tuple[Player, int]], count: int = COURT_CAPACITY) -> List[Player]:
    """Highest scores first; ties keep roster order."""
    _require_enough(player_scores, count)
    ranked = sorted(player_scores, key=lambda item: -item[1])
    return [player for player, _ in ranked[:count]]


def select_weighted(player_scores: List[Tuple[Player, int]], rng: Optional[random.Random] = None,
                    count: int = COURT_CAPACITY) -> List[Player]:
    """Weighted random sampling without replacement.

    Each draw is uniform over [0, sum of remaining scores); the first candidate
    whose running total reaches the draw is taken and removed from the pool.
    Exactly `count` candidates are returned as-is.
    """
    _require_enough(player_scores, count)
    if len(player_scores) == count:
        return [player for player, _ in player_scores]

    rng = rng or random.Random()
    available = list(player_scores)
    selected = []
    while len(selected) < count and available:
        total_weight = sum(score for _, score in available)
        draw = rng.random() * total_weight
        running = 0
        selected_index = 0
        for index, (_, score) in enumerate(available):
            running += score
            if draw <= running:
                selected_index = index
                break
        player, _ = available.pop(selected_index)
        selected.append(player)

    logger.debug('Selected players: %s', [p.name for p in selected])
    return selected


class Selector:
    """Picks four players according to the configured selection mode."""

    def __init__(self, mode: str = 'weighted', rng: Optional[random.Random] = None,
                 balancer=None, tiered_candidate_count: int = 8):
        if mode not in SELECTION_MODES:
            raise ValueError(f"Unknown selection mode: {mode}")
        self.mode = mode
        self.rng = rng or random.Random()
        self.balancer = balancer
        self.tiered_candidate_count = tiered_candidate_count

    def select(self, player_scores: List[Tuple[Player, int]]) -> List[Player]:
        if self.mode == 'top':
            return select_top_n(player_scores)
        if self.mode == 'tiered':
            return self._select_tiered(player_scores)
        return select_weighted(player_scores, self.rng)

    def _select_tiered(self, player_scores):
        _require_enough(player_scores, COURT_CAPACITY)
        ranked = sorted(player_scores, key=lambda item: -item[1])
        candidates = [player for player, _ in ranked[:self.tiered_candidate_count]]
        group = self.balancer.find_balanced_group(candidates) if self.balancer else None
        if group is None:
            logger.info('No balanced group found, falling back to top scores')
            return candidates[:COURT_CAPACITY]
        return group
