"""
Player priority scoring for matchmaking.

The score is additive from a base of 100 and favours players who have played
fewer games, waited longer, are not busy, have had fewer distinct partners and
sit close to the pool's average skill. Scores are integers floored at 1 so they
can be used directly as sampling weights.
"""
import logging
import math
from typing import Dict, List, Optional, Tuple

from rotation.models import Player
from rotation.settings import get_default_settings


logger = logging.getLogger(__name__)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class PriorityScorer:
    def __init__(self, coefficients: Optional[Dict] = None, partners: Optional[Dict[str, int]] = None):
        self.coefficients = coefficients or get_default_settings()['scoring']
        self.partners = partners or {}  # player id -> distinct partner count

    def score(self, player: Player, pool: List[Player], now: int) -> int:
        """Score one player against a snapshot of the candidate pool."""
        c = self.coefficients
        score = c['base_score']

        if player.games_played == 0:
            score += c['no_games_bonus']
        else:
            max_games = max([p.games_played for p in pool] + [1])
            score -= (player.games_played / max_games) * c['games_played_weight']

        minutes = player.minutes_since_last_game(now)
        if minutes is None:
            score += c['never_played_bonus']
        else:
            score += min(max(minutes, 0) / c['wait_cap_minutes'], 1) * c['wait_bonus']

        score += c['status_bonus'].get(player.status.value, 0)

        score -= self.partners.get(player.id, 0) * c['partner_diversity_weight']

        if pool:
            average_skill = sum(p.skill_level for p in pool) / len(pool)
            score -= abs(player.skill_level - average_skill) * c['skill_deviation_weight']

        if c.get('similar_skill_bonus'):
            peers = [p for p in pool
                     if p.id != player.id and abs(p.skill_level - player.skill_level) <= c['similar_skill_range']]
            score += len(peers) * c['similar_skill_bonus']

        return max(round_half_up(score), c['min_score'])

    def score_all(self, pool: List[Player], now: int) -> List[Tuple[Player, int]]:
        scores = [(player, self.score(player, pool, now)) for player in pool]
        logger.debug('Player scores: %s', ', '.join(f'{p.name}: {s}' for p, s in
                                                   sorted(scores, key=lambda item: -item[1])))
        return scores
