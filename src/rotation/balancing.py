"""
Splitting four players into two balanced teams of two.

`TeamBalancer.balance` searches the three ways of pairing four players and keeps
the one with the lowest composite penalty:

    familiarity    = teammate_weight * (fam(A) + fam(B)) + opponent_weight * cross(A, B)
    recent penalty = recent_partnership_penalty per team that was a partnership
                     in either member's most recent game
    skill penalty  = |avg skill A - avg skill B| * skill_balance_weight

`find_balanced_group` answers the other question, which four players to put
together, by searching within dynamically computed skill tiers.
"""
import logging
import math
import random
from itertools import combinations
from typing import Dict, List, Optional

from rotation.history import cross_team_familiarity, team_familiarity
from rotation.models import COURT_CAPACITY, GameRecord, Player
from rotation.settings import get_default_settings


logger = logging.getLogger(__name__)

# Pairings of slot indices: 01|23, 02|13, 03|12
PARTITIONS = [
    ((0, 1), (2, 3)),
    ((0, 2), (1, 3)),
    ((0, 3), (1, 2)),
]


class Teams:
    def __init__(self, team_a: List[Player], team_b: List[Player], penalty: float = 0):
        self.team_a = list(team_a)
        self.team_b = list(team_b)
        self.penalty = penalty

    @property
    def players(self) -> List[Player]:
        """Players in court slot order: team A then team B."""
        return self.team_a + self.team_b

    def __repr__(self):
        return (f"Teams(team_a={[p.name for p in self.team_a]}, "
                f"team_b={[p.name for p in self.team_b]}, penalty={self.penalty})")


def generate_team_combinations(players: List[Player]) -> List[Teams]:
    """The three distinct 2-v-2 splits, or the default 01|23 split for any other size."""
    if len(players) != COURT_CAPACITY:
        logger.warning('Need exactly 4 players to generate team combinations, got %d', len(players))
        return [Teams(players[0:2], players[2:4])]
    return [Teams([players[i] for i in a], [players[i] for i in b]) for a, b in PARTITIONS]


def average_skill(team: List[Player]) -> float:
    return sum(p.skill_level for p in team) / len(team) if team else 0


def team_power(team: List[Player]) -> int:
    return sum(p.skill_level for p in team)


def get_skill_tiers(players: List[Player]) -> Dict[str, float]:
    """Split the observed skill range into thirds."""
    skills = [p.skill_level for p in players]
    min_skill = min(skills)
    tier_size = (max(skills) - min_skill) / 3
    return {
        'advanced': min_skill + tier_size * 2,
        'intermediate': min_skill + tier_size,
    }


class TeamBalancer:
    def __init__(self, teammate_history: Optional[Dict[str, int]] = None, coefficients: Optional[Dict] = None,
                 rng: Optional[random.Random] = None, variety_mode: bool = False):
        self.teammate_history = teammate_history or {}
        self.coefficients = coefficients or get_default_settings()['balancing']
        self.rng = rng or random.Random()
        self.variety_mode = variety_mode

    def familiarity(self, team_a: List[Player], team_b: List[Player]) -> float:
        c = self.coefficients
        exponent = c['familiarity_exponent']
        teammates = (team_familiarity(team_a, self.teammate_history, exponent)
                     + team_familiarity(team_b, self.teammate_history, exponent))
        opponents = cross_team_familiarity(team_a, team_b, self.teammate_history)
        return teammates * c['teammate_weight'] + opponents * c['opponent_weight']

    def recent_partnership_penalty(self, teams: Teams, recent_games: Dict[str, GameRecord]) -> float:
        penalty = 0
        for team in (teams.team_a, teams.team_b):
            if len(team) != 2:
                continue
            first, second = team
            for last_game in (recent_games.get(first.id), recent_games.get(second.id)):
                if last_game is not None and last_game.were_partners(first.id, second.id):
                    penalty += self.coefficients['recent_partnership_penalty']
                    break
        return penalty

    def skill_balance_penalty(self, teams: Teams) -> float:
        return abs(average_skill(teams.team_a) - average_skill(teams.team_b)) * self.coefficients['skill_balance_weight']

    def score(self, teams: Teams, recent_games: Optional[Dict[str, GameRecord]] = None) -> float:
        return (self.familiarity(teams.team_a, teams.team_b)
                + self.recent_partnership_penalty(teams, recent_games or {})
                + self.skill_balance_penalty(teams))

    def ranked(self, players: List[Player], recent_games: Optional[Dict[str, GameRecord]] = None) -> List[Teams]:
        """All candidate splits with their penalty, best first (stable on ties)."""
        candidates = generate_team_combinations(players)
        for teams in candidates:
            teams.penalty = self.score(teams, recent_games)
        return sorted(candidates, key=lambda t: t.penalty)

    def balance(self, players: List[Player], recent_games: Optional[Dict[str, GameRecord]] = None) -> Teams:
        ranked = self.ranked(players, recent_games)
        if self.variety_mode and len(ranked) > 1:
            weights = self.coefficients['variety_weights'][:len(ranked)]
            chosen = self.rng.choices(ranked[:len(weights)], weights=weights, k=1)[0]
        else:
            chosen = ranked[0]
        logger.debug('Teams chosen: %r', chosen)
        return chosen

    def find_balanced_group(self, players: List[Player]) -> Optional[List[Player]]:
        """Pick the most even four-player group, preferring players of one skill tier.

        Returns the group in court slot order (team A then team B) or None when
        every candidate group has a teammate skill gap that is too wide.
        """
        if len(players) < COURT_CAPACITY:
            return None

        ranked = sorted(players, key=lambda p: -p.skill_level)
        tiers = get_skill_tiers(ranked)
        advanced = [p for p in ranked if p.skill_level >= tiers['advanced']]
        intermediate = [p for p in ranked if tiers['intermediate'] <= p.skill_level < tiers['advanced']]
        beginner = [p for p in ranked if p.skill_level < tiers['intermediate']]

        if len(advanced) >= COURT_CAPACITY:
            groups = [list(g) for g in combinations(advanced, COURT_CAPACITY)]
        elif len(intermediate) >= COURT_CAPACITY:
            groups = [list(g) for g in combinations(intermediate, COURT_CAPACITY)]
        elif len(beginner) >= COURT_CAPACITY:
            groups = [list(g) for g in combinations(beginner, COURT_CAPACITY)]
        else:
            # No single tier is big enough; take close-skill windows instead
            total_range = ranked[0].skill_level - ranked[-1].skill_level
            groups = []
            for i in range(len(ranked) - COURT_CAPACITY + 1):
                window = ranked[i:i + COURT_CAPACITY]
                if window[0].skill_level - window[-1].skill_level <= total_range / 2:
                    groups.append(window)

        best_group = None
        best_score = math.inf
        for group in groups:
            score, teams = self.evaluate_group_balance(group, tiers)
            if score < best_score:
                best_score = score
                best_group = teams.players

        return best_group if best_score != math.inf else None

    def evaluate_group_balance(self, group: List[Player], tiers: Dict[str, float]):
        """Score a group by its better split (snake 0+3 v 1+2, or adjacent 0+1 v 2+3)."""
        ranked = sorted(group, key=lambda p: -p.skill_level)
        teamings = [
            Teams([ranked[0], ranked[3]], [ranked[1], ranked[2]]),
            Teams([ranked[0], ranked[1]], [ranked[2], ranked[3]]),
        ]

        best_teams = None
        best_score = math.inf
        for teams in teamings:
            score = self.evaluate_teaming(teams)
            if score < best_score:
                best_score = score
                best_teams = teams

        if best_teams is None:
            return math.inf, teamings[0]

        c = self.coefficients
        power_difference = abs(team_power(best_teams.team_a) - team_power(best_teams.team_b))
        score = power_difference * c['power_difference_weight']

        skill_gap = ranked[0].skill_level - ranked[-1].skill_level
        is_top_tier = (best_teams.team_a[0].skill_level >= tiers['advanced']
                       or best_teams.team_b[0].skill_level >= tiers['advanced'])
        if is_top_tier and skill_gap <= 1:
            score -= c['tight_group_bonus']
        if power_difference == 0:
            score -= c['perfect_balance_bonus']

        best_teams.penalty = score
        return score, best_teams

    def evaluate_teaming(self, teams: Teams) -> float:
        """Power difference of a split, or infinity when a team's own skill gap is too wide."""
        everyone = [p.skill_level for p in teams.players]
        max_acceptable_gap = max(2, (max(everyone) - min(everyone)) / 3)
        for team in (teams.team_a, teams.team_b):
            if abs(team[0].skill_level - team[1].skill_level) > max_acceptable_gap:
                return math.inf
        return abs(team_power(teams.team_a) - team_power(teams.team_b))
