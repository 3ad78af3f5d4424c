"""
Rotation settings: defaults overlaid by an optional YAML file.
"""
import copy
import logging
import os

import yaml


logger = logging.getLogger(__name__)


def get_default_settings():
    """Return default settings."""
    return {
        'court_count': 5,
        'history_limit': 100,
        'min_skill_level': 1,
        'max_skill_level': 10,
        'selection_mode': 'weighted',
        'variety_mode': False,
        'tiered_candidate_count': 8,
        'resting_threshold_minutes': 10,
        'scoring': {
            'base_score': 100,
            'no_games_bonus': 200,
            'games_played_weight': 100,
            'never_played_bonus': 150,
            'wait_bonus': 100,
            'wait_cap_minutes': 60,
            'status_bonus': {
                'nogames': 50,
                'waiting': 30,
                'queued': 0,
                'resting': -20,
                'playing': -100,
            },
            'partner_diversity_weight': 10,
            'skill_deviation_weight': 15,
            'similar_skill_bonus': 0,
            'similar_skill_range': 2,
            'min_score': 1,
        },
        'balancing': {
            'familiarity_exponent': 1.5,
            'teammate_weight': 2,
            'opponent_weight': 1,
            'recent_partnership_penalty': 100000,
            'skill_balance_weight': 50,
            'variety_weights': [0.7, 0.2, 0.1],
            'power_difference_weight': 100,
            'tight_group_bonus': 1000,
            'perfect_balance_bonus': 500,
        },
    }


def merge_settings(data):
    """Merge a (possibly partial) settings dict with the defaults."""
    settings = get_default_settings()
    if not data:
        return settings
    for key, value in data.items():
        if isinstance(value, dict) and isinstance(settings.get(key), dict):
            merged = settings[key]
            for sub_key, sub_value in value.items():
                if isinstance(sub_value, dict) and isinstance(merged.get(sub_key), dict):
                    merged[sub_key].update(sub_value)
                else:
                    merged[sub_key] = sub_value
        else:
            settings[key] = value
    return settings


def load_settings(path=None):
    """Load settings from YAML file, merging with defaults."""
    if not path or not os.path.exists(path):
        return get_default_settings()
    with open(path, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(f'Failed to parse {path}: {e}')
            return get_default_settings()
    if data is not None and not isinstance(data, dict):
        logger.warning(f'Ignoring {path}: expected a mapping')
        return get_default_settings()
    return merge_settings(data)


def save_settings(settings, path):
    """Save settings to YAML file."""
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.dump(copy.deepcopy(settings), f, default_flow_style=False)


def court_ids(settings):
    return [f"court-{i}" for i in range(1, int(settings.get('court_count', 5)) + 1)]
