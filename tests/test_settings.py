"""
Unit tests for loading and saving settings.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from rotation.settings import (
    court_ids, get_default_settings, load_settings, merge_settings, save_settings,
)


class TestDefaults:
    """Tests for the default settings."""

    def test_default_values(self):
        settings = get_default_settings()
        assert settings['court_count'] == 5
        assert settings['history_limit'] == 100
        assert settings['selection_mode'] == 'weighted'
        assert settings['scoring']['base_score'] == 100
        assert settings['scoring']['status_bonus']['resting'] == -20
        assert settings['balancing']['familiarity_exponent'] == 1.5
        assert settings['balancing']['recent_partnership_penalty'] == 100000

    def test_defaults_are_fresh_copies(self):
        """Test callers cannot change the defaults for everyone else."""
        settings = get_default_settings()
        settings['scoring']['status_bonus']['waiting'] = 999
        assert get_default_settings()['scoring']['status_bonus']['waiting'] == 30

    def test_court_ids(self):
        assert court_ids({'court_count': 3}) == ['court-1', 'court-2', 'court-3']
        assert len(court_ids({})) == 5


class TestMergeSettings:
    """Tests for merging partial settings over the defaults."""

    def test_empty_merge(self):
        assert merge_settings(None) == get_default_settings()
        assert merge_settings({}) == get_default_settings()

    def test_top_level_override(self):
        settings = merge_settings({'court_count': 2, 'selection_mode': 'top'})
        assert settings['court_count'] == 2
        assert settings['selection_mode'] == 'top'
        assert settings['history_limit'] == 100

    def test_nested_override_keeps_siblings(self):
        """Test overriding one nested key keeps the other defaults."""
        settings = merge_settings({'scoring': {'wait_bonus': 40, 'status_bonus': {'resting': -50}}})
        assert settings['scoring']['wait_bonus'] == 40
        assert settings['scoring']['base_score'] == 100
        assert settings['scoring']['status_bonus']['resting'] == -50
        assert settings['scoring']['status_bonus']['waiting'] == 30


class TestLoadSaveSettings:
    """Tests for the YAML settings file."""

    def test_missing_file(self, tmp_path):
        assert load_settings(str(tmp_path / 'missing.yaml')) == get_default_settings()
        assert load_settings(None) == get_default_settings()

    def test_partial_file(self, tmp_path):
        path = tmp_path / 'settings.yaml'
        path.write_text('court_count: 3\nbalancing:\n  variety_weights: [0.5, 0.3, 0.2]\n')
        settings = load_settings(str(path))
        assert settings['court_count'] == 3
        assert settings['balancing']['variety_weights'] == [0.5, 0.3, 0.2]
        assert settings['balancing']['teammate_weight'] == 2

    def test_invalid_yaml(self, tmp_path):
        """Test an unparseable file falls back to defaults."""
        path = tmp_path / 'settings.yaml'
        path.write_text('court_count: [3\n')
        assert load_settings(str(path)) == get_default_settings()

    def test_non_mapping(self, tmp_path):
        """Test a list document is ignored."""
        path = tmp_path / 'settings.yaml'
        path.write_text('- 1\n- 2\n')
        assert load_settings(str(path)) == get_default_settings()

    def test_save_and_reload(self, tmp_path):
        path = tmp_path / 'conf' / 'settings.yaml'
        settings = merge_settings({'court_count': 7, 'variety_mode': True})
        save_settings(settings, str(path))
        assert load_settings(str(path)) == settings
