"""
Unit tests for state persistence.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from rotation.errors import PersistenceError
from rotation.storage import MemoryStore, YamlStateStore, default_state, is_valid_state


SAMPLE_STATE = {
    'players': [{'id': 'a', 'name': 'Alice', 'status': 'nogames', 'court_id': None,
                 'games_played': 0, 'last_game_time': None, 'skill_level': 3}],
    'courts': {'court-1': {'id': 'court-1', 'status': 'empty', 'players': [], 'queue': [],
                           'start_time': None, 'started_from_queue': False}},
    'game_history': [],
}


class TestStateValidation:
    """Tests for snapshot structure checks."""

    def test_default_state_is_valid(self):
        assert is_valid_state(default_state())

    def test_invalid_shapes(self):
        assert not is_valid_state(None)
        assert not is_valid_state([])
        assert not is_valid_state({'players': {}, 'courts': {}})
        assert not is_valid_state({'players': [], 'courts': []})
        assert not is_valid_state({'players': [], 'courts': {}, 'game_history': 'x'})

    def test_history_is_optional(self):
        assert is_valid_state({'players': [], 'courts': {}})


class TestMemoryStore:
    """Tests for the in-memory store."""

    def test_empty_store_loads_default(self):
        """Test a fresh store loads the empty snapshot."""
        assert MemoryStore().load() == default_state()

    def test_save_copies_state(self):
        """Test later changes to the caller's dict do not leak into the store."""
        store = MemoryStore()
        state = default_state()
        store.save(state)
        state['players'].append({'id': 'x'})
        assert store.load() == default_state()
        assert store.save_count == 1

    def test_load_returns_copy(self):
        """Test changes to a loaded snapshot do not leak back."""
        store = MemoryStore(SAMPLE_STATE)
        loaded = store.load()
        loaded['players'].clear()
        assert len(store.load()['players']) == 1

    def test_invalid_save_rejected(self):
        """Test an invalid snapshot is refused."""
        with pytest.raises(PersistenceError):
            MemoryStore().save({'players': 'nope'})

    def test_clear(self):
        store = MemoryStore(SAMPLE_STATE)
        store.clear()
        assert store.load() == default_state()


class TestYamlStateStore:
    """Tests for the YAML file store."""

    def test_missing_file_loads_default(self, tmp_path):
        """Test a missing snapshot file is not an error."""
        assert YamlStateStore(str(tmp_path / 'state.yaml')).load() == default_state()

    def test_round_trip(self, tmp_path):
        """Test saving then loading returns the same snapshot."""
        store = YamlStateStore(str(tmp_path / 'state.yaml'))
        store.save(SAMPLE_STATE)
        assert store.load() == SAMPLE_STATE
        assert not os.path.exists(str(tmp_path / 'state.yaml.tmp'))

    def test_creates_parent_directory(self, tmp_path):
        """Test the data directory is created on first save."""
        path = tmp_path / 'nested' / 'state.yaml'
        YamlStateStore(str(path)).save(default_state())
        assert path.exists()

    def test_unparseable_file_loads_default(self, tmp_path):
        """Test a corrupt snapshot falls back to the empty state."""
        path = tmp_path / 'state.yaml'
        path.write_text('players: [unclosed\n')
        assert YamlStateStore(str(path)).load() == default_state()

    def test_wrong_structure_loads_default(self, tmp_path):
        """Test a well-formed file with the wrong shape falls back to the empty state."""
        path = tmp_path / 'state.yaml'
        path.write_text('players: 3\ncourts: {}\n')
        assert YamlStateStore(str(path)).load() == default_state()

    def test_empty_file_loads_default(self, tmp_path):
        path = tmp_path / 'state.yaml'
        path.write_text('')
        assert YamlStateStore(str(path)).load() == default_state()

    def test_missing_history_defaults(self, tmp_path):
        """Test older snapshots without a game history still load."""
        path = tmp_path / 'state.yaml'
        path.write_text('players: []\ncourts: {}\n')
        assert YamlStateStore(str(path)).load() == default_state()

    def test_clear_removes_file(self, tmp_path):
        path = tmp_path / 'state.yaml'
        store = YamlStateStore(str(path))
        store.save(SAMPLE_STATE)
        store.clear()
        assert not path.exists()
        store.clear()

    def test_invalid_save_rejected(self, tmp_path):
        """Test an invalid snapshot is refused before touching the disk."""
        path = tmp_path / 'state.yaml'
        with pytest.raises(PersistenceError):
            YamlStateStore(str(path)).save({'players': None, 'courts': {}})
        assert not path.exists()

    def test_unwritable_target_raises(self, tmp_path):
        """Test write failures surface as PersistenceError."""
        target = tmp_path / 'state.yaml'
        target.mkdir()
        with pytest.raises(PersistenceError):
            YamlStateStore(str(target)).save(default_state())
