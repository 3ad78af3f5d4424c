"""
Persistence of the engine snapshot.

A store only has to provide `load()`, `save(state)` and `clear()`. The stores
here never fail on `load`: a missing, unreadable or malformed snapshot yields
`default_state()`. Other stores may raise PersistenceError from `load`, and
the engine then starts empty. `save` and `clear` raise PersistenceError.
"""
import copy
import logging
import os

import yaml
from filelock import FileLock, Timeout

from rotation.errors import PersistenceError


logger = logging.getLogger(__name__)


def default_state():
    return {'players': [], 'courts': {}, 'game_history': []}


def is_valid_state(state) -> bool:
    return (
        isinstance(state, dict)
        and isinstance(state.get('players'), list)
        and isinstance(state.get('courts'), dict)
        and isinstance(state.get('game_history', []), list)
    )


class StateStore:
    def load(self) -> dict:
        raise NotImplementedError

    def save(self, state: dict):
        raise NotImplementedError

    def clear(self):
        raise NotImplementedError


class MemoryStore(StateStore):
    """Keeps a private copy of the last saved snapshot."""

    def __init__(self, state=None):
        self.state = copy.deepcopy(state) if state is not None else None
        self.save_count = 0

    def load(self) -> dict:
        if self.state is None or not is_valid_state(self.state):
            return default_state()
        return copy.deepcopy(self.state)

    def save(self, state: dict):
        if not is_valid_state(state):
            raise PersistenceError('Invalid state object')
        self.state = copy.deepcopy(state)
        self.save_count += 1

    def clear(self):
        self.state = None


class YamlStateStore(StateStore):
    """Snapshot in a YAML file, guarded by a lock file next to it."""

    def __init__(self, path, lock_timeout=10):
        self.path = path
        self.lock = FileLock(f"{path}.lock", timeout=lock_timeout)

    def load(self) -> dict:
        if not os.path.exists(self.path):
            logger.info('No saved state at %s, starting empty', self.path)
            return default_state()
        try:
            with self.lock:
                with open(self.path, 'r', encoding='utf-8') as f:
                    state = yaml.safe_load(f)
        except (OSError, yaml.YAMLError, Timeout) as e:
            logger.warning(f'Failed to load {self.path}: {e}')
            return default_state()
        if state is None:
            return default_state()
        if not is_valid_state(state):
            logger.warning('Invalid state structure in %s, starting empty', self.path)
            return default_state()
        state.setdefault('game_history', [])
        return state

    def save(self, state: dict):
        if not is_valid_state(state):
            raise PersistenceError('Invalid state object')
        try:
            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)
            with self.lock:
                tmp_path = f"{self.path}.tmp"
                with open(tmp_path, 'w', encoding='utf-8') as f:
                    yaml.safe_dump(state, f, default_flow_style=False, sort_keys=False)
                os.replace(tmp_path, self.path)
        except (OSError, yaml.YAMLError, Timeout) as e:
            raise PersistenceError(f'Failed to save state: {e}') from e

    def clear(self):
        try:
            with self.lock:
                if os.path.exists(self.path):
                    os.remove(self.path)
        except (OSError, Timeout) as e:
            raise PersistenceError(f'Failed to clear storage: {e}') from e
