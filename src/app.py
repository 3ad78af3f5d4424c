"""
Flask JSON API for the court rotation engine.
"""
import os
import threading

from flask import Flask, jsonify, request

from rotation.engine import GameManager
from rotation.errors import (
    CapacityError,
    InsufficientPlayersError,
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    RotationError,
    ValidationError,
)
from rotation.models import skill_level_name
from rotation.settings import load_settings
from rotation.storage import YamlStateStore

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('ROTATION_DATA_DIR', os.path.join(BASE_DIR, 'data'))
SETTINGS_FILE = os.path.join(DATA_DIR, 'settings.yaml')
STATE_FILE = os.path.join(DATA_DIR, 'state.yaml')

ERROR_STATUS = {
    NotFoundError: 404,
    CapacityError: 409,
    InvalidStateError: 409,
    InsufficientPlayersError: 422,
    ValidationError: 400,
    PersistenceError: 500,
}

_manager = None
_manager_lock = threading.Lock()


def get_manager() -> GameManager:
    """Create the engine on first use from the data directory."""
    global _manager
    with _manager_lock:
        if _manager is None:
            settings = load_settings(SETTINGS_FILE)
            _manager = GameManager(storage=YamlStateStore(STATE_FILE), settings=settings)
            _manager.events.on('operation:failed', _log_failure)
            app.logger.info(f'Rotation engine loaded from {STATE_FILE}')
        return _manager


def reset_manager():
    """Forget the cached engine so the next request reloads it."""
    global _manager
    with _manager_lock:
        _manager = None


def _log_failure(payload):
    app.logger.warning(f"{payload['operation']} failed: {payload['error']}")


def player_json(player, manager=None):
    data = player.to_dict()
    data['skill_name'] = skill_level_name(player.skill_level)
    if manager is not None:
        data['display_status'] = manager.describe_player_status(player.id)
    return data


def court_json(court, now):
    data = court.to_dict()
    data['players'] = [p.to_dict() for p in court.players]
    data['queue'] = [[p.to_dict() for p in group] for group in court.queued_groups()]
    elapsed = court.elapsed_time(now)
    data['elapsed'] = {'minutes': elapsed[0], 'seconds': elapsed[1]} if elapsed else None
    return data


def teams_json(teams):
    if teams is None:
        return None
    return {
        'team_a': [p.to_dict() for p in teams.team_a],
        'team_b': [p.to_dict() for p in teams.team_b],
    }


def _json_body():
    return request.get_json(silent=True) or {}


@app.errorhandler(RotationError)
def handle_rotation_error(error):
    status = ERROR_STATUS.get(type(error), 400)
    return jsonify({'success': False, 'error': str(error)}), status


@app.route('/api/state', methods=['GET'])
def api_state():
    """Full roster, courts and recent history."""
    manager = get_manager()
    now = manager.now()
    return jsonify({
        'success': True,
        'players': [player_json(p, manager) for p in manager.get_available_players()],
        'courts': [court_json(c, now) for c in manager.courts.values()],
        'game_history': manager.history.to_list(),
    })


@app.route('/api/players', methods=['POST'])
def api_add_player():
    data = _json_body()
    player = get_manager().add_player(data.get('name', ''), data.get('skill_level', 1))
    return jsonify({'success': True, 'player': player_json(player)}), 201


@app.route('/api/players/import', methods=['POST'])
def api_import_players():
    data = _json_body()
    count = get_manager().import_players(data.get('names', ''))
    return jsonify({'success': True, 'added': count})


@app.route('/api/players/<player_id>/level', methods=['POST'])
def api_adjust_level(player_id):
    data = _json_body()
    if 'level' not in data:
        return jsonify({'success': False, 'error': 'Level is required.'}), 400
    player = get_manager().adjust_player_level(player_id, data['level'])
    return jsonify({'success': True, 'player': player_json(player)})


@app.route('/api/players/<player_id>/status', methods=['GET'])
def api_player_status(player_id):
    manager = get_manager()
    player = manager.get_player(player_id)
    return jsonify({
        'success': True,
        'status': manager.describe_player_status(player.id),
        'queue_position': manager.queue_position(player.id),
        'recent_games': [r.to_dict() for r in manager.get_recent_games(player.id, 5)],
    })


@app.route('/api/courts/<court_id>/assign', methods=['POST'])
def api_assign(court_id):
    data = _json_body()
    manager = get_manager()
    court = manager.assign_player_to_court(data.get('player_id'), court_id)
    return jsonify({'success': True, 'court': court_json(court, manager.now())})


@app.route('/api/courts/<court_id>/start', methods=['POST'])
def api_start_game(court_id):
    manager = get_manager()
    court = manager.start_game(court_id)
    return jsonify({'success': True, 'court': court_json(court, manager.now())})


@app.route('/api/courts/<court_id>/complete', methods=['POST'])
def api_complete_game(court_id):
    manager = get_manager()
    record = manager.complete_game(court_id)
    return jsonify({
        'success': True,
        'record': record.to_dict(),
        'court': court_json(manager.get_court(court_id), manager.now()),
    })


@app.route('/api/courts/<court_id>/queue', methods=['POST'])
def api_add_to_queue(court_id):
    data = _json_body()
    player_ids = data.get('player_ids') or []
    if not isinstance(player_ids, list):
        return jsonify({'success': False, 'error': 'player_ids must be a list.'}), 400
    manager = get_manager()
    added = manager.add_to_queue(court_id, player_ids)
    return jsonify({
        'success': True,
        'added': [p.id for p in added],
        'court': court_json(manager.get_court(court_id), manager.now()),
    })


@app.route('/api/courts/<court_id>/queue/<int:index>', methods=['DELETE'])
def api_remove_queue_group(court_id, index):
    manager = get_manager()
    removed = manager.remove_queue_group(court_id, index)
    return jsonify({'success': True, 'removed': [p.id for p in removed]})


@app.route('/api/courts/<court_id>/magic-queue', methods=['POST'])
def api_court_magic_queue(court_id):
    manager = get_manager()
    teams = manager.handle_magic_queue(court_id)
    if teams is None:
        return jsonify({'success': False, 'error': 'Magic queue already processing.'}), 409
    return jsonify({
        'success': True,
        'teams': teams_json(teams),
        'court': court_json(manager.get_court(court_id), manager.now()),
    })


@app.route('/api/courts/<court_id>/reset', methods=['POST'])
def api_reset_court(court_id):
    manager = get_manager()
    court = manager.reset_court(court_id)
    return jsonify({'success': True, 'court': court_json(court, manager.now())})


@app.route('/api/magic-queue', methods=['POST'])
def api_magic_queue():
    teams = get_manager().magic_queue()
    return jsonify({'success': True, 'teams': teams_json(teams)})


@app.route('/api/reset', methods=['POST'])
def api_reset():
    get_manager().reset()
    app.logger.info('All rotation data reset')
    return jsonify({'success': True})


if __name__ == '__main__':
    app.run(debug=True, port=5000)
