from flask import Blueprint, jsonify, request, current_app
from foodguess.services.games.engine import Phase
from foodguess.services.games.registry import get_registry

games = Blueprint('games', __name__)


def _clamp_position(data):
    """Return (lat, lng) from a JSON body, clamped to valid WGS84 ranges, or None."""
    try:
        lat = float(data.get('lat'))
        lng = float(data.get('lng'))
    except (TypeError, ValueError):
        return None
    if lat != lat or lng != lng:  # NaN
        return None
    lat = max(-90.0, min(90.0, lat))
    lng = ((lng + 180.0) % 360.0) - 180.0
    return lat, lng


def _run_action(game_code, action):
    """Apply an engine action under the registry lock and build the response."""
    registry = get_registry()
    with registry.lock:
        live = registry.get(game_code)
        if not live:
            return jsonify({'error': 'Game not found'}), 404
        changed = action(live.engine)
        registry.touch(live)
        state = live.engine.to_dict()
    if not changed:
        return jsonify({'error': f"Action not allowed in phase {state['phase']}", 'state': state}), 409
    return jsonify(state), 200


@games.route('/create', methods=['POST'])
def create_game():
    """
    Starts a new single-player game for the given player key.
    """
    data = request.get_json(silent=True) or {}
    player_key = (data.get('player_key') or '').strip()
    if not player_key:
        return jsonify({'error': 'player_key is required'}), 400
    if len(player_key) > 64:
        return jsonify({'error': 'player_key is too long'}), 400

    registry = get_registry()
    with registry.lock:
        live = registry.create_game(player_key)
        state = live.engine.to_dict()
    if live.engine.phase == Phase.NO_CONTENT:
        current_app.logger.warning(f"[game-create-failed] game={live.code} reason={state['failure_reason']}")
        registry.remove(live.code)
        return jsonify({'error': 'No dishes available to play', 'state': state}), 503
    return jsonify(dict(state, game_code=live.code)), 201


@games.route('/<string:game_code>/state', methods=['GET'])
def get_game_state(game_code):
    registry = get_registry()
    with registry.lock:
        live = registry.get(game_code)
        if not live:
            return jsonify({'error': 'Game not found'}), 404
        registry.touch(live)
        return jsonify(live.engine.to_dict()), 200


@games.route('/<string:game_code>/guess', methods=['POST'])
def place_guess(game_code):
    """
    Moves the player's marker. The round is not closed until submit.
    """
    position = _clamp_position(request.get_json(silent=True) or {})
    if position is None:
        return jsonify({'error': 'lat and lng are required numbers'}), 400
    return _run_action(game_code, lambda engine: engine.register_guess(*position))


@games.route('/<string:game_code>/submit', methods=['POST'])
def submit_guess(game_code):
    """
    Closes the current round. A body with lat/lng places the guess first;
    an empty body submits whatever marker is placed, or no guess at all.
    """
    data = request.get_json(silent=True) or {}
    position = None
    if 'lat' in data or 'lng' in data:
        position = _clamp_position(data)
        if position is None:
            return jsonify({'error': 'lat and lng must be numbers'}), 400
    if position:
        return _run_action(game_code, lambda engine: engine.submit_guess(*position))
    return _run_action(game_code, lambda engine: engine.submit_guess())


@games.route('/<string:game_code>/skip', methods=['POST'])
def skip_results(game_code):
    return _run_action(game_code, lambda engine: engine.skip())


@games.route('/<string:game_code>/pause', methods=['POST'])
def pause_game(game_code):
    return _run_action(game_code, lambda engine: engine.pause())


@games.route('/<string:game_code>/resume', methods=['POST'])
def resume_game(game_code):
    return _run_action(game_code, lambda engine: engine.resume())


@games.route('/<string:game_code>/play-again', methods=['POST'])
def play_again(game_code):
    return _run_action(game_code, lambda engine: engine.play_again())


@games.route('/<string:game_code>/quit', methods=['POST'])
def quit_game(game_code):
    """
    Discards the game entirely; its code stops resolving afterwards.
    """
    live = get_registry().remove(game_code)
    if not live:
        return jsonify({'error': 'Game not found'}), 404
    return jsonify({'message': f'Game {live.code} ended.'}), 200
