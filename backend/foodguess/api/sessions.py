from flask import Blueprint, jsonify
from foodguess.services.games.sessions import SqlSessionStore

sessions = Blueprint('sessions', __name__)


@sessions.route('/<string:player_key>', methods=['GET'])
def get_session_stats(player_key):
    """
    Returns what the player has already been shown.
    """
    store = SqlSessionStore(player_key)
    if not store.exists():
        return jsonify({'error': 'Session not found'}), 404
    return jsonify(store.load().stats()), 200


@sessions.route('/<string:player_key>', methods=['DELETE'])
def reset_session(player_key):
    """
    Forgets everything the player has seen, so any dish may come up again.
    """
    store = SqlSessionStore(player_key)
    if not store.exists():
        return jsonify({'error': 'Session not found'}), 404
    store.reset()
    return jsonify({'message': 'Session reset.'}), 200
