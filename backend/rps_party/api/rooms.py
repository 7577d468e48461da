from flask import Blueprint, current_app, jsonify

from rps_party.services.games.engine import join_url

rooms = Blueprint('rooms', __name__)


@rooms.route('/<string:room_code>', methods=['GET'])
def get_room(room_code):
    """Public summary of a room, used by the ?room=CODE deep link before joining."""
    room = current_app.extensions['rps_party'].registry.lookup_by_code(room_code)
    if room is None:
        return jsonify({'error': 'Room not found'}), 404
    with room.lock:
        payload = room.to_summary()
    payload['joinable'] = payload['state'] == 'lobby'
    payload['join_url'] = join_url(current_app.config.get('PUBLIC_BASE_URL', ''), payload['room_code'])
    return jsonify(payload)
