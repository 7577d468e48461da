import functools
import logging

from flask import current_app, request
from flask_socketio import emit

from rps_party import socketio
from rps_party.broadcast import NAMESPACE
from rps_party.exceptions import GameError

logger = logging.getLogger(__name__)


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _services():
    return current_app.extensions['rps_party']


def _field(data, key):
    """Read ``key`` from a payload that may also be sent as a bare value."""
    if isinstance(data, dict):
        return data.get(key)
    if isinstance(data, str):
        return data
    return None


def reports_errors(handler):
    """Turn a rejected intent into a single ``error`` reply to the sender."""

    @functools.wraps(handler)
    def wrapper(*args):
        try:
            return handler(*args)
        except GameError as exc:
            logger.info(f"[rejected] sid={_get_sid()} event={handler.__name__} reason={exc.message}")
            emit('error', {'message': exc.message})

    return wrapper


def handle_connect(auth=None):
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(*_):
    _services().sessions.disconnect(_get_sid())


@reports_errors
def handle_create_room(data=None):
    _services().sessions.create_room(_get_sid(), _field(data, 'username'))


@reports_errors
def handle_join_room(data=None):
    data = data if isinstance(data, dict) else {}
    _services().sessions.join_room(_get_sid(), data.get('room_code'), data.get('username'))


@reports_errors
def handle_rejoin_room(data=None):
    data = data if isinstance(data, dict) else {}
    _services().sessions.rejoin_room(_get_sid(), data.get('room_code'), data.get('username'))


@reports_errors
def handle_leave_room(data=None):
    _services().sessions.leave_room(_get_sid())


@reports_errors
def handle_start_game(data=None):
    svc = _services()
    room, player = svc.sessions.resolve(_get_sid())
    svc.engine.start_game(room, player)


@reports_errors
def handle_make_choice(data=None):
    svc = _services()
    room, player = svc.sessions.resolve(_get_sid())
    svc.engine.submit_choice(room, player, _field(data, 'choice'))


@reports_errors
def handle_kick_player(data=None):
    _services().sessions.kick_player(_get_sid(), _field(data, 'player_id'))


@reports_errors
def handle_return_to_lobby(data=None):
    svc = _services()
    room, player = svc.sessions.resolve(_get_sid())
    svc.engine.return_to_lobby(room, player)


@reports_errors
def handle_cancel_game(data=None):
    svc = _services()
    room, player = svc.sessions.resolve(_get_sid())
    svc.engine.cancel_game(room, player)


@reports_errors
def handle_change_room_code(data=None):
    svc = _services()
    room, player = svc.sessions.resolve(_get_sid())
    svc.engine.rotate_code(room, player)


@reports_errors
def handle_chat_message(data=None):
    svc = _services()
    room, player = svc.sessions.resolve(_get_sid())
    svc.chat.post(room, player, _field(data, 'message'))


@reports_errors
def handle_delete_message(data=None):
    svc = _services()
    room, player = svc.sessions.resolve(_get_sid())
    svc.chat.delete(room, player, _field(data, 'message_id'))


@reports_errors
def handle_toggle_chat_lock(data=None):
    svc = _services()
    room, player = svc.sessions.resolve(_get_sid())
    svc.chat.toggle_lock(room, player)


def handle_ping(data=None):
    emit('pong', data or {})


HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'create_room': handle_create_room,
    'join_room': handle_join_room,
    'rejoin_room': handle_rejoin_room,
    'leave_room': handle_leave_room,
    'start_game': handle_start_game,
    'make_choice': handle_make_choice,
    'kick_player': handle_kick_player,
    'return_to_lobby': handle_return_to_lobby,
    'cancel_game': handle_cancel_game,
    'change_room_code': handle_change_room_code,
    'chat_message': handle_chat_message,
    'delete_message': handle_delete_message,
    'toggle_chat_lock': handle_toggle_chat_lock,
    'ping': handle_ping,
}


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the '/ws' namespace."""
    for event, handler in HANDLERS.items():
        socketio.on_event(event, handler, namespace=NAMESPACE)
