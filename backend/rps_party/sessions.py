import logging
import threading
from contextlib import ExitStack, contextmanager
from typing import Dict, Optional, Tuple

from rps_party.exceptions import NotFoundError, StateError, ValidationError
from rps_party.models import FINISHED, LOBBY, PLAYING, RESULTS, grace_slot
from rps_party.services.games.engine import join_url, require_host
from rps_party.services.games.scoring import build_leaderboard

logger = logging.getLogger(__name__)


@contextmanager
def _room_locks(*rooms):
    """Hold the locks of several rooms, always acquired in room-id order."""
    ordered = sorted({r.id: r for r in rooms if r is not None}.values(), key=lambda r: r.id)
    with ExitStack() as stack:
        for r in ordered:
            stack.enter_context(r.lock)
        yield


class SessionManager:
    """Binds Socket.IO connections to players.

    A player's id is stable for the life of the room; the connection sid is
    not. ``_bindings`` maps each live sid to ``(room_id, player_id)`` and a
    reconnect simply rebinds a new sid to the same player.

    Host policy: the room lives and dies with its host. When the host leaves,
    or fails to reconnect within the grace period, the room is torn down and
    every remaining player receives ``host_left``.
    """

    def __init__(self, registry, engine, chat, broadcaster, config):
        self.registry = registry
        self.engine = engine
        self.chat = chat
        self.broadcaster = broadcaster
        self.grace = float(config.get('RECONNECT_GRACE_SEC', 10))
        self.max_username_length = int(config.get('MAX_USERNAME_LENGTH', 20))
        self.allow_suffix = bool(config.get('ALLOW_USERNAME_SUFFIX', False))
        self.public_base_url = config.get('PUBLIC_BASE_URL', '')
        self._bindings: Dict[str, Tuple[str, str]] = {}
        self._lock = threading.Lock()

    # ---- binding table ----

    def _bind(self, sid: str, room, player) -> None:
        with self._lock:
            self._bindings[sid] = (room.id, player.id)

    def _unbind(self, sid: Optional[str]) -> None:
        if sid is None:
            return
        with self._lock:
            self._bindings.pop(sid, None)

    def binding(self, sid: str) -> Optional[Tuple[str, str]]:
        with self._lock:
            return self._bindings.get(sid)

    def resolve(self, sid: str):
        """Return ``(room, player)`` for a connection or raise NotFoundError."""
        bound = self.binding(sid)
        room = self.registry.lookup_by_id(bound[0]) if bound else None
        player = room.players.get(bound[1]) if room else None
        if player is None or player.sid != sid:
            raise NotFoundError('You are not in a room')
        return room, player

    def _seat(self, sid: str):
        try:
            return self.resolve(sid)
        except NotFoundError:
            return None, None

    # ---- intents ----

    def create_room(self, sid: str, username):
        name = self._clean_username(username)
        self._detach(sid)
        room, host = self.registry.create_room(name, sid)
        with room.lock:
            self._bind(sid, room, host)
            self.broadcaster.to_sid(sid, 'room_created', self._welcome(room, host))
            self.broadcaster.to_sid(sid, 'became_host')
            self.chat.send_history(room, host)
            self.broadcaster.player_list(room)
        return room, host

    def join_room(self, sid: str, room_code, username):
        name = self._clean_username(username)
        room = self.registry.lookup_by_code(room_code)
        if room is None:
            raise NotFoundError('Room not found')
        current, _ = self._seat(sid)
        with _room_locks(room, current):
            if room.closed:
                raise NotFoundError('Room not found')
            if current is room:
                raise StateError('You are already in this room')
            if room.state != LOBBY:
                raise StateError('Game already in progress')
            name = self._unique_username(room, name)
            # every check passed: only now give up the previous seat
            self._detach(sid)
            player = room.add_player(name, sid)
            self._bind(sid, room, player)
            logger.info(f"[join] room={room.id[:8]} player={player.id} username={name}")
            self.broadcaster.to_sid(sid, 'room_joined', self._welcome(room, player))
            self.chat.send_history(room, player)
            self.broadcaster.player_list(room)
            self.broadcaster.to_room(room, 'player_joined', {'username': name}, exclude=player.id)
        return room, player

    def rejoin_room(self, sid: str, room_code, username):
        room = self.registry.lookup_by_code(room_code)
        if room is None:
            self.broadcaster.to_sid(sid, 'rejoin_failed')
            return None
        current, seated = self._seat(sid)
        with _room_locks(room, current):
            player = room.find_by_username(username)
            if room.closed or player is None:
                self.broadcaster.to_sid(sid, 'rejoin_failed')
                return None
            if seated is not None and seated is not player:
                self._detach(sid)
                if room.closed:
                    self.broadcaster.to_sid(sid, 'rejoin_failed')
                    return None
            if player.sid and player.sid != sid:
                # another tab or a stale socket: the newest connection wins
                self._unbind(player.sid)
            player.sid = sid
            self._bind(sid, room, player)
            room.timers.cancel(grace_slot(player.id))
            logger.info(f"[rejoin] room={room.id[:8]} player={player.id} username={player.username}")
            self.broadcaster.to_sid(sid, 'rejoin_succeeded', self._snapshot(room, player))
            self.chat.send_history(room, player)
            if room.state in (RESULTS, FINISHED) and player.id in room.last_results:
                self.broadcaster.to_sid(sid, 'game_results', room.last_results[player.id])
            if room.state == FINISHED and room.game_over:
                self.broadcaster.to_sid(sid, 'game_over', room.game_over)
            self.broadcaster.player_list(room)
        return room, player

    def leave_room(self, sid: str) -> None:
        room, player = self.resolve(sid)
        with room.lock:
            self._remove_player(room, player)

    def kick_player(self, sid: str, target_id) -> None:
        room, player = self.resolve(sid)
        with room.lock:
            require_host(room, player, 'Only the host can kick players')
            if target_id == player.id:
                raise ValidationError('Cannot kick yourself')
            target = room.players.get(target_id) if isinstance(target_id, str) else None
            if target is None:
                raise NotFoundError('Player not found')
            room.timers.cancel(grace_slot(target.id))
            del room.players[target.id]
            if target.sid:
                self.broadcaster.to_sid(target.sid, 'kicked')
                self._unbind(target.sid)
            logger.info(f"[kick] room={room.id[:8]} player={target.id} username={target.username}")
            self.broadcaster.player_list(room)
            self.broadcaster.to_room(room, 'player_kicked', {'username': target.username})
            self.chat.purge_sender(room, target.id)

    def disconnect(self, sid: str) -> None:
        bound = self.binding(sid)
        self._unbind(sid)
        if not bound:
            return
        room = self.registry.lookup_by_id(bound[0])
        if room is None:
            return
        with room.lock:
            player = room.players.get(bound[1])
            if player is None or player.sid != sid:
                return
            player.sid = None
            logger.info(f"[disconnect] room={room.id[:8]} player={player.id} grace={self.grace}s")
            if self.grace <= 0:
                self._remove_player(room, player)
                return
            player_id = player.id
            room.timers.arm(grace_slot(player_id), self.grace, lambda: self._expire_grace(room, player_id))
            self.broadcaster.player_list(room)

    # ---- roster mutation ----

    def _expire_grace(self, room, player_id: str) -> None:
        with room.lock:
            player = room.players.get(player_id)
            if room.closed or player is None or player.is_connected:
                return
            self._remove_player(room, player)

    def _remove_player(self, room, player) -> None:
        room.timers.cancel(grace_slot(player.id))
        room.players.pop(player.id, None)
        if player.sid:
            self._unbind(player.sid)
            player.sid = None
        logger.info(f"[leave] room={room.id[:8]} player={player.id} host={player.is_host}")
        if player.is_host:
            self._teardown(room)
            return
        if self.registry.remove_if_empty(room):
            return
        self.broadcaster.player_list(room)
        self.broadcaster.to_room(room, 'player_left', {'username': player.username})

    def _teardown(self, room) -> None:
        for other in list(room.players.values()):
            if other.sid:
                self.broadcaster.to_sid(other.sid, 'host_left')
                self._unbind(other.sid)
                other.sid = None
        room.players.clear()
        self.registry.remove(room)

    def _detach(self, sid: str) -> None:
        """Leave whatever room this connection is currently bound to."""
        try:
            room, player = self.resolve(sid)
        except NotFoundError:
            self._unbind(sid)
            return
        with room.lock:
            self._remove_player(room, player)

    # ---- payloads & validation ----

    def _clean_username(self, username) -> str:
        name = username.strip() if isinstance(username, str) else ''
        if not name:
            raise ValidationError('Username is required')
        if len(name) > self.max_username_length:
            raise ValidationError(f'Username must be at most {self.max_username_length} characters')
        return name

    def _unique_username(self, room, name: str) -> str:
        if room.find_by_username(name) is None:
            return name
        if not self.allow_suffix:
            raise ValidationError('Username already taken')
        counter = 1
        while True:
            suffix = str(counter)
            candidate = name[:self.max_username_length - len(suffix)] + suffix
            if room.find_by_username(candidate) is None:
                return candidate
            counter += 1

    def _welcome(self, room, player):
        return {
            'room_id': room.id,
            'room_code': room.code,
            'join_url': join_url(self.public_base_url, room.code),
            'player_id': player.id,
            'username': player.username,
            'is_host': player.is_host,
            'chat_locked': room.chat_locked,
        }

    def _snapshot(self, room, player):
        payload = self._welcome(room, player)
        playing = room.state == PLAYING
        payload.update({
            'game_state': room.state,
            'round_number': room.round_number,
            'timer_remaining': self.engine.timer_remaining(room) if playing else None,
            'opponent': self.engine.opponent_name(room, player.id) if playing else None,
            'your_choice': player.choice,
            'wins': player.wins,
            'leaderboard': build_leaderboard(room),
        })
        return payload
