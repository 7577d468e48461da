import logging
import threading
from typing import Dict, List, Optional, Tuple

from rps_party.models import Player, Room, generate_room_code, normalize_room_code

logger = logging.getLogger(__name__)


class RoomRegistry:
    """In-memory store of live rooms, keyed by internal id and by public code.

    The registry lock only guards the two maps. Callers that need a room to
    stay consistent hold ``room.lock`` first; the registry never takes a room
    lock while holding its own.
    """

    def __init__(self, scheduler, code_length: int = 4, chat_history_limit: int = 100):
        self.scheduler = scheduler
        self.code_length = code_length
        self.chat_history_limit = chat_history_limit
        self._rooms: Dict[str, Room] = {}
        self._codes: Dict[str, str] = {}
        self._lock = threading.Lock()

    def create_room(self, host_username: str, host_sid: Optional[str]) -> Tuple[Room, Player]:
        with self._lock:
            code = generate_room_code(self.code_length, taken=self._codes)
            room = Room(code, self.scheduler, chat_history_limit=self.chat_history_limit)
            host = room.add_player(host_username, host_sid, is_host=True)
            self._rooms[room.id] = room
            self._codes[code] = room.id
        logger.info(f"[room-created] room={room.id[:8]} code={code} host={host_username}")
        return room, host

    def lookup_by_code(self, code) -> Optional[Room]:
        key = normalize_room_code(code)
        with self._lock:
            room_id = self._codes.get(key)
            return self._rooms.get(room_id) if room_id else None

    def lookup_by_id(self, room_id) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(room_id)

    def rotate_code(self, room: Room) -> str:
        with self._lock:
            old_code = room.code
            new_code = generate_room_code(self.code_length, taken=self._codes)
            self._codes.pop(old_code, None)
            self._codes[new_code] = room.id
            room.code = new_code
        logger.info(f"[code-rotated] room={room.id[:8]} {old_code} -> {new_code}")
        return new_code

    def remove(self, room: Room) -> None:
        room.closed = True
        room.timers.cancel_all()
        with self._lock:
            self._rooms.pop(room.id, None)
            if self._codes.get(room.code) == room.id:
                del self._codes[room.code]
        logger.info(f"[teardown] room={room.id[:8]} code={room.code}")

    def remove_if_empty(self, room: Room) -> bool:
        with room.lock:
            if room.players:
                return False
            self.remove(room)
            return True

    def sweep_empty(self) -> int:
        removed = 0
        for room in self.rooms():
            if self.remove_if_empty(room):
                removed += 1
        if removed:
            logger.info(f"[sweep] removed {removed} empty room(s)")
        return removed

    def rooms(self) -> List[Room]:
        with self._lock:
            return list(self._rooms.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __contains__(self, room: Room) -> bool:
        with self._lock:
            return room.id in self._rooms


def start_room_sweeper(socketio, registry: RoomRegistry, interval: float) -> None:
    """Periodically drop rooms whose roster emptied without being torn down."""

    def _runner():
        while True:
            socketio.sleep(interval)
            try:
                registry.sweep_empty()
            except Exception:
                logger.exception('[sweep] failed')

    socketio.start_background_task(_runner)
