import random
import string
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from rps_party.services.games.scheduler import TimerSlots

# Room states
LOBBY = 'lobby'
PLAYING = 'playing'
RESULTS = 'results'
FINISHED = 'finished'

# Timer slot names
ROUND_SLOT = 'round'
RESULTS_SLOT = 'results'


def grace_slot(player_id: str) -> str:
    return f'grace:{player_id}'


def generate_room_code(length=4, taken=()):
    """Generate a short room code that is not in ``taken``."""
    while True:
        code = ''.join(random.choices(string.ascii_uppercase + string.digits, k=length))
        if code not in taken:
            return code


def normalize_room_code(code) -> str:
    if not isinstance(code, str):
        return ''
    return code.strip().upper()


def new_player_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class Player:
    id: str
    username: str
    sid: Optional[str] = None
    is_host: bool = False
    choice: Optional[str] = None
    wins: int = 0
    round_result: Optional[str] = None
    opponent_choice: Optional[str] = None
    last_message_time: Optional[float] = None

    @property
    def is_connected(self) -> bool:
        return self.sid is not None

    def reset_round(self) -> None:
        self.choice = None
        self.round_result = None
        self.opponent_choice = None

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'is_host': self.is_host,
            'is_ready': self.choice is not None,
            'is_connected': self.is_connected,
            'wins': self.wins,
        }


@dataclass
class ChatEntry:
    message_id: str
    sender: str
    sender_id: str
    message: str
    timestamp: float

    def to_dict(self):
        return {
            'message_id': self.message_id,
            'sender': self.sender,
            'sender_id': self.sender_id,
            'message': self.message,
            'timestamp': self.timestamp,
        }


class Room:
    def __init__(self, code: str, scheduler, chat_history_limit: int = 100):
        self.id = uuid.uuid4().hex
        self.code = code
        self.host_id: Optional[str] = None
        self.state = LOBBY
        self.round_number = 0
        self.players: Dict[str, Player] = {}
        self.pairings: List[Tuple[str, str]] = []
        self.bye: Optional[str] = None
        # usernames of this round's contestants, kept for opponents who leave mid-round
        self.round_usernames: Dict[str, str] = {}
        self.last_results: Dict[str, dict] = {}
        self.game_over: Optional[dict] = None
        self.chat_locked = False
        self.chat_history = deque(maxlen=chat_history_limit)
        self.closed = False
        self.lock = threading.RLock()
        self.timers = TimerSlots(scheduler, lock=self.lock, label=self.id[:8])

    @property
    def host(self) -> Optional[Player]:
        return self.players.get(self.host_id) if self.host_id else None

    def add_player(self, username: str, sid: Optional[str], is_host: bool = False) -> Player:
        player = Player(id=new_player_id(), username=username, sid=sid, is_host=is_host)
        self.players[player.id] = player
        if is_host:
            self.host_id = player.id
        return player

    def contestants(self) -> List[Player]:
        return [p for p in self.players.values() if not p.is_host]

    def find_by_username(self, username) -> Optional[Player]:
        if not isinstance(username, str):
            return None
        wanted = username.strip().casefold()
        for p in self.players.values():
            if p.username.casefold() == wanted:
                return p
        return None

    def find_by_sid(self, sid: str) -> Optional[Player]:
        for p in self.players.values():
            if p.sid == sid:
                return p
        return None

    def opponent_of(self, player_id: str) -> Optional[str]:
        for a, b in self.pairings:
            if a == player_id:
                return b
            if b == player_id:
                return a
        return None

    def pairing_settled(self, pair: Tuple[str, str]) -> bool:
        # A member who left the room can no longer submit
        for pid in pair:
            player = self.players.get(pid)
            if player is not None and player.choice is None:
                return False
        return True

    def all_pairings_settled(self) -> bool:
        return bool(self.pairings) and all(self.pairing_settled(pair) for pair in self.pairings)

    def reset_game(self) -> None:
        self.state = LOBBY
        self.round_number = 0
        self.pairings = []
        self.bye = None
        self.round_usernames = {}
        self.last_results = {}
        self.game_over = None
        for p in self.players.values():
            p.reset_round()
            p.wins = 0

    def player_list(self):
        return [p.to_dict() for p in self.players.values()]

    def to_summary(self):
        return {
            'room_code': self.code,
            'state': self.state,
            'round_number': self.round_number,
            'player_count': len(self.players),
            'chat_locked': self.chat_locked,
        }
