import os
import sys
import pytest

# Ensure the backend root (containing the `rps_party` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from rps_party import create_app, socketio
from rps_party.broadcast import Broadcaster
from rps_party.rooms import RoomRegistry
from rps_party.services import PartyServices
from rps_party.services.chat import ChatService
from rps_party.services.games.engine import GameEngine
from rps_party.services.games.scheduler import TimerHandle
from rps_party.sessions import SessionManager


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    LOG_LEVEL = 'DEBUG'
    CORS_ORIGINS = '*'
    PUBLIC_BASE_URL = 'http://party.test'
    ROUND_DURATION_SEC = 15
    RESULTS_DURATION_SEC = 5
    WIN_THRESHOLD = 3
    MIN_PLAYERS = 2
    REQUIRE_EVEN_PLAYERS = True
    ALLOW_USERNAME_SUFFIX = False
    MAX_USERNAME_LENGTH = 20
    RECONNECT_GRACE_SEC = 10
    ROOM_CODE_LENGTH = 4
    ROOM_SWEEP_INTERVAL_SEC = 0
    CHAT_MAX_LENGTH = 200
    CHAT_HISTORY_LIMIT = 100
    CHAT_RATE_LIMIT_SEC = 1.0


def config_dict(**overrides):
    cfg = {k: v for k, v in vars(TestConfig).items() if k.isupper()}
    cfg.update(overrides)
    return cfg


class ManualScheduler:
    """Scheduler double: nothing fires until the test advances the clock."""

    def __init__(self, start=1000.0):
        self.clock = start
        self._pending = []

    def now(self):
        return self.clock

    def call_later(self, delay, callback):
        handle = TimerHandle(self.clock + delay, callback)
        self._pending.append(handle)
        return handle

    def pending(self):
        return [h for h in self._pending if not h.cancelled]

    def advance(self, seconds):
        target = self.clock + seconds
        while True:
            due = [h for h in self._pending if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self._pending.remove(handle)
            self.clock = max(self.clock, handle.when)
            handle.callback()
        self._pending = [h for h in self._pending if not h.cancelled]
        self.clock = target


class RecordingBroadcaster(Broadcaster):
    """Broadcaster that records emits per sid instead of sending them."""

    def __init__(self):
        super().__init__(socketio=None)
        self.sent = []

    def to_sid(self, sid, event, payload=None):
        self.sent.append((sid, event, payload))

    def events(self, sid, name=None):
        return [(event, payload) for s, event, payload in self.sent if s == sid and (name is None or event == name)]

    def last(self, sid, name):
        found = self.events(sid, name)
        return found[-1][1] if found else None

    def count(self, sid, name):
        return len(self.events(sid, name))

    def clear(self):
        self.sent.clear()


class FixedOrder:
    """Deterministic rng: leaves the order untouched."""

    def shuffle(self, items):
        return None


def make_services(scheduler=None, rng=None, **overrides):
    cfg = config_dict(**overrides)
    scheduler = scheduler or ManualScheduler()
    registry = RoomRegistry(scheduler, code_length=cfg['ROOM_CODE_LENGTH'],
                            chat_history_limit=cfg['CHAT_HISTORY_LIMIT'])
    broadcaster = RecordingBroadcaster()
    engine = GameEngine(registry, broadcaster, cfg, rng=rng or FixedOrder())
    chat = ChatService(broadcaster, cfg, clock=scheduler.now)
    sessions = SessionManager(registry, engine, chat, broadcaster, cfg)
    return PartyServices(
        scheduler=scheduler,
        registry=registry,
        broadcaster=broadcaster,
        engine=engine,
        chat=chat,
        sessions=sessions,
    )


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def services(scheduler):
    return make_services(scheduler)


@pytest.fixture()
def lobby(services):
    """A room with host 'Host' (sid h) and contestants Alice (a) and Bob (b)."""
    room, host = services.sessions.create_room('h', 'Host')
    _, alice = services.sessions.join_room('a', room.code, 'Alice')
    _, bob = services.sessions.join_room('b', room.code, 'Bob')
    services.broadcaster.clear()
    return room, host, alice, bob


@pytest.fixture()
def flask_app(scheduler):
    application = create_app(TestConfig, scheduler=scheduler)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws'
        )
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        try:
            if test_client.is_connected('/ws'):
                test_client.disconnect(namespace='/ws')
        except Exception:
            pass
