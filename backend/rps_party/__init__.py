import logging

from flask import Flask
from flask.logging import default_handler
from flask_cors import CORS
from flask_socketio import SocketIO

from rps_party.config import Config

socketio = SocketIO(async_mode=None)


def create_app(config_class=Config, scheduler=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    package_logger = logging.getLogger('rps_party')
    package_logger.setLevel(flask_app.config.get('LOG_LEVEL', 'INFO'))
    if not package_logger.handlers:
        package_logger.addHandler(default_handler)

    origins = flask_app.config.get('CORS_ORIGINS') or '*'
    CORS(flask_app, origins=origins)
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    flask_app.extensions['rps_party'] = build_services(flask_app.config, scheduler)

    from rps_party.routes import main
    flask_app.register_blueprint(main)

    from rps_party.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from rps_party.socketio_events import register_socketio_handlers
    register_socketio_handlers()

    interval = float(flask_app.config.get('ROOM_SWEEP_INTERVAL_SEC', 0))
    if interval > 0 and not flask_app.config.get('TESTING'):
        from rps_party.rooms import start_room_sweeper
        start_room_sweeper(socketio, flask_app.extensions['rps_party'].registry, interval)

    return flask_app


def build_services(config, scheduler=None):
    """Wire the room store and game services for one server process."""
    from rps_party.broadcast import Broadcaster
    from rps_party.rooms import RoomRegistry
    from rps_party.services import PartyServices
    from rps_party.services.chat import ChatService
    from rps_party.services.games.engine import GameEngine
    from rps_party.services.games.scheduler import SocketIOScheduler
    from rps_party.sessions import SessionManager

    scheduler = scheduler or SocketIOScheduler(socketio)
    registry = RoomRegistry(
        scheduler,
        code_length=int(config.get('ROOM_CODE_LENGTH', 4)),
        chat_history_limit=int(config.get('CHAT_HISTORY_LIMIT', 100)),
    )
    broadcaster = Broadcaster(socketio)
    engine = GameEngine(registry, broadcaster, config)
    chat = ChatService(broadcaster, config, clock=scheduler.now)
    sessions = SessionManager(registry, engine, chat, broadcaster, config)
    return PartyServices(
        scheduler=scheduler,
        registry=registry,
        broadcaster=broadcaster,
        engine=engine,
        chat=chat,
        sessions=sessions,
    )
