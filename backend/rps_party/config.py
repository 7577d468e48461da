import os


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def _env_origins(name):
    value = os.environ.get(name, '*').strip()
    if value == '*':
        return '*'
    return [o.strip() for o in value.split(',') if o.strip()]


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    CORS_ORIGINS = _env_origins('CORS_ORIGINS')
    # Base URL used when building shareable ?room=CODE links ('' keeps them relative)
    PUBLIC_BASE_URL = os.environ.get('PUBLIC_BASE_URL', '')
    # Round timers (seconds)
    ROUND_DURATION_SEC = float(os.environ.get('ROUND_DURATION_SEC', '15'))
    RESULTS_DURATION_SEC = float(os.environ.get('RESULTS_DURATION_SEC', '5'))
    # Wins needed to finish the game
    WIN_THRESHOLD = int(os.environ.get('WIN_THRESHOLD', '10'))
    # Minimum contestants (host excluded)
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    # Reject odd rosters at start instead of handing out a bye
    REQUIRE_EVEN_PLAYERS = _env_bool('REQUIRE_EVEN_PLAYERS', True)
    # Append a number to clashing usernames instead of rejecting the join
    ALLOW_USERNAME_SUFFIX = _env_bool('ALLOW_USERNAME_SUFFIX', False)
    MAX_USERNAME_LENGTH = int(os.environ.get('MAX_USERNAME_LENGTH', '20'))
    # How long a dropped player keeps their seat. 0 removes immediately.
    RECONNECT_GRACE_SEC = float(os.environ.get('RECONNECT_GRACE_SEC', '10'))
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '4'))
    # Empty-room sweep interval (seconds). 0 disables.
    ROOM_SWEEP_INTERVAL_SEC = float(os.environ.get('ROOM_SWEEP_INTERVAL_SEC', '60'))
    # Chat
    CHAT_MAX_LENGTH = int(os.environ.get('CHAT_MAX_LENGTH', '200'))
    CHAT_HISTORY_LIMIT = int(os.environ.get('CHAT_HISTORY_LIMIT', '100'))
    CHAT_RATE_LIMIT_SEC = float(os.environ.get('CHAT_RATE_LIMIT_SEC', '1.0'))
