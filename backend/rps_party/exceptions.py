class GameError(Exception):
    """Base class for rejected player intents.

    The message is user-facing: the socket layer sends it back verbatim to
    the connection that issued the intent.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthorizationError(GameError):
    """A non-host attempted a host-only action."""


class ValidationError(GameError):
    """Malformed or illegal input (choice, username, chat text)."""


class NotFoundError(GameError):
    """A room, player or chat message could not be resolved."""


class StateError(GameError):
    """The action is not allowed in the room's current state."""
