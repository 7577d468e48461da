from typing import Optional

NAMESPACE = '/ws'


class Broadcaster:
    """Fans events out to the live connections of a room's players.

    Players whose connection dropped (``sid is None``) are skipped; they are
    resynchronised when they rejoin.
    """

    def __init__(self, socketio, namespace: str = NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def to_sid(self, sid: str, event: str, payload=None) -> None:
        args = () if payload is None else (payload,)
        self.socketio.emit(event, *args, to=sid, namespace=self.namespace)

    def to_player(self, player, event: str, payload=None) -> None:
        if player is not None and player.sid:
            self.to_sid(player.sid, event, payload)

    def to_room(self, room, event: str, payload=None, exclude: Optional[str] = None) -> None:
        for player in list(room.players.values()):
            if player.id != exclude:
                self.to_player(player, event, payload)

    def player_list(self, room) -> None:
        self.to_room(room, 'player_list', room.player_list())
