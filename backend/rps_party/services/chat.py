import logging
import uuid

from rps_party.exceptions import NotFoundError, StateError, ValidationError
from rps_party.models import ChatEntry
from rps_party.services.games.engine import require_host

logger = logging.getLogger(__name__)


class ChatService:
    """Per-room chat log with a host-controlled lock and per-player rate limit."""

    def __init__(self, broadcaster, config, clock):
        self.broadcaster = broadcaster
        self.clock = clock
        self.max_length = int(config.get('CHAT_MAX_LENGTH', 200))
        self.rate_limit = float(config.get('CHAT_RATE_LIMIT_SEC', 1.0))

    def history(self, room):
        return [entry.to_dict() for entry in room.chat_history]

    def send_history(self, room, player) -> None:
        self.broadcaster.to_player(player, 'chat_history', self.history(room))

    def post(self, room, player, text) -> ChatEntry:
        with room.lock:
            message = text.strip() if isinstance(text, str) else ''
            if not message:
                raise ValidationError('Message cannot be empty')
            if len(message) > self.max_length:
                raise ValidationError(f'Message is too long (max {self.max_length} characters)')
            if room.chat_locked and not player.is_host:
                raise StateError('Chat is locked by the host')
            now = self.clock()
            if player.last_message_time is not None and now - player.last_message_time < self.rate_limit:
                raise ValidationError('You are sending messages too quickly')
            player.last_message_time = now
            entry = ChatEntry(
                message_id=uuid.uuid4().hex[:10],
                sender=player.username,
                sender_id=player.id,
                message=message,
                timestamp=now,
            )
            room.chat_history.append(entry)
            self.broadcaster.to_room(room, 'chat_message', entry.to_dict())
            return entry

    def delete(self, room, player, message_id) -> None:
        with room.lock:
            require_host(room, player, 'Only the host can delete messages')
            for entry in room.chat_history:
                if entry.message_id == message_id:
                    room.chat_history.remove(entry)
                    break
            else:
                raise NotFoundError('Message not found')
            self.broadcaster.to_room(room, 'message_deleted', {'message_id': message_id})

    def toggle_lock(self, room, player) -> bool:
        with room.lock:
            require_host(room, player, 'Only the host can lock the chat')
            room.chat_locked = not room.chat_locked
            logger.info(f"[chat-lock] room={room.id[:8]} locked={room.chat_locked}")
            self.broadcaster.to_room(room, 'chat_locked', {'locked': room.chat_locked})
            return room.chat_locked

    def purge_sender(self, room, sender_id: str) -> int:
        with room.lock:
            kept = [entry for entry in room.chat_history if entry.sender_id != sender_id]
            removed = len(room.chat_history) - len(kept)
            if removed:
                room.chat_history.clear()
                room.chat_history.extend(kept)
                self.broadcaster.to_room(room, 'chat_history', self.history(room))
            return removed
