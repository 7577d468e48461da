import logging
import random

from rps_party.exceptions import AuthorizationError, StateError, ValidationError
from rps_party.models import FINISHED, LOBBY, PLAYING, RESULTS, RESULTS_SLOT, ROUND_SLOT
from .pairing import generate_pairings
from .rules import is_valid_choice
from .scoring import build_leaderboard, find_winners, score_current_round

logger = logging.getLogger(__name__)


def require_host(room, player, message: str) -> None:
    if player is None or player.id != room.host_id:
        raise AuthorizationError(message)


def join_url(base_url: str, code: str) -> str:
    return f"{(base_url or '').rstrip('/')}/?room={code}"


class GameEngine:
    """Room lifecycle: lobby -> playing -> results -> (playing | finished).

    Every transition runs under ``room.lock``. Timer callbacks re-check the
    room state and round number, so a stale firing is a no-op.
    """

    def __init__(self, registry, broadcaster, config, rng=None):
        self.registry = registry
        self.broadcaster = broadcaster
        self.rng = rng or random.Random()
        self.round_duration = float(config.get('ROUND_DURATION_SEC', 15))
        self.results_duration = float(config.get('RESULTS_DURATION_SEC', 5))
        self.win_threshold = int(config.get('WIN_THRESHOLD', 10))
        self.min_players = max(2, int(config.get('MIN_PLAYERS', 2)))
        self.require_even = bool(config.get('REQUIRE_EVEN_PLAYERS', True))
        self.public_base_url = config.get('PUBLIC_BASE_URL', '')

    # ---- host intents ----

    def start_game(self, room, player) -> None:
        with room.lock:
            require_host(room, player, 'Only the host can start the game')
            if room.state != LOBBY:
                raise StateError('Game already in progress')
            count = len(room.contestants())
            if count < self.min_players:
                raise StateError(f'Need at least {self.min_players} players to start')
            if self.require_even and count % 2:
                raise StateError('An even number of players is required to start')
            self._begin_round(room)

    def return_to_lobby(self, room, player) -> None:
        with room.lock:
            require_host(room, player, 'Only the host can return to lobby')
            self._reset_to_lobby(room)
            self.broadcaster.to_room(room, 'returned_to_lobby')
            self.broadcaster.player_list(room)

    def cancel_game(self, room, player) -> None:
        with room.lock:
            require_host(room, player, 'Only the host can cancel the game')
            self._reset_to_lobby(room)
            self.broadcaster.to_room(room, 'game_cancelled')
            self.broadcaster.player_list(room)

    def rotate_code(self, room, player) -> str:
        with room.lock:
            require_host(room, player, 'Only the host can change the room code')
            new_code = self.registry.rotate_code(room)
            self.broadcaster.to_room(room, 'room_code_changed', {
                'new_room_code': new_code,
                'join_url': join_url(self.public_base_url, new_code),
            })
            return new_code

    # ---- contestant intents ----

    def submit_choice(self, room, player, choice) -> None:
        with room.lock:
            if room.state != PLAYING:
                raise StateError('Game is not in progress')
            if not is_valid_choice(choice):
                raise ValidationError('Invalid choice')
            if player.is_host:
                raise StateError('The host observes and cannot play')
            if room.opponent_of(player.id) is None:
                raise StateError('You have no opponent this round')
            player.choice = choice
            paired = [pid for pair in room.pairings for pid in pair]
            ready = sum(1 for pid in paired if pid in room.players and room.players[pid].choice)
            self.broadcaster.to_room(room, 'player_ready', {
                'player_id': player.id,
                'username': player.username,
                'ready_count': ready,
                'total_count': len(paired),
            })
            if room.all_pairings_settled():
                logger.info(f"[early-resolve] room={room.id[:8]} round={room.round_number}")
                self.resolve_round(room, room.round_number)

    # ---- timer-driven transitions ----

    def resolve_round(self, room, round_number: int) -> bool:
        with room.lock:
            if room.closed or room.state != PLAYING or room.round_number != round_number:
                logger.info(
                    f"[resolve-skip] room={room.id[:8]} expected_round={round_number} "
                    f"actual_state={room.state} actual_round={room.round_number}"
                )
                return False
            room.timers.cancel(ROUND_SLOT)
            score_current_round(room)
            room.state = RESULTS
            leaderboard = build_leaderboard(room)
            room.last_results = {}
            for p in list(room.players.values()):
                payload = self._results_payload(room, p, leaderboard)
                room.last_results[p.id] = payload
                self.broadcaster.to_player(p, 'game_results', payload)
            logger.info(f"[round-resolved] room={room.id[:8]} round={round_number}")

            winners = find_winners(room, self.win_threshold)
            if winners:
                room.state = FINISHED
                room.game_over = {'winners': winners, 'leaderboard': leaderboard}
                self.broadcaster.to_room(room, 'game_over', room.game_over)
                logger.info(f"[finish] room={room.id[:8]} winners={winners}")
            else:
                room.timers.arm(
                    RESULTS_SLOT,
                    self.results_duration,
                    lambda: self.start_next_round(room, round_number),
                )
            return True

    def start_next_round(self, room, round_number: int) -> bool:
        with room.lock:
            if room.closed or room.state != RESULTS or room.round_number != round_number:
                return False
            if len(room.contestants()) < self.min_players:
                logger.info(f"[next-round-abort] room={room.id[:8]} not enough players")
                self._reset_to_lobby(room)
                self.broadcaster.to_room(room, 'returned_to_lobby')
                self.broadcaster.player_list(room)
                return False
            self._begin_round(room)
            return True

    # ---- helpers ----

    def timer_remaining(self, room):
        return room.timers.remaining(ROUND_SLOT)

    def opponent_name(self, room, player_id):
        opponent_id = room.opponent_of(player_id)
        if opponent_id is None:
            return None
        return room.round_usernames.get(opponent_id)

    def _begin_round(self, room) -> None:
        room.timers.cancel(RESULTS_SLOT)
        room.round_number += 1
        room.state = PLAYING
        room.last_results = {}
        for p in room.players.values():
            p.reset_round()
        contestants = room.contestants()
        room.pairings, room.bye = generate_pairings([p.id for p in contestants], self.rng)
        room.round_usernames = {p.id: p.username for p in contestants}
        round_number = room.round_number
        room.timers.arm(ROUND_SLOT, self.round_duration, lambda: self.resolve_round(room, round_number))
        logger.info(
            f"[round-start] room={room.id[:8]} round={round_number} "
            f"pairs={len(room.pairings)} bye={room.bye}"
        )
        for p in list(room.players.values()):
            self.broadcaster.to_player(p, 'game_started', {
                'round_number': round_number,
                'timer_duration': self.round_duration,
                'opponent': self.opponent_name(room, p.id),
            })
        self.broadcaster.player_list(room)

    def _reset_to_lobby(self, room) -> None:
        room.timers.cancel(ROUND_SLOT)
        room.timers.cancel(RESULTS_SLOT)
        room.reset_game()

    def _results_payload(self, room, player, leaderboard):
        opponent_id = room.opponent_of(player.id)
        return {
            'leaderboard': leaderboard,
            'round_number': room.round_number,
            'your_result': player.round_result,
            'opponent_name': room.round_usernames.get(opponent_id) if opponent_id else None,
            'your_choice': player.choice,
            'opponent_choice': player.opponent_choice,
        }
