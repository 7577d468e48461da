from typing import List

from .rules import NO_OPPONENT, WIN, resolve_outcome


def score_current_round(room) -> None:
    """Apply scoring for the room's current pairings.

    +1 win to the winner of each pairing. A player who did not submit loses
    to a submitted move; two no-shows tie and nobody scores. The bye gets
    ``no_opponent``. Players who left mid-round are scored as no-shows.
    """
    for a_id, b_id in room.pairings:
        a = room.players.get(a_id)
        b = room.players.get(b_id)
        a_choice = a.choice if a else None
        b_choice = b.choice if b else None
        a_result = resolve_outcome(a_choice, b_choice)
        b_result = resolve_outcome(b_choice, a_choice)
        if a:
            a.round_result = a_result
            a.opponent_choice = b_choice
            if a_result == WIN:
                a.wins += 1
        if b:
            b.round_result = b_result
            b.opponent_choice = a_choice
            if b_result == WIN:
                b.wins += 1
    if room.bye:
        bye = room.players.get(room.bye)
        if bye:
            bye.round_result = NO_OPPONENT


def build_leaderboard(room) -> List[dict]:
    """Contestants sorted by wins, then name."""
    ranked = sorted(room.contestants(), key=lambda p: (-p.wins, p.username.casefold()))
    return [
        {
            'id': p.id,
            'username': p.username,
            'wins': p.wins,
            'is_connected': p.is_connected,
        }
        for p in ranked
    ]


def find_winners(room, threshold: int) -> List[str]:
    return [p.username for p in room.contestants() if p.wins >= threshold]
