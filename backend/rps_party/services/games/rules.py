from typing import Optional

ROCK = 'rock'
PAPER = 'paper'
SCISSORS = 'scissors'
CHOICES = (ROCK, PAPER, SCISSORS)

WIN = 'win'
LOSE = 'lose'
TIE = 'tie'
NO_OPPONENT = 'no_opponent'

# key beats value
BEATS = {
    ROCK: SCISSORS,
    SCISSORS: PAPER,
    PAPER: ROCK,
}


def is_valid_choice(choice) -> bool:
    return isinstance(choice, str) and choice in CHOICES


def resolve_outcome(choice: Optional[str], opponent_choice: Optional[str]) -> str:
    """Outcome of ``choice`` against ``opponent_choice`` from the first player's view.

    A missing choice (``None``) is a no-show: it loses to any submitted move,
    and two no-shows tie.
    """
    if choice is None and opponent_choice is None:
        return TIE
    if opponent_choice is None:
        return WIN
    if choice is None:
        return LOSE
    if choice == opponent_choice:
        return TIE
    return WIN if BEATS[choice] == opponent_choice else LOSE
