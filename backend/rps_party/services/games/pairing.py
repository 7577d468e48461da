import random
from typing import List, Optional, Sequence, Tuple


def generate_pairings(player_ids: Sequence[str], rng=None) -> Tuple[List[Tuple[str, str]], Optional[str]]:
    """Shuffle contestants and pair them off two at a time.

    Returns ``(pairs, bye)``. With an odd count the last shuffled player
    sits the round out as the bye; zero or one player yields no pairs.
    """
    rng = rng or random
    order = list(player_ids)
    rng.shuffle(order)
    pairs = [(order[i], order[i + 1]) for i in range(0, len(order) - 1, 2)]
    bye = order[-1] if len(order) % 2 == 1 else None
    return pairs, bye
