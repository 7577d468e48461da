from dataclasses import dataclass
from typing import Any


@dataclass
class PartyServices:
    """Everything the socket handlers and HTTP routes need, built once per app."""

    scheduler: Any
    registry: Any
    broadcaster: Any
    engine: Any
    chat: Any
    sessions: Any
