"""Player snapshots supplied with inbound intents."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PlayerRef:
    """
    Caller-confirmed state of a player at the time of an intent.

    The engine never looks players up; presence, location and combat state
    are taken from this snapshot.
    """
    player_id: str
    level: int = 1
    online: bool = True
    area_id: Optional[str] = None
    in_combat: bool = False

    def __post_init__(self):
        if not self.player_id:
            raise ValueError("Player id is required")

    def __repr__(self) -> str:
        return f"PlayerRef({self.player_id}, lvl={self.level})"
