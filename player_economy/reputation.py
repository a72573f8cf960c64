"""Per-player trading reputation with bounded range and time decay."""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Mapping, Optional

import structlog

logger = structlog.get_logger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class ReputationTier:
    name: str
    min_score: float
    max_score: float
    color: str


REPUTATION_TIERS = (
    ReputationTier("Hated", -1000, -500, "#ff0000"),
    ReputationTier("Disliked", -500, -100, "#ff8000"),
    ReputationTier("Neutral", -100, 100, "#ffff00"),
    ReputationTier("Liked", 100, 500, "#80ff00"),
    ReputationTier("Respected", 500, 1000, "#00ff00"),
    ReputationTier("Honored", 1000, 2000, "#00ff80"),
    ReputationTier("Revered", 2000, 5000, "#0080ff"),
    ReputationTier("Exalted", 5000, 10000, "#8000ff"),
)


def tier_for(score: float) -> ReputationTier:
    """
    Map a score onto its tier.

    Tiers are half-open ``[min, max)``; scores outside the table fall into
    the nearest end tier.
    """
    for tier in REPUTATION_TIERS:
        if tier.min_score <= score < tier.max_score:
            return tier
    if score < REPUTATION_TIERS[0].min_score:
        return REPUTATION_TIERS[0]
    return REPUTATION_TIERS[-1]


class DecayPolicy(str, Enum):
    """How periodic decay moves scores."""
    TOWARD_MIN = "toward_min"
    TOWARD_ZERO = "toward_zero"


class ReputationLedger:
    """
    Reputation scores keyed by player id.

    Every score stays within ``[min_reputation, max_reputation]``. Players
    never seen have a score of 0 and are not tracked until updated.
    """

    def __init__(
        self,
        events,
        min_reputation: float = -1000.0,
        max_reputation: float = 10000.0,
        decay_rate: float = 0.01,
        decay_policy: DecayPolicy = DecayPolicy.TOWARD_MIN,
    ):
        if min_reputation >= max_reputation:
            raise ValueError("min_reputation must be lower than max_reputation")
        self.events = events
        self.min_reputation = min_reputation
        self.max_reputation = max_reputation
        self.decay_rate = decay_rate
        self.decay_policy = DecayPolicy(decay_policy)
        self._scores: Dict[str, float] = {}

    def _clamp(self, score: float) -> float:
        return max(self.min_reputation, min(self.max_reputation, score))

    def score(self, player_id: str) -> float:
        return self._scores.get(player_id, 0.0)

    def tier(self, player_id: str) -> ReputationTier:
        return tier_for(self.score(player_id))

    def scores(self) -> Dict[str, float]:
        return dict(self._scores)

    def update(self, player_id: str, delta: float, reason: Optional[str] = None) -> float:
        """
        Apply a change and clamp the result.

        Returns:
            The new score
        """
        old = self.score(player_id)
        new = self._clamp(old + delta)
        self._scores[player_id] = new

        logger.info("reputation_updated", player=player_id, old=old, new=new, change=delta, reason=reason)
        self.events.publish("reputation.updated", {
            "player_id": player_id,
            "old_reputation": old,
            "new_reputation": new,
            "change": delta,
            "reason": reason,
        })
        return new

    def decay(self, elapsed_ms: int) -> None:
        """
        Decay every tracked score by ``decay_rate`` points per day elapsed.

        TOWARD_MIN subtracts unconditionally, clamped only at the minimum, so
        negative scores keep sinking. TOWARD_ZERO shrinks the magnitude of
        positive and negative scores alike and stops at zero.
        """
        if elapsed_ms <= 0:
            return
        amount = self.decay_rate * elapsed_ms / DAY_MS

        for player_id, score in self._scores.items():
            if self.decay_policy == DecayPolicy.TOWARD_MIN:
                new = max(self.min_reputation, score - amount)
            elif score > 0:
                new = max(0.0, score - amount)
            else:
                new = min(0.0, score + amount)
            self._scores[player_id] = new

    def load(self, scores: Mapping[str, float]) -> None:
        """Replace all scores, clamping anything out of range."""
        self._scores = {player_id: self._clamp(float(score)) for player_id, score in scores.items()}
