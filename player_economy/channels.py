"""Trade channels: per-channel eligibility, capacity and tax policy."""

from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Set

import structlog

from .errors import IneligiblePairError, NotFoundError
from .player import PlayerRef

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TradeChannel:
    """
    A named trading context.

    Attributes:
        channel_id: Registry key
        name: Display name
        description: Display description
        max_participants: Distinct players allowed in open trades/auctions at once
        tax_rate: Fraction of the settlement price withheld from the seller
        min_level: Minimum player level to participate
        active: Whether the channel accepts new activity
    """
    channel_id: str
    name: str
    description: str
    max_participants: int
    tax_rate: Decimal
    min_level: int = 1
    active: bool = True

    def __post_init__(self):
        if not Decimal(0) <= self.tax_rate <= Decimal(1):
            raise ValueError("Tax rate must be between 0 and 1")

        if self.max_participants < 2:
            raise ValueError("A channel must admit at least two participants")


DEFAULT_CHANNELS = (
    TradeChannel("global", "Global Trade", "Worldwide trading channel", 1000, Decimal("0.05"), 1),
    TradeChannel("guild", "Guild Trade", "Guild-only trading channel", 100, Decimal("0.02"), 10),
    TradeChannel("whisper", "Private Trade", "Direct player-to-player trading", 2, Decimal("0.01"), 1),
    TradeChannel("premium", "Premium Trade", "High-value trading channel", 500, Decimal("0.03"), 50),
)


class ChannelPolicy:
    """Channel registry plus the eligibility rules trades and auctions share."""

    def __init__(self, channels: Optional[Iterable[TradeChannel]] = None):
        self._channels: Dict[str, TradeChannel] = {
            c.channel_id: c for c in (DEFAULT_CHANNELS if channels is None else channels)
        }

    def get(self, channel_id: str) -> TradeChannel:
        channel = self._channels.get(channel_id)
        if channel is None:
            raise NotFoundError("Channel", channel_id)
        return channel

    def channels(self) -> List[TradeChannel]:
        return list(self._channels.values())

    def set_active(self, channel_id: str, active: bool) -> TradeChannel:
        channel = replace(self.get(channel_id), active=active)
        self._channels[channel_id] = channel
        logger.info("channel_toggled", channel=channel_id, active=active)
        return channel

    def check_participant(self, channel: TradeChannel, player: PlayerRef, participants: Set[str]) -> None:
        """
        Check that a single player may act on the channel.

        Raises:
            IneligiblePairError: Inactive channel, level too low, or channel full
        """
        if not channel.active:
            raise IneligiblePairError(f"channel {channel.channel_id} is inactive")
        if player.level < channel.min_level:
            raise IneligiblePairError(
                f"{player.player_id} is level {player.level}, channel {channel.channel_id} requires {channel.min_level}"
            )
        self._check_capacity(channel, {player.player_id}, participants)

    def check_trade(
        self,
        channel: TradeChannel,
        initiator: PlayerRef,
        counterparty: PlayerRef,
        participants: Set[str],
    ) -> None:
        """
        Check that two players may open a trade with each other on the channel.

        Raises:
            IneligiblePairError: If either party is offline, in combat, in a
                different area, below the channel level, or the channel is
                inactive or full
        """
        for player in (initiator, counterparty):
            if not player.online:
                raise IneligiblePairError(f"{player.player_id} is offline")
            if player.in_combat:
                raise IneligiblePairError(f"{player.player_id} is in combat")
        if initiator.area_id != counterparty.area_id:
            raise IneligiblePairError(
                f"{initiator.player_id} and {counterparty.player_id} are in different areas"
            )
        if not channel.active:
            raise IneligiblePairError(f"channel {channel.channel_id} is inactive")
        for player in (initiator, counterparty):
            if player.level < channel.min_level:
                raise IneligiblePairError(
                    f"{player.player_id} is level {player.level}, "
                    f"channel {channel.channel_id} requires {channel.min_level}"
                )
        self._check_capacity(channel, {initiator.player_id, counterparty.player_id}, participants)

    def _check_capacity(self, channel: TradeChannel, joining: Set[str], participants: Set[str]) -> None:
        if len(participants | joining) > channel.max_participants:
            raise IneligiblePairError(
                f"channel {channel.channel_id} is full ({channel.max_participants} participants)"
            )
