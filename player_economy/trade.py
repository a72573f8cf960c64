"""Trade data model and its status machine."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple
from uuid import UUID, uuid4

from .currency import CurrencyAmount
from .item import Item
from .player import PlayerRef


class TradeStatus(str, Enum):
    """Trade lifecycle status."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    TIMEOUT = "timeout"

    @property
    def is_terminal(self) -> bool:
        return self not in (TradeStatus.PENDING, TradeStatus.ACCEPTED)


TRADE_TRANSITIONS: Dict[TradeStatus, FrozenSet[TradeStatus]] = {
    TradeStatus.PENDING: frozenset({
        TradeStatus.ACCEPTED, TradeStatus.DECLINED, TradeStatus.CANCELLED, TradeStatus.TIMEOUT,
    }),
    TradeStatus.ACCEPTED: frozenset({TradeStatus.COMPLETED, TradeStatus.TIMEOUT}),
}

_TIMESTAMP_FIELDS = {
    TradeStatus.ACCEPTED: "accepted_at",
    TradeStatus.COMPLETED: "completed_at",
    TradeStatus.DECLINED: "declined_at",
    TradeStatus.CANCELLED: "cancelled_at",
    TradeStatus.TIMEOUT: "timeout_at",
}


@dataclass
class Trade:
    """
    A bilateral exchange: the initiator offers items, the counterparty pays
    the currency amount.

    Attributes:
        initiator: Seller; the only party who may modify or cancel
        counterparty: Buyer; the only party who may accept or decline
        items: Offered item stacks
        currency: Price the counterparty pays
        channel_id: Channel the trade runs on
        created_at: Monotonic milliseconds at creation
        trade_id: Unique identifier (auto-generated)
        status: Current status
        status_log: Every status entered, with the time it was entered
        tax_paid: Currency withheld from the seller on completion
    """
    initiator: PlayerRef
    counterparty: PlayerRef
    items: List[Item]
    currency: CurrencyAmount
    channel_id: str
    created_at: int
    trade_id: UUID = field(default_factory=uuid4)
    status: TradeStatus = TradeStatus.PENDING
    accepted_at: Optional[int] = None
    modified_at: Optional[int] = None
    completed_at: Optional[int] = None
    declined_at: Optional[int] = None
    cancelled_at: Optional[int] = None
    timeout_at: Optional[int] = None
    decline_reason: Optional[str] = None
    cancel_reason: Optional[str] = None
    tax_paid: Optional[CurrencyAmount] = None
    status_log: List[Tuple[TradeStatus, int]] = field(default_factory=list)

    def __post_init__(self):
        if self.initiator.player_id == self.counterparty.player_id:
            raise ValueError("A player cannot trade with themselves")

        if not self.status_log:
            self.status_log.append((self.status, self.created_at))

    def transition(self, new_status: TradeStatus, at: int) -> None:
        """
        Move to a new status, stamping the matching timestamp.

        Raises:
            ValueError: If the machine has no edge from the current status
        """
        if new_status not in TRADE_TRANSITIONS.get(self.status, frozenset()):
            raise ValueError(f"Trade {self.trade_id} cannot go from {self.status.value} to {new_status.value}")
        self.status = new_status
        setattr(self, _TIMESTAMP_FIELDS[new_status], at)
        self.status_log.append((new_status, at))

    def involves(self, player_id: str) -> bool:
        return player_id in (self.initiator.player_id, self.counterparty.player_id)

    def __repr__(self) -> str:
        return (
            f"Trade({self.status.value} {self.initiator.player_id}->{self.counterparty.player_id} "
            f"items={len(self.items)} for {self.currency.format()}, id={str(self.trade_id)[:8]})"
        )
