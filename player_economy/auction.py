"""Auction data model."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from .currency import CURRENCY_REGISTRY, CurrencyAmount, CurrencyKind
from .item import Item
from .player import PlayerRef


class AuctionStatus(str, Enum):
    """Auction lifecycle status."""
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"


@dataclass
class Auction:
    """
    A time-boxed listing of one item stack.

    Attributes:
        seller: Listing player
        item: Listed (escrowed) item stack
        starting_price: Opening price; the first bid must exceed it
        duration_ms: Listing duration
        channel_id: Channel the auction runs on
        created_at: Monotonic milliseconds at listing
        buyout_price: Instant-purchase price, if offered
        currency: Currency all prices are expressed in
        auction_id: Unique identifier (auto-generated)
        current_bid: Highest bid so far (starting price until the first bid)
        current_bidder: Player holding the highest bid
        bid_count: Accepted bids
    """
    seller: PlayerRef
    item: Item
    starting_price: Decimal
    duration_ms: int
    channel_id: str
    created_at: int
    buyout_price: Optional[Decimal] = None
    currency: CurrencyKind = CurrencyKind.GOLD
    auction_id: UUID = field(default_factory=uuid4)
    current_bid: Decimal = field(init=False)
    current_bidder: Optional[PlayerRef] = None
    bid_count: int = 0
    status: AuctionStatus = AuctionStatus.ACTIVE
    end_time: int = field(init=False)
    last_bid_at: Optional[int] = None
    completed_at: Optional[int] = None
    expired_at: Optional[int] = None
    buyer: Optional[PlayerRef] = None
    final_price: Optional[Decimal] = None
    tax_paid: Optional[Decimal] = None

    def __post_init__(self):
        self.current_bid = self.starting_price
        self.end_time = self.created_at + self.duration_ms

        if self.starting_price <= 0:
            raise ValueError("Starting price must be positive")

        if self.buyout_price is not None and self.buyout_price <= self.starting_price:
            raise ValueError("Buyout price must exceed the starting price")

    @property
    def is_active(self) -> bool:
        return self.status == AuctionStatus.ACTIVE

    def price_amount(self, price: Decimal) -> CurrencyAmount:
        """Express a price in this auction's currency."""
        return CurrencyAmount.of(self.currency, price)

    def value_of(self, price: Decimal) -> Decimal:
        """Gold value of a price in this auction's currency."""
        return price * CURRENCY_REGISTRY[self.currency].base_value

    def time_left(self, now_ms: int) -> int:
        return max(0, self.end_time - now_ms)

    def __repr__(self) -> str:
        return (
            f"Auction({self.status.value} {self.item.quantity}x {self.item.item_id} "
            f"@ {self.current_bid} {self.currency.value}, bids={self.bid_count}, "
            f"id={str(self.auction_id)[:8]})"
        )
