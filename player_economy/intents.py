"""Pydantic models for inbound player intents."""

from decimal import Decimal
from typing import Annotated, Dict, List, Optional, Type
from uuid import UUID

from pydantic import BaseModel, Field

from .currency import CurrencyAmount, CurrencyKind
from .item import Item, Rarity
from .player import PlayerRef
from .search import SearchFilters, SortOrder

Quantity = Annotated[Decimal, Field(ge=0)]


class PlayerIn(BaseModel):
    """Player snapshot as sent by the caller."""

    player_id: str = Field(..., min_length=1)
    level: int = Field(default=1, ge=1)
    online: bool = True
    area_id: Optional[str] = None
    in_combat: bool = False

    model_config = {"frozen": True}

    def to_ref(self) -> PlayerRef:
        return PlayerRef(**self.model_dump())


class ItemIn(BaseModel):
    item_id: str = Field(..., min_length=1)
    name: str = Field(default="")
    item_type: str = Field(default="misc")
    rarity: Rarity = Rarity.COMMON
    quantity: int = Field(default=1, gt=0)

    model_config = {"frozen": True}

    def to_item(self) -> Item:
        return Item(
            item_id=self.item_id,
            name=self.name or self.item_id,
            item_type=self.item_type,
            rarity=self.rarity,
            quantity=self.quantity,
        )


class TradeInitiateIntent(BaseModel):
    initiator: PlayerIn
    counterparty: PlayerIn
    items: List[ItemIn]
    currency: Dict[CurrencyKind, Quantity]
    channel_id: str = "global"

    def to_items(self) -> List[Item]:
        return [i.to_item() for i in self.items]

    def to_currency(self) -> CurrencyAmount:
        return CurrencyAmount(self.currency)


class TradeAcceptIntent(BaseModel):
    trade_id: UUID
    player_id: str = Field(..., min_length=1)


class TradeDeclineIntent(BaseModel):
    trade_id: UUID
    player_id: str = Field(..., min_length=1)
    reason: Optional[str] = None


class TradeCancelIntent(BaseModel):
    trade_id: UUID
    player_id: str = Field(..., min_length=1)
    reason: Optional[str] = None


class TradeModifyIntent(BaseModel):
    trade_id: UUID
    player_id: str = Field(..., min_length=1)
    items: List[ItemIn]
    currency: Dict[CurrencyKind, Quantity]

    def to_items(self) -> List[Item]:
        return [i.to_item() for i in self.items]

    def to_currency(self) -> CurrencyAmount:
        return CurrencyAmount(self.currency)


class TradeCompleteIntent(BaseModel):
    trade_id: UUID


class AuctionListIntent(BaseModel):
    seller: PlayerIn
    item: ItemIn
    starting_price: Decimal
    duration_ms: int
    channel_id: str = "global"
    buyout_price: Optional[Decimal] = None
    currency: CurrencyKind = CurrencyKind.GOLD


class AuctionBidIntent(BaseModel):
    auction_id: UUID
    bidder: PlayerIn
    amount: Decimal


class AuctionBuyoutIntent(BaseModel):
    auction_id: UUID
    buyer: PlayerIn


class AuctionExpireIntent(BaseModel):
    auction_id: UUID


class PriceUpdateIntent(BaseModel):
    item_id: str = Field(..., min_length=1)
    new_price: Decimal
    volume: int = Field(default=1, ge=0)


class SearchFiltersIn(BaseModel):
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    item_type: Optional[str] = None
    rarity: Optional[Rarity] = None

    def to_filters(self) -> SearchFilters:
        return SearchFilters(**self.model_dump())


class MarketSearchIntent(BaseModel):
    query: Optional[str] = None
    filters: SearchFiltersIn = Field(default_factory=SearchFiltersIn)
    sort_by: Optional[SortOrder] = None
    limit: Optional[int] = Field(default=None, ge=0)


class ReputationUpdateIntent(BaseModel):
    player_id: str = Field(..., min_length=1)
    change: float
    reason: Optional[str] = None


INTENT_MODELS: Dict[str, Type[BaseModel]] = {
    "trade.initiate": TradeInitiateIntent,
    "trade.accept": TradeAcceptIntent,
    "trade.decline": TradeDeclineIntent,
    "trade.modify": TradeModifyIntent,
    "trade.cancel": TradeCancelIntent,
    "trade.complete": TradeCompleteIntent,
    "auction.list": AuctionListIntent,
    "auction.bid": AuctionBidIntent,
    "auction.buyout": AuctionBuyoutIntent,
    "auction.expire": AuctionExpireIntent,
    "market.priceUpdate": PriceUpdateIntent,
    "market.search": MarketSearchIntent,
    "reputation.update": ReputationUpdateIntent,
}
