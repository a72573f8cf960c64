"""Market search across open trades and active auctions."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional
from uuid import UUID

from .auction import Auction
from .item import Item, Rarity
from .trade import Trade


class SortOrder(str, Enum):
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    TIME_ASC = "time_asc"
    TIME_DESC = "time_desc"


@dataclass(frozen=True)
class SearchFilters:
    """
    Optional constraints on search results.

    Attributes:
        min_price: Lowest gold value to include
        max_price: Highest gold value to include
        item_type: Exact item category
        rarity: Exact rarity tier
    """
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    item_type: Optional[str] = None
    rarity: Optional[Rarity] = None

    def price_ok(self, price: Decimal) -> bool:
        if self.min_price is not None and price < self.min_price:
            return False
        if self.max_price is not None and price > self.max_price:
            return False
        return True

    def item_ok(self, item: Item) -> bool:
        if self.item_type is not None and item.item_type != self.item_type:
            return False
        if self.rarity is not None and item.rarity != Rarity(self.rarity):
            return False
        return True


@dataclass(frozen=True)
class SearchResult:
    """
    One market listing.

    For trades ``item`` is the first matching stack and ``price`` the gold
    value of the currency asked; for auctions ``price`` is the current bid
    in gold.
    """
    kind: str
    entity_id: UUID
    item: Item
    price: Decimal
    player_id: str
    timestamp: int
    buyout_price: Optional[Decimal] = None
    time_left: Optional[int] = None


def _name_matches(item: Item, query: Optional[str]) -> bool:
    if not query:
        return True
    needle = query.lower()
    return needle in item.name.lower() or needle in item.item_id.lower()


def _matching_item(items: Iterable[Item], query: Optional[str], filters: SearchFilters) -> Optional[Item]:
    for item in items:
        if _name_matches(item, query) and filters.item_ok(item):
            return item
    return None


_SORT_KEYS = {
    SortOrder.PRICE_ASC: (lambda r: r.price, False),
    SortOrder.PRICE_DESC: (lambda r: r.price, True),
    SortOrder.TIME_ASC: (lambda r: r.timestamp, False),
    SortOrder.TIME_DESC: (lambda r: r.timestamp, True),
}


def search_market(
    trades: Iterable[Trade],
    auctions: Iterable[Auction],
    now_ms: int,
    query: Optional[str] = None,
    filters: Optional[SearchFilters] = None,
    sort_by: Optional[SortOrder] = None,
    limit: Optional[int] = None,
) -> List[SearchResult]:
    """
    Find open trades and active auctions matching a query.

    Args:
        trades: Open trades to search
        auctions: Auctions to search; only active ones are returned
        now_ms: Current time, used for auction ``time_left``
        query: Case-insensitive substring of the item name or id
        filters: Price range (gold value), item type and rarity
        sort_by: Result order; insertion order (trades, then auctions) if omitted
        limit: Maximum number of results

    Returns:
        Matching results
    """
    filters = filters or SearchFilters()
    results: List[SearchResult] = []

    for trade in trades:
        item = _matching_item(trade.items, query, filters)
        price = trade.currency.value()
        if item is None or not filters.price_ok(price):
            continue
        results.append(SearchResult(
            kind="trade",
            entity_id=trade.trade_id,
            item=item,
            price=price,
            player_id=trade.initiator.player_id,
            timestamp=trade.created_at,
        ))

    for auction in auctions:
        if not auction.is_active:
            continue
        item = _matching_item([auction.item], query, filters)
        price = auction.value_of(auction.current_bid)
        if item is None or not filters.price_ok(price):
            continue
        results.append(SearchResult(
            kind="auction",
            entity_id=auction.auction_id,
            item=item,
            price=price,
            player_id=auction.seller.player_id,
            timestamp=auction.created_at,
            buyout_price=auction.value_of(auction.buyout_price) if auction.buyout_price is not None else None,
            time_left=auction.time_left(now_ms),
        ))

    if sort_by is not None:
        key, reverse = _SORT_KEYS[SortOrder(sort_by)]
        results.sort(key=key, reverse=reverse)

    if limit is not None:
        results = results[:max(0, limit)]
    return results
