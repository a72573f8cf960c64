"""Player-driven trading and market economy engine"""

from .currency import CurrencyAmount, CurrencyKind, Currency, CURRENCY_REGISTRY
from .item import Item, Rarity
from .player import PlayerRef
from .errors import EconomyError, ErrorKind
from .settings import EconomySettings
from .trade import Trade, TradeStatus
from .auction import Auction, AuctionStatus
from .search import SearchFilters, SearchResult, SortOrder
from .scheduler import ManualClock, MonotonicClock
from .facade import Economy, OperationResult
from .rwlock import RWLock

__all__ = [
    "CurrencyAmount", "CurrencyKind", "Currency", "CURRENCY_REGISTRY",
    "Item", "Rarity", "PlayerRef", "EconomyError", "ErrorKind", "EconomySettings",
    "Trade", "TradeStatus", "Auction", "AuctionStatus",
    "SearchFilters", "SearchResult", "SortOrder",
    "ManualClock", "MonotonicClock", "Economy", "OperationResult", "RWLock",
]
