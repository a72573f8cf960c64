"""Economy facade: the single entry point for player intents and periodic ticks."""

import copy
import random
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Set
from uuid import UUID

import structlog
from pydantic import BaseModel, ValidationError

from .auction import Auction
from .auction_house import AuctionHouse
from .channels import ChannelPolicy, TradeChannel
from .currency import CurrencyAmount, CurrencyKind
from .errors import EconomyError, ErrorKind, InvalidRequestError
from .events import Announcement, EventBus
from .holdings import Holdings
from .intents import INTENT_MODELS
from .item import Item
from .negotiation import TradeNegotiationMachine
from .persistence import price_from_record, price_record, trade_from_record, trade_record
from .player import PlayerRef
from .pricing import MarketPriceRecord, PricingEngine
from .reputation import DecayPolicy, ReputationLedger, ReputationTier
from .rwlock import RWLock
from .scheduler import MonotonicClock, Scheduler
from .search import SearchFilters, SearchResult, SortOrder, search_market
from .settings import EconomySettings
from .trade import Trade

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OperationResult:
    """
    Outcome of one intent.

    Attributes:
        ok: Whether the intent was applied
        value: Resulting entity (a copy) when ok
        error: Error kind when rejected
        code: Numeric error code when rejected
        message: Human-readable rejection reason
    """
    ok: bool
    value: Any = None
    error: Optional[ErrorKind] = None
    code: Optional[int] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None) -> "OperationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, err: EconomyError) -> "OperationResult":
        return cls(ok=False, error=err.kind, code=err.code, message=err.message)


@dataclass(frozen=True)
class TickSummary:
    fired: int
    timed_out: int
    expired: int
    elapsed_ms: int


class Economy:
    """
    Owns every economy component and serialises access to them.

    Intent methods never raise component errors: each returns an
    OperationResult, with rejections logged at warning level. Mutations
    hold the write lock; accessors hold the read lock and return copies.
    The lock is re-entrant, so announcement subscribers may call back in.
    """

    def __init__(
        self,
        settings: Optional[EconomySettings] = None,
        clock=None,
        rng: Optional[random.Random] = None,
        channels: Optional[Iterable[TradeChannel]] = None,
        holdings: Optional[Holdings] = None,
    ):
        """
        Build an economy with default channels and the default price catalog.

        Args:
            settings: Limits; read from the environment if omitted
            clock: Time source; a monotonic clock if omitted
            rng: Random source for price drift
            channels: Channel set replacing the defaults
            holdings: Existing wallets and inventories
        """
        self.settings = settings or EconomySettings()
        self.clock = clock or MonotonicClock()
        self._rwlock = RWLock()

        self.events = EventBus(self.clock, self.settings.event_history_size)
        self.scheduler = Scheduler(self.clock)
        self.channel_policy = ChannelPolicy(channels)
        self.holdings = holdings or Holdings()
        self.ledger = ReputationLedger(
            self.events,
            min_reputation=self.settings.min_reputation,
            max_reputation=self.settings.max_reputation,
            decay_rate=self.settings.reputation_decay_rate,
            decay_policy=DecayPolicy(self.settings.reputation_decay_policy),
        )
        self.pricing = PricingEngine(self.clock, self.events, rng, self.settings.min_market_price)
        self.pricing.seed_defaults()

        components = (
            self.settings,
            self.clock,
            self.scheduler,
            self.events,
            self.channel_policy,
            self.pricing,
            self.ledger,
            self.holdings,
        )
        self.negotiation = TradeNegotiationMachine(*components, channel_participants=self._channel_participants)
        self.auction_house = AuctionHouse(*components, channel_participants=self._channel_participants)

        self._last_tick = self.clock.now_ms()
        self.scheduler.call_every(self.settings.market_update_interval_ms, "market.drift", self._scheduled_drift)

        self._handlers: Dict[str, Callable[[Any], OperationResult]] = {
            "trade.initiate": lambda i: self.initiate_trade(
                i.initiator.to_ref(), i.counterparty.to_ref(), i.to_items(), i.to_currency(), i.channel_id
            ),
            "trade.accept": lambda i: self.accept_trade(i.trade_id, i.player_id),
            "trade.decline": lambda i: self.decline_trade(i.trade_id, i.player_id, i.reason),
            "trade.modify": lambda i: self.modify_trade(i.trade_id, i.player_id, i.to_items(), i.to_currency()),
            "trade.cancel": lambda i: self.cancel_trade(i.trade_id, i.player_id, i.reason),
            "trade.complete": lambda i: self.complete_trade(i.trade_id),
            "auction.list": lambda i: self.list_auction(
                i.seller.to_ref(), i.item.to_item(), i.starting_price, i.duration_ms,
                i.channel_id, i.buyout_price, i.currency,
            ),
            "auction.bid": lambda i: self.place_bid(i.auction_id, i.bidder.to_ref(), i.amount),
            "auction.buyout": lambda i: self.buyout(i.auction_id, i.buyer.to_ref()),
            "auction.expire": lambda i: self.expire_auction(i.auction_id),
            "market.priceUpdate": lambda i: self.update_price(i.item_id, i.new_price, i.volume),
            "market.search": lambda i: self.search(i.query, i.filters.to_filters(), i.sort_by, i.limit),
            "reputation.update": lambda i: self.update_reputation(i.player_id, i.change, i.reason),
        }

    # Internals

    def _channel_participants(self, channel_id: str) -> Set[str]:
        return self.negotiation.participants(channel_id) | self.auction_house.participants(channel_id)

    def _scheduled_drift(self) -> None:
        self.pricing.drift(self.settings.market_update_interval_ms)

    def _reject(self, intent: str, err: EconomyError) -> OperationResult:
        logger.warning("intent_rejected", intent=intent, kind=err.kind.value, code=err.code, reason=err.message)
        return OperationResult.failure(err)

    def _apply(self, intent: str, operation: Callable[..., Any], *args: Any) -> OperationResult:
        """Run a component operation under the write lock, converting its errors."""
        with self._rwlock.write():
            try:
                value = operation(*args)
            except EconomyError as e:
                return self._reject(intent, e)
            except ArithmeticError as e:
                return self._reject(intent, InvalidRequestError(f"amount out of range ({type(e).__name__})"))
            return OperationResult.success(copy.deepcopy(value))

    # Trades

    def initiate_trade(
        self,
        initiator: PlayerRef,
        counterparty: PlayerRef,
        items: List[Item],
        currency: CurrencyAmount,
        channel_id: str = "global",
    ) -> OperationResult:
        """
        Open a trade offering ``items`` from the initiator for ``currency``.

        Returns:
            OperationResult holding the new trade
        """
        return self._apply(
            "trade.initiate", self.negotiation.initiate, initiator, counterparty, items, currency, channel_id
        )

    def accept_trade(self, trade_id: UUID, player_id: str) -> OperationResult:
        return self._apply("trade.accept", self.negotiation.accept, trade_id, player_id)

    def decline_trade(self, trade_id: UUID, player_id: str, reason: Optional[str] = None) -> OperationResult:
        return self._apply("trade.decline", self.negotiation.decline, trade_id, player_id, reason)

    def modify_trade(
        self,
        trade_id: UUID,
        player_id: str,
        items: List[Item],
        currency: CurrencyAmount,
    ) -> OperationResult:
        return self._apply("trade.modify", self.negotiation.modify, trade_id, player_id, items, currency)

    def cancel_trade(self, trade_id: UUID, player_id: str, reason: Optional[str] = None) -> OperationResult:
        return self._apply("trade.cancel", self.negotiation.cancel, trade_id, player_id, reason)

    def complete_trade(self, trade_id: UUID) -> OperationResult:
        """Settle an accepted trade now instead of waiting out the grace period."""
        return self._apply("trade.complete", self.negotiation.complete, trade_id)

    # Auctions

    def list_auction(
        self,
        seller: PlayerRef,
        item: Item,
        starting_price: Decimal,
        duration_ms: int,
        channel_id: str = "global",
        buyout_price: Optional[Decimal] = None,
        currency: CurrencyKind = CurrencyKind.GOLD,
    ) -> OperationResult:
        return self._apply(
            "auction.list", self.auction_house.list,
            seller, item, starting_price, duration_ms, channel_id, buyout_price, currency,
        )

    def place_bid(self, auction_id: UUID, bidder: PlayerRef, amount: Decimal) -> OperationResult:
        return self._apply("auction.bid", self.auction_house.bid, auction_id, bidder, amount)

    def buyout(self, auction_id: UUID, buyer: PlayerRef) -> OperationResult:
        return self._apply("auction.buyout", self.auction_house.buyout, auction_id, buyer)

    def expire_auction(self, auction_id: UUID) -> OperationResult:
        return self._apply("auction.expire", self.auction_house.expire, auction_id)

    # Market, reputation, channels

    def update_price(self, item_id: str, new_price: Decimal, volume: int = 1) -> OperationResult:
        return self._apply("market.priceUpdate", self.pricing.update_price, item_id, new_price, volume)

    def update_reputation(self, player_id: str, change: float, reason: Optional[str] = None) -> OperationResult:
        return self._apply("reputation.update", self.ledger.update, player_id, change, reason)

    def set_channel_active(self, channel_id: str, active: bool) -> OperationResult:
        return self._apply("channel.setActive", self.channel_policy.set_active, channel_id, active)

    def search(
        self,
        query: Optional[str] = None,
        filters: Optional[SearchFilters] = None,
        sort_by: Optional[SortOrder] = None,
        limit: Optional[int] = None,
    ) -> OperationResult:
        """
        Search open trades and active auctions, announcing the results.

        Args:
            query: Case-insensitive item name substring
            filters: Price range (gold value), item type and rarity
            sort_by: price_asc, price_desc, time_asc or time_desc
            limit: Maximum number of results

        Returns:
            OperationResult holding a list of SearchResult
        """
        if sort_by is not None:
            try:
                sort_by = SortOrder(sort_by)
            except ValueError:
                return self._reject("market.search", InvalidRequestError(f"unknown sort order {sort_by!r}"))
        if limit is not None and limit < 0:
            return self._reject("market.search", InvalidRequestError(f"limit cannot be negative, got {limit}"))

        with self._rwlock.write():
            try:
                results = search_market(
                    self.negotiation.active_trades(),
                    self.auction_house.active_auctions(),
                    self.clock.now_ms(),
                    query=query,
                    filters=filters,
                    sort_by=sort_by,
                    limit=limit,
                )
            except ArithmeticError as e:
                return self._reject(
                    "market.search", InvalidRequestError(f"amount out of range ({type(e).__name__})")
                )
            self.events.publish("market.searchResults", {"query": query, "results": list(results)})
        return OperationResult.success(results)

    def dispatch(self, intent_name: str, payload: Optional[Dict[str, Any]] = None) -> OperationResult:
        """
        Apply a named inbound intent.

        Args:
            intent_name: One of the names in INTENT_MODELS, e.g. "auction.bid"
            payload: Raw intent fields, validated by the matching model

        Returns:
            OperationResult; unknown names and malformed payloads are
            rejected as InvalidRequest
        """
        model = INTENT_MODELS.get(intent_name)
        if model is None:
            return self._reject(intent_name, InvalidRequestError(f"unknown intent {intent_name!r}"))
        try:
            intent: BaseModel = model.model_validate(payload or {})
        except ValidationError as e:
            detail = "; ".join(
                f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
            )
            return self._reject(intent_name, InvalidRequestError(detail))
        return self._handlers[intent_name](intent)

    # Time

    def tick(self, now_ms: Optional[int] = None) -> TickSummary:
        """
        Drive every time-based transition up to ``now_ms``.

        Runs due scheduled tasks (grace-period completions, auction expiry,
        recurring drift), then sweeps trade timeouts and expired auctions,
        then applies price drift and reputation decay for the time elapsed
        since the previous tick.
        """
        with self._rwlock.write():
            now = self.clock.now_ms() if now_ms is None else now_ms
            elapsed = max(0, now - self._last_tick)
            self._last_tick = max(self._last_tick, now)

            fired = self.scheduler.run_due(now)
            timed_out = self.negotiation.sweep_timeouts(now)
            expired = self.auction_house.sweep_expired(now)
            self.pricing.drift(elapsed)
            self.ledger.decay(elapsed)

        if fired or timed_out or expired:
            logger.debug("tick", fired=fired, timed_out=len(timed_out), expired=len(expired), elapsed_ms=elapsed)
        return TickSummary(fired=fired, timed_out=len(timed_out), expired=len(expired), elapsed_ms=elapsed)

    # Holdings administration

    def deposit(self, player_id: str, amount: CurrencyAmount) -> CurrencyAmount:
        with self._rwlock.write():
            return self.holdings.deposit(player_id, amount)

    def grant_items(self, player_id: str, items: Iterable[Item]) -> Dict[str, int]:
        with self._rwlock.write():
            self.holdings.grant_items(player_id, items)
            return self.holdings.inventory(player_id)

    # Read-only accessors

    def active_trades(self) -> List[Trade]:
        with self._rwlock.read():
            return copy.deepcopy(self.negotiation.active_trades())

    def trade_history(self, player_id: Optional[str] = None) -> List[Trade]:
        with self._rwlock.read():
            return copy.deepcopy(self.negotiation.history(player_id))

    def trade(self, trade_id: UUID) -> Optional[Trade]:
        """Look up a trade, active or closed."""
        with self._rwlock.read():
            for trade in self.negotiation.active_trades() + self.negotiation.history():
                if trade.trade_id == trade_id:
                    return copy.deepcopy(trade)
            return None

    def auctions(self, active_only: bool = False) -> List[Auction]:
        with self._rwlock.read():
            auctions = self.auction_house.active_auctions()
            if not active_only:
                auctions += self.auction_house.closed_auctions()
            return copy.deepcopy(auctions)

    def auction(self, auction_id: UUID) -> Optional[Auction]:
        with self._rwlock.read():
            try:
                return copy.deepcopy(self.auction_house.get(auction_id))
            except EconomyError:
                return None

    def market_prices(self) -> Dict[str, MarketPriceRecord]:
        with self._rwlock.read():
            return {r.item_id: copy.copy(r) for r in self.pricing.records()}

    def reputation(self, player_id: str) -> float:
        with self._rwlock.read():
            return self.ledger.score(player_id)

    def reputation_tier(self, player_id: str) -> ReputationTier:
        with self._rwlock.read():
            return self.ledger.tier(player_id)

    def balance(self, player_id: str) -> CurrencyAmount:
        with self._rwlock.read():
            return self.holdings.balance(player_id)

    def inventory(self, player_id: str) -> Dict[str, int]:
        with self._rwlock.read():
            return self.holdings.inventory(player_id)

    def channels(self) -> List[TradeChannel]:
        with self._rwlock.read():
            return self.channel_policy.channels()

    def announcements(self, name: Optional[str] = None) -> List[Announcement]:
        with self._rwlock.read():
            return self.events.history(name)

    # Announcements

    def subscribe(self, name: str, handler: Callable[[Announcement], Any]) -> None:
        self.events.subscribe(name, handler)

    def unsubscribe(self, name: str, handler: Callable[[Announcement], Any]) -> bool:
        return self.events.unsubscribe(name, handler)

    # Persistence

    def snapshot(self) -> Dict[str, Any]:
        """Serialise trade history, market prices and reputation."""
        with self._rwlock.read():
            return {
                "trade_history": {str(t.trade_id): trade_record(t) for t in self.negotiation.history()},
                "market_prices": {r.item_id: price_record(r) for r in self.pricing.records()},
                "reputation": self.ledger.scores(),
                "saved_at": self.clock.now_ms(),
            }

    def restore(self, state: Dict[str, Any]) -> OperationResult:
        """
        Replace trade history, market prices and reputation from a snapshot.

        The whole snapshot is decoded before anything is replaced, so a
        malformed snapshot leaves the economy untouched.
        """
        try:
            trades = [trade_from_record(r) for r in state.get("trade_history", {}).values()]
            prices = [price_from_record(r) for r in state.get("market_prices", {}).values()]
            scores = {str(p): float(s) for p, s in state.get("reputation", {}).items()}
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            return self._reject("economy.restore", InvalidRequestError(f"malformed snapshot: {e}"))

        with self._rwlock.write():
            self.negotiation.load_history(trades)
            if prices:
                self.pricing.load(prices)
            self.ledger.load(scores)
        logger.info("economy_restored", trades=len(trades), prices=len(prices), players=len(scores))
        return OperationResult.success(len(trades))
