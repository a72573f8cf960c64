"""Market price records with stochastic drift and trend tracking."""

import random
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Optional

import structlog

from .currency import CurrencyAmount
from .errors import InvalidRequestError, NotFoundError
from .item import Item

logger = structlog.get_logger(__name__)

PRICE_QUANTUM = Decimal("0.0001")


class Trend(str, Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


@dataclass
class MarketPriceRecord:
    """
    Simulated market price of one item kind.

    Attributes:
        item_id: Item kind
        base_price: Price the record was seeded with
        current_price: Latest price, never below the engine's minimum
        volatility: Scale of the random drift per second
        volume: Units traded through recorded sales and price updates
        trend: Direction of the last explicit price update
        last_update: Monotonic milliseconds of the last change
    """
    item_id: str
    base_price: Decimal
    current_price: Decimal
    volatility: Decimal
    volume: int = 0
    trend: Trend = Trend.STABLE
    last_update: int = 0


DEFAULT_PRICES = (
    ("health_potion", Decimal("10"), Decimal("0.1")),
    ("mana_potion", Decimal("15"), Decimal("0.1")),
    ("iron_sword", Decimal("100"), Decimal("0.2")),
    ("magic_ring", Decimal("500"), Decimal("0.3")),
)


class PricingEngine:
    """
    Owns every MarketPriceRecord.

    Prices move two ways: ``drift`` perturbs all records by a random amount
    bounded by ``volatility * elapsed seconds / 2``; ``update_price`` sets a
    price explicitly and recomputes the trend.
    """

    def __init__(self, clock, events, rng: Optional[random.Random] = None, min_price: Decimal = Decimal("1")):
        self.clock = clock
        self.events = events
        self.rng = rng or random.Random()
        self.min_price = Decimal(min_price)
        self._records: Dict[str, MarketPriceRecord] = {}

    def track(self, item_id: str, base_price: Decimal, volatility: Decimal = Decimal("0.1")) -> MarketPriceRecord:
        """Start tracking an item, or return its existing record."""
        if item_id in self._records:
            return self._records[item_id]
        base_price = Decimal(base_price)
        if base_price <= 0:
            raise ValueError("Base price must be positive")
        record = MarketPriceRecord(
            item_id=item_id,
            base_price=base_price,
            current_price=max(self.min_price, base_price),
            volatility=Decimal(volatility),
            last_update=self.clock.now_ms(),
        )
        self._records[item_id] = record
        return record

    def seed_defaults(self) -> None:
        for item_id, base_price, volatility in DEFAULT_PRICES:
            self.track(item_id, base_price, volatility)

    def get(self, item_id: str) -> Optional[MarketPriceRecord]:
        return self._records.get(item_id)

    def price_of(self, item_id: str) -> Optional[Decimal]:
        record = self._records.get(item_id)
        return record.current_price if record else None

    def records(self) -> List[MarketPriceRecord]:
        return list(self._records.values())

    def appraise(self, items: Iterable[Item]) -> Decimal:
        """Sum of quantity x current price; untracked items are worth nothing."""
        total = Decimal(0)
        for item in items:
            price = self.price_of(item.item_id)
            if price is not None:
                total += price * item.quantity
        return total

    def offer_value(self, items: Iterable[Item], currency: CurrencyAmount) -> Decimal:
        """Gold value of an offer: appraised items plus currency."""
        return self.appraise(items) + currency.value()

    def drift(self, elapsed_ms: int) -> None:
        """Apply one random-walk step sized to the elapsed time."""
        if elapsed_ms <= 0:
            return
        now = self.clock.now_ms()
        seconds = Decimal(elapsed_ms) / 1000
        for record in self._records.values():
            jitter = Decimal(repr(self.rng.random() - 0.5))
            change = (jitter * record.volatility * seconds).quantize(PRICE_QUANTUM)
            record.current_price = max(self.min_price, record.current_price + change)
            record.last_update = now

    def update_price(self, item_id: str, new_price: Decimal, volume: int = 1) -> MarketPriceRecord:
        """
        Set an item's price explicitly.

        Raises:
            NotFoundError: If the item is not tracked
            InvalidRequestError: If the price is not positive
        """
        record = self._records.get(item_id)
        if record is None:
            raise NotFoundError("Price record", item_id)
        new_price = Decimal(new_price)
        if new_price <= 0:
            raise InvalidRequestError(f"price must be positive, got {new_price}")
        if volume < 0:
            raise InvalidRequestError(f"volume cannot be negative, got {volume}")

        old_price = record.current_price
        record.current_price = new_price
        record.volume += volume
        record.last_update = self.clock.now_ms()
        if new_price > old_price:
            record.trend = Trend.RISING
        elif new_price < old_price:
            record.trend = Trend.FALLING
        else:
            record.trend = Trend.STABLE

        logger.info("market_price_updated", item=item_id, old=str(old_price), new=str(new_price), trend=record.trend.value)
        self.events.publish("market.priceUpdated", {
            "item_id": item_id,
            "old_price": old_price,
            "new_price": new_price,
            "trend": record.trend,
            "volume": record.volume,
        })
        return record

    def record_sale(self, item_id: str, unit_price: Decimal, volume: int) -> Optional[MarketPriceRecord]:
        """Feed a settled sale back into the market; untracked items are ignored."""
        if item_id not in self._records or unit_price <= 0:
            return None
        return self.update_price(item_id, unit_price.quantize(PRICE_QUANTUM), volume)

    def load(self, records: Iterable[MarketPriceRecord]) -> None:
        self._records = {record.item_id: record for record in records}
