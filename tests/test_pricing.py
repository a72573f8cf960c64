"""Tests for the market pricing engine."""

import random

import pytest
from decimal import Decimal

from player_economy.currency import CurrencyAmount
from player_economy.errors import InvalidRequestError, NotFoundError
from player_economy.events import EventBus
from player_economy.item import Item
from player_economy.pricing import PricingEngine, Trend
from player_economy.scheduler import ManualClock


class FixedRandom(random.Random):
    """Random source that always returns the same value."""

    def __init__(self, value: float):
        super().__init__()
        self.value = value

    def random(self) -> float:
        return self.value


class TestPricingEngine:
    def setup_method(self):
        self.clock = ManualClock()
        self.events = EventBus(self.clock)
        self.engine = PricingEngine(self.clock, self.events, rng=random.Random(7))
        self.engine.seed_defaults()

    def test_default_catalog(self):
        assert self.engine.price_of("health_potion") == Decimal("10")
        assert self.engine.price_of("magic_ring") == Decimal("500")
        assert self.engine.get("iron_sword").volatility == Decimal("0.2")
        assert self.engine.price_of("dragon_egg") is None

    def test_appraise_counts_untracked_as_zero(self):
        items = [Item("health_potion", "Health Potion", quantity=3), Item("dragon_egg", "Dragon Egg")]
        assert self.engine.appraise(items) == Decimal("30")

    def test_offer_value(self):
        items = [Item("iron_sword", "Iron Sword")]
        assert self.engine.offer_value(items, CurrencyAmount(gold=5, silver=10)) == Decimal("106")

    def test_update_price_sets_trend_and_announces(self):
        record = self.engine.update_price("iron_sword", Decimal("120"), volume=4)
        assert record.trend == Trend.RISING
        assert record.volume == 4

        self.engine.update_price("iron_sword", Decimal("90"))
        assert self.engine.get("iron_sword").trend == Trend.FALLING
        self.engine.update_price("iron_sword", Decimal("90"))
        assert self.engine.get("iron_sword").trend == Trend.STABLE

        announced = self.events.history("market.priceUpdated")
        assert len(announced) == 3
        assert announced[0].payload["old_price"] == Decimal("100")
        assert announced[0].payload["new_price"] == Decimal("120")

    def test_update_price_unknown_item(self):
        with pytest.raises(NotFoundError):
            self.engine.update_price("dragon_egg", Decimal("5"))

    def test_update_price_rejects_non_positive(self):
        with pytest.raises(InvalidRequestError):
            self.engine.update_price("iron_sword", Decimal("0"))
        assert self.engine.price_of("iron_sword") == Decimal("100")

    def test_drift_is_bounded_by_volatility(self):
        engine = PricingEngine(self.clock, self.events, rng=FixedRandom(0.75))
        engine.track("iron_sword", Decimal("100"), Decimal("0.2"))
        engine.drift(10_000)
        # (0.75 - 0.5) * 0.2 * 10s
        assert engine.price_of("iron_sword") == Decimal("100.5")

    def test_drift_never_goes_below_minimum(self):
        engine = PricingEngine(self.clock, self.events, rng=FixedRandom(0.0))
        engine.track("health_potion", Decimal("2"), Decimal("1"))
        engine.drift(60_000)
        assert engine.price_of("health_potion") == Decimal("1")

    def test_drift_ignores_zero_elapsed(self):
        self.engine.drift(0)
        assert self.engine.price_of("mana_potion") == Decimal("15")

    def test_record_sale_ignores_untracked(self):
        assert self.engine.record_sale("dragon_egg", Decimal("50"), 1) is None
        record = self.engine.record_sale("mana_potion", Decimal("12.5"), 2)
        assert record.current_price == Decimal("12.5")
        assert record.volume == 2

    def test_track_is_idempotent(self):
        first = self.engine.track("health_potion", Decimal("999"))
        assert first.base_price == Decimal("10")
