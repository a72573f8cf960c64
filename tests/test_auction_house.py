"""Tests for the auction house."""

import random
from uuid import uuid4

import pytest
from decimal import Decimal

from player_economy.auction import Auction, AuctionStatus
from player_economy.auction_house import AuctionHouse
from player_economy.channels import ChannelPolicy
from player_economy.currency import CurrencyAmount, CurrencyKind
from player_economy.errors import (
    AuctionNotActiveError,
    BidTooLowError,
    IneligiblePairError,
    InsufficientFundsError,
    InvalidAuctionError,
    NotFoundError,
)
from player_economy.events import EventBus
from player_economy.holdings import Holdings
from player_economy.item import Item, Rarity
from player_economy.player import PlayerRef
from player_economy.pricing import PricingEngine
from player_economy.reputation import ReputationLedger
from player_economy.scheduler import ManualClock, Scheduler
from player_economy.settings import EconomySettings

HOUR_MS = 3_600_000


def ring() -> Item:
    return Item("magic_ring", "Magic Ring", "accessory", Rarity.RARE)


class TestAuctionModel:
    def test_end_time_and_opening_bid(self):
        auction = Auction(PlayerRef("carol"), ring(), Decimal("100"), HOUR_MS, "global", created_at=500)
        assert auction.end_time == HOUR_MS + 500
        assert auction.current_bid == Decimal("100")
        assert auction.time_left(HOUR_MS) == 500
        assert auction.time_left(HOUR_MS * 2) == 0

    def test_buyout_must_exceed_start(self):
        with pytest.raises(ValueError, match="Buyout"):
            Auction(PlayerRef("carol"), ring(), Decimal("100"), HOUR_MS, "global", 0, buyout_price=Decimal("100"))

    def test_value_of_other_currency(self):
        auction = Auction(
            PlayerRef("carol"), ring(), Decimal("5"), HOUR_MS, "global", 0, currency=CurrencyKind.PLATINUM
        )
        assert auction.value_of(Decimal("5")) == Decimal("50")
        assert auction.price_amount(Decimal("5")) == CurrencyAmount(platinum=5)


class TestAuctionHouse:
    def setup_method(self):
        self.settings = EconomySettings(_env_file=None)
        self.clock = ManualClock(0)
        self.scheduler = Scheduler(self.clock)
        self.events = EventBus(self.clock)
        self.channels = ChannelPolicy()
        self.pricing = PricingEngine(self.clock, self.events, rng=random.Random(1))
        self.pricing.seed_defaults()
        self.reputation = ReputationLedger(self.events)
        self.holdings = Holdings()
        self.house = AuctionHouse(
            self.settings,
            self.clock,
            self.scheduler,
            self.events,
            self.channels,
            self.pricing,
            self.reputation,
            self.holdings,
        )

        self.carol = PlayerRef("carol", level=55)
        self.alice = PlayerRef("alice", level=20)
        self.bob = PlayerRef("bob", level=20)
        self.holdings.grant_items("carol", [ring()])
        self.holdings.deposit("alice", CurrencyAmount(gold=1000))
        self.holdings.deposit("bob", CurrencyAmount(gold=1000))

    def list_ring(self, start="100", buyout="250", duration=HOUR_MS, channel="global"):
        return self.house.list(
            self.carol,
            ring(),
            Decimal(start),
            duration,
            channel,
            buyout_price=Decimal(buyout) if buyout else None,
        )

    def test_list_escrows_item(self):
        auction = self.list_ring()
        assert auction.status == AuctionStatus.ACTIVE
        assert self.holdings.inventory("carol") == {}
        assert len(self.scheduler) == 1
        assert len(self.events.history("auction.listed")) == 1

    def test_list_validation(self):
        with pytest.raises(InvalidAuctionError, match="positive"):
            self.list_ring(start="0")
        with pytest.raises(InvalidAuctionError, match="buyout"):
            self.list_ring(start="100", buyout="90")
        with pytest.raises(InvalidAuctionError, match="duration"):
            self.list_ring(duration=HOUR_MS - 1)
        with pytest.raises(InvalidAuctionError, match="duration"):
            self.list_ring(duration=7 * 24 * HOUR_MS + 1)
        assert self.holdings.inventory("carol") == {"magic_ring": 1}

    def test_list_requires_the_item(self):
        with pytest.raises(InsufficientFundsError):
            self.house.list(self.alice, ring(), Decimal("10"), HOUR_MS, "global")

    def test_list_requires_channel_level(self):
        with pytest.raises(IneligiblePairError):
            self.house.list(self.alice, ring(), Decimal("10"), HOUR_MS, "premium")

    def test_bid_and_buyout_scenario(self):
        auction = self.list_ring()

        self.house.bid(auction.auction_id, self.alice, Decimal("150"))
        assert auction.current_bid == Decimal("150")
        assert auction.bid_count == 1
        assert self.holdings.balance("alice") == CurrencyAmount(gold=850)

        with pytest.raises(BidTooLowError):
            self.house.bid(auction.auction_id, self.bob, Decimal("120"))
        assert auction.bid_count == 1

        self.house.buyout(auction.auction_id, self.bob)
        assert auction.status == AuctionStatus.COMPLETED
        assert auction.final_price == Decimal("250")
        assert auction.buyer.player_id == "bob"
        # Outbid escrow returned, buyer charged the buyout
        assert self.holdings.balance("alice") == CurrencyAmount(gold=1000)
        assert self.holdings.balance("bob") == CurrencyAmount(gold=750)
        assert self.holdings.inventory("bob") == {"magic_ring": 1}
        # Seller receives the price less the 5% global tax
        assert self.holdings.balance("carol") == CurrencyAmount(gold="237.5")
        assert auction.tax_paid == Decimal("12.5")
        assert len(self.events.history("auction.buyout")) == 1

    def test_bid_equal_to_current_is_too_low(self):
        auction = self.list_ring()
        with pytest.raises(BidTooLowError):
            self.house.bid(auction.auction_id, self.alice, Decimal("100"))

    def test_outbid_refunds_previous_bidder(self):
        auction = self.list_ring()
        self.house.bid(auction.auction_id, self.alice, Decimal("150"))
        self.house.bid(auction.auction_id, self.bob, Decimal("160"))
        assert self.holdings.balance("alice") == CurrencyAmount(gold=1000)
        assert self.holdings.balance("bob") == CurrencyAmount(gold=840)
        assert auction.current_bidder.player_id == "bob"
        assert auction.bid_count == 2

    def test_raise_own_bid_counts_escrow(self):
        self.holdings.withdraw("alice", CurrencyAmount(gold=800))
        auction = self.list_ring()
        self.house.bid(auction.auction_id, self.alice, Decimal("150"))
        self.house.bid(auction.auction_id, self.alice, Decimal("200"))
        assert self.holdings.balance("alice") == CurrencyAmount()
        with pytest.raises(InsufficientFundsError):
            self.house.bid(auction.auction_id, self.alice, Decimal("201"))

    def test_bid_without_funds(self):
        auction = self.list_ring()
        broke = PlayerRef("dave", level=20)
        with pytest.raises(InsufficientFundsError):
            self.house.bid(auction.auction_id, broke, Decimal("150"))
        assert auction.bid_count == 0

    def test_bid_unknown_auction(self):
        with pytest.raises(NotFoundError):
            self.house.bid(uuid4(), self.alice, Decimal("1"))

    def test_bid_after_end_time(self):
        auction = self.list_ring()
        self.clock.advance(HOUR_MS)
        with pytest.raises(AuctionNotActiveError):
            self.house.bid(auction.auction_id, self.alice, Decimal("150"))

    def test_buyout_without_price(self):
        auction = self.list_ring(buyout=None)
        with pytest.raises(InvalidAuctionError, match="no buyout"):
            self.house.buyout(auction.auction_id, self.bob)

    def test_expire_without_bids_returns_item(self):
        auction = self.list_ring()
        self.clock.advance(HOUR_MS)
        self.scheduler.run_due()
        assert auction.status == AuctionStatus.EXPIRED
        assert self.holdings.inventory("carol") == {"magic_ring": 1}
        assert self.house.active_auctions() == []
        assert self.house.closed_auctions() == [auction]

    def test_expire_with_bid_completes(self):
        auction = self.list_ring()
        self.house.bid(auction.auction_id, self.alice, Decimal("200"))
        self.clock.advance(HOUR_MS)
        expired = self.house.sweep_expired(self.clock.now_ms())
        assert expired == [auction]
        assert auction.status == AuctionStatus.COMPLETED
        assert auction.final_price == Decimal("200")
        assert self.holdings.inventory("alice") == {"magic_ring": 1}
        assert self.holdings.balance("carol") == CurrencyAmount(gold=190)
        assert self.reputation.score("carol") == 10
        assert self.reputation.score("alice") == 10
        assert self.pricing.price_of("magic_ring") == Decimal("200")

    def test_expire_twice_has_no_further_effect(self):
        auction = self.list_ring()
        self.house.expire(auction.auction_id)
        self.house.expire(auction.auction_id)
        self.clock.advance(HOUR_MS)
        self.scheduler.run_due()
        assert len(self.events.history("auction.expired")) == 1
        assert self.holdings.inventory("carol") == {"magic_ring": 1}

    def test_bid_on_closed_auction(self):
        auction = self.list_ring()
        self.house.expire(auction.auction_id)
        with pytest.raises(AuctionNotActiveError):
            self.house.bid(auction.auction_id, self.alice, Decimal("150"))

    def test_participants(self):
        auction = self.list_ring()
        assert self.house.participants("global") == {"carol"}
        self.house.bid(auction.auction_id, self.alice, Decimal("150"))
        assert self.house.participants("global") == {"carol", "alice"}
        assert self.house.participants("guild") == set()

    def test_bid_above_trade_value_limit(self):
        auction = self.list_ring()
        with pytest.raises(InvalidAuctionError, match="maximum"):
            self.house.bid(auction.auction_id, self.alice, Decimal("1000001"))
        assert auction.bid_count == 0
        assert self.holdings.balance("alice") == CurrencyAmount(gold=1000)

    def test_listing_price_limit_uses_gold_value(self):
        with pytest.raises(InvalidAuctionError, match="maximum"):
            self.house.list(
                self.carol, ring(), Decimal("1e999999"), HOUR_MS, "global", currency=CurrencyKind.GEMS
            )
        assert self.holdings.inventory("carol") == {"magic_ring": 1}

    def test_closed_auctions_are_purged_oldest_first(self):
        self.house.settings = EconomySettings(_env_file=None, closed_auction_history_size=2)
        self.holdings.grant_items("carol", [Item("magic_ring", "Magic Ring", "accessory", Rarity.RARE, 2)])
        ids = []
        for _ in range(3):
            auction = self.list_ring()
            self.house.expire(auction.auction_id)
            ids.append(auction.auction_id)

        assert [a.auction_id for a in self.house.closed_auctions()] == ids[1:]
        with pytest.raises(NotFoundError):
            self.house.get(ids[0])
        assert self.house.get(ids[2]).status == AuctionStatus.EXPIRED
