"""Property-based tests for the economy invariants."""

from decimal import Decimal

from hypothesis import given, settings, strategies as st

from player_economy.channels import TradeChannel
from player_economy.currency import CurrencyAmount
from player_economy.events import EventBus
from player_economy.facade import Economy
from player_economy.item import Item
from player_economy.player import PlayerRef
from player_economy.reputation import ReputationLedger
from player_economy.scheduler import ManualClock
from player_economy.settings import EconomySettings
from player_economy.trade import TRADE_TRANSITIONS, TradeStatus

HOUR_MS = 3_600_000

prices = st.decimals(min_value=Decimal("1"), max_value=Decimal("10000"), places=2)
tax_rates = st.decimals(min_value=Decimal("0"), max_value=Decimal("1"), places=3)


def fresh_economy(channels=None) -> Economy:
    economy = Economy(settings=EconomySettings(_env_file=None), clock=ManualClock(0), channels=channels)
    economy.grant_items("seller", [Item("magic_ring", "Magic Ring", quantity=5)])
    economy.grant_items("alice", [Item("health_potion", "Health Potion", quantity=50)])
    for player_id in ("alice", "bob", "carol"):
        economy.deposit(player_id, CurrencyAmount(gold=1_000_000))
    return economy


class TestReputationBounds:
    @given(st.lists(st.floats(min_value=-1e6, max_value=1e6, allow_nan=False), max_size=30))
    def test_score_always_within_range(self, changes):
        ledger = ReputationLedger(EventBus(ManualClock()))
        for change in changes:
            score = ledger.update("alice", change)
            assert ledger.min_reputation <= score <= ledger.max_reputation


class TestBidding:
    @given(st.lists(prices, min_size=1, max_size=15))
    @settings(max_examples=50, deadline=None)
    def test_bid_succeeds_iff_above_current(self, amounts):
        economy = fresh_economy()
        seller = PlayerRef("seller")
        auction = economy.list_auction(seller, Item("magic_ring", "Magic Ring"), Decimal("1"), HOUR_MS).value
        bidders = [PlayerRef("alice"), PlayerRef("bob"), PlayerRef("carol")]

        current, count = auction.current_bid, 0
        for i, amount in enumerate(amounts):
            result = economy.place_bid(auction.auction_id, bidders[i % 3], amount)
            assert result.ok == (amount > current)
            if result.ok:
                current, count = amount, count + 1
                assert result.value.current_bid == amount
            assert economy.auction(auction.auction_id).bid_count == count


class TestSettlement:
    @given(prices, tax_rates)
    @settings(max_examples=50, deadline=None)
    def test_seller_credited_price_less_tax(self, price, tax_rate):
        economy = fresh_economy([TradeChannel("global", "Global Trade", "", 1000, tax_rate)])
        alice = PlayerRef("alice")
        bob = PlayerRef("bob")
        trade = economy.initiate_trade(
            alice, bob, [Item("health_potion", "Health Potion")], CurrencyAmount(gold=price)
        ).value
        economy.accept_trade(trade.trade_id, "bob")
        before = economy.balance("alice")["gold"]
        assert economy.complete_trade(trade.trade_id).ok
        assert economy.balance("alice")["gold"] - before == price * (1 - tax_rate)


operations = st.lists(
    st.sampled_from(["accept", "decline", "cancel", "complete", "wait"]),
    max_size=12,
)


class TestTradeMachine:
    @given(operations)
    @settings(max_examples=100, deadline=None)
    def test_status_moves_only_along_edges(self, ops):
        economy = fresh_economy()
        clock = economy.clock
        trade = economy.initiate_trade(
            PlayerRef("alice"), PlayerRef("bob"), [Item("health_potion", "Health Potion")],
            CurrencyAmount(gold=10),
        ).value
        actions = {
            "accept": lambda: economy.accept_trade(trade.trade_id, "bob"),
            "decline": lambda: economy.decline_trade(trade.trade_id, "bob"),
            "cancel": lambda: economy.cancel_trade(trade.trade_id, "alice"),
            "complete": lambda: economy.complete_trade(trade.trade_id),
            "wait": lambda: (clock.advance(100_000), economy.tick()),
        }
        for op in ops:
            actions[op]()

        final = economy.trade(trade.trade_id)
        statuses = [status for status, _ in final.status_log]
        for before, after in zip(statuses, statuses[1:]):
            assert after in TRADE_TRANSITIONS[before]
        if TradeStatus.COMPLETED in statuses:
            assert TradeStatus.ACCEPTED in statuses
        assert len(economy.announcements("trade.completed")) <= 1


class TestAuctionTerminal:
    @given(st.lists(st.sampled_from(["bid", "buyout", "expire", "wait"]), max_size=10))
    @settings(max_examples=100, deadline=None)
    def test_at_most_one_terminal_transition(self, ops):
        economy = fresh_economy()
        clock = economy.clock
        auction_id = economy.list_auction(
            PlayerRef("seller"), Item("magic_ring", "Magic Ring"), Decimal("10"), HOUR_MS,
            buyout_price=Decimal("500"),
        ).value.auction_id
        step = [Decimal("10")]

        def bid():
            step[0] += 1
            return economy.place_bid(auction_id, PlayerRef("alice"), step[0])

        actions = {
            "bid": bid,
            "buyout": lambda: economy.buyout(auction_id, PlayerRef("bob")),
            "expire": lambda: economy.expire_auction(auction_id),
            "wait": lambda: (clock.advance(HOUR_MS // 2), economy.tick()),
        }
        for op in ops:
            actions[op]()

        terminal = economy.announcements("auction.expired") + economy.announcements("auction.buyout")
        assert len(terminal) <= 1
        # The ring is never duplicated or lost
        holders = sum(economy.inventory(p).get("magic_ring", 0) for p in ("seller", "alice", "bob"))
        escrowed = 1 if economy.auction(auction_id).is_active else 0
        assert holders + escrowed == 5


class TestErrorsNeverEscape:
    @given(st.dictionaries(st.text(max_size=8), st.text(max_size=8), max_size=4))
    @settings(max_examples=50, deadline=None)
    def test_garbage_payloads_become_results(self, payload):
        economy = Economy(settings=EconomySettings(_env_file=None), clock=ManualClock(0))
        for name in ("trade.initiate", "auction.bid", "market.search", "reputation.update"):
            result = economy.dispatch(name, payload)
            assert result.ok or isinstance(result.code, int)

