"""Auction house: timed listings with competitive bids and optional buyout."""

import copy
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Set
from uuid import UUID

import structlog

from .auction import Auction, AuctionStatus
from .currency import CURRENCY_REGISTRY, CurrencyKind
from .errors import (
    AuctionNotActiveError,
    BidTooLowError,
    InsufficientFundsError,
    InvalidAuctionError,
    NotFoundError,
)
from .item import Item
from .player import PlayerRef

logger = structlog.get_logger(__name__)

SUCCESSFUL_AUCTION = "successful_auction"


class AuctionHouse:
    """
    Owns every auction from listing to its single terminal transition.

    The listed item and the standing highest bid are held in escrow: the
    item leaves the seller's inventory at listing, and a bidder's funds
    leave their wallet when the bid is accepted and return if outbid.
    """

    def __init__(
        self,
        settings,
        clock,
        scheduler,
        events,
        channels,
        pricing,
        reputation,
        holdings,
        channel_participants: Optional[Callable[[str], Set[str]]] = None,
    ):
        self.settings = settings
        self.clock = clock
        self.scheduler = scheduler
        self.events = events
        self.channels = channels
        self.pricing = pricing
        self.reputation = reputation
        self.holdings = holdings
        self.channel_participants = channel_participants or self.participants
        self._active: Dict[UUID, Auction] = {}
        self._closed: Dict[UUID, Auction] = {}

    # Queries

    def get(self, auction_id: UUID) -> Auction:
        auction = self._active.get(auction_id) or self._closed.get(auction_id)
        if auction is None:
            raise NotFoundError("Auction", auction_id)
        return auction

    def active_auctions(self) -> List[Auction]:
        return list(self._active.values())

    def closed_auctions(self) -> List[Auction]:
        """Recently closed auctions, oldest first; older ones are purged."""
        return list(self._closed.values())

    def participants(self, channel_id: str) -> Set[str]:
        """Sellers and standing bidders of active auctions on a channel."""
        players = set()
        for auction in self._active.values():
            if auction.channel_id == channel_id:
                players.add(auction.seller.player_id)
                if auction.current_bidder is not None:
                    players.add(auction.current_bidder.player_id)
        return players

    def _announce(self, name: str, auction: Auction, **extra) -> None:
        payload = {"auction": copy.deepcopy(auction)}
        payload.update(extra)
        self.events.publish(name, payload)

    def _require_open(self, auction: Auction) -> None:
        if not auction.is_active:
            raise AuctionNotActiveError(auction.auction_id, auction.status.value)
        if self.clock.now_ms() >= auction.end_time:
            raise AuctionNotActiveError(auction.auction_id, "ended")

    def _require_budget(self, auction: Auction, player: PlayerRef, price: Decimal) -> None:
        """Check a player can cover ``price``, counting their own standing bid."""
        held = Decimal(0)
        if auction.current_bidder is not None and auction.current_bidder.player_id == player.player_id:
            held = auction.current_bid
        extra = price - held
        if extra > 0 and not self.holdings.has_funds(player.player_id, auction.price_amount(extra)):
            raise InsufficientFundsError(
                player.player_id, f"needs {price} {auction.currency.value} for auction {auction.auction_id}"
            )

    def _require_within_limit(self, label: str, price: Decimal, currency: CurrencyKind) -> None:
        limit = self.settings.max_trade_value / CURRENCY_REGISTRY[currency].base_value
        if price > limit:
            raise InvalidAuctionError(
                f"{label} {price} {currency.value} exceeds the maximum value of {self.settings.max_trade_value} gold"
            )

    def _refund_standing_bid(self, auction: Auction) -> None:
        if auction.current_bidder is not None and auction.bid_count:
            self.holdings.deposit(auction.current_bidder.player_id, auction.price_amount(auction.current_bid))

    # Operations

    def list(
        self,
        seller: PlayerRef,
        item: Item,
        starting_price: Decimal,
        duration_ms: int,
        channel_id: str,
        buyout_price: Optional[Decimal] = None,
        currency: CurrencyKind = CurrencyKind.GOLD,
    ) -> Auction:
        """
        List an item for auction.

        Args:
            seller: Listing player
            item: Item stack to sell; escrowed until settlement
            starting_price: Opening price (must be positive)
            duration_ms: Listing length, within the configured bounds
            channel_id: Channel to list on
            buyout_price: Optional instant-purchase price above the start
            currency: Currency the prices are expressed in

        Returns:
            The new active auction

        Raises:
            InvalidAuctionError: Bad prices or duration
            IneligiblePairError: Seller fails the channel rules
            InsufficientFundsError: Seller does not hold the item
            NotFoundError: Unknown channel
        """
        currency = CurrencyKind(currency)
        starting_price = Decimal(starting_price)
        if buyout_price is not None:
            buyout_price = Decimal(buyout_price)

        if starting_price <= 0:
            raise InvalidAuctionError(f"starting price must be positive, got {starting_price}")
        if buyout_price is not None and buyout_price <= starting_price:
            raise InvalidAuctionError(f"buyout price {buyout_price} must exceed starting price {starting_price}")
        if not self.settings.min_auction_duration_ms <= duration_ms <= self.settings.max_auction_duration_ms:
            raise InvalidAuctionError(
                f"duration {duration_ms}ms outside [{self.settings.min_auction_duration_ms}, "
                f"{self.settings.max_auction_duration_ms}]"
            )
        self._require_within_limit("starting price", starting_price, currency)
        if buyout_price is not None:
            self._require_within_limit("buyout price", buyout_price, currency)

        channel = self.channels.get(channel_id)
        self.channels.check_participant(channel, seller, self.channel_participants(channel_id))
        self.holdings.require_items(seller.player_id, [item])

        auction = Auction(
            seller=seller,
            item=item,
            starting_price=starting_price,
            duration_ms=duration_ms,
            channel_id=channel_id,
            created_at=self.clock.now_ms(),
            buyout_price=buyout_price,
            currency=currency,
        )
        self.holdings.take_items(seller.player_id, [item])
        self._active[auction.auction_id] = auction
        self.scheduler.call_later(duration_ms, "auction.expire", self._expire_when_due, auction.auction_id)

        logger.info(
            "auction_listed",
            auction_id=str(auction.auction_id),
            seller=seller.player_id,
            item=item.item_id,
            starting_price=str(starting_price),
        )
        self._announce("auction.listed", auction)
        return auction

    def bid(self, auction_id: UUID, bidder: PlayerRef, amount: Decimal) -> Auction:
        """
        Place a bid that must strictly exceed the current bid.

        Late bids do not extend the end time.

        Raises:
            NotFoundError: Unknown auction
            AuctionNotActiveError: Auction closed or past its end time
            BidTooLowError: Amount not above the current bid
            InvalidAuctionError: Amount worth more than the trade value limit
            IneligiblePairError: Bidder fails the channel rules
            InsufficientFundsError: Bidder cannot cover the bid
        """
        auction = self.get(auction_id)
        self._require_open(auction)
        amount = Decimal(amount)
        if amount <= auction.current_bid:
            raise BidTooLowError(amount, auction.current_bid)
        self._require_within_limit("bid", amount, auction.currency)

        channel = self.channels.get(auction.channel_id)
        self.channels.check_participant(channel, bidder, self.channel_participants(auction.channel_id))
        self._require_budget(auction, bidder, amount)

        self._refund_standing_bid(auction)
        self.holdings.withdraw(bidder.player_id, auction.price_amount(amount))
        auction.current_bid = amount
        auction.current_bidder = bidder
        auction.bid_count += 1
        auction.last_bid_at = self.clock.now_ms()

        logger.info("auction_bid_placed", auction_id=str(auction_id), bidder=bidder.player_id, amount=str(amount))
        self._announce("auction.bidPlaced", auction, bid_amount=amount, player_id=bidder.player_id)
        return auction

    def buyout(self, auction_id: UUID, buyer: PlayerRef) -> Auction:
        """
        Buy the item immediately at the buyout price.

        Raises:
            NotFoundError: Unknown auction
            AuctionNotActiveError: Auction closed or past its end time
            InvalidAuctionError: No buyout price was set
            IneligiblePairError: Buyer fails the channel rules
            InsufficientFundsError: Buyer cannot cover the buyout
        """
        auction = self.get(auction_id)
        self._require_open(auction)
        if auction.buyout_price is None:
            raise InvalidAuctionError(f"auction {auction_id} has no buyout price")

        channel = self.channels.get(auction.channel_id)
        self.channels.check_participant(channel, buyer, self.channel_participants(auction.channel_id))
        self._require_budget(auction, buyer, auction.buyout_price)

        self._refund_standing_bid(auction)
        self.holdings.withdraw(buyer.player_id, auction.price_amount(auction.buyout_price))
        self._settle(auction, buyer, auction.buyout_price)

        self._announce("auction.buyout", auction, player_id=buyer.player_id)
        return auction

    def expire(self, auction_id: UUID) -> Auction:
        """
        Close an auction at the end of its listing.

        With a standing bid the auction completes at that bid; otherwise the
        item returns to the seller. Expiring a closed auction does nothing.

        Raises:
            NotFoundError: Unknown auction
        """
        auction = self.get(auction_id)
        if not auction.is_active:
            logger.debug("auction_already_closed", auction_id=str(auction_id), status=auction.status.value)
            return auction

        if auction.current_bidder is not None and auction.bid_count:
            self._settle(auction, auction.current_bidder, auction.current_bid)
        else:
            self.holdings.grant_items(auction.seller.player_id, [auction.item])
            auction.status = AuctionStatus.EXPIRED
            auction.expired_at = self.clock.now_ms()
            self._close(auction)
            logger.info("auction_item_returned", auction_id=str(auction_id), seller=auction.seller.player_id)

        self._announce("auction.expired", auction)
        return auction

    def sweep_expired(self, now_ms: int) -> List[Auction]:
        """Expire every active auction whose end time has passed."""
        due = [a for a in self._active.values() if now_ms >= a.end_time]
        return [self.expire(a.auction_id) for a in due]

    def _expire_when_due(self, auction_id: UUID) -> None:
        auction = self._active.get(auction_id)
        if auction is None or not auction.is_active or self.clock.now_ms() < auction.end_time:
            logger.debug("auction_expiry_stale", auction_id=str(auction_id))
            return
        self.expire(auction_id)

    def _settle(self, auction: Auction, buyer: PlayerRef, price: Decimal) -> None:
        """Complete an auction whose price is already held from the buyer."""
        channel = self.channels.get(auction.channel_id)
        tax = price * channel.tax_rate
        self.holdings.grant_items(buyer.player_id, [auction.item])
        self.holdings.deposit(auction.seller.player_id, auction.price_amount(price - tax))

        auction.status = AuctionStatus.COMPLETED
        auction.completed_at = self.clock.now_ms()
        auction.buyer = buyer
        auction.final_price = price
        auction.tax_paid = tax
        self._close(auction)
        logger.info(
            "auction_tax_applied",
            auction_id=str(auction.auction_id),
            channel=channel.channel_id,
            tax=str(tax),
        )

        reward = self.settings.trade_reputation_reward
        self.reputation.update(auction.seller.player_id, reward, SUCCESSFUL_AUCTION)
        self.reputation.update(buyer.player_id, reward, SUCCESSFUL_AUCTION)
        self.pricing.record_sale(
            auction.item.item_id, auction.value_of(price) / auction.item.quantity, auction.item.quantity
        )
        logger.info(
            "auction_completed",
            auction_id=str(auction.auction_id),
            buyer=buyer.player_id,
            final_price=str(price),
        )

    def _close(self, auction: Auction) -> None:
        self._active.pop(auction.auction_id, None)
        self._closed[auction.auction_id] = auction
        while len(self._closed) > self.settings.closed_auction_history_size:
            oldest = next(iter(self._closed))
            del self._closed[oldest]
            logger.debug("auction_purged", auction_id=str(oldest))
