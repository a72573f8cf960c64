"""Trade negotiation machine for bilateral player trades."""

import copy
from typing import Callable, Dict, List, Optional, Set
from uuid import UUID

import structlog

from .currency import CURRENCY_REGISTRY, CurrencyAmount
from .errors import (
    EconomyError,
    InvalidTradeError,
    NotFoundError,
    UnauthorizedError,
)
from .item import Item
from .player import PlayerRef
from .trade import Trade, TradeStatus

logger = structlog.get_logger(__name__)

SUCCESSFUL_TRADE = "successful_trade"


class TradeNegotiationMachine:
    """
    Drives trades through pending -> accepted -> completed, or out to
    declined / cancelled / timeout.

    Active trades are owned here until they reach a terminal status; a copy
    of every terminal trade is kept in the history. Every operation
    validates before it mutates.
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
        """
        Initialize the negotiation machine.

        Args:
            settings: EconomySettings limits
            clock: Time source (``now_ms``)
            scheduler: Scheduler for grace-period completion
            events: EventBus for announcements
            channels: ChannelPolicy for eligibility and tax
            pricing: PricingEngine for offer valuation
            reputation: ReputationLedger rewarded on completion
            holdings: Holdings settled on completion
            channel_participants: Players busy on a channel across the whole
                engine; defaults to this machine's own participants
        """
        self.settings = settings
        self.clock = clock
        self.scheduler = scheduler
        self.events = events
        self.channels = channels
        self.pricing = pricing
        self.reputation = reputation
        self.holdings = holdings
        self._active: Dict[UUID, Trade] = {}
        self._history: Dict[UUID, Trade] = {}
        self.channel_participants = channel_participants or self.participants

    # Queries

    def get(self, trade_id: UUID) -> Trade:
        trade = self._active.get(trade_id)
        if trade is None:
            raise NotFoundError("Trade", trade_id)
        return trade

    def active_trades(self) -> List[Trade]:
        return list(self._active.values())

    def history(self, player_id: Optional[str] = None) -> List[Trade]:
        if player_id is None:
            return list(self._history.values())
        return [t for t in self._history.values() if t.involves(player_id)]

    def participants(self, channel_id: str) -> Set[str]:
        """Players involved in active trades on a channel."""
        players = set()
        for trade in self._active.values():
            if trade.channel_id == channel_id:
                players.add(trade.initiator.player_id)
                players.add(trade.counterparty.player_id)
        return players

    # Validation

    def _validate_offer(self, items: List[Item], currency: CurrencyAmount) -> None:
        if not items:
            raise InvalidTradeError("no items offered")
        limit = self.settings.max_trade_value
        for kind, quantity in currency.items():
            if quantity > limit / CURRENCY_REGISTRY[kind].base_value:
                raise InvalidTradeError(f"{quantity} {kind.value} exceeds maximum value {limit}")
        if not currency.is_positive:
            raise InvalidTradeError("currency amount must be positive")
        value = self.pricing.offer_value(items, currency)
        if value > self.settings.max_trade_value:
            raise InvalidTradeError(f"value {value} exceeds maximum {self.settings.max_trade_value}")

    def _require_pending(self, trade: Trade) -> None:
        if trade.status != TradeStatus.PENDING:
            raise InvalidTradeError(f"trade {trade.trade_id} is {trade.status.value}, expected pending")

    def _announce(self, name: str, trade: Trade, **extra) -> None:
        payload = {"trade": copy.deepcopy(trade)}
        payload.update(extra)
        self.events.publish(name, payload)

    # Operations

    def initiate(
        self,
        initiator: PlayerRef,
        counterparty: PlayerRef,
        items: List[Item],
        currency: CurrencyAmount,
        channel_id: str,
    ) -> Trade:
        """
        Open a new trade in pending status.

        Raises:
            InvalidTradeError: Self-trade, empty offer, non-positive currency,
                value over the limit (per currency or in total),
                or too many pending trades
            IneligiblePairError: Presence, location, combat or channel rules fail
            NotFoundError: Unknown channel
        """
        if initiator.player_id == counterparty.player_id:
            raise InvalidTradeError("a player cannot trade with themselves")
        items = list(items)
        self._validate_offer(items, currency)

        pending = sum(1 for t in self._active.values() if t.initiator.player_id == initiator.player_id)
        if pending >= self.settings.max_pending_trades:
            raise InvalidTradeError(
                f"{initiator.player_id} already has {pending} open trades (limit {self.settings.max_pending_trades})"
            )

        channel = self.channels.get(channel_id)
        self.channels.check_trade(channel, initiator, counterparty, self.channel_participants(channel_id))

        trade = Trade(
            initiator=initiator,
            counterparty=counterparty,
            items=items,
            currency=currency,
            channel_id=channel_id,
            created_at=self.clock.now_ms(),
        )
        self._active[trade.trade_id] = trade

        logger.info(
            "trade_initiated",
            trade_id=str(trade.trade_id),
            initiator=initiator.player_id,
            counterparty=counterparty.player_id,
            channel=channel_id,
        )
        self._announce("trade.initiated", trade)
        return trade

    def accept(self, trade_id: UUID, player_id: str) -> Trade:
        """
        Accept a pending trade and start its grace period.

        Raises:
            NotFoundError: Unknown or already-closed trade
            UnauthorizedError: Acting player is not the counterparty
            InvalidTradeError: Trade is not pending
        """
        trade = self.get(trade_id)
        if trade.counterparty.player_id != player_id:
            raise UnauthorizedError(player_id, f"accept trade {trade_id}")
        self._require_pending(trade)

        trade.transition(TradeStatus.ACCEPTED, self.clock.now_ms())
        self.scheduler.call_later(
            self.settings.trade_grace_period_ms,
            "trade.grace",
            self._complete_after_grace,
            trade.trade_id,
        )

        logger.info("trade_accepted", trade_id=str(trade_id), player=player_id)
        self._announce("trade.accepted", trade)
        return trade

    def decline(self, trade_id: UUID, player_id: str, reason: Optional[str] = None) -> Trade:
        """Decline a pending trade (counterparty only)."""
        trade = self.get(trade_id)
        if trade.counterparty.player_id != player_id:
            raise UnauthorizedError(player_id, f"decline trade {trade_id}")
        self._require_pending(trade)

        trade.transition(TradeStatus.DECLINED, self.clock.now_ms())
        trade.decline_reason = reason
        self._close(trade)

        logger.info("trade_declined", trade_id=str(trade_id), player=player_id, reason=reason)
        self._announce("trade.declined", trade, reason=reason)
        return trade

    def cancel(self, trade_id: UUID, player_id: str, reason: Optional[str] = None) -> Trade:
        """Cancel a pending trade (initiator only)."""
        trade = self.get(trade_id)
        if trade.initiator.player_id != player_id:
            raise UnauthorizedError(player_id, f"cancel trade {trade_id}")
        self._require_pending(trade)

        trade.transition(TradeStatus.CANCELLED, self.clock.now_ms())
        trade.cancel_reason = reason
        self._close(trade)

        logger.info("trade_cancelled", trade_id=str(trade_id), player=player_id, reason=reason)
        self._announce("trade.cancelled", trade, reason=reason)
        return trade

    def modify(
        self,
        trade_id: UUID,
        player_id: str,
        new_items: List[Item],
        new_currency: CurrencyAmount,
    ) -> Trade:
        """
        Replace the offer of a pending trade (initiator only).

        The new offer is held to the same rules as a new trade.
        """
        trade = self.get(trade_id)
        if trade.initiator.player_id != player_id:
            raise UnauthorizedError(player_id, f"modify trade {trade_id}")
        self._require_pending(trade)
        new_items = list(new_items)
        self._validate_offer(new_items, new_currency)

        trade.items = new_items
        trade.currency = new_currency
        trade.modified_at = self.clock.now_ms()

        logger.info("trade_modified", trade_id=str(trade_id), player=player_id)
        self._announce("trade.modified", trade)
        return trade

    def complete(self, trade_id: UUID) -> Trade:
        """
        Settle an accepted trade.

        Items move from the initiator to the counterparty; the counterparty
        pays the full currency amount and the initiator receives it less the
        channel tax. Both parties earn the trade reputation reward.

        Raises:
            NotFoundError: Unknown or already-closed trade
            InvalidTradeError: Trade is not accepted
            InsufficientFundsError: Seller lacks the items or buyer the currency
        """
        trade = self.get(trade_id)
        if trade.status != TradeStatus.ACCEPTED:
            raise InvalidTradeError(f"trade {trade_id} is {trade.status.value}, expected accepted")

        channel = self.channels.get(trade.channel_id)
        seller = trade.initiator.player_id
        buyer = trade.counterparty.player_id
        self.holdings.require_items(seller, trade.items)
        self.holdings.require_funds(buyer, trade.currency)

        tax = trade.currency.scale(channel.tax_rate)
        self.holdings.take_items(seller, trade.items)
        self.holdings.grant_items(buyer, trade.items)
        self.holdings.withdraw(buyer, trade.currency)
        self.holdings.deposit(seller, trade.currency - tax)

        trade.tax_paid = tax
        trade.transition(TradeStatus.COMPLETED, self.clock.now_ms())
        logger.info("trade_tax_applied", trade_id=str(trade_id), channel=channel.channel_id, tax=tax.to_dict())

        reward = self.settings.trade_reputation_reward
        self.reputation.update(seller, reward, SUCCESSFUL_TRADE)
        self.reputation.update(buyer, reward, SUCCESSFUL_TRADE)

        if len(trade.items) == 1:
            stack = trade.items[0]
            self.pricing.record_sale(stack.item_id, trade.currency.value() / stack.quantity, stack.quantity)

        self._close(trade)
        logger.info("trade_completed", trade_id=str(trade_id), seller=seller, buyer=buyer)
        self._announce("trade.completed", trade)
        return trade

    def sweep_timeouts(self, now_ms: int) -> List[Trade]:
        """Time out every open trade older than the configured timeout."""
        expired = [
            t for t in self._active.values()
            if not t.status.is_terminal and now_ms - t.created_at > self.settings.trade_timeout_ms
        ]
        for trade in expired:
            trade.transition(TradeStatus.TIMEOUT, now_ms)
            self._close(trade)
            logger.info("trade_timed_out", trade_id=str(trade.trade_id))
            self._announce("trade.timeout", trade)
        return expired

    def _complete_after_grace(self, trade_id: UUID) -> None:
        trade = self._active.get(trade_id)
        if trade is None or trade.status != TradeStatus.ACCEPTED:
            logger.debug("trade_grace_stale", trade_id=str(trade_id))
            return
        try:
            self.complete(trade_id)
        except EconomyError as e:
            logger.warning("trade_auto_complete_failed", trade_id=str(trade_id), kind=e.kind.value, reason=e.message)

    def _close(self, trade: Trade) -> None:
        self._active.pop(trade.trade_id, None)
        self._history[trade.trade_id] = copy.deepcopy(trade)

    def load_history(self, trades: List[Trade]) -> None:
        self._history = {t.trade_id: t for t in trades}
