"""JSON-compatible records of economy entities and a file store for snapshots."""

import json
import os
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union
from uuid import UUID

import structlog

from .auction import Auction
from .currency import CurrencyAmount
from .item import Item, Rarity
from .player import PlayerRef
from .pricing import MarketPriceRecord, Trend
from .trade import Trade, TradeStatus

logger = structlog.get_logger(__name__)


def _dec(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def player_record(player: PlayerRef) -> Dict[str, Any]:
    return {
        "player_id": player.player_id,
        "level": player.level,
        "online": player.online,
        "area_id": player.area_id,
        "in_combat": player.in_combat,
    }


def player_from_record(data: Dict[str, Any]) -> PlayerRef:
    return PlayerRef(**data)


def item_record(item: Item) -> Dict[str, Any]:
    return {
        "item_id": item.item_id,
        "name": item.name,
        "item_type": item.item_type,
        "rarity": item.rarity.value,
        "quantity": item.quantity,
    }


def item_from_record(data: Dict[str, Any]) -> Item:
    return Item(
        item_id=data["item_id"],
        name=data["name"],
        item_type=data.get("item_type", "misc"),
        rarity=Rarity(data.get("rarity", "common")),
        quantity=int(data.get("quantity", 1)),
    )


def trade_record(trade: Trade) -> Dict[str, Any]:
    return {
        "trade_id": str(trade.trade_id),
        "initiator": player_record(trade.initiator),
        "counterparty": player_record(trade.counterparty),
        "items": [item_record(i) for i in trade.items],
        "currency": trade.currency.to_dict(),
        "channel_id": trade.channel_id,
        "status": trade.status.value,
        "created_at": trade.created_at,
        "accepted_at": trade.accepted_at,
        "modified_at": trade.modified_at,
        "completed_at": trade.completed_at,
        "declined_at": trade.declined_at,
        "cancelled_at": trade.cancelled_at,
        "timeout_at": trade.timeout_at,
        "decline_reason": trade.decline_reason,
        "cancel_reason": trade.cancel_reason,
        "tax_paid": trade.tax_paid.to_dict() if trade.tax_paid is not None else None,
        "status_log": [[status.value, at] for status, at in trade.status_log],
    }


def trade_from_record(data: Dict[str, Any]) -> Trade:
    """
    Rebuild a trade from its record.

    Raises:
        KeyError: If a required field is missing
        ValueError: If a field holds an invalid value
    """
    tax = data.get("tax_paid")
    return Trade(
        initiator=player_from_record(data["initiator"]),
        counterparty=player_from_record(data["counterparty"]),
        items=[item_from_record(i) for i in data["items"]],
        currency=CurrencyAmount.from_dict(data["currency"]),
        channel_id=data["channel_id"],
        created_at=data["created_at"],
        trade_id=UUID(data["trade_id"]),
        status=TradeStatus(data["status"]),
        accepted_at=data.get("accepted_at"),
        modified_at=data.get("modified_at"),
        completed_at=data.get("completed_at"),
        declined_at=data.get("declined_at"),
        cancelled_at=data.get("cancelled_at"),
        timeout_at=data.get("timeout_at"),
        decline_reason=data.get("decline_reason"),
        cancel_reason=data.get("cancel_reason"),
        tax_paid=CurrencyAmount.from_dict(tax) if tax is not None else None,
        status_log=[(TradeStatus(status), at) for status, at in data.get("status_log", [])],
    )


def auction_record(auction: Auction) -> Dict[str, Any]:
    return {
        "auction_id": str(auction.auction_id),
        "seller": player_record(auction.seller),
        "item": item_record(auction.item),
        "currency": auction.currency.value,
        "starting_price": _dec(auction.starting_price),
        "current_bid": _dec(auction.current_bid),
        "buyout_price": _dec(auction.buyout_price),
        "current_bidder": player_record(auction.current_bidder) if auction.current_bidder else None,
        "bid_count": auction.bid_count,
        "channel_id": auction.channel_id,
        "status": auction.status.value,
        "created_at": auction.created_at,
        "end_time": auction.end_time,
        "last_bid_at": auction.last_bid_at,
        "completed_at": auction.completed_at,
        "expired_at": auction.expired_at,
        "buyer": player_record(auction.buyer) if auction.buyer else None,
        "final_price": _dec(auction.final_price),
        "tax_paid": _dec(auction.tax_paid),
    }


def price_record(record: MarketPriceRecord) -> Dict[str, Any]:
    return {
        "item_id": record.item_id,
        "base_price": str(record.base_price),
        "current_price": str(record.current_price),
        "volatility": str(record.volatility),
        "volume": record.volume,
        "trend": record.trend.value,
        "last_update": record.last_update,
    }


def price_from_record(data: Dict[str, Any]) -> MarketPriceRecord:
    return MarketPriceRecord(
        item_id=data["item_id"],
        base_price=Decimal(data["base_price"]),
        current_price=Decimal(data["current_price"]),
        volatility=Decimal(data["volatility"]),
        volume=int(data.get("volume", 0)),
        trend=Trend(data.get("trend", "stable")),
        last_update=int(data.get("last_update", 0)),
    )


class JsonFileStore:
    """
    Saves and loads economy snapshots as a single JSON document.

    Writes go to a temporary file in the same directory first and are
    moved into place, so a crash never leaves a half-written snapshot.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def save(self, state: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state, f, indent=2, sort_keys=True)
            os.replace(tmp, self.path)
        except BaseException:
            os.unlink(tmp)
            raise
        logger.info("snapshot_saved", path=str(self.path), trades=len(state.get("trade_history", {})))

    def load(self) -> Optional[Dict[str, Any]]:
        """Return the stored snapshot, or None if nothing was saved yet."""
        if not self.path.exists():
            return None
        with self.path.open(encoding="utf-8") as f:
            state = json.load(f)
        logger.info("snapshot_loaded", path=str(self.path))
        return state
