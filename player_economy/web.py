"""FastAPI JSON gateway for economy intents."""

import threading
from decimal import Decimal
from typing import Any, Dict, Optional

import structlog
from fastapi import Body, FastAPI
from fastapi.responses import JSONResponse

from .auction import Auction
from .channels import TradeChannel
from .currency import CurrencyAmount
from .errors import ErrorKind
from .facade import Economy, OperationResult, TickSummary
from .logconfig import configure_logging
from .pricing import MarketPriceRecord
from .persistence import JsonFileStore, auction_record, item_record, price_record, trade_record
from .sample_data import create_sample_economy
from .search import SearchResult
from .settings import EconomySettings
from .trade import Trade

logger = structlog.get_logger(__name__)

# Initialize app
app = FastAPI(title="Player Economy Gateway")

# Global economy instance; the facade serialises its own operations.
# Lock for replacing global state (reset endpoint)
_state_lock = threading.Lock()
economy: Economy
store: Optional[JsonFileStore] = None

_STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.INVALID_REQUEST: 422,
}


def to_jsonable(value: Any) -> Any:
    """Convert economy entities into JSON-compatible records."""
    if isinstance(value, Trade):
        return trade_record(value)
    if isinstance(value, Auction):
        return auction_record(value)
    if isinstance(value, MarketPriceRecord):
        return price_record(value)
    if isinstance(value, CurrencyAmount):
        return value.to_dict()
    if isinstance(value, SearchResult):
        return {
            "kind": value.kind,
            "id": str(value.entity_id),
            "item": item_record(value.item),
            "price": str(value.price),
            "player_id": value.player_id,
            "timestamp": value.timestamp,
            "buyout_price": str(value.buyout_price) if value.buyout_price is not None else None,
            "time_left": value.time_left,
        }
    if isinstance(value, TradeChannel):
        return {
            "channel_id": value.channel_id,
            "name": value.name,
            "description": value.description,
            "max_participants": value.max_participants,
            "tax_rate": str(value.tax_rate),
            "min_level": value.min_level,
            "active": value.active,
        }
    if isinstance(value, TickSummary):
        return {
            "fired": value.fired,
            "timed_out": value.timed_out,
            "expired": value.expired,
            "elapsed_ms": value.elapsed_ms,
        }
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def result_response(result: OperationResult) -> JSONResponse:
    body = {
        "ok": result.ok,
        "value": to_jsonable(result.value),
        "error": result.error.value if result.error else None,
        "code": result.code,
        "message": result.message,
    }
    status = 200 if result.ok else _STATUS_BY_KIND.get(result.error, 409)
    return JSONResponse(body, status_code=status)


@app.on_event("startup")
async def startup_event():
    """Configure logging, seed the sample economy and restore any saved snapshot."""
    global economy, store
    settings = EconomySettings()
    configure_logging(settings.log_level, settings.log_format)
    economy = create_sample_economy(settings)

    store = JsonFileStore(settings.snapshot_path) if settings.snapshot_path else None
    if store is not None:
        state = store.load()
        if state is not None:
            result = economy.restore(state)
            if not result.ok:
                logger.warning("snapshot_not_restored", path=str(store.path), reason=result.message)


@app.on_event("shutdown")
async def shutdown_event():
    """Save trade history, prices and reputation if a snapshot path is set."""
    if store is not None:
        store.save(economy.snapshot())


@app.post("/intents/{name}")
def submit_intent(name: str, payload: Optional[Dict[str, Any]] = Body(None)):
    """Apply a named intent, e.g. ``auction.bid``."""
    return result_response(economy.dispatch(name, payload))


@app.get("/trades")
def get_trades(player_id: Optional[str] = None):
    """Open trades plus closed trade history."""
    active = economy.active_trades()
    if player_id is not None:
        active = [t for t in active if t.involves(player_id)]
    return {
        "active": to_jsonable(active),
        "history": to_jsonable(economy.trade_history(player_id)),
    }


@app.get("/auctions")
def get_auctions(active_only: bool = False):
    return {"auctions": to_jsonable(economy.auctions(active_only=active_only))}


@app.get("/prices")
def get_prices():
    return {"prices": to_jsonable(economy.market_prices())}


@app.get("/channels")
def get_channels():
    return {"channels": to_jsonable(economy.channels())}


@app.get("/reputation/{player_id}")
def get_reputation(player_id: str):
    tier = economy.reputation_tier(player_id)
    return {
        "player_id": player_id,
        "reputation": economy.reputation(player_id),
        "tier": tier.name,
        "color": tier.color,
    }


@app.get("/players/{player_id}")
def get_player(player_id: str):
    return {
        "player_id": player_id,
        "balance": to_jsonable(economy.balance(player_id)),
        "inventory": economy.inventory(player_id),
        "reputation": economy.reputation(player_id),
    }


@app.post("/tick")
def run_tick():
    """Drive timers and sweeps up to the current time."""
    return to_jsonable(economy.tick())


@app.post("/reset")
def reset_economy():
    """Reset the economy to the initial sample data (thread-safe)."""
    global economy

    with _state_lock:
        economy = create_sample_economy(economy.settings)

    return {"ok": True, "auctions": len(economy.auctions(active_only=True))}


def run():
    """Run the web server."""
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)


if __name__ == "__main__":
    run()
