"""Engine configuration loaded from the environment and an optional .env file."""

from decimal import Decimal
from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EconomySettings(BaseSettings):
    """Tunable limits of the economy engine, overridable via ECONOMY_* env vars."""

    model_config = SettingsConfigDict(
        env_prefix="ECONOMY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Trades
    max_trade_value: Decimal = Decimal("1000000")
    max_pending_trades: int = 10
    trade_timeout_ms: int = 300_000
    trade_grace_period_ms: int = 30_000
    trade_reputation_reward: float = 10.0

    # Auctions
    min_auction_duration_ms: int = 60 * 60 * 1000
    max_auction_duration_ms: int = 7 * 24 * 60 * 60 * 1000
    closed_auction_history_size: int = 1000

    # Reputation
    min_reputation: float = -1000.0
    max_reputation: float = 10000.0
    reputation_decay_rate: float = 0.01
    reputation_decay_policy: str = "toward_min"

    # Market
    market_update_interval_ms: int = 60_000
    min_market_price: Decimal = Decimal("1")

    # Announcements / logging
    event_history_size: int = 1000
    log_level: str = "INFO"
    log_format: str = "console"

    # Demo entry points; no snapshot is read or written when unset
    snapshot_path: Optional[str] = None

    @model_validator(mode="after")
    def _check_ranges(self) -> "EconomySettings":
        if self.min_auction_duration_ms > self.max_auction_duration_ms:
            raise ValueError("min_auction_duration_ms must not exceed max_auction_duration_ms")
        if self.closed_auction_history_size < 1:
            raise ValueError("closed_auction_history_size must be at least 1")
        if self.min_reputation >= self.max_reputation:
            raise ValueError("min_reputation must be lower than max_reputation")
        if self.reputation_decay_policy not in ("toward_min", "toward_zero"):
            raise ValueError("reputation_decay_policy must be 'toward_min' or 'toward_zero'")
        return self
