"""Data models for token market data."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SortField(str, Enum):
    """Fields the token list can be ordered by (always descending)."""

    VOLUME = "volume"
    PRICE_CHANGE = "price_change"
    MARKET_CAP = "market_cap"
    LIQUIDITY = "liquidity"


class Timeframe(str, Enum):
    """Accepted list timeframes. Part of the cache key only."""

    H1 = "1h"
    H24 = "24h"
    D7 = "7d"


@dataclass(frozen=True, slots=True)
class TokenRecord:
    """Canonical market snapshot of one token.

    Prices and sizes are denominated in SOL. ``source_label`` names the
    provider (or, after a merge, how many providers and which one dominated).
    """

    address: str
    name: str
    ticker: str
    price: float
    market_cap: float = 0.0
    volume: float = 0.0
    liquidity: float = 0.0
    transaction_count: int = 0
    price_change_1h: float = 0.0
    price_change_24h: float = 0.0
    source_label: str = ""
    observed_at: float = field(default_factory=time.time)  # Unix seconds

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON / cache / REST transmission."""
        return {
            "token_address": self.address,
            "token_name": self.name,
            "token_ticker": self.ticker,
            "price_sol": self.price,
            "market_cap_sol": self.market_cap,
            "volume_sol": self.volume,
            "liquidity_sol": self.liquidity,
            "transaction_count": self.transaction_count,
            "price_1hr_change": self.price_change_1h,
            "price_24hr_change": self.price_change_24h,
            "protocol": self.source_label,
            "last_updated": self.observed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TokenRecord:
        """Inverse of to_dict(). Raises KeyError/TypeError/ValueError on bad input."""
        return cls(
            address=data["token_address"],
            name=data.get("token_name", ""),
            ticker=data.get("token_ticker", ""),
            price=float(data.get("price_sol", 0.0)),
            market_cap=float(data.get("market_cap_sol", 0.0)),
            volume=float(data.get("volume_sol", 0.0)),
            liquidity=float(data.get("liquidity_sol", 0.0)),
            transaction_count=int(data.get("transaction_count", 0)),
            price_change_1h=float(data.get("price_1hr_change", 0.0)),
            price_change_24h=float(data.get("price_24hr_change", 0.0)),
            source_label=data.get("protocol", ""),
            observed_at=float(data.get("last_updated", 0.0)),
        )


# --- Real-time messages ---


@dataclass(frozen=True, slots=True)
class SubscribeMessage:
    """Client asks for updates on these addresses."""

    tokens: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class UnsubscribeMessage:
    """Client stops following these addresses."""

    tokens: tuple[str, ...]


ClientMessage = SubscribeMessage | UnsubscribeMessage


@dataclass(frozen=True, slots=True)
class PriceUpdateEvent:
    token_address: str
    price_sol: float
    price_1hr_change: float
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "price_update",
            "token_address": self.token_address,
            "price_sol": self.price_sol,
            "price_1hr_change": self.price_1hr_change,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class VolumeSpikeEvent:
    token_address: str
    volume_change_percent: float
    new_volume: float
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "volume_spike",
            "token_address": self.token_address,
            "volume_change_percent": self.volume_change_percent,
            "new_volume": self.new_volume,
            "timestamp": self.timestamp,
        }


ServerEvent = PriceUpdateEvent | VolumeSpikeEvent
