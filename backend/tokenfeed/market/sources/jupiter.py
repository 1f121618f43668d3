"""Jupiter adapter.

Endpoints (lite-api, no key):
    GET /tokens/v2/toptrending/{interval}?limit={n}
    GET /tokens/v2/search?query={query}
    GET /price/v3?ids={mint,mint,...}
Jupiter prices are USD; they are converted with the fixed SOL rate.
"""

from __future__ import annotations

import logging
from typing import Any

from ..models import TokenRecord
from .base import HttpTokenSource, dig, non_negative, to_float, to_int

logger = logging.getLogger(__name__)


class JupiterSource(HttpTokenSource):
    """Adapter for Jupiter's token and price APIs."""

    name = "jupiter"
    DEFAULT_BASE_URL = "https://lite-api.jup.ag"
    DEFAULT_RATE_LIMIT = 10.0

    def __init__(self, *, trending_interval: str = "1h", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.trending_interval = trending_interval

    async def get_trending_tokens(self, limit: int = 50) -> list[TokenRecord]:
        data = await self._get_json(
            f"/tokens/v2/toptrending/{self.trending_interval}", params={"limit": limit}
        )
        tokens = self._normalize_all(data)
        logger.info("Jupiter trending: %d tokens", len(tokens))
        return tokens[:limit]

    async def search_tokens(self, query: str) -> list[TokenRecord]:
        data = await self._get_json("/tokens/v2/search", params={"query": query})
        return self._normalize_all(data)

    async def get_prices(self, addresses: list[str]) -> dict[str, float]:
        """USD price per mint. Mints Jupiter does not price are omitted."""
        if not addresses:
            return {}

        data = await self._get_json("/price/v3", params={"ids": ",".join(addresses)})
        prices: dict[str, float] = {}
        if not isinstance(data, dict):
            return prices
        for address, entry in data.items():
            price = to_float(dig(entry, "usdPrice"))
            if price > 0:
                prices[address] = price
        return prices

    async def get_price(self, address: str) -> float | None:
        prices = await self.get_prices([address])
        return prices.get(address)

    def _normalize_all(self, data: Any) -> list[TokenRecord]:
        if not isinstance(data, list):
            return []
        tokens = (self.normalize(item) for item in data)
        return [token for token in tokens if token is not None]

    def normalize(self, item: dict[str, Any]) -> TokenRecord | None:
        if not isinstance(item, dict) or not item.get("id"):
            return None
        stats_24h = item.get("stats24h") or {}
        volume_usd = to_float(stats_24h.get("buyVolume")) + to_float(stats_24h.get("sellVolume"))
        transactions = max(to_int(stats_24h.get("numBuys")), 0) + max(
            to_int(stats_24h.get("numSells")), 0
        )
        return TokenRecord(
            address=item["id"],
            name=item.get("name") or "",
            ticker=item.get("symbol") or "",
            price=self.usd_to_sol(item.get("usdPrice")),
            market_cap=self.usd_to_sol(item.get("mcap")),
            volume=self.usd_to_sol(volume_usd),
            liquidity=self.usd_to_sol(item.get("liquidity")),
            transaction_count=transactions,
            price_change_1h=to_float(dig(item, "stats1h", "priceChange")),
            price_change_24h=to_float(stats_24h.get("priceChange")),
            source_label=self.name,
        )
