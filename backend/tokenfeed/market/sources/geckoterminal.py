"""GeckoTerminal adapter.

Endpoints:
    GET /networks/{network}/trending_pools
    GET /networks/{network}/new_pools
    GET /search/pools?query={query}&network={network}
Rate Limit: 30 calls/min (free)

GeckoTerminal is pool-centric: each pool is mapped to its base token.
"""

from __future__ import annotations

import logging
from typing import Any

from ..errors import SourceError
from ..models import TokenRecord
from .base import HttpTokenSource, count_transactions, dig, non_negative, to_float

logger = logging.getLogger(__name__)

POOLS_PER_LISTING = 30
SEARCH_RESULTS = 20


class GeckoTerminalSource(HttpTokenSource):
    """Adapter for the GeckoTerminal v2 API (trending + newest pools)."""

    name = "geckoterminal"
    DEFAULT_BASE_URL = "https://api.geckoterminal.com/api/v2"
    DEFAULT_RATE_LIMIT = 10.0

    def __init__(self, *, network: str = "solana", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.network = network

    async def get_trending_tokens(self, limit: int = 50) -> list[TokenRecord]:
        # Last write wins per address; dict keeps first-insertion position
        by_address: dict[str, TokenRecord] = {}

        for listing in ("trending_pools", "new_pools"):
            try:
                data = await self._get_json(f"/networks/{self.network}/{listing}")
            except SourceError as e:
                logger.warning("GeckoTerminal %s failed: %s", listing, e)
                continue

            pools = dig(data, "data") or []
            logger.info("GeckoTerminal %s: %d pools", listing, len(pools))
            for pool in pools[:POOLS_PER_LISTING]:
                token = self.normalize(pool)
                if token is not None:
                    by_address[token.address] = token

        logger.info("GeckoTerminal total: %d unique tokens", len(by_address))
        return list(by_address.values())[:limit]

    async def search_tokens(self, query: str) -> list[TokenRecord]:
        data = await self._get_json(
            "/search/pools", params={"query": query, "network": self.network}
        )
        pools = dig(data, "data") or []
        tokens = (self.normalize(pool) for pool in pools[:SEARCH_RESULTS])
        return [token for token in tokens if token is not None]

    def normalize(self, pool: dict[str, Any]) -> TokenRecord | None:
        """Map one pool to a TokenRecord, or None if the pool is malformed."""
        attrs = pool.get("attributes") if isinstance(pool, dict) else None
        if not isinstance(attrs, dict):
            logger.warning("Skipping GeckoTerminal pool without attributes: %r", pool)
            return None

        address = self._base_token_address(pool) or attrs.get("address")
        if not address:
            logger.warning("Skipping GeckoTerminal pool without address: %s", pool.get("id"))
            return None

        pool_name = attrs.get("name") or ""
        market_cap_usd = attrs.get("market_cap_usd") or attrs.get("fdv_usd")

        return TokenRecord(
            address=address,
            name=pool_name,
            ticker=pool_name.split("/")[0].strip(),
            price=non_negative(to_float(attrs.get("base_token_price_native_currency"))),
            market_cap=self.usd_to_sol(market_cap_usd),
            volume=self.usd_to_sol(dig(attrs, "volume_usd", "h24")),
            liquidity=self.usd_to_sol(attrs.get("reserve_in_usd")),
            transaction_count=count_transactions(dig(attrs, "transactions", "h24")),
            price_change_1h=to_float(dig(attrs, "price_change_percentage", "h1")),
            price_change_24h=to_float(dig(attrs, "price_change_percentage", "h24")),
            source_label=self.name,
        )

    def _base_token_address(self, pool: dict[str, Any]) -> str | None:
        """Token ids look like "solana_<address>"; strip the network prefix."""
        token_id = dig(pool, "relationships", "base_token", "data", "id")
        if not isinstance(token_id, str) or not token_id:
            return None
        prefix = f"{self.network}_"
        return token_id[len(prefix):] if token_id.startswith(prefix) else token_id
