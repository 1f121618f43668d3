"""DexScreener adapter.

Endpoints:
    GET /search?q={query}        pairs matching a query, all chains
    GET /tokens/{address}        pairs for one token address
Rate Limit: ~300 req/min public; we default to 5 req/s.

DexScreener has no trending endpoint, so discovery runs a fixed set of keyword
searches (majors, popular pairs, meme coins) and keeps the liquid results.
"""

from __future__ import annotations

import logging
from typing import Any

from ..errors import SourceError
from ..models import TokenRecord
from .base import HttpTokenSource, count_transactions, dig, non_negative, to_float

logger = logging.getLogger(__name__)

# (query, max tokens taken from its results)
TRENDING_SEARCHES: tuple[tuple[str, int], ...] = (
    ("SOL", 30),
    ("pump.fun", 30),
    ("bonk", 20),
    ("WIF", 20),
    ("PEPE", 20),
    ("DOGE", 20),
    ("raydium", 20),
)

MIN_LIQUIDITY_USD = 100.0
MIN_VOLUME_USD = 10.0


class DexScreenerSource(HttpTokenSource):
    """Adapter for the DexScreener public API. System of record for address lookups."""

    name = "dexscreener"
    DEFAULT_BASE_URL = "https://api.dexscreener.com/latest/dex"
    DEFAULT_RATE_LIMIT = 5.0

    def __init__(self, *, chain_id: str = "solana", **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.chain_id = chain_id

    async def search_tokens(self, query: str) -> list[TokenRecord]:
        pairs = await self._search_pairs(query)
        logger.info("DexScreener search '%s' returned %d pairs", query, len(pairs))
        tokens = (self.normalize(pair) for pair in pairs if self._on_chain(pair))
        return [token for token in tokens if token is not None]

    async def get_token_by_address(self, address: str) -> TokenRecord | None:
        data = await self._get_json(f"/tokens/{address}")
        for pair in dig(data, "pairs") or []:
            if self._on_chain(pair):
                token = self.normalize(pair)
                if token is not None:
                    return token
        return None

    async def get_trending_tokens(self, limit: int = 100) -> list[TokenRecord]:
        tokens: list[TokenRecord] = []
        seen: set[str] = set()

        for query, max_tokens in TRENDING_SEARCHES:
            try:
                pairs = await self._search_pairs(query)
            except SourceError as e:
                logger.warning("DexScreener search failed for '%s': %s", query, e)
                continue

            liquid = [pair for pair in pairs if self._is_liquid(pair)]
            logger.info(
                "DexScreener '%s': %d pairs, %d liquid on %s",
                query,
                len(pairs),
                len(liquid),
                self.chain_id,
            )
            for pair in liquid[:max_tokens]:
                token = self.normalize(pair)
                if token is None or token.address in seen:
                    continue
                seen.add(token.address)
                tokens.append(token)

        logger.info("DexScreener collected %d unique tokens", len(tokens))
        tokens.sort(key=lambda t: t.volume, reverse=True)
        return tokens[:limit]

    # --- Internals ---

    async def _search_pairs(self, query: str) -> list[dict[str, Any]]:
        data = await self._get_json("/search", params={"q": query})
        return dig(data, "pairs") or []

    def _on_chain(self, pair: dict[str, Any]) -> bool:
        return pair.get("chainId") == self.chain_id

    def _is_liquid(self, pair: dict[str, Any]) -> bool:
        return (
            self._on_chain(pair)
            and to_float(dig(pair, "liquidity", "usd")) > MIN_LIQUIDITY_USD
            and to_float(dig(pair, "volume", "h24")) > MIN_VOLUME_USD
        )

    def normalize(self, pair: dict[str, Any]) -> TokenRecord | None:
        """Map one DexScreener pair to a TokenRecord (base token side).

        Pairs without a base token address are dropped.
        """
        base = pair.get("baseToken") or {}
        address = base.get("address")
        if not isinstance(address, str) or not address:
            logger.warning("Skipping DexScreener pair without address: %s", pair.get("pairAddress"))
            return None
        return TokenRecord(
            address=address,
            name=base.get("name", ""),
            ticker=base.get("symbol", ""),
            price=non_negative(to_float(pair.get("priceNative"))),
            market_cap=self.usd_to_sol(pair.get("fdv")),
            volume=self.usd_to_sol(dig(pair, "volume", "h24")),
            liquidity=self.usd_to_sol(dig(pair, "liquidity", "usd")),
            transaction_count=count_transactions(dig(pair, "txns", "h24")),
            price_change_1h=to_float(dig(pair, "priceChange", "h1")),
            price_change_24h=to_float(dig(pair, "priceChange", "h24")),
            source_label=pair.get("dexId") or self.name,
        )
