"""Test helpers for market data tests.

Provider adapters are exercised against ``httpx.MockTransport`` so no test
touches the network; the aggregator and scheduler use in-process fakes.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx

from tokenfeed.market.interface import TokenSource
from tokenfeed.market.models import TokenRecord
from tokenfeed.market.retry import RetryPolicy

FAST_RETRY = RetryPolicy(max_retries=2, base_delay=0.001, max_delay=0.01)


def make_token(address: str = "addr1", **overrides: Any) -> TokenRecord:
    """TokenRecord with sensible defaults for tests."""
    fields: dict[str, Any] = {
        "address": address,
        "name": f"Token {address}",
        "ticker": address.upper()[:4],
        "price": 0.5,
        "market_cap": 1000.0,
        "volume": 100.0,
        "liquidity": 50.0,
        "transaction_count": 200,
        "price_change_1h": 5.0,
        "price_change_24h": 10.0,
        "source_label": "raydium",
        "observed_at": 1_700_000_000.0,
    }
    fields.update(overrides)
    return TokenRecord(**fields)


class FakeSource(TokenSource):
    """Scripted TokenSource. Pass an Exception instead of a list to make a call fail."""

    def __init__(
        self,
        name: str,
        trending: list[TokenRecord] | Exception | None = None,
        search: list[TokenRecord] | Exception | None = None,
        lookup: dict[str, TokenRecord] | Exception | None = None,
    ) -> None:
        self.name = name
        self._trending = trending if trending is not None else []
        self._search = search if search is not None else []
        self._lookup = lookup if lookup is not None else {}
        self.trending_calls: list[int] = []
        self.search_calls: list[str] = []
        self.lookup_calls: list[str] = []
        self.closed = False

    async def get_trending_tokens(self, limit: int) -> list[TokenRecord]:
        self.trending_calls.append(limit)
        if isinstance(self._trending, Exception):
            raise self._trending
        return list(self._trending)

    async def search_tokens(self, query: str) -> list[TokenRecord]:
        self.search_calls.append(query)
        if isinstance(self._search, Exception):
            raise self._search
        return list(self._search)

    async def get_token_by_address(self, address: str) -> TokenRecord | None:
        self.lookup_calls.append(address)
        if isinstance(self._lookup, Exception):
            raise self._lookup
        return self._lookup.get(address)

    async def aclose(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced monotonic clock for cache TTL tests."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


Handler = Callable[[httpx.Request], httpx.Response]


def mock_client(base_url: str, handler: Handler) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(base_url=base_url, transport=httpx.MockTransport(handler))


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode())
