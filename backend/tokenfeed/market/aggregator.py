"""Aggregation orchestrator: sources -> merge -> cache."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from .cache import DEFAULT_TTL, SEARCH_TTL, TokenCache, list_key, search_key, token_key
from .errors import InvalidQueryError, SourcesUnavailableError
from .interface import TokenSource
from .merge import merge_tokens, sort_tokens
from .models import SortField, Timeframe, TokenRecord

logger = logging.getLogger(__name__)

MAX_LIMIT = 100
DEFAULT_LIMIT = 20
MIN_QUERY_LENGTH = 2
TRENDING_LIMITS = {"dexscreener": 100}
DEFAULT_TRENDING_LIMIT = 50


def _dump_list(tokens: list[TokenRecord]) -> list[dict]:
    return [token.to_dict() for token in tokens]


def _load_list(data: list[dict]) -> list[TokenRecord]:
    return [TokenRecord.from_dict(item) for item in data]


class TokenAggregator:
    """Public read operations over all sources, fronted by the cache.

    Sources are queried in parallel. A source that raises is logged and
    treated as absent; only when every source fails does the call fail.
    """

    def __init__(
        self,
        sources: Sequence[TokenSource],
        cache: TokenCache,
        lookup_source: TokenSource | None = None,
        cache_ttl: float = DEFAULT_TTL,
        search_ttl: float = SEARCH_TTL,
    ) -> None:
        if not sources:
            raise ValueError("at least one source is required")
        self._sources = list(sources)
        self._cache = cache
        self._lookup = lookup_source or self._sources[0]
        self._cache_ttl = cache_ttl
        self._search_ttl = search_ttl

    @property
    def sources(self) -> list[TokenSource]:
        return list(self._sources)

    async def fetch_and_aggregate(self) -> list[TokenRecord]:
        """Pull trending tokens from every source, merge, cache each record."""
        logger.info("Starting token aggregation from %d sources", len(self._sources))
        lists = await self._gather(
            "trending",
            lambda source: source.get_trending_tokens(
                TRENDING_LIMITS.get(source.name, DEFAULT_TRENDING_LIMIT)
            ),
        )
        merged = merge_tokens(lists)
        await self._cache_tokens(merged)
        logger.info("Aggregated %d unique tokens from %d sources", len(merged), len(lists))
        return merged

    async def get_tokens(
        self,
        limit: int = DEFAULT_LIMIT,
        sort: SortField = SortField.VOLUME,
        timeframe: Timeframe = Timeframe.H24,
    ) -> list[TokenRecord]:
        """Top ``limit`` merged tokens (at most 100) ordered by ``sort``."""
        limit = min(int(limit), MAX_LIMIT)
        sort = SortField(sort)
        if limit <= 0:
            return []

        async def produce() -> list[TokenRecord]:
            tokens = await self.fetch_and_aggregate()
            return sort_tokens(tokens, sort)[:limit]

        return await self._cache.read_through(
            list_key(sort, timeframe, limit),
            produce,
            loads=_load_list,
            dumps=_dump_list,
            ttl=self._cache_ttl,
        )

    async def search_tokens(self, query: str) -> list[TokenRecord]:
        """Merged matches for ``query`` across all sources.

        Raises InvalidQueryError for queries shorter than two characters.
        """
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            raise InvalidQueryError(f"Query must be at least {MIN_QUERY_LENGTH} characters")

        async def produce() -> list[TokenRecord]:
            logger.info("Searching tokens for: %s", query)
            lists = await self._gather("search", lambda source: source.search_tokens(query))
            merged = merge_tokens(lists)
            logger.info("Found %d tokens matching '%s'", len(merged), query)
            return merged

        return await self._cache.read_through(
            search_key(query),
            produce,
            loads=_load_list,
            dumps=_dump_list,
            ttl=self._search_ttl,
        )

    async def get_token_by_address(self, address: str) -> TokenRecord | None:
        """One token from the lookup source, or None if no source knows it."""

        async def produce() -> TokenRecord | None:
            logger.info("Fetching token by address: %s", address)
            return await self._lookup.get_token_by_address(address)

        return await self._cache.read_through(
            token_key(address),
            produce,
            loads=TokenRecord.from_dict,
            dumps=TokenRecord.to_dict,
            ttl=self._cache_ttl,
        )

    # --- Internals ---

    async def _gather(
        self,
        operation: str,
        call: Callable[[TokenSource], Awaitable[list[TokenRecord]]],
    ) -> list[list[TokenRecord]]:
        results = await asyncio.gather(
            *(call(source) for source in self._sources), return_exceptions=True
        )

        lists: list[list[TokenRecord]] = []
        failures: list[str] = []
        for source, result in zip(self._sources, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                failures.append(source.name)
                logger.error("%s %s failed: %s", source.name, operation, result)
                continue
            logger.info("%s %s: %d tokens", source.name, operation, len(result))
            lists.append(result)

        if not lists:
            raise SourcesUnavailableError(
                f"All sources failed for {operation}: {', '.join(failures)}"
            )
        return lists

    async def _cache_tokens(self, tokens: list[TokenRecord]) -> None:
        await asyncio.gather(
            *(
                self._cache.set(token_key(token.address), token.to_dict(), self._cache_ttl)
                for token in tokens
            )
        )
