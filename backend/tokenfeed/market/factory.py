"""Factories for the cache backend and the provider adapters."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .cache import MemoryTokenCache, RedisTokenCache, TokenCache
from .sources import DexScreenerSource, GeckoTerminalSource, JupiterSource

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)


def create_token_cache(settings: Settings) -> TokenCache:
    """Create the cache backend based on configuration.

    - REDIS_URL set and non-empty → RedisTokenCache (shared across processes)
    - Otherwise → MemoryTokenCache (single process)
    """
    if settings.redis_url:
        logger.info("Token cache: Redis at %s", settings.redis_url)
        return RedisTokenCache(settings.redis_url, default_ttl=settings.cache_ttl)

    logger.info("Token cache: in-memory")
    return MemoryTokenCache(default_ttl=settings.cache_ttl)


def create_sources(
    settings: Settings,
) -> tuple[DexScreenerSource, GeckoTerminalSource, JupiterSource]:
    """Create one adapter per provider, each with its own rate limiter.

    DexScreener comes first: it is also the lookup source for single tokens.
    """
    return (
        DexScreenerSource(
            base_url=settings.dexscreener_base_url,
            rate_limit=settings.dexscreener_rate_limit,
            timeout=settings.http_timeout,
        ),
        GeckoTerminalSource(
            base_url=settings.geckoterminal_base_url,
            rate_limit=settings.geckoterminal_rate_limit,
            timeout=settings.http_timeout,
        ),
        JupiterSource(
            base_url=settings.jupiter_base_url,
            rate_limit=settings.jupiter_rate_limit,
            timeout=settings.http_timeout,
        ),
    )
