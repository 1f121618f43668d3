"""TTL cache for aggregated token data.

Values are stored as JSON text so the in-memory and Redis backends behave the
same. Read failures degrade to a miss and write failures are logged and
swallowed: the cache never fails the read path it fronts.
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from threading import Lock
from typing import Any, TypeVar

from .errors import CacheError
from .models import SortField, Timeframe

logger = logging.getLogger(__name__)

T = TypeVar("T")

KEY_PREFIX = "tokens:"
DEFAULT_TTL = 30.0
SEARCH_TTL = 60.0
PURGE_INTERVAL = 60.0


def list_key(sort: SortField | str, timeframe: Timeframe | str, limit: int) -> str:
    return f"{KEY_PREFIX}list:{SortField(sort).value}:{Timeframe(timeframe).value}:{limit}"


def search_key(query: str) -> str:
    return f"{KEY_PREFIX}search:{query.lower()}"


def token_key(address: str) -> str:
    return f"{KEY_PREFIX}{address}"


class TokenCache(ABC):
    """Key/value store with per-entry TTL, used cache-aside.

    Backends implement the raw text primitives and may raise CacheError;
    the typed helpers on top never raise on backend failure.
    """

    def __init__(self, default_ttl: float = DEFAULT_TTL) -> None:
        self.default_ttl = default_ttl

    # --- Backend primitives ---

    @abstractmethod
    async def get_raw(self, key: str) -> str | None:
        """Stored text for key, or None if absent/expired."""

    @abstractmethod
    async def set_raw(self, key: str, value: str, ttl: float) -> None:
        """Store text for ttl seconds."""

    @abstractmethod
    async def ping(self) -> bool:
        """Round-trip to the backend. Raises CacheError when unreachable."""

    async def aclose(self) -> None:
        """Release backend connections."""

    # --- Typed helpers ---

    async def get(self, key: str) -> Any | None:
        """Decoded JSON for key, or None on miss or backend failure."""
        try:
            raw = await self.get_raw(key)
        except Exception as e:
            logger.error("Cache GET error for key %s: %s", key, e)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def set(self, key: str, value: Any, ttl: float | None = None) -> bool:
        """Store a JSON-serializable value. Returns False if the write failed."""
        try:
            await self.set_raw(key, json.dumps(value), self.default_ttl if ttl is None else ttl)
        except Exception as e:
            logger.error("Cache SET error for key %s: %s", key, e)
            return False
        return True

    async def read_through(
        self,
        key: str,
        producer: Callable[[], Awaitable[T | None]],
        *,
        loads: Callable[[Any], T],
        dumps: Callable[[T], Any],
        ttl: float | None = None,
    ) -> T | None:
        """Cache-aside read: return the cached value or produce, store and return it.

        None results are returned but not cached.
        """
        cached = await self.get(key)
        if cached is not None:
            try:
                value = loads(cached)
            except (KeyError, TypeError, ValueError):
                logger.warning("Discarding malformed cache entry %s", key)
            else:
                logger.debug("Cache hit: %s", key)
                return value

        logger.debug("Cache miss: %s", key)
        value = await producer()
        if value is not None:
            await self.set(key, dumps(value), ttl)
        return value


class MemoryTokenCache(TokenCache):
    """Thread-safe in-process cache.

    Expiry is checked on read. Writes also sweep out every expired entry at
    most once per ``purge_interval`` seconds, so keys that are never read
    again do not pile up.
    """

    def __init__(
        self,
        default_ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
        purge_interval: float = PURGE_INTERVAL,
    ) -> None:
        super().__init__(default_ttl)
        self._entries: dict[str, tuple[float, str]] = {}  # key -> (expires_at, text)
        self._lock = Lock()
        self._clock = clock
        self._purge_interval = purge_interval
        self._last_purge = clock()

    async def get_raw(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    async def set_raw(self, key: str, value: str, ttl: float) -> None:
        now = self._clock()
        with self._lock:
            if now - self._last_purge >= self._purge_interval:
                self._purge_locked(now)
            self._entries[key] = (now + ttl, value)

    async def ping(self) -> bool:
        return True

    def purge_expired(self) -> int:
        """Drop every expired entry. Returns how many were removed."""
        with self._lock:
            return self._purge_locked(self._clock())

    def _purge_locked(self, now: float) -> int:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        self._last_purge = now
        if expired:
            logger.debug("Purged %d expired cache entries", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._clock() < entry[0]


class RedisTokenCache(TokenCache):
    """Cache backed by Redis via redis.asyncio (SET with EX)."""

    def __init__(self, url: str, default_ttl: float = DEFAULT_TTL, client: Any = None) -> None:
        super().__init__(default_ttl)
        self.url = url
        if client is None:
            import redis.asyncio as aioredis

            client = aioredis.from_url(url, decode_responses=True)
        self._client = client

    async def get_raw(self, key: str) -> str | None:
        try:
            return await self._client.get(key)
        except Exception as e:
            raise CacheError(f"GET {key}: {e}") from e

    async def set_raw(self, key: str, value: str, ttl: float) -> None:
        try:
            await self._client.set(key, value, ex=max(1, int(ttl)))
        except Exception as e:
            raise CacheError(f"SET {key}: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except Exception as e:
            raise CacheError(f"PING: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
