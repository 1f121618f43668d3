"""Tests for the token cache backends and cache-aside helper."""

from unittest.mock import AsyncMock

import pytest

from tokenfeed.market.cache import (
    MemoryTokenCache,
    RedisTokenCache,
    list_key,
    search_key,
    token_key,
)
from tokenfeed.market.errors import CacheError
from tokenfeed.market.models import SortField, Timeframe, TokenRecord

from .helpers import make_token


class TestCacheKeys:
    """Key schema."""

    def test_list_key(self):
        assert list_key(SortField.VOLUME, Timeframe.H24, 20) == "tokens:list:volume:24h:20"
        assert list_key("liquidity", "1h", 5) == "tokens:list:liquidity:1h:5"

    def test_search_key_is_lowercased(self):
        assert search_key("BoNk") == "tokens:search:bonk"

    def test_token_key(self):
        assert token_key("So1111") == "tokens:So1111"


@pytest.mark.asyncio
class TestMemoryTokenCache:
    """Unit tests for the in-memory backend."""

    async def test_set_and_get(self, cache):
        """Test storing and reading a JSON value."""
        assert await cache.set("k", {"a": 1}) is True
        assert await cache.get("k") == {"a": 1}

    async def test_missing_key(self, cache):
        assert await cache.get("nope") is None

    async def test_entry_expires(self, cache, clock):
        """Test that entries vanish once their TTL elapses."""
        await cache.set("k", [1, 2], ttl=30)

        clock.advance(29.9)
        assert await cache.get("k") == [1, 2]

        clock.advance(0.1)
        assert await cache.get("k") is None
        assert len(cache) == 0

    async def test_default_ttl(self, clock):
        cache = MemoryTokenCache(default_ttl=5, clock=clock)
        await cache.set("k", 1)
        clock.advance(5)
        assert "k" not in cache

    async def test_purge_expired(self, cache, clock):
        await cache.set("short", 1, ttl=1)
        await cache.set("long", 2, ttl=100)
        clock.advance(2)

        assert cache.purge_expired() == 1
        assert "long" in cache
        assert "short" not in cache

    async def test_writes_sweep_unread_expired_entries(self, cache, clock):
        """Test that keys never read again are dropped by later writes."""
        for i in range(1000):
            await cache.set(f"tokens:search:q{i}", [], ttl=60)

        clock.advance(3600)
        for i in range(10):
            await cache.set(f"tokens:search:fresh{i}", [], ttl=60)

        assert len(cache) == 10

    async def test_sweep_runs_at_most_once_per_interval(self, clock):
        cache = MemoryTokenCache(clock=clock, purge_interval=100)
        await cache.set("old", 1, ttl=1)

        clock.advance(50)
        await cache.set("new", 2, ttl=1000)
        assert len(cache) == 2

        clock.advance(50)
        await cache.set("newer", 3, ttl=1000)
        assert len(cache) == 2
        assert "old" not in cache

    async def test_undecodable_entry_is_a_miss(self, cache):
        await cache.set_raw("k", "{not json", 30)
        assert await cache.get("k") is None

    async def test_ping(self, cache):
        assert await cache.ping() is True


@pytest.mark.asyncio
class TestReadThrough:
    """Cache-aside behavior shared by all backends."""

    async def test_miss_calls_producer_and_stores(self, cache):
        """Test that a miss produces, caches and returns the value."""
        token = make_token("addr1")
        producer = AsyncMock(return_value=token)

        result = await cache.read_through(
            "tokens:addr1", producer, loads=TokenRecord.from_dict, dumps=TokenRecord.to_dict
        )

        assert result == token
        assert await cache.get("tokens:addr1") == token.to_dict()
        producer.assert_awaited_once()

    async def test_hit_skips_producer(self, cache):
        """Test that a hit returns the cached value without producing."""
        token = make_token("addr1")
        await cache.set("tokens:addr1", token.to_dict())
        producer = AsyncMock()

        result = await cache.read_through(
            "tokens:addr1", producer, loads=TokenRecord.from_dict, dumps=TokenRecord.to_dict
        )

        assert result == token
        producer.assert_not_awaited()

    async def test_none_is_not_cached(self, cache):
        producer = AsyncMock(return_value=None)

        result = await cache.read_through("k", producer, loads=lambda v: v, dumps=lambda v: v)

        assert result is None
        assert "k" not in cache

    async def test_empty_list_is_cached(self, cache):
        producer = AsyncMock(return_value=[])

        await cache.read_through("k", producer, loads=list, dumps=list)

        assert await cache.get("k") == []

    async def test_malformed_entry_falls_back_to_producer(self, cache):
        await cache.set("tokens:addr1", {"unexpected": True})
        token = make_token("addr1")
        producer = AsyncMock(return_value=token)

        result = await cache.read_through(
            "tokens:addr1", producer, loads=TokenRecord.from_dict, dumps=TokenRecord.to_dict
        )

        assert result == token

    async def test_write_failure_still_returns_value(self, cache):
        """Test that a failing backend write never fails the read."""
        cache.set_raw = AsyncMock(side_effect=CacheError("down"))
        producer = AsyncMock(return_value=[1, 2, 3])

        result = await cache.read_through("k", producer, loads=list, dumps=list)

        assert result == [1, 2, 3]

    async def test_read_failure_falls_through_to_producer(self, cache):
        cache.get_raw = AsyncMock(side_effect=CacheError("down"))
        producer = AsyncMock(return_value=[1])

        assert await cache.read_through("k", producer, loads=list, dumps=list) == [1]
        producer.assert_awaited_once()


@pytest.mark.asyncio
class TestRedisTokenCache:
    """RedisTokenCache against a mocked redis.asyncio client."""

    async def test_set_uses_expiry(self):
        client = AsyncMock()
        cache = RedisTokenCache("redis://test", client=client)

        await cache.set("k", {"a": 1}, ttl=60)

        client.set.assert_awaited_once_with("k", '{"a": 1}', ex=60)

    async def test_get_decodes_json(self):
        client = AsyncMock()
        client.get.return_value = '{"a": 1}'
        cache = RedisTokenCache("redis://test", client=client)

        assert await cache.get("k") == {"a": 1}

    async def test_errors_become_cache_errors(self):
        client = AsyncMock()
        client.ping.side_effect = ConnectionError("refused")
        client.get.side_effect = ConnectionError("refused")
        cache = RedisTokenCache("redis://test", client=client)

        with pytest.raises(CacheError):
            await cache.ping()
        assert await cache.get("k") is None

    async def test_fractional_ttl_rounds_to_at_least_one_second(self):
        client = AsyncMock()
        cache = RedisTokenCache("redis://test", client=client)

        await cache.set_raw("k", "1", 0.2)

        client.set.assert_awaited_once_with("k", "1", ex=1)

    async def test_aclose(self):
        client = AsyncMock()
        cache = RedisTokenCache("redis://test", client=client)

        await cache.aclose()

        client.aclose.assert_awaited_once()
