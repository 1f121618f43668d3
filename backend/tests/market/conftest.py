"""Fixtures for market data tests."""

import pytest

from tokenfeed.market.cache import MemoryTokenCache
from tokenfeed.market.hub import BroadcastHub

from .helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> MemoryTokenCache:
    """In-memory cache driven by a manual clock."""
    return MemoryTokenCache(clock=clock)


@pytest.fixture
def hub() -> BroadcastHub:
    return BroadcastHub()
