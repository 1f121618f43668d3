"""Token market data subsystem.

Public API:
    TokenRecord         - Immutable canonical token snapshot
    TokenSource         - Abstract interface for data providers
    TokenCache          - TTL cache (MemoryTokenCache / RedisTokenCache)
    TokenAggregator     - list / search / lookup over all sources
    RefreshScheduler    - periodic refresh and diff jobs
    BroadcastHub        - subscription-filtered real-time fan-out
    merge_tokens        - cross-source reconciliation
    create_token_cache  - Factory that selects memory or Redis
    create_sources      - Factory for the provider adapters
    create_stream_router - FastAPI router factory for the WebSocket endpoint
"""

from .aggregator import TokenAggregator
from .cache import MemoryTokenCache, RedisTokenCache, TokenCache
from .factory import create_sources, create_token_cache
from .hub import BroadcastHub, Connection
from .interface import TokenSource
from .merge import deduplicate_by_address, merge_tokens
from .models import SortField, Timeframe, TokenRecord
from .scheduler import RefreshScheduler, SchedulerConfig
from .stream import create_stream_router

__all__ = [
    "TokenRecord",
    "SortField",
    "Timeframe",
    "TokenSource",
    "TokenCache",
    "MemoryTokenCache",
    "RedisTokenCache",
    "TokenAggregator",
    "RefreshScheduler",
    "SchedulerConfig",
    "BroadcastHub",
    "Connection",
    "merge_tokens",
    "deduplicate_by_address",
    "create_token_cache",
    "create_sources",
    "create_stream_router",
]
