"""REST routers for token data and service health."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from .market.aggregator import DEFAULT_LIMIT, MAX_LIMIT, TokenAggregator
from .market.cache import TokenCache
from .market.errors import InvalidQueryError, SourceError, SourcesUnavailableError
from .market.hub import BroadcastHub
from .market.models import SortField, Timeframe

logger = logging.getLogger(__name__)

HEALTH_KEY = "health:check"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


def create_tokens_router(aggregator: TokenAggregator) -> APIRouter:
    """Token list, search and lookup endpoints under /api."""
    router = APIRouter(prefix="/api", tags=["tokens"])

    @router.get("/tokens")
    async def get_tokens(
        limit: int = Query(DEFAULT_LIMIT, ge=1),
        sort: SortField = SortField.VOLUME,
        timeframe: Timeframe = Timeframe.H24,
    ) -> Any:
        try:
            tokens = await aggregator.get_tokens(min(limit, MAX_LIMIT), sort, timeframe)
        except (SourceError, SourcesUnavailableError) as e:
            logger.error("Error in get_tokens: %s", e)
            return _error(503, "Failed to fetch tokens")

        return {
            "success": True,
            "data": [token.to_dict() for token in tokens],
            "count": len(tokens),
            "timestamp": time.time(),
        }

    # Registered before /tokens/{address} so "search" is not read as an address
    @router.get("/tokens/search")
    async def search_tokens(q: str | None = None) -> Any:
        try:
            tokens = await aggregator.search_tokens(q or "")
        except InvalidQueryError as e:
            return _error(400, str(e))
        except (SourceError, SourcesUnavailableError) as e:
            logger.error("Error in search_tokens: %s", e)
            return _error(503, "Failed to search tokens")

        return {
            "success": True,
            "data": [token.to_dict() for token in tokens],
            "count": len(tokens),
            "query": q,
        }

    @router.get("/tokens/{address}")
    async def get_token(address: str) -> Any:
        try:
            token = await aggregator.get_token_by_address(address)
        except (SourceError, SourcesUnavailableError) as e:
            logger.error("Error in get_token %s: %s", address, e)
            return _error(503, "Failed to fetch token")

        if token is None:
            return _error(404, "Token not found")
        return {"success": True, "data": token.to_dict()}

    return router


def create_health_router(
    cache: TokenCache,
    hub: BroadcastHub,
    snapshot_size: Callable[[], int] = lambda: 0,
    scheduler_running: Callable[[], bool] = lambda: False,
) -> APIRouter:
    """Liveness/readiness probe and a small metrics endpoint."""
    router = APIRouter(tags=["health"])
    started_at = time.monotonic()

    @router.get("/health")
    async def health() -> Any:
        try:
            await cache.ping()
            await cache.set_raw(HEALTH_KEY, '"ok"', 10)
        except Exception as e:
            logger.error("Health check failed: %s", e)
            return JSONResponse(
                status_code=503,
                content={
                    "success": False,
                    "status": "unhealthy",
                    "error": "Service unavailable",
                },
            )

        return {
            "success": True,
            "status": "healthy",
            "timestamp": time.time(),
            "services": {
                "cache": "connected",
                "websocket": f"{hub.connection_count} connections",
            },
        }

    @router.get("/metrics")
    async def metrics() -> Any:
        return {
            "success": True,
            "metrics": {
                "websocket_connections": hub.connection_count,
                "uptime": time.monotonic() - started_at,
                "tracked_tokens": snapshot_size(),
                "scheduler_running": scheduler_running(),
            },
        }

    return router
