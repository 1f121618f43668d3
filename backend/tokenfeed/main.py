"""Process bootstrap: wiring, FastAPI app and server entry point.

Start locally with:

    tokenfeed                    # console script
    uvicorn --factory tokenfeed.main:create_app

See Settings.from_env() for the environment variables.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI

from .api import create_health_router, create_tokens_router
from .config import Settings
from .market import (
    BroadcastHub,
    RefreshScheduler,
    SchedulerConfig,
    TokenAggregator,
    TokenCache,
    TokenSource,
    create_sources,
    create_stream_router,
    create_token_cache,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


@dataclass
class Services:
    """Everything the process constructs once at startup."""

    settings: Settings
    cache: TokenCache
    sources: tuple[TokenSource, ...]
    aggregator: TokenAggregator
    hub: BroadcastHub
    scheduler: RefreshScheduler

    async def aclose(self) -> None:
        await self.scheduler.stop()
        await asyncio.gather(*(source.aclose() for source in self.sources))
        await self.cache.aclose()


def build_services(settings: Settings) -> Services:
    cache = create_token_cache(settings)
    sources = create_sources(settings)
    aggregator = TokenAggregator(
        sources,
        cache,
        lookup_source=sources[0],
        cache_ttl=settings.cache_ttl,
        search_ttl=settings.search_cache_ttl,
    )
    hub = BroadcastHub()
    scheduler = RefreshScheduler(
        aggregator,
        hub,
        SchedulerConfig(
            refresh_interval=settings.refresh_interval,
            price_check_interval=settings.price_check_interval,
            volume_check_interval=settings.volume_check_interval,
            price_change_threshold=settings.price_change_threshold,
            volume_spike_threshold=settings.volume_spike_threshold,
        ),
    )
    return Services(
        settings=settings,
        cache=cache,
        sources=tuple(sources),
        aggregator=aggregator,
        hub=hub,
        scheduler=scheduler,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI app. Background jobs run for the app's lifespan."""
    settings = settings or Settings.from_env()
    services = build_services(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if settings.enable_scheduler:
            await services.scheduler.start()
        logger.info("tokenfeed ready on %s:%d (WebSocket at /ws)", settings.host, settings.port)
        try:
            yield
        finally:
            logger.info("Shutting down")
            await services.aclose()

    app = FastAPI(title="tokenfeed", lifespan=lifespan)
    app.state.services = services
    app.include_router(create_tokens_router(services.aggregator))
    app.include_router(
        create_health_router(
            services.cache,
            services.hub,
            snapshot_size=lambda: len(services.scheduler.snapshot),
            scheduler_running=lambda: services.scheduler.running,
        )
    )
    app.include_router(create_stream_router(services.hub))
    return app


def run() -> None:
    """Console entry point."""
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
