"""Periodic refresh and diff jobs that drive real-time broadcasts."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .aggregator import TokenAggregator
from .hub import BroadcastHub
from .models import SortField, Timeframe, TokenRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SchedulerConfig:
    """Periods in seconds, thresholds in percent."""

    refresh_interval: float = 30.0
    price_check_interval: float = 10.0
    volume_check_interval: float = 15.0
    price_change_threshold: float = 1.0
    volume_spike_threshold: float = 50.0
    price_check_top_n: int = 20
    volume_check_top_n: int = 50


class RefreshScheduler:
    """Three independent periodic jobs, started and stopped as a group.

    - refresh: re-pull and merge every source, replace the previous snapshot
    - price check: broadcast price moves beyond the threshold vs the snapshot
    - volume check: broadcast upward volume spikes vs the snapshot

    Each job is fixed-rate and single-flight: if a run is still executing when
    its next slot comes up, that slot is skipped. A failing run is logged and
    never stops its own loop or the others.
    """

    def __init__(
        self,
        aggregator: TokenAggregator,
        hub: BroadcastHub,
        config: SchedulerConfig | None = None,
    ) -> None:
        self._aggregator = aggregator
        self._hub = hub
        self._config = config or SchedulerConfig()
        self._snapshot: dict[str, TokenRecord] = {}
        self._tasks: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    @property
    def snapshot(self) -> dict[str, TokenRecord]:
        """Previous-refresh records by address. Returns a shallow copy."""
        return dict(self._snapshot)

    async def start(self) -> None:
        """Refresh once right away, then launch the periodic loops."""
        if self.running:
            return
        logger.info("Starting periodic background jobs")
        await self._run_job("refresh", self.refresh_snapshot)

        cfg = self._config
        jobs: list[tuple[str, float, Callable[[], Awaitable[object]]]] = [
            ("refresh", cfg.refresh_interval, self.refresh_snapshot),
            ("price-check", cfg.price_check_interval, self.check_price_updates),
            ("volume-check", cfg.volume_check_interval, self.check_volume_spikes),
        ]
        self._tasks = [
            asyncio.create_task(self._periodic(name, interval, job), name=f"scheduler-{name}")
            for name, interval, job in jobs
        ]
        logger.info("Background jobs started")

    async def stop(self) -> None:
        """Cancel all loops. Safe to call multiple times."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            logger.info("Background jobs stopped")

    # --- Jobs ---

    async def refresh_snapshot(self) -> int:
        """Replace the snapshot with a fresh aggregate. Returns its size."""
        tokens = await self._aggregator.fetch_and_aggregate()
        self._snapshot = {token.address: token for token in tokens}
        logger.info("Refreshed %d tokens", len(self._snapshot))
        return len(self._snapshot)

    async def check_price_updates(self) -> int:
        """Broadcast price moves beyond the threshold. Returns how many fired."""
        if self._hub.connection_count == 0:
            return 0

        tokens = await self._aggregator.get_tokens(
            self._config.price_check_top_n, SortField.VOLUME, Timeframe.H24
        )
        snapshot = self._snapshot
        fired = 0
        for token in tokens:
            previous = snapshot.get(token.address)
            if previous is None or previous.price <= 0:
                continue
            change_percent = (token.price - previous.price) / previous.price * 100
            if abs(change_percent) > self._config.price_change_threshold:
                await self._hub.broadcast_price_update(token.address, token)
                logger.debug("Price update: %s %+.2f%%", token.ticker, change_percent)
                fired += 1
        return fired

    async def check_volume_spikes(self) -> int:
        """Broadcast upward volume spikes beyond the threshold. Returns how many fired."""
        if self._hub.connection_count == 0:
            return 0

        tokens = await self._aggregator.get_tokens(
            self._config.volume_check_top_n, SortField.VOLUME, Timeframe.H24
        )
        snapshot = self._snapshot
        fired = 0
        for token in tokens:
            previous = snapshot.get(token.address)
            if previous is None or previous.volume <= 0:
                continue
            change_percent = (token.volume - previous.volume) / previous.volume * 100
            if change_percent > self._config.volume_spike_threshold:
                await self._hub.broadcast_volume_spike(
                    token.address, previous.volume, token.volume
                )
                logger.info("Volume spike: %s %+.2f%%", token.ticker, change_percent)
                fired += 1
        return fired

    # --- Internals ---

    async def _periodic(
        self, name: str, interval: float, job: Callable[[], Awaitable[object]]
    ) -> None:
        loop = asyncio.get_running_loop()
        next_run = loop.time() + interval
        while True:
            await asyncio.sleep(max(0.0, next_run - loop.time()))
            await self._run_job(name, job)

            next_run += interval
            now = loop.time()
            if next_run <= now:
                skipped = int((now - next_run) // interval) + 1
                next_run += skipped * interval
                logger.debug("%s overran its period, skipped %d run(s)", name, skipped)

    async def _run_job(self, name: str, job: Callable[[], Awaitable[object]]) -> None:
        try:
            await job()
        except Exception:
            logger.exception("Error in %s job", name)
