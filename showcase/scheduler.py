from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from showcase.cache import Cache
from showcase.logging import logger


class CacheSweeper:
    """Periodically evicts expired cache entries, independent of request traffic."""

    def __init__(self, cache: Cache, interval_seconds: int = 300):
        self.cache = cache
        self.interval_seconds = interval_seconds
        self.scheduler = AsyncIOScheduler()

    async def sweep(self) -> int:
        evicted = await self.cache.cleanup()
        if evicted:
            logger.debug(f"[CacheSweeper] Evicted {evicted} expired entries")
        return evicted

    async def start(self) -> None:
        """Starts the sweep job. Must be called from inside a running event loop."""
        self.scheduler.add_job(
            self.sweep,
            IntervalTrigger(seconds=self.interval_seconds),
            id="cache-sweep",
            replace_existing=True,
        )
        self.scheduler.start()

    async def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
