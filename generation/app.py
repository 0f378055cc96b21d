"""Wires the generation core from ``AppSettings``.

``build_core()`` creates the shared cache, the SQLite-backed stores, the
orchestrator and the background helpers.  ``start()``/``shutdown()`` must run
inside the event loop that serves requests.
"""
from dataclasses import dataclass
from typing import Optional

from generation.orchestrator import GenerationOrchestrator
from generation.prompts.repository import SqlitePromptRepository
from generation.prompts.store import PromptVersionStore
from generation.warmup import CacheWarmer
from showcase.cache import Cache
from showcase.config import AppSettings, get_settings
from showcase.events import EventBus
from showcase.logging import logger, setup_logging
from showcase.scheduler import CacheSweeper
from showcase.settings_store import ConfigurationStore, SqliteSettingsRepository


@dataclass
class ShowcaseCore:
    settings: AppSettings
    cache: Cache
    events: EventBus
    config_store: ConfigurationStore
    prompt_store: PromptVersionStore
    orchestrator: GenerationOrchestrator
    sweeper: CacheSweeper
    warmer: CacheWarmer

    async def start(self) -> None:
        setup_logging(self.settings.LOG_LEVEL, self.settings.LOG_DIR)
        self.warmer.start()
        await self.sweeper.start()
        await self.warmer.warm()
        logger.info("Generation core started")

    async def shutdown(self) -> None:
        self.warmer.stop()
        await self.warmer.drain()
        await self.sweeper.shutdown()
        logger.info("Generation core stopped")


def build_core(settings: Optional[AppSettings] = None) -> ShowcaseCore:
    settings = settings or get_settings()
    cache = Cache(max_size=settings.CACHE_MAX_SIZE)
    events = EventBus()

    config_store = ConfigurationStore(cache, SqliteSettingsRepository(settings.DATABASE_PATH), events)
    prompt_store = PromptVersionStore(SqlitePromptRepository(settings.DATABASE_PATH), cache, events)
    orchestrator = GenerationOrchestrator(config_store, prompt_store, cache, settings=settings)

    return ShowcaseCore(
        settings=settings,
        cache=cache,
        events=events,
        config_store=config_store,
        prompt_store=prompt_store,
        orchestrator=orchestrator,
        sweeper=CacheSweeper(cache, settings.CACHE_SWEEP_INTERVAL),
        warmer=CacheWarmer(cache, config_store, prompt_store, events),
    )
