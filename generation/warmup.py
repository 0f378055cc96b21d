"""Re-warms the settings and active-prompt cache entries after a change event."""
import asyncio
from typing import Callable, List, Set

from generation.models import UseCase
from generation.prompts.store import PromptVersionStore
from showcase.cache import TTL, Cache
from showcase.events import ConfigChangedPayload, EventBus
from showcase.logging import logger
from showcase.settings_store import SETTINGS_CACHE_KEY, ConfigurationStore


class CacheWarmer:
    def __init__(self, cache: Cache, config_store: ConfigurationStore,
                 prompt_store: PromptVersionStore, events: EventBus):
        self.cache = cache
        self.config_store = config_store
        self.prompt_store = prompt_store
        self.events = events
        self._unsubscribe: List[Callable[[], None]] = []
        self.pending: Set[asyncio.Task] = set()

    def start(self) -> None:
        if self._unsubscribe:
            return
        self._unsubscribe = [
            self.events.on_config_changed(self._on_change),
            self.events.on_prompts_changed(self._on_change),
        ]

    def stop(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    async def drain(self) -> None:
        """Wait for every warm-up scheduled by a change event."""
        while self.pending:
            await asyncio.gather(*list(self.pending))

    async def warm(self) -> None:
        loaders = {SETTINGS_CACHE_KEY: (self.config_store.load_settings, TTL.SETTINGS)}
        for use_case in UseCase:
            loaders[PromptVersionStore.cache_key(use_case)] = (
                lambda uc=use_case: self.prompt_store.load_active_prompt(uc),
                TTL.SETTINGS,
            )
        await self.cache.preload(loaders)
        logger.debug(f"[Warmup] Preloaded {len(loaders)} cache entries")

    def _on_change(self, payload: ConfigChangedPayload) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"[Warmup] No running loop, skipping warm-up after {payload.source} change")
            return
        task = loop.create_task(self.warm())
        self.pending.add(task)
        task.add_done_callback(self.pending.discard)
