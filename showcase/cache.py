from __future__ import annotations
"""TTL cache shared by the settings store, the prompt store and the orchestrator.

Entries are valid while ``now - stored_at < ttl``.  Expired entries stay in the
map until they are overwritten, invalidated or swept, so a failed refresh can
still serve the stale value.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple

from showcase.logging import logger

__all__ = [
    "CacheEntry",
    "Cache",
    "TTL",
]


class TTL:
    """TTL presets in seconds."""

    SETTINGS = 5 * 60
    CONTENT = 2 * 60
    STATS = 60
    PROVIDERS = 10 * 60
    SHORT = 30
    LONG = 30 * 60


@dataclass
class CacheEntry:
    data: Any
    stored_at: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.stored_at < self.ttl


Producer = Callable[[], Awaitable[Any]]


class Cache:
    """Asyncio-safe TTL cache with stale-on-error fallback and pattern invalidation."""

    def __init__(
        self,
        default_ttl: float = TTL.SETTINGS,
        max_size: int = 2048,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._clock = clock
        self._store: Dict[str, CacheEntry] = {}
        # Guards the map only; producers run outside the lock.
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    async def get_or_set(self, key: str, producer: Producer, ttl: Optional[float] = None) -> Any:
        async with self._lock:
            cached = self._store.get(key)
            if cached and cached.is_valid(self._clock()):
                return cached.data

        try:
            data = await producer()
        except Exception:
            if cached is not None:
                logger.warning(f"[Cache] Using stale data for key: {key}")
                return cached.data
            raise

        await self.set(key, data, ttl)
        return data

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self._store.get(key)
            if entry and entry.is_valid(self._clock()):
                return entry.data
            return None

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        async with self._lock:
            if key not in self._store and len(self._store) >= self._max_size:
                # Evict oldest
                oldest_key = min(self._store.items(), key=lambda kv: kv[1].stored_at)[0]
                self._store.pop(oldest_key, None)
            self._store[key] = CacheEntry(
                data=value,
                stored_at=self._clock(),
                ttl=self._default_ttl if ttl is None else ttl,
            )

    # Invalidation --------------------------------------------------------
    async def invalidate(self, key: str) -> None:
        async with self._lock:
            self._store.pop(key, None)

    async def invalidate_pattern(self, pattern: str) -> int:
        """Remove every key containing ``pattern``. Returns the number removed."""
        async with self._lock:
            doomed = [key for key in self._store if pattern in key]
            for key in doomed:
                del self._store[key]
        if doomed:
            logger.debug(f"[Cache] Invalidated {len(doomed)} entries matching '{pattern}'")
        return len(doomed)

    async def clear(self) -> None:
        async with self._lock:
            self._store.clear()

    async def cleanup(self) -> int:
        """Evict expired entries. Returns the number evicted."""
        async with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._store.items() if not entry.is_valid(now)]
            for key in expired:
                del self._store[key]
        return len(expired)

    # Introspection -------------------------------------------------------
    async def stats(self) -> Dict[str, int]:
        async with self._lock:
            now = self._clock()
            valid = sum(1 for entry in self._store.values() if entry.is_valid(now))
            return {
                "total_entries": len(self._store),
                "valid_entries": valid,
                "expired_entries": len(self._store) - valid,
            }

    async def preload(self, loaders: Mapping[str, Tuple[Producer, float]]) -> None:
        """Warm several keys at once; a failing loader is logged and skipped."""
        for key, (producer, ttl) in loaders.items():
            try:
                await self.get_or_set(key, producer, ttl)
            except Exception as e:
                logger.warning(f"[Cache] Failed to preload '{key}': {e}")
