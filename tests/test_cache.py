"""Tests for the TTL cache and the background sweeper."""
from unittest.mock import AsyncMock

import pytest

from showcase.cache import TTL, Cache
from showcase.scheduler import CacheSweeper


class TestGetOrSet:

    @pytest.mark.asyncio
    async def test_hit_does_not_call_producer_again(self, cache):
        producer = AsyncMock(return_value={"defaultAiProvider": "gemini"})

        first = await cache.get_or_set("admin-settings", producer, TTL.SETTINGS)
        second = await cache.get_or_set("admin-settings", producer, TTL.SETTINGS)

        assert first == second == {"defaultAiProvider": "gemini"}
        producer.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_expired_entry_is_refreshed(self, cache, clock):
        producer = AsyncMock(side_effect=["v1", "v2"])

        assert await cache.get_or_set("k", producer, ttl=10) == "v1"
        clock.advance(10)
        assert await cache.get_or_set("k", producer, ttl=10) == "v2"
        assert producer.await_count == 2

    @pytest.mark.asyncio
    async def test_stale_value_served_when_producer_fails(self, cache, clock):
        await cache.get_or_set("admin-settings", AsyncMock(return_value="stale"), TTL.SETTINGS)
        clock.advance(TTL.SETTINGS + 1)

        failing = AsyncMock(side_effect=ConnectionError("db down"))
        assert await cache.get_or_set("admin-settings", failing, TTL.SETTINGS) == "stale"
        failing.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_without_stale_entry_propagates(self, cache):
        with pytest.raises(ConnectionError):
            await cache.get_or_set("missing", AsyncMock(side_effect=ConnectionError("db down")))


class TestInvalidation:

    @pytest.mark.asyncio
    async def test_pattern_removes_only_matching_keys(self, cache):
        for key in ("prompt:active:generate", "prompt:active:explain", "admin-settings", "analysis:noid:abc"):
            await cache.set(key, key)

        removed = await cache.invalidate_pattern("prompt:active:")

        assert removed == 2
        assert await cache.get("prompt:active:generate") is None
        assert await cache.get("prompt:active:explain") is None
        assert await cache.get("admin-settings") == "admin-settings"
        assert await cache.get("analysis:noid:abc") == "analysis:noid:abc"

    @pytest.mark.asyncio
    async def test_invalidate_single_key(self, cache):
        await cache.set("a", 1)
        await cache.set("b", 2)
        await cache.invalidate("a")
        assert await cache.get("a") is None
        assert await cache.get("b") == 2

    @pytest.mark.asyncio
    async def test_clear(self, cache):
        await cache.set("a", 1)
        await cache.clear()
        assert (await cache.stats())["total_entries"] == 0


class TestMaintenance:

    @pytest.mark.asyncio
    async def test_get_returns_none_after_expiry(self, cache, clock):
        await cache.set("short", "value", TTL.SHORT)
        clock.advance(TTL.SHORT - 1)
        assert await cache.get("short") == "value"
        clock.advance(1)
        assert await cache.get("short") is None

    @pytest.mark.asyncio
    async def test_cleanup_and_stats(self, cache, clock):
        await cache.set("short", 1, TTL.SHORT)
        await cache.set("long", 2, TTL.LONG)
        clock.advance(TTL.SHORT + 1)

        assert await cache.stats() == {"total_entries": 2, "valid_entries": 1, "expired_entries": 1}
        assert await cache.cleanup() == 1
        assert await cache.stats() == {"total_entries": 1, "valid_entries": 1, "expired_entries": 0}

    @pytest.mark.asyncio
    async def test_max_size_evicts_oldest(self, clock):
        cache = Cache(max_size=2, clock=clock)
        await cache.set("a", 1)
        clock.advance(1)
        await cache.set("b", 2)
        clock.advance(1)
        await cache.set("c", 3)

        assert await cache.get("a") is None
        assert await cache.get("b") == 2
        assert await cache.get("c") == 3

    @pytest.mark.asyncio
    async def test_preload_skips_failing_loaders(self, cache):
        await cache.preload({
            "good": (AsyncMock(return_value="warm"), TTL.SETTINGS),
            "bad": (AsyncMock(side_effect=RuntimeError("boom")), TTL.SETTINGS),
        })
        assert await cache.get("good") == "warm"
        assert await cache.get("bad") is None


class TestCacheSweeper:

    @pytest.mark.asyncio
    async def test_sweep_evicts_expired_entries(self, cache, clock):
        await cache.set("old", 1, TTL.SHORT)
        clock.advance(TTL.SHORT)
        sweeper = CacheSweeper(cache, interval_seconds=60)

        assert await sweeper.sweep() == 1
        assert (await cache.stats())["total_entries"] == 0

    @pytest.mark.asyncio
    async def test_start_registers_interval_job(self, cache):
        sweeper = CacheSweeper(cache, interval_seconds=60)
        await sweeper.start()
        try:
            assert sweeper.scheduler.get_job("cache-sweep") is not None
        finally:
            await sweeper.shutdown()
