"""Tests for the configuration store and its repositories."""
from unittest.mock import AsyncMock

import pytest

from showcase.cache import TTL
from showcase.settings_store import (
    DEFAULT_SETTINGS,
    SETTINGS_CACHE_KEY,
    ConfigurationStore,
    InMemorySettingsRepository,
    SqliteSettingsRepository,
    describe_setting,
)


class TestConfigurationStore:

    @pytest.mark.asyncio
    async def test_stored_values_override_defaults(self, cache, events):
        store = ConfigurationStore(cache, InMemorySettingsRepository({"geminiModel": "gemini-2.0-flash-exp"}), events)

        settings = await store.get_settings()

        assert settings["geminiModel"] == "gemini-2.0-flash-exp"
        assert settings["openaiModel"] == DEFAULT_SETTINGS["openaiModel"]
        assert await store.get("missingKey", "fallback") == "fallback"

    @pytest.mark.asyncio
    async def test_reads_go_through_cache(self, cache, events):
        repository = InMemorySettingsRepository()
        repository.load_all = AsyncMock(return_value={"aiTemperature": "0.7"})
        store = ConfigurationStore(cache, repository, events)

        await store.get_settings()
        await store.get_settings()

        repository.load_all.assert_awaited_once()
        assert await cache.get(SETTINGS_CACHE_KEY) is not None

    @pytest.mark.asyncio
    async def test_save_invalidates_and_notifies(self, cache, events):
        store = ConfigurationStore(cache, InMemorySettingsRepository(), events)
        notifications = []
        events.on_config_changed(notifications.append)
        await store.get_settings()

        await store.save_settings({"aiMaxTokens": 1500, "defaultAiProvider": "gemini"})

        settings = await store.get_settings()
        assert settings["aiMaxTokens"] == "1500"
        assert settings["defaultAiProvider"] == "gemini"
        assert len(notifications) == 1
        assert notifications[0].source == "admin-settings"

    @pytest.mark.asyncio
    async def test_unreachable_store_raises_without_stale_entry(self, cache, events, failing_settings_repository):
        store = ConfigurationStore(cache, failing_settings_repository, events)
        with pytest.raises(ConnectionError):
            await store.get_settings()

    @pytest.mark.asyncio
    async def test_unreachable_store_serves_stale_settings(self, cache, clock, events):
        repository = InMemorySettingsRepository({"defaultAiProvider": "deepseek"})
        store = ConfigurationStore(cache, repository, events)
        await store.get_settings()

        repository.load_all = AsyncMock(side_effect=ConnectionError("down"))
        clock.advance(TTL.SETTINGS + 1)

        assert (await store.get_settings())["defaultAiProvider"] == "deepseek"


class TestSqliteSettingsRepository:

    @pytest.mark.asyncio
    async def test_upsert_and_reload(self, tmp_path):
        repository = SqliteSettingsRepository(tmp_path / "db" / "settings.db")

        await repository.upsert_many({"openaiModel": "gpt-4o", "aiTemperature": "0.5"})
        await repository.upsert_many({"aiTemperature": "1.1"})

        reopened = SqliteSettingsRepository(tmp_path / "db" / "settings.db")
        assert await reopened.load_all() == {"openaiModel": "gpt-4o", "aiTemperature": "1.1"}


def test_describe_setting_has_fallback_text():
    assert "OpenAI" in describe_setting("openaiApiKey")
    assert describe_setting("customKey") == "Configuration setting: customKey"
