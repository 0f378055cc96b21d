import logging

import pytest

from generation.app import build_core
from generation.models import GenerationParameters, UseCase
from showcase.settings_store import SETTINGS_CACHE_KEY


@pytest.mark.asyncio
async def test_core_wires_sqlite_stores_and_background_jobs(app_settings):
    core = build_core(app_settings)
    await core.start()
    try:
        assert core.sweeper.scheduler.get_job("cache-sweep") is not None
        assert await core.cache.get(SETTINGS_CACHE_KEY) is not None

        await core.prompt_store.save(UseCase.GENERATE, "Write {{quantity}} {{type}} for the {{category}} shelf.")
        prompt = await core.orchestrator.compose_generation_prompt(
            GenerationParameters(category="cinema", type="quote", tone="wistful", quantity=2)
        )
        assert prompt.startswith("Write 2 quote for the cinema shelf.")
    finally:
        await core.shutdown()

    assert app_settings.DATABASE_PATH.exists()


@pytest.mark.asyncio
async def test_unconfigured_core_serves_static_content(app_settings):
    core = build_core(app_settings)

    items = await core.orchestrator.generate(
        GenerationParameters(category="heartbreak", type="reflection", tone="tender", quantity=2)
    )

    assert len(items) == 2
    assert all(item.author == "Anonymous" for item in items)


@pytest.mark.asyncio
async def test_logging_is_configured_on_start_without_touching_root(app_settings):
    root_handlers = list(logging.getLogger().handlers)
    core = build_core(app_settings)
    assert not app_settings.LOG_DIR.exists()

    await core.start()
    try:
        await core.prompt_store.save(UseCase.EXPLAIN, "Explain the passage plainly and briefly.")
    finally:
        await core.shutdown()

    assert logging.getLogger().handlers == root_handlers
    assert (app_settings.LOG_DIR / "app.log").exists()
    assert "prompt_change" in (app_settings.LOG_DIR / "audit.log").read_text(encoding="utf-8")
