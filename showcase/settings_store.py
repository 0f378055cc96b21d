"""Key/value settings store read through the shared cache.

Values are plain strings.  Missing keys mean "use the default"; a store that
cannot be reached raises, and callers decide whether to fall back to the
environment.
"""
import asyncio
import sqlite3
from pathlib import Path
from typing import Dict, Mapping, Optional, Protocol

from showcase.cache import TTL, Cache
from showcase.events import ConfigChangedPayload, EventBus
from showcase.logging import logger

SETTINGS_CACHE_KEY = "admin-settings"

DEFAULT_SETTINGS: Dict[str, str] = {
    "defaultAiProvider": "openai",
    "openaiModel": "gpt-4o",
    "geminiModel": "gemini-2.5-pro",
    "deepseekModel": "deepseek-chat-v3",
    "aiEnableProviderFallback": "true",
}

SETTING_DESCRIPTIONS: Dict[str, str] = {
    "openaiApiKey": "OpenAI API key for AI content generation and source finding",
    "geminiApiKey": "Google Gemini API key for AI content generation and source finding",
    "deepseekApiKey": "DeepSeek API key (via OpenRouter) for AI content generation and source finding",
    "defaultAiProvider": "Default AI provider for content generation (openai, gemini, or deepseek)",
    "generateProvider": "Provider override for content generation",
    "findSourceProvider": "Provider override for source lookup",
    "openaiModel": "OpenAI model to use (e.g., gpt-4o, gpt-3.5-turbo)",
    "geminiModel": "Gemini model to use (e.g., gemini-2.5-pro, gemini-2.0-flash-exp)",
    "deepseekModel": "DeepSeek model to use (e.g., deepseek-chat-v3, deepseek-chat-v3-0324)",
    "aiTemperature": "Sampling temperature between 0 and 1.5",
    "aiMaxTokens": "Maximum tokens per provider response",
    "aiEnableProviderFallback": "Try the other providers when the selected one fails",
}


def describe_setting(key: str) -> str:
    return SETTING_DESCRIPTIONS.get(key, f"Configuration setting: {key}")


class SettingsRepository(Protocol):
    async def load_all(self) -> Dict[str, str]: ...

    async def upsert_many(self, values: Mapping[str, str]) -> None: ...


class InMemorySettingsRepository:
    def __init__(self, initial: Optional[Mapping[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    async def load_all(self) -> Dict[str, str]:
        return dict(self._values)

    async def upsert_many(self, values: Mapping[str, str]) -> None:
        self._values.update(values)


class SqliteSettingsRepository:
    """Settings persisted in an ``admin_settings`` table."""

    def __init__(self, db_path: Path) -> None:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db_path = db_path
        self._init_db()
        self._lock = asyncio.Lock()

    def _init_db(self) -> None:
        with sqlite3.connect(self._db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS admin_settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    description TEXT,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)

    async def load_all(self) -> Dict[str, str]:
        async with self._lock:
            with sqlite3.connect(self._db_path) as conn:
                rows = conn.execute("SELECT key, value FROM admin_settings").fetchall()
        return {key: value for key, value in rows}

    async def upsert_many(self, values: Mapping[str, str]) -> None:
        async with self._lock:
            with sqlite3.connect(self._db_path) as conn:
                conn.executemany(
                    "INSERT INTO admin_settings (key, value, description) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP",
                    [(key, value, describe_setting(key)) for key, value in values.items()],
                )


class ConfigurationStore:
    """Reads settings through the cache and busts it on every write."""

    def __init__(self, cache: Cache, repository: SettingsRepository, events: Optional[EventBus] = None):
        self.cache = cache
        self.repository = repository
        self.events = events or EventBus()

    async def load_settings(self) -> Dict[str, str]:
        """Uncached read: stored settings merged over the defaults."""
        stored = await self.repository.load_all()
        return {**DEFAULT_SETTINGS, **stored}

    async def get_settings(self) -> Dict[str, str]:
        """Cached ``load_settings``. Raises if the store is unreachable and nothing stale is cached."""
        return await self.cache.get_or_set(SETTINGS_CACHE_KEY, self.load_settings, TTL.SETTINGS)

    async def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        settings = await self.get_settings()
        value = settings.get(key)
        return value if value else default

    async def save_settings(self, values: Mapping[str, object]) -> None:
        normalized = {key: str(value) for key, value in values.items()}
        await self.repository.upsert_many(normalized)
        await self.cache.invalidate(SETTINGS_CACHE_KEY)
        logger.info(f"[Settings] Updated {len(normalized)} settings")
        self.events.emit_config_changed(
            ConfigChangedPayload(source="admin-settings", note=", ".join(sorted(normalized)))
        )
