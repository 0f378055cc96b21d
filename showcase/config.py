import logging
from pathlib import Path
from typing import Optional, Type, TypeVar

import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Base Path ---
BASE_DIR = Path(__file__).resolve().parent.parent
logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# --- Environment-based Settings ---

class AppSettings(BaseSettings):
    """
    Main application settings loaded from environment variables.
    The .env file is loaded automatically by pydantic-settings.
    """
    model_config = SettingsConfigDict(
        env_file='.env', env_file_encoding='utf-8', extra='ignore', populate_by_name=True
    )

    # --- General & Core ---
    LOG_LEVEL: str = Field("INFO", description="Log level for the application (e.g., DEBUG, INFO, WARNING, ERROR)")
    LOG_DIR: Path = Field(BASE_DIR / "logs", validation_alias=AliasChoices("LOG_DIR", "SHOWCASE_LOG_DIR"), description="Directory for app.log and audit.log.")
    DATABASE_PATH: Path = Field(BASE_DIR / "data" / "showcase.db", description="SQLite file holding settings and prompts.")

    # --- Provider Keys (last-resort configuration) ---
    OPENAI_API_KEY: str = Field("")
    GEMINI_API_KEY: str = Field("", validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_API_KEY"))
    DEEPSEEK_API_KEY: str = Field("")

    # --- Provider Transport ---
    OPENAI_BASE_URL: str = Field("https://api.openai.com/v1")
    GEMINI_BASE_URL: str = Field("https://generativelanguage.googleapis.com/v1beta")
    OPENROUTER_BASE_URL: str = Field("https://openrouter.ai/api/v1")
    OPENROUTER_REFERER: str = Field("https://literaryshowcase.com")
    OPENROUTER_TITLE: str = Field("Literary Showcase")
    PROVIDER_TIMEOUT: float = Field(30.0, gt=0, description="Seconds before a provider call is abandoned.")

    # --- Cache ---
    CACHE_SWEEP_INTERVAL: int = Field(300, gt=0, description="Seconds between sweeps of expired cache entries.")
    CACHE_MAX_SIZE: int = Field(2048, gt=0)

    # --- Prompt Composition ---
    COMPACT_PROMPT_THRESHOLD: int = Field(
        1200, ge=0, description="Base prompt length above which appended guidance is rendered compactly."
    )
    PROMPT_OVERRIDES_PATH: Path = Field(BASE_DIR / "configs" / "prompt_overrides.yml")

    def env_key(self, provider: str) -> str:
        """Return the environment-supplied key for a provider name."""
        return {
            "openai": self.OPENAI_API_KEY,
            "gemini": self.GEMINI_API_KEY,
            "deepseek": self.DEEPSEEK_API_KEY,
        }.get(provider, "") or ""


def load_yaml(path: Path, model: Type[ModelT]) -> ModelT:
    """Loads a YAML file and validates it with the given Pydantic model."""
    if not path.exists():
        raise FileNotFoundError(f"Configuration file '{path.name}' not found in {path.parent}")
    with open(path, 'r', encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    return model.model_validate(data)

# --- Global Config Instance ---
_settings_instance: Optional[AppSettings] = None

def get_settings() -> AppSettings:
    """
    Returns a singleton instance of the AppSettings object.
    This function controls when the settings are loaded and validated,
    making the application more testable.
    """
    global _settings_instance
    if _settings_instance is None:
        try:
            _settings_instance = AppSettings()
        except ValidationError as e:
            logger.critical(f"FATAL: Configuration validation error: {e}")
            raise
    return _settings_instance

def reset_settings() -> None:
    """Drops the cached settings so the next call re-reads the environment."""
    global _settings_instance
    _settings_instance = None
