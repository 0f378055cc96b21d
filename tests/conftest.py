"""Shared fixtures: a controllable clock, in-memory stores and scripted adapters."""
import pytest

from generation.models import ConnectionResult, Provider
from generation.orchestrator import GenerationOrchestrator
from generation.prompts.overrides import CategoryOverrides
from generation.prompts.repository import InMemoryPromptRepository
from generation.prompts.store import PromptVersionStore
from generation.router import ProviderRouter
from showcase.cache import Cache
from showcase.config import AppSettings
from showcase.errors import TransportError
from showcase.events import EventBus
from showcase.settings_store import ConfigurationStore, InMemorySettingsRepository

OPENAI_KEY = "sk-test-openai-0123456789"
GEMINI_KEY = "gm-test-gemini-0123456789"
DEEPSEEK_KEY = "or-test-deepseek-0123456789"


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class ScriptedAdapter:
    """Stands in for a provider adapter; answers from a list of strings or exceptions."""

    def __init__(self, provider: Provider, *responses):
        self.provider = provider
        self.responses = list(responses)
        self.calls = []

    async def invoke(self, config, prompt, system=None):
        self.calls.append({"config": config, "prompt": prompt, "system": system})
        if not self.responses:
            raise TransportError("no scripted response left", provider=self.provider.value)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def test_connection(self, config):
        return ConnectionResult(success=True, message=f"{self.provider.value} connection successful!")


class FailingSettingsRepository:
    async def load_all(self):
        raise ConnectionError("settings database unreachable")

    async def upsert_many(self, values):
        raise ConnectionError("settings database unreachable")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return Cache(clock=clock)


@pytest.fixture
def events():
    return EventBus()


@pytest.fixture
def app_settings(tmp_path):
    return AppSettings(
        _env_file=None,
        OPENAI_API_KEY="",
        GEMINI_API_KEY="",
        DEEPSEEK_API_KEY="",
        DATABASE_PATH=tmp_path / "showcase.db",
        LOG_DIR=tmp_path / "logs",
        PROMPT_OVERRIDES_PATH=tmp_path / "prompt_overrides.yml",
    )


@pytest.fixture
def settings_repository():
    return InMemorySettingsRepository({
        "defaultAiProvider": "openai",
        "openaiApiKey": OPENAI_KEY,
        "geminiApiKey": GEMINI_KEY,
        "deepseekApiKey": DEEPSEEK_KEY,
    })


@pytest.fixture
def config_store(cache, settings_repository, events):
    return ConfigurationStore(cache, settings_repository, events)


@pytest.fixture
def prompt_store(cache, events):
    return PromptVersionStore(InMemoryPromptRepository(), cache, events)


@pytest.fixture
def adapters():
    return {provider: ScriptedAdapter(provider) for provider in Provider}


@pytest.fixture
def orchestrator(config_store, prompt_store, cache, adapters, app_settings, clock):
    return GenerationOrchestrator(
        config_store,
        prompt_store,
        cache,
        router=ProviderRouter(adapters),
        overrides=CategoryOverrides(app_settings.PROMPT_OVERRIDES_PATH),
        settings=app_settings,
        clock=clock,
    )


@pytest.fixture
def failing_settings_repository():
    return FailingSettingsRepository()
