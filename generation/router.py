from __future__ import annotations
"""Provider resolution and the sequential fallback chain.

``ProviderResolver`` turns stored settings (or, when the store is down, the
environment) into one ``ProviderConfig`` per provider.  ``ProviderRouter``
walks those configs in order until one call succeeds.
"""

import math
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar

from generation.adapters import BaseProvider, create_provider
from generation.models import Provider, ProviderConfig, UseCase, has_usable_key
from showcase.config import AppSettings, get_settings
from showcase.errors import ConfigurationError, ParseError, ProviderChainExhausted, ProviderError
from showcase.logging import logger
from showcase.settings_store import ConfigurationStore

__all__ = [
    "FALLBACK_ORDER",
    "ENV_PRIORITY",
    "Resolution",
    "ProviderResolver",
    "ProviderRouter",
]

T = TypeVar("T")

FALLBACK_ORDER = (Provider.OPENAI, Provider.GEMINI, Provider.DEEPSEEK)
ENV_PRIORITY = (Provider.GEMINI, Provider.DEEPSEEK, Provider.OPENAI)

DEFAULT_MODELS: Dict[Provider, str] = {
    Provider.OPENAI: "gpt-4o",
    Provider.GEMINI: "gemini-2.5-pro",
    Provider.DEEPSEEK: "deepseek-chat-v3",
}
FALLBACK_MODELS: Dict[Provider, str] = {
    Provider.OPENAI: "gpt-3.5-turbo",
    Provider.GEMINI: "gemini-2.0-flash-exp",
    Provider.DEEPSEEK: "deepseek-chat-v3-0324",
}
DEFAULT_TEMPERATURES: Dict[Provider, float] = {
    Provider.OPENAI: 0.9,
    Provider.GEMINI: 0.9,
    Provider.DEEPSEEK: 0.8,
}
DEFAULT_MAX_TOKENS = 2000
MAX_TEMPERATURE = 1.5


@dataclass
class Resolution:
    """Effective provider choice for one request."""
    primary: ProviderConfig
    configs: Dict[Provider, ProviderConfig] = field(default_factory=dict)
    enable_fallback: bool = True
    from_environment: bool = False

    def chain(self) -> List[ProviderConfig]:
        """Primary first, then the others in fallback order; unusable keys are skipped."""
        ordered = [self.primary]
        if self.enable_fallback:
            ordered += [self.configs[p] for p in FALLBACK_ORDER if p != self.primary.provider and p in self.configs]
        return [config for config in ordered if config.is_configured]


def _parse_provider(value: Optional[str]) -> Optional[Provider]:
    if not value:
        return None
    try:
        return Provider(value.strip().lower())
    except ValueError:
        logger.warning(f"[Router] Ignoring unknown provider setting '{value}'")
        return None


def _parse_temperature(value: Optional[str], default: float) -> float:
    try:
        temperature = float(value) if value not in (None, "") else default
    except ValueError:
        return default
    if math.isnan(temperature):
        return default
    return min(max(temperature, 0.0), MAX_TEMPERATURE)


def _parse_max_tokens(value: Optional[str]) -> int:
    try:
        tokens = int(value) if value not in (None, "") else DEFAULT_MAX_TOKENS
    except ValueError:
        return DEFAULT_MAX_TOKENS
    return tokens if tokens > 0 else DEFAULT_MAX_TOKENS


class ProviderResolver:
    def __init__(self, config_store: ConfigurationStore, settings: Optional[AppSettings] = None):
        self.config_store = config_store
        self.settings = settings or get_settings()

    async def resolve(self, use_case: UseCase = UseCase.GENERATE, forced: Optional[Provider] = None) -> Resolution:
        use_case = UseCase(use_case)
        try:
            stored = await self.config_store.get_settings()
        except Exception as e:
            logger.warning(f"[Router] Settings store unavailable, using environment keys: {e}")
            return self.resolve_from_environment(forced)

        provider = (
            _parse_provider(forced.value if isinstance(forced, Provider) else forced)
            or _parse_provider(stored.get(f"{use_case.value}Provider"))
            or _parse_provider(stored.get("defaultAiProvider"))
            or Provider.OPENAI
        )
        configs = {p: self._config_from_settings(p, stored) for p in FALLBACK_ORDER}
        use_case_model = (stored.get(f"{use_case.value}Model") or "").strip()
        if use_case_model:
            configs[provider] = configs[provider].model_copy(update={"model": use_case_model})

        return Resolution(
            primary=configs[provider],
            configs=configs,
            enable_fallback=stored.get("aiEnableProviderFallback", "true").strip().lower() != "false",
        )

    def resolve_from_environment(self, forced: Optional[Provider] = None) -> Resolution:
        """Environment keys only. Falls back to openai with an empty key when none qualify."""
        configs = {p: self._config_from_settings(p, {}) for p in FALLBACK_ORDER}
        provider = _parse_provider(forced.value if isinstance(forced, Provider) else forced)
        if provider is None or not configs[provider].is_configured:
            provider = next((p for p in ENV_PRIORITY if configs[p].is_configured), Provider.OPENAI)
        return Resolution(primary=configs[provider], configs=configs, from_environment=True)

    def _config_from_settings(self, provider: Provider, stored: Mapping[str, str]) -> ProviderConfig:
        name = provider.value
        api_key = (stored.get(f"{name}ApiKey") or "").strip()
        if not has_usable_key(api_key):
            api_key = self.settings.env_key(name).strip()
        return ProviderConfig(
            provider=provider,
            api_key=api_key,
            model=(stored.get(f"{name}Model") or "").strip() or DEFAULT_MODELS[provider],
            fallback_model=FALLBACK_MODELS[provider],
            max_tokens=_parse_max_tokens(stored.get("aiMaxTokens")),
            temperature=_parse_temperature(stored.get("aiTemperature"), DEFAULT_TEMPERATURES[provider]),
        )


class ProviderRouter:
    """Registry of adapters plus the fallback loop."""

    def __init__(self, adapters: Optional[Mapping[Provider, BaseProvider]] = None) -> None:
        self._adapters: Dict[Provider, BaseProvider] = dict(adapters or {})

    def register(self, provider: Provider, adapter: BaseProvider) -> None:
        self._adapters[Provider(provider)] = adapter

    def adapter(self, provider: Provider) -> BaseProvider:
        provider = Provider(provider)
        if provider not in self._adapters:
            self._adapters[provider] = create_provider(provider)
        return self._adapters[provider]

    async def run(
        self,
        resolution: Resolution,
        call: Callable[[BaseProvider, ProviderConfig], Awaitable[T]],
        label: str = "request",
    ) -> T:
        """Try each configured provider once, in chain order; the first success wins."""
        chain = resolution.chain()
        if not chain:
            raise ConfigurationError(f"{resolution.primary.provider.value.upper()} API key required")

        errors: Dict[str, Exception] = {}
        for config in chain:
            name = config.provider.value
            try:
                result = await call(self.adapter(config.provider), config)
            except ParseError as e:
                logger.warning(f"[Router] {label}: {name} returned unparseable output: {e}")
                errors[name] = e
                continue
            except ProviderError as e:
                logger.warning(f"[Router] {label}: {name} failed: {e}")
                errors[name] = e
                continue
            except Exception as e:
                logger.exception(f"[Router] {label}: {name} raised an unexpected error: {e}")
                errors[name] = e
                continue
            if config is not resolution.primary:
                logger.info(f"[Router] {label}: served by fallback provider {name}")
            return result

        logger.error(f"[Router] {label}: all providers failed ({', '.join(errors)})")
        raise ProviderChainExhausted(errors)
