"""Provider adapters for the three external LLM services.

Every adapter turns a ``ProviderConfig`` plus a prompt into the provider's raw
text answer.  Parsing is left to the orchestrator so a malformed-JSON failure
can be told apart from a transport failure.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from generation.models import ConnectionResult, Provider, ProviderConfig, has_usable_key
from showcase.config import AppSettings, get_settings
from showcase.errors import AuthenticationError, EmptyResponseError, TransportError
from showcase.logging import logger

DEFAULT_SYSTEM_PROMPT = "You are a literary and cultural expert. Return only valid JSON format."


class BaseProvider(ABC):
    """Base class for AI provider adapters."""

    provider: Provider

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 settings: Optional[AppSettings] = None):
        self.settings = settings or get_settings()
        self.base_url = (base_url or self.default_base_url()).rstrip("/")
        self.timeout = timeout or self.settings.PROVIDER_TIMEOUT

    @abstractmethod
    def default_base_url(self) -> str:
        pass

    @abstractmethod
    def _endpoint(self, config: ProviderConfig, model: str) -> str:
        pass

    @abstractmethod
    def _headers(self, config: ProviderConfig) -> Dict[str, str]:
        pass

    @abstractmethod
    def _payload(self, config: ProviderConfig, model: str, prompt: str,
                 system: Optional[str], max_tokens: int) -> Dict[str, Any]:
        pass

    @abstractmethod
    def _extract_text(self, data: Dict[str, Any]) -> str:
        pass

    async def invoke(self, config: ProviderConfig, prompt: str, system: Optional[str] = DEFAULT_SYSTEM_PROMPT) -> str:
        """Send ``prompt`` as the only user turn and return the raw text answer."""
        return await self._send(config, prompt, system, config.model, config.max_tokens)

    async def test_connection(self, config: ProviderConfig) -> ConnectionResult:
        """Five-token ping against the fallback model."""
        name = self.provider.value
        try:
            text = await self._send(config, "Test connection", None, config.fallback_model or config.model, 5)
        except AuthenticationError as e:
            return ConnectionResult(success=False, message=f"Invalid API key: {e}")
        except EmptyResponseError:
            return ConnectionResult(success=False, message=f"{name} connection failed - no response")
        except TransportError as e:
            return ConnectionResult(success=False, message=f"{name} error: {e}")
        logger.info(f"[{name}] Connection test answered with {len(text)} chars")
        return ConnectionResult(success=True, message=f"{name} connection successful!")

    async def _send(self, config: ProviderConfig, prompt: str, system: Optional[str],
                    model: str, max_tokens: int) -> str:
        name = self.provider.value
        if not has_usable_key(config.api_key):
            raise AuthenticationError(f"No valid API key configured for {name}", provider=name)

        async with httpx.AsyncClient() as client:
            try:
                response = await client.post(
                    self._endpoint(config, model),
                    headers=self._headers(config),
                    json=self._payload(config, model, prompt, system, max_tokens),
                    timeout=self.timeout,
                )
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                logger.error(f"{name} API error: HTTP {status}")
                if status in (401, 403):
                    raise AuthenticationError(f"{name} rejected the API key (HTTP {status})", provider=name) from e
                raise TransportError(f"{name} API error: HTTP {status}", provider=name) from e
            except httpx.HTTPError as e:
                logger.error(f"{name} API error: {e}")
                raise TransportError(f"{name} request failed: {e}", provider=name) from e
            except ValueError as e:
                raise TransportError(f"{name} returned a non-JSON envelope", provider=name) from e

        try:
            text = self._extract_text(data)
        except (KeyError, IndexError, TypeError, AttributeError):
            text = ""
        if not isinstance(text, str) or not text.strip():
            raise EmptyResponseError(f"{name} returned an empty response", provider=name)
        return text

    @staticmethod
    def _chat_messages(prompt: str, system: Optional[str]) -> List[Dict[str, str]]:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return messages


class OpenAIProvider(BaseProvider):
    """OpenAI chat-completion API."""

    provider = Provider.OPENAI

    def default_base_url(self) -> str:
        return self.settings.OPENAI_BASE_URL

    def _endpoint(self, config: ProviderConfig, model: str) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self, config: ProviderConfig) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(self, config, model, prompt, system, max_tokens):
        return {
            "model": model,
            "messages": self._chat_messages(prompt, system),
            "temperature": config.temperature,
            "max_tokens": max_tokens,
        }

    def _extract_text(self, data: Dict[str, Any]) -> str:
        return data["choices"][0]["message"]["content"] or ""


class GeminiProvider(BaseProvider):
    """Google generative-model API (``generateContent``)."""

    provider = Provider.GEMINI

    def default_base_url(self) -> str:
        return self.settings.GEMINI_BASE_URL

    def _endpoint(self, config: ProviderConfig, model: str) -> str:
        return f"{self.base_url}/models/{model}:generateContent"

    def _headers(self, config: ProviderConfig) -> Dict[str, str]:
        return {
            "x-goog-api-key": config.api_key,
            "Content-Type": "application/json",
        }

    def _payload(self, config, model, prompt, system, max_tokens):
        payload = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": config.temperature,
                "maxOutputTokens": max_tokens,
            },
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}
        return payload

    def _extract_text(self, data: Dict[str, Any]) -> str:
        parts = data["candidates"][0]["content"]["parts"]
        return "".join(part.get("text", "") for part in parts if not part.get("thought"))


class DeepSeekProvider(BaseProvider):
    """DeepSeek models behind the OpenRouter OpenAI-compatible gateway."""

    provider = Provider.DEEPSEEK

    def default_base_url(self) -> str:
        return self.settings.OPENROUTER_BASE_URL

    def _endpoint(self, config: ProviderConfig, model: str) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self, config: ProviderConfig) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {config.api_key}",
            "HTTP-Referer": self.settings.OPENROUTER_REFERER,
            "X-Title": self.settings.OPENROUTER_TITLE,
            "Content-Type": "application/json",
        }

    def _payload(self, config, model, prompt, system, max_tokens):
        return {
            "model": model if "/" in model else f"deepseek/{model}",
            "messages": self._chat_messages(prompt, system),
            "temperature": config.temperature,
            "max_tokens": max_tokens,
        }

    def _extract_text(self, data: Dict[str, Any]) -> str:
        return data["choices"][0]["message"]["content"] or ""


# Provider factory
_PROVIDERS = {
    Provider.OPENAI: OpenAIProvider,
    Provider.GEMINI: GeminiProvider,
    Provider.DEEPSEEK: DeepSeekProvider,
}


def create_provider(provider_type, **kwargs) -> BaseProvider:
    """Create a provider adapter by name or ``Provider`` member."""
    try:
        provider = Provider(provider_type.lower() if isinstance(provider_type, str) else provider_type)
    except ValueError:
        raise ValueError(f"Unknown provider type: {provider_type}") from None
    return _PROVIDERS[provider](**kwargs)
