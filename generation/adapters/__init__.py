"""Adapters layer providing one call shape for every LLM provider.

The public API is intentionally minimal: build an adapter with
``create_provider`` and call ``invoke(config, prompt)``.
"""

from .providers import (
    DEFAULT_SYSTEM_PROMPT,
    BaseProvider,
    DeepSeekProvider,
    GeminiProvider,
    OpenAIProvider,
    create_provider,
)

__all__ = [
    "DEFAULT_SYSTEM_PROMPT",
    "BaseProvider",
    "OpenAIProvider",
    "GeminiProvider",
    "DeepSeekProvider",
    "create_provider",
]
