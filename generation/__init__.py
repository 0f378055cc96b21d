"""Generation core: provider adapters, prompt store, orchestration."""

from generation.models import (
    ContentType,
    GeneratedItem,
    GenerationParameters,
    LiteraryAnalysis,
    Provider,
    ProviderConfig,
    SourceInfo,
    UseCase,
    WritingMode,
)

__all__ = [
    "ContentType",
    "GeneratedItem",
    "GenerationParameters",
    "LiteraryAnalysis",
    "Provider",
    "ProviderConfig",
    "SourceInfo",
    "UseCase",
    "WritingMode",
]
