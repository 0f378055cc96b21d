"""Versioned prompt templates, category overrides and prompt rendering."""

from .overrides import CategoryOverrides
from .repository import InMemoryPromptRepository, SqlitePromptRepository
from .store import PromptHistory, PromptVersionStore, validate_prompt_content

__all__ = [
    "CategoryOverrides",
    "InMemoryPromptRepository",
    "SqlitePromptRepository",
    "PromptHistory",
    "PromptVersionStore",
    "validate_prompt_content",
]
