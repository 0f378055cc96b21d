"""Domain models for generation requests and their normalized results."""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Provider(str, Enum):
    """External LLM providers."""
    OPENAI = "openai"
    GEMINI = "gemini"
    DEEPSEEK = "deepseek"


class UseCase(str, Enum):
    """Tasks that each own a prompt template and a model override."""
    GENERATE = "generate"
    FIND_SOURCE = "findSource"
    EXPLAIN = "explain"
    ANALYZE = "analyze"


class ContentType(str, Enum):
    QUOTE = "quote"
    POEM = "poem"
    REFLECTION = "reflection"


class WritingMode(str, Enum):
    KNOWN_WRITERS = "knownWriters"
    ORIGINAL_AI = "originalAI"


_WRITING_MODE_ALIASES = {
    "known-writers": WritingMode.KNOWN_WRITERS,
    "original-ai": WritingMode.ORIGINAL_AI,
}


class ProviderConfig(BaseModel):
    """Effective provider settings for a single request."""
    provider: Provider
    api_key: str = Field("", repr=False)
    model: str
    fallback_model: str = ""
    max_tokens: int = Field(2000, gt=0)
    temperature: float = Field(0.8, ge=0.0, le=1.5)

    @property
    def is_configured(self) -> bool:
        return has_usable_key(self.api_key)


MIN_KEY_LENGTH = 10


def has_usable_key(api_key: Optional[str]) -> bool:
    """A key looks minimally valid when it is longer than ``MIN_KEY_LENGTH``."""
    return bool(api_key) and len(api_key.strip()) > MIN_KEY_LENGTH


class GenerationParameters(BaseModel):
    """Caller-supplied generation request. Not persisted."""
    model_config = ConfigDict(populate_by_name=True)

    category: str
    content_type: ContentType = Field(alias="type")
    theme: Optional[str] = None
    tone: str
    quantity: int = Field(ge=1, le=20)
    writing_mode: WritingMode = Field(WritingMode.ORIGINAL_AI, alias="writingMode")

    @field_validator("writing_mode", mode="before")
    @classmethod
    def _accept_kebab_case(cls, value):
        if isinstance(value, str) and value in _WRITING_MODE_ALIASES:
            return _WRITING_MODE_ALIASES[value]
        return value

    @field_validator("theme", mode="before")
    @classmethod
    def _blank_theme_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class GeneratedItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str
    author: str
    source: Optional[str] = None
    category: str
    content_type: ContentType = Field(alias="type")


class SourceInfo(BaseModel):
    author: str
    source: Optional[str] = None


class LiteraryDevice(BaseModel):
    name: str
    quote: Optional[str] = None
    explanation: str = ""


class LiteraryAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    themes: List[str] = Field(default_factory=list)
    literary_devices: List[LiteraryDevice] = Field(default_factory=list, alias="literaryDevices")
    metaphors: List[str] = Field(default_factory=list)
    tone: str = ""
    style: str = ""
    imagery: List[str] = Field(default_factory=list)
    summary: str = ""


class ConnectionResult(BaseModel):
    success: bool
    message: str
