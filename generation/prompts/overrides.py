"""Category-level guidance fragments appended to generation prompts.

Defaults live here; editors can override or extend them in a YAML file
(``configs/prompt_overrides.yml`` unless configured otherwise).
"""
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from showcase.config import get_settings, load_yaml
from showcase.logging import logger

DEFAULT_CATEGORY_OVERRIDES: Dict[str, str] = {
    "found-made": "\n".join([
        "- Prioritize intimate, diary-like observations that feel discovered rather than declared.",
        "- Let silence and negative space imply meaning; avoid direct advice.",
    ]),
    "cinema": "\n".join([
        "- Favor subtext-heavy lines that could live in a quiet close-up.",
        "- Compose with visual beats: cut, linger, reveal; keep dialogue lean.",
    ]),
    "literary-masters": "\n".join([
        "- Temper philosophy with concrete images to avoid abstraction drift.",
        "- Allow contradictions; precision over certainty.",
    ]),
    "spiritual": "\n".join([
        "- Speak with humility; avoid doctrinal authority.",
        "- Prefer metaphors from nature and breath; keep language gentle.",
    ]),
    "original-poetry": "\n".join([
        "- Choose one governing image system and stay faithful to it.",
        "- Use line breaks as meaning, not decoration.",
    ]),
    "heartbreak": "\n".join([
        "- Avoid revenge or bitterness; stay with honest grief and ache.",
        "- Hint at the life that remains after loss; no neat resolutions.",
    ]),
}


class OverrideFile(BaseModel):
    categories: Dict[str, str] = Field(default_factory=dict)


class CategoryOverrides:
    """Defaults merged with the YAML file. A missing file is not an error."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else get_settings().PROMPT_OVERRIDES_PATH

    def load(self) -> Dict[str, str]:
        try:
            stored = load_yaml(self.path, OverrideFile).categories
        except FileNotFoundError:
            stored = {}
        except (yaml.YAMLError, ValidationError) as e:
            logger.warning(f"[Overrides] Ignoring unreadable {self.path}: {e}")
            stored = {}
        return {**DEFAULT_CATEGORY_OVERRIDES, **stored}

    def get(self, category: str) -> Optional[str]:
        return self.load().get(category)

    def save(self, overrides: Mapping[str, object]) -> Dict[str, str]:
        """Persist only string values; returns what was written."""
        sanitized = {str(k): v for k, v in (overrides or {}).items() if isinstance(v, str)}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump({"categories": sanitized}, f, allow_unicode=True, sort_keys=True)
        logger.info(f"[Overrides] Saved {len(sanitized)} category overrides to {self.path}")
        return sanitized
