"""Turns raw provider text into domain objects.

Providers answer with JSON wrapped in prose, code fences or nothing at all.
Everything here is pure and synchronous; failures raise ``ParseError`` so the
fallback chain can tell a bad answer apart from a failed request.
"""
import json
import re
import time
from typing import Any, Callable, Dict, List, Optional

from generation.models import (
    ContentType,
    GeneratedItem,
    GenerationParameters,
    LiteraryAnalysis,
    LiteraryDevice,
    SourceInfo,
    WritingMode,
)
from showcase.errors import ParseError

MIN_ITEM_LENGTH = 10
ANONYMOUS = "Anonymous"
UNKNOWN_AUTHOR = "Unknown"

AUTHOR_POOLS: Dict[str, List[str]] = {
    "found-made": [
        "Marcus Aurelius", "Rumi", "Paulo Coelho", "Khalil Gibran",
        "Viktor Frankl", "Lao Tzu", "Eckhart Tolle", "Alan Watts",
        "Joseph Campbell", "Carl Jung", "Ralph Waldo Emerson",
    ],
    "cinema": [
        "Woody Allen", "Quentin Tarantino", "Charlie Kaufman", "Coen Brothers",
        "Terrence Malick", "Wong Kar-wai", "Sofia Coppola", "Paul Thomas Anderson",
        "Christopher Nolan", "Wes Anderson", "David Lynch",
    ],
    "literary-masters": [
        "Franz Kafka", "Albert Camus", "Fyodor Dostoevsky", "Jean-Paul Sartre",
        "Jorge Luis Borges", "Marcel Proust", "Ernest Hemingway", "Virginia Woolf",
        "James Joyce", "Samuel Beckett", "Italo Calvino",
    ],
    "spiritual": [
        "Buddha", "Thich Nhat Hanh", "Rumi", "Hafez",
        "Paramahansa Yogananda", "Ram Dass", "Pema Chödrön", "Osho",
        "Jiddu Krishnamurti", "Thomas Merton", "Meister Eckhart",
    ],
    "original-poetry": [
        "Pablo Neruda", "Mary Oliver", "Rainer Maria Rilke", "Hafez",
        "Langston Hughes", "Emily Dickinson", "Octavio Paz", "Wisława Szymborska",
        "William Blake", "Maya Angelou", "Leonard Cohen",
    ],
    "heartbreak": [
        "Sylvia Plath", "Anne Sexton", "Leonard Cohen", "Pablo Neruda",
        "Frida Kahlo", "Virginia Woolf", "Edna St. Vincent Millay", "Sappho",
        "Emily Dickinson", "Elizabeth Bishop", "Adrienne Rich",
    ],
}
DEFAULT_POOL = "found-made"

UNCERTAIN_AUTHOR_MARKERS = ("unknown", "uncertain", "apocryphal", "often attributed", "misattributed")

STATIC_FALLBACK_CONTENT: Dict[ContentType, str] = {
    ContentType.QUOTE: "The journey of discovery begins with a single question.",
    ContentType.POEM: (
        "In quiet moments of the day,\n"
        "When thoughts have room to breathe and play,\n"
        "I find the truths that matter most\n"
        "Are simple gifts, not things to boast."
    ),
    ContentType.REFLECTION: (
        "There's something profound about the way life unfolds in unexpected directions. "
        "Each twist and turn teaches us that our greatest growth often comes not from the "
        "destinations we planned, but from the detours we never saw coming."
    ),
}

# Analysis limits
MAX_THEMES = 6
MAX_DEVICES = 8
MAX_METAPHORS = 6
MAX_IMAGERY = 10
DEVICE_NAME_LEN = 80
DEVICE_QUOTE_LEN = 140
DEVICE_EXPLANATION_LEN = 280
TONE_LEN = 60
STYLE_LEN = 80
SUMMARY_LEN = 800

_WHITESPACE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------

def _balanced_span(text: str, start: int) -> Optional[str]:
    """Return the balanced JSON value starting at ``text[start]``, ignoring brackets inside strings."""
    stack = []
    in_string = False
    escaped = False
    for pos in range(start, len(text)):
        ch = text[pos]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]":
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return text[start:pos + 1]
    return None


def extract_json(text: str) -> Any:
    """Parse the first balanced JSON object or array embedded in ``text``.

    An object wins when it starts before the first array.
    """
    if not text:
        raise ParseError("Empty response")
    obj_start = text.find("{")
    arr_start = text.find("[")
    starts = sorted(s for s in (obj_start, arr_start) if s != -1)
    if not starts:
        raise ParseError("No JSON found in response")

    for start in starts:
        span = _balanced_span(text, start)
        if span is None:
            continue
        try:
            return json.loads(span)
        except json.JSONDecodeError:
            continue
    raise ParseError("Response did not contain valid JSON")


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

def dedup_key(content: str) -> str:
    return _WHITESPACE.sub(" ", content).strip().lower()


def pick_author(category: str, writing_mode: WritingMode, index: int,
                clock: Callable[[], float] = time.time) -> str:
    if writing_mode == WritingMode.ORIGINAL_AI:
        return ANONYMOUS
    pool = AUTHOR_POOLS.get(category) or AUTHOR_POOLS[DEFAULT_POOL]
    return pool[(index + int(clock())) % len(pool)]


def _clean_source(source: Any) -> Optional[str]:
    if not isinstance(source, str):
        return None
    source = source.strip()
    return source if source and source.lower() != "null" else None


def normalize_generation(raw: str, params: GenerationParameters,
                         clock: Callable[[], float] = time.time) -> List[GeneratedItem]:
    """Parse a generation answer into unique items.

    Raises ``ParseError`` when nothing usable survives.
    """
    data = extract_json(raw)
    if isinstance(data, dict):
        entries = data.get("items")
    else:
        entries = data
    if not isinstance(entries, list):
        raise ParseError("Invalid response format: expected an items array")

    items: List[GeneratedItem] = []
    seen = set()
    for index, entry in enumerate(entries):
        if isinstance(entry, str):
            content, source = entry, None
        elif isinstance(entry, dict):
            content = entry.get("content") or entry.get("text") or ""
            source = entry.get("source")
        else:
            continue
        if not isinstance(content, str):
            continue
        content = content.strip()
        if len(content) <= MIN_ITEM_LENGTH:
            continue
        key = dedup_key(content)
        if key in seen:
            continue
        seen.add(key)
        items.append(GeneratedItem(
            content=content,
            author=pick_author(params.category, params.writing_mode, index, clock),
            source=_clean_source(source),
            category=params.category,
            content_type=params.content_type,
        ))

    if not items:
        raise ParseError("No valid items in response")
    return items


def static_fallback_content(params: GenerationParameters,
                            clock: Callable[[], float] = time.time) -> List[GeneratedItem]:
    """Fixed content returned when every provider failed or none is configured."""
    content = STATIC_FALLBACK_CONTENT[params.content_type]
    return [
        GeneratedItem(
            content=content,
            author=pick_author(params.category, params.writing_mode, i, clock),
            category=params.category,
            content_type=params.content_type,
        )
        for i in range(params.quantity)
    ]


# ---------------------------------------------------------------------------
# Source lookup
# ---------------------------------------------------------------------------

def _is_low_confidence(confidence: Any) -> bool:
    if isinstance(confidence, (int, float)) and not isinstance(confidence, bool):
        return confidence < 0.5
    return str(confidence).strip().lower() == "low"


def normalize_source(raw: str) -> SourceInfo:
    """Conservative attribution: anything uncertain becomes ``Unknown``."""
    try:
        data = extract_json(raw)
        if not isinstance(data, dict):
            raise ParseError("Expected a JSON object")
    except ParseError:
        lowered = raw.lower()
        if "unknown" in lowered or "uncertain" in lowered:
            return SourceInfo(author=UNKNOWN_AUTHOR)
        raise ParseError("Could not parse source information")

    author = str(data.get("author") or UNKNOWN_AUTHOR).strip()
    source = data.get("source") or None
    confidence = data.get("confidence")
    if confidence is None or confidence == "":
        confidence = "medium"

    lowered_author = author.lower()
    if _is_low_confidence(confidence) or any(m in lowered_author for m in UNCERTAIN_AUTHOR_MARKERS):
        return SourceInfo(author=UNKNOWN_AUTHOR)

    if source is not None:
        source = str(source).strip() or None
    if source and str(confidence).lower() != "medium":
        source = f"{source} ({confidence} confidence)"
    return SourceInfo(author=author, source=source)


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

def _clip(value: Any, limit: int) -> str:
    return str(value or "").strip()[:limit]


def _string_list(value: Any, limit: int) -> List[str]:
    if not isinstance(value, list):
        return []
    cleaned = [str(v).strip() for v in value if isinstance(v, (str, int, float)) and str(v).strip()]
    return cleaned[:limit]


def normalize_analysis(raw: str) -> LiteraryAnalysis:
    data = extract_json(raw)
    if not isinstance(data, dict):
        raise ParseError("Expected a JSON object for analysis")

    devices = []
    for device in data.get("literaryDevices") or []:
        if not isinstance(device, dict) or not device.get("name"):
            continue
        quote = _clip(device.get("quote"), DEVICE_QUOTE_LEN) or None
        devices.append(LiteraryDevice(
            name=_clip(device["name"], DEVICE_NAME_LEN),
            quote=quote,
            explanation=_clip(device.get("explanation"), DEVICE_EXPLANATION_LEN),
        ))
        if len(devices) == MAX_DEVICES:
            break

    return LiteraryAnalysis(
        themes=_string_list(data.get("themes"), MAX_THEMES),
        literary_devices=devices,
        metaphors=_string_list(data.get("metaphors"), MAX_METAPHORS),
        tone=_clip(data.get("tone"), TONE_LEN),
        style=_clip(data.get("style"), STYLE_LEN),
        imagery=_string_list(data.get("imagery"), MAX_IMAGERY),
        summary=_clip(data.get("summary"), SUMMARY_LEN),
    )


def analysis_from_explanation(explanation: str) -> LiteraryAnalysis:
    return LiteraryAnalysis(summary=_clip(explanation, SUMMARY_LEN))
