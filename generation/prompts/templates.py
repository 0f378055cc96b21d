"""Built-in prompt templates and the renderer for generation prompts.

A generation prompt is assembled in two steps: ``build_generation_context``
collects every fragment into a ``PromptContext`` and ``render_generation_prompt``
turns that context into text.  Keeping the branches in the builder and the
ordering in the renderer avoids fragment-order mistakes.
"""
import random
import secrets
import time
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from generation.models import ContentType, GenerationParameters, Provider, UseCase, WritingMode

DEFAULT_COMPACT_THRESHOLD = 1200

JSON_SYSTEM_PROMPT = "You are a literary and cultural expert. Return only valid JSON format."
DEEPSEEK_GENERATION_SYSTEM_PROMPT = (
    "You are a master of literature, poetry, and philosophical wisdom. "
    "Generate high-quality, meaningful content. Return only valid JSON format."
)
EXPLAIN_SYSTEM_PROMPT = "You are a helpful literary assistant. Answer in plain prose, not JSON."


DEFAULT_TEMPLATES: Dict[UseCase, str] = {
    UseCase.GENERATE: """You are a master literary curator and writer, creating emotionally profound content for a curated literary showcase.

Write {{quantity}} completely different {{type}} piece(s) in a {{tone}} tone for the "{{category}}" collection.
Theme: {{theme}}
Writing mode: {{writingMode}}

UNIQUENESS:
- Every piece must be entirely different: no shared themes, phrases, metaphors or structures.
- Explore a different aspect of human experience in each piece (love and loss, memory and hope, solitude and community, youth and age).

LITERARY STANDARDS:
- Offer genuine emotional depth and intellectual substance.
- Use evocative, precise language; avoid cliches, platitudes and superficial observations.
- Each piece should give a new insight into the human condition.""",

    UseCase.FIND_SOURCE: """You are a literary and cultural expert with extensive knowledge of quotes, literature, movies, speeches, and famous sayings. Identify the author and source of the text below as accurately as you can.

GUIDELINES:
1. Check whether this is a famous line from literature, film, speeches or historical figures.
2. Use distinctive phrasing, style, period and cultural context as evidence.
3. Be careful with misattributions; many quotes are wrongly attributed online.
4. Be honest about your confidence.

RESPONSE FORMAT (JSON only):
- Confident: {"author": "Author Name", "source": "Specific Source", "confidence": "high"}
- Good guess: {"author": "Likely Author", "source": "Possible Source", "confidence": "medium"}
- Unknown: {"author": "Unknown", "confidence": "low"}

EXAMPLES:
- {"author": "William Shakespeare", "source": "Hamlet, Act 3, Scene 1", "confidence": "high"}
- {"author": "Often attributed to Einstein but likely apocryphal", "confidence": "low"}

Return ONLY the JSON object.""",

    UseCase.EXPLAIN: """You are a helpful literary assistant. Provide a concise, clear explanation in 4-8 sentences. Avoid spoilers when possible.""",

    UseCase.ANALYZE: """You are a literary analyst. Analyze the writing and produce structured JSON:
{
  "themes": string[] (3-6 concise core themes),
  "literaryDevices": Array<{ "name": string; "quote"?: string; "explanation": string }>,
  "metaphors": string[] (2-6 short metaphors/paraphrases),
  "tone": string,
  "style": string,
  "imagery": string[] (key images as short phrases),
  "summary": string (3-5 sentences)
}
Return ONLY the JSON object.""",
}


CATEGORY_GUIDANCE: Dict[str, str] = {
    "found-made": """FOUND-MADE CATEGORY - MELANCHOLIC WISDOM:
Write insights that feel like truths discovered in moments of solitude.
- Capture the beauty found in brokenness and the weight of time.
- Use imagery of fading light, empty rooms, distant memories.
- Show how pain turns into wisdom and scars become sacred.
Voice: someone who has loved deeply and lost much, yet still finds beauty in the world.""",
    "cinema": """CINEMA CATEGORY - CINEMATIC SOUL:
Write lines that could be spoken in the most quietly devastating scenes of great films.
- Focus on farewells, missed chances and the weight of unspoken words.
- Evoke rain-soaked streets, empty theaters, last dances.
Voice: characters in their most vulnerable, honest moments.""",
    "literary-masters": """LITERARY MASTERS CATEGORY - EXISTENTIAL MELANCHOLY:
Channel the philosophical depth of literature's great voices.
- Kafka's alienation, Dostoevsky's moral torment, Camus' absurd, Proust's lost time, Woolf's inner life.
- Capture the loneliness of the thinking, feeling soul in an indifferent universe.
Voice: passages that break hearts while opening minds.""",
    "spiritual": """SPIRITUAL CATEGORY - SACRED MELANCHOLY:
Write spiritual insights that honour the sadness of the spiritual journey.
- Letting go of old selves, the grief inside awakening, the impermanence of all things.
- Use imagery of dawn after the darkest night and tears as holy water.
Voice: a guide who has walked through darkness to find light.""",
    "original-poetry": """ORIGINAL POETRY CATEGORY - LYRICAL MELANCHOLY:
Write hauntingly beautiful poems about the delicate sadness of existence.
- Twilight, forgotten photographs, seasons turning, tides retreating.
- Use line breaks as pauses that feel like held breath.
Voice: a poet who finds solace in solitude.""",
    "heartbreak": """HEARTBREAK CATEGORY - EXQUISITE ANGUISH:
Write about the sublime ache of a broken heart.
- The 3am absence, the phantom reach for someone gone, their cup still in the sink.
- Love that persists after the person has left, becoming a beautiful wound.
Voice: someone writing love letters to ghosts.""",
}

COMPACT_CATEGORY_GUIDANCE: Dict[str, str] = {
    "found-made": "Category focus: melancholic wisdom discovered in solitude.",
    "cinema": "Category focus: lines from quietly devastating film scenes.",
    "literary-masters": "Category focus: existential depth in the voice of literary masters.",
    "spiritual": "Category focus: humble spiritual insight through sorrow toward peace.",
    "original-poetry": "Category focus: lyrical, image-driven melancholy.",
    "heartbreak": "Category focus: honest grief and enduring love after loss.",
}

INSPIRATIONAL_GUIDANCE = """INSPIRATIONAL TONE OVERRIDE:
Balance the category's emotional depth with uplifting elements:
- Transform melancholy into wisdom that empowers.
- Show how pain becomes strength and darkness leads to light.
- Keep emotional authenticity while offering hope and resilience."""

COMPACT_INSPIRATIONAL_GUIDANCE = "Tone: inspirational; turn melancholy into empowering hope."

TYPE_RULES: Dict[ContentType, str] = {
    ContentType.QUOTE: """- Length: 1-3 sentences that pack maximum impact
- Focus: one profound insight or observation
- Language: quotable, memorable, precise
- Avoid: generic motivational speak or obvious statements""",
    ContentType.POEM: """- Length: 4-16 lines
- Structure: use line breaks for rhythm and meaning
- Imagery: at least 2-3 vivid, specific images
- Emotion: a clear emotional arc or moment of insight""",
    ContentType.REFLECTION: """- Length: 2-5 sentences exploring one theme deeply
- Approach: contemplative analysis of a life observation
- Style: personal yet universal, like a journal entry others relate to""",
}

COMPACT_TYPE_RULES: Dict[ContentType, str] = {
    ContentType.QUOTE: "- 1-3 quotable sentences, one insight.",
    ContentType.POEM: "- 4-16 lines with deliberate line breaks and vivid images.",
    ContentType.REFLECTION: "- 2-5 contemplative sentences on one theme.",
}

WRITING_MODE_GUIDANCE: Dict[WritingMode, str] = {
    WritingMode.KNOWN_WRITERS: """KNOWN WRITERS MODE:
- Channel the voice, techniques and philosophy of renowned writers of this genre.
- Do not generate author names; attribution is handled automatically.""",
    WritingMode.ORIGINAL_AI: """ORIGINAL AI MODE:
- Create completely original content; do not imitate specific writers.
- Do not generate author names; all content is attributed as "Anonymous".""",
}

JSON_OUTPUT_CONTRACT = """RESPONSE FORMAT:
Return only a valid JSON object with this exact structure:
{
  "items": [
    {
      "content": "Your generated %(type)s here (use \\n for line breaks in poems)",
      "source": "Source if applicable, otherwise null"
    }
  ]
}
Do NOT include author names. Verify that no two items share content, themes or imagery."""


def make_seed() -> str:
    """Unique token embedded in prompts to discourage repeated completions."""
    return f"{int(time.time() * 1000)}-{random.randint(0, 99999)}-{secrets.token_hex(3)}"


def replace_tokens(template: str, values: Mapping[str, str]) -> str:
    """Literal ``{{name}}`` replacement; unknown tokens are left untouched."""
    for name, value in values.items():
        template = template.replace("{{" + name + "}}", value)
    return template


@dataclass(frozen=True)
class PromptContext:
    base: str
    seed: str
    content_type: ContentType
    writing_mode_guidance: str
    category_guidance: Optional[str]
    category_override: Optional[str]
    tone_guidance: Optional[str]
    type_rules: str
    compact: bool


def build_generation_context(
    template: str,
    params: GenerationParameters,
    category_override: Optional[str] = None,
    compact_threshold: int = DEFAULT_COMPACT_THRESHOLD,
    seed: Optional[str] = None,
) -> PromptContext:
    base = replace_tokens(template, {
        "category": params.category,
        "type": params.content_type.value,
        "theme": params.theme or "open (choose freely)",
        "tone": params.tone,
        "quantity": str(params.quantity),
        "writingMode": params.writing_mode.value,
    })
    compact = len(template) > compact_threshold

    guidance_map = COMPACT_CATEGORY_GUIDANCE if compact else CATEGORY_GUIDANCE
    tone_guidance = None
    if "inspirational" in params.tone.lower():
        tone_guidance = COMPACT_INSPIRATIONAL_GUIDANCE if compact else INSPIRATIONAL_GUIDANCE
    type_rules = (COMPACT_TYPE_RULES if compact else TYPE_RULES)[params.content_type]

    return PromptContext(
        base=base,
        seed=seed or make_seed(),
        content_type=params.content_type,
        writing_mode_guidance=WRITING_MODE_GUIDANCE[params.writing_mode],
        category_guidance=guidance_map.get(params.category),
        category_override=(category_override or "").strip() or None,
        tone_guidance=tone_guidance,
        type_rules=type_rules,
        compact=compact,
    )


def render_generation_prompt(ctx: PromptContext) -> str:
    sections = [ctx.base.strip(), f"Generation ID (use for variety, do not echo): {ctx.seed}"]
    if not ctx.compact:
        sections.append(ctx.writing_mode_guidance)
    if ctx.category_guidance:
        sections.append(ctx.category_guidance)
    if ctx.category_override:
        sections.append(f"CATEGORY OVERRIDES:\n{ctx.category_override}")
    if ctx.tone_guidance:
        sections.append(ctx.tone_guidance)
    sections.append(f"TYPE-SPECIFIC REQUIREMENTS:\n{ctx.type_rules}")
    sections.append(JSON_OUTPUT_CONTRACT % {"type": ctx.content_type.value})
    return "\n\n".join(sections)


# Non-generation prompts ----------------------------------------------------

def _with_context(meta: Optional[Mapping[str, Optional[str]]]) -> str:
    if not meta:
        return ""
    labels = (("category", "Category"), ("type", "Type"), ("author", "Author"), ("source", "Source"))
    lines = [f"{label}: {meta[key]}" for key, label in labels if meta.get(key)]
    return "\n".join(lines)


def build_find_source_prompt(template: str, content: str) -> str:
    if "{{content}}" in template:
        return replace_tokens(template, {"content": content})
    return f'{template.strip()}\n\nTEXT:\n"{content}"'


def build_explain_prompt(template: str, content: str, question: str = "",
                         meta: Optional[Mapping[str, Optional[str]]] = None) -> str:
    question = question.strip() or "Explain this in simple terms."
    context = _with_context(meta)
    writing = f"{context}\n\n{content}" if context else content
    if "{{content}}" in template or "{{question}}" in template:
        return replace_tokens(template, {"content": writing, "question": question})
    return f'{template.strip()}\n\nWriting:\n"""\n{writing}\n"""\n\nQuestion: {question}'


def build_analyze_prompt(template: str, content: str,
                         meta: Optional[Mapping[str, Optional[str]]] = None) -> str:
    context = _with_context(meta)
    if "{{content}}" in template:
        return replace_tokens(template, {"content": content, "context": context})
    parts = [template.strip()]
    if context:
        parts.append(context)
    parts.append(f'TEXT:\n"""\n{content}\n"""')
    return "\n\n".join(parts)


def system_prompt_for(use_case: UseCase, provider: Provider) -> str:
    """System framing per use-case and provider."""
    if use_case == UseCase.EXPLAIN:
        return EXPLAIN_SYSTEM_PROMPT
    if use_case == UseCase.GENERATE and provider == Provider.DEEPSEEK:
        return DEEPSEEK_GENERATION_SYSTEM_PROMPT
    return JSON_SYSTEM_PROMPT
