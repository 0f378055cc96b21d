"""Generation orchestrator: resolve a provider, compose the prompt, call, normalize.

Every public entry point shares the same skeleton:

1. ``ProviderResolver.resolve`` picks the primary provider and the fallback configs.
2. The active template comes from the prompt store (embedded default otherwise).
3. ``ProviderRouter.run`` calls each provider in turn, rebuilding the prompt and
   system framing for that provider, until one answer normalizes cleanly.

``generate`` never raises: an unconfigured or exhausted chain returns static
content.  ``find_source``, ``explain`` and ``analyze`` degrade to fixed answers
in the same way.
"""
import hashlib
import time
from typing import Callable, List, Mapping, Optional, Union

from generation.adapters import BaseProvider
from generation.models import (
    ConnectionResult,
    GeneratedItem,
    GenerationParameters,
    LiteraryAnalysis,
    Provider,
    ProviderConfig,
    SourceInfo,
    UseCase,
)
from generation.normalize import (
    analysis_from_explanation,
    normalize_analysis,
    normalize_generation,
    normalize_source,
    static_fallback_content,
)
from generation.prompts.overrides import CategoryOverrides
from generation.prompts.store import MIN_PROMPT_LENGTH, PromptVersionStore
from generation.prompts.templates import (
    DEFAULT_TEMPLATES,
    build_analyze_prompt,
    build_explain_prompt,
    build_find_source_prompt,
    build_generation_context,
    render_generation_prompt,
    system_prompt_for,
)
from generation.router import ProviderResolver, ProviderRouter
from showcase.cache import TTL, Cache
from showcase.config import AppSettings, get_settings
from showcase.errors import ConfigurationError, ProviderChainExhausted, ValidationError
from showcase.logging import logger
from showcase.settings_store import ConfigurationStore

NO_EXPLANATION = "No explanation available."
DEFAULT_QUESTION = "Explain this in simple terms."

Meta = Optional[Mapping[str, Optional[str]]]


def analysis_cache_key(content: str, content_id: Optional[str] = None) -> str:
    digest = hashlib.sha1(content.encode("utf-8")).hexdigest()
    return f"analysis:{content_id or 'noid'}:{digest}"


class GenerationOrchestrator:
    def __init__(
        self,
        config_store: ConfigurationStore,
        prompt_store: PromptVersionStore,
        cache: Cache,
        router: Optional[ProviderRouter] = None,
        resolver: Optional[ProviderResolver] = None,
        overrides: Optional[CategoryOverrides] = None,
        settings: Optional[AppSettings] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or get_settings()
        self.config_store = config_store
        self.prompt_store = prompt_store
        self.cache = cache
        self.router = router or ProviderRouter()
        self.resolver = resolver or ProviderResolver(config_store, self.settings)
        self.overrides = overrides or CategoryOverrides(self.settings.PROMPT_OVERRIDES_PATH)
        self.clock = clock

    async def _template(self, use_case: UseCase) -> str:
        try:
            active = await self.prompt_store.get_active_prompt(use_case)
        except Exception as e:
            logger.warning(f"[Orchestrator] Prompt store unavailable for {use_case.value}, using default: {e}")
            active = None
        return active or DEFAULT_TEMPLATES[use_case]

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------
    async def compose_generation_prompt(self, params: GenerationParameters, template: Optional[str] = None) -> str:
        """Fully composed generation prompt, without calling a provider."""
        template = template or await self._template(UseCase.GENERATE)
        context = build_generation_context(
            template,
            params,
            category_override=self.overrides.get(params.category),
            compact_threshold=self.settings.COMPACT_PROMPT_THRESHOLD,
        )
        return render_generation_prompt(context)

    async def generate(self, params: GenerationParameters, provider: Optional[Provider] = None) -> List[GeneratedItem]:
        resolution = await self.resolver.resolve(UseCase.GENERATE, provider)
        template = await self._template(UseCase.GENERATE)

        async def call(adapter: BaseProvider, config: ProviderConfig) -> List[GeneratedItem]:
            # Fresh seed per attempt.
            prompt = await self.compose_generation_prompt(params, template)
            raw = await adapter.invoke(config, prompt, system_prompt_for(UseCase.GENERATE, config.provider))
            return normalize_generation(raw, params, self.clock)

        try:
            items = await self.router.run(resolution, call, label="generate")
        except ConfigurationError as e:
            logger.warning(f"[Orchestrator] No provider configured, returning static content: {e}")
            return static_fallback_content(params, self.clock)
        except ProviderChainExhausted as e:
            logger.error(f"[Orchestrator] Generation failed, returning static content: {e}")
            return static_fallback_content(params, self.clock)

        logger.info(f"[Orchestrator] Generated {len(items)} {params.content_type.value} item(s) for {params.category}")
        return items

    # ------------------------------------------------------------------
    # Source lookup
    # ------------------------------------------------------------------
    async def find_source(self, content: str, provider: Optional[Provider] = None) -> SourceInfo:
        resolution = await self.resolver.resolve(UseCase.FIND_SOURCE, provider)
        template = await self._template(UseCase.FIND_SOURCE)
        primary = resolution.primary.provider.value.upper()

        async def call(adapter: BaseProvider, config: ProviderConfig) -> SourceInfo:
            raw = await adapter.invoke(
                config, build_find_source_prompt(template, content),
                system_prompt_for(UseCase.FIND_SOURCE, config.provider),
            )
            return normalize_source(raw)

        try:
            return await self.router.run(resolution, call, label="findSource")
        except ConfigurationError:
            return SourceInfo(author="Configuration needed", source=f"{primary} API key required")
        except ProviderChainExhausted:
            return SourceInfo(author="Unable to determine", source=f"{primary} service unavailable")

    # ------------------------------------------------------------------
    # Explanation and analysis
    # ------------------------------------------------------------------
    async def explain(self, content: str, question: str = "", context: Meta = None,
                      provider: Optional[Provider] = None, template: Optional[str] = None) -> str:
        """Free-text answer about ``content``. ``template`` replaces the stored prompt."""
        resolution = await self.resolver.resolve(UseCase.EXPLAIN, provider)
        template = template or await self._template(UseCase.EXPLAIN)
        prompt = build_explain_prompt(template, content, question or DEFAULT_QUESTION, context)

        async def call(adapter: BaseProvider, config: ProviderConfig) -> str:
            raw = await adapter.invoke(config, prompt, system_prompt_for(UseCase.EXPLAIN, config.provider))
            return raw.strip()

        try:
            answer = await self.router.run(resolution, call, label="explain")
        except (ConfigurationError, ProviderChainExhausted) as e:
            logger.warning(f"[Orchestrator] Explanation unavailable: {e}")
            return NO_EXPLANATION
        return answer or NO_EXPLANATION

    async def analyze(self, content: str, meta: Meta = None, content_id: Optional[str] = None,
                      provider: Optional[Provider] = None) -> LiteraryAnalysis:
        """Structured analysis, cached per content hash for ``TTL.LONG``.

        A fallback summary built from ``explain`` is returned but not cached.
        """
        key = analysis_cache_key(content, content_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached
        try:
            analysis = await self._analyze(content, meta, provider)
        except (ConfigurationError, ProviderChainExhausted) as e:
            logger.warning(f"[Orchestrator] Analysis unavailable, summarizing instead: {e}")
            return await self._summary_analysis(content, meta, provider)
        await self.cache.set(key, analysis, TTL.LONG)
        return analysis

    async def _analyze(self, content: str, meta: Meta, provider: Optional[Provider],
                       template: Optional[str] = None) -> LiteraryAnalysis:
        resolution = await self.resolver.resolve(UseCase.ANALYZE, provider)
        template = template or await self._template(UseCase.ANALYZE)
        prompt = build_analyze_prompt(template, content, meta)

        async def call(adapter: BaseProvider, config: ProviderConfig) -> LiteraryAnalysis:
            raw = await adapter.invoke(config, prompt, system_prompt_for(UseCase.ANALYZE, config.provider))
            return normalize_analysis(raw)

        return await self.router.run(resolution, call, label="analyze")

    async def _summary_analysis(self, content: str, meta: Meta, provider: Optional[Provider]) -> LiteraryAnalysis:
        explanation = await self.explain(
            content, "Summarize the themes, tone and style of this writing.", meta, provider
        )
        return analysis_from_explanation(explanation)

    # ------------------------------------------------------------------
    # Admin helpers
    # ------------------------------------------------------------------
    async def preview(self, use_case: UseCase, template: str, sample_input: str,
                      question: str = "", provider: Optional[Provider] = None) -> Union[str, LiteraryAnalysis]:
        """Dry-run an unsaved template against ``sample_input``. Nothing is persisted or cached."""
        use_case = UseCase(use_case)
        template = (template or "").strip()
        sample_input = (sample_input or "").strip()
        if len(template) < MIN_PROMPT_LENGTH:
            raise ValidationError("Prompt too short for preview")
        if not sample_input:
            raise ValidationError("sampleInput is required for preview")

        if use_case == UseCase.EXPLAIN:
            return await self.explain(sample_input, question or "Explain this", provider=provider, template=template)
        if use_case == UseCase.ANALYZE:
            try:
                return await self._analyze(sample_input, None, provider, template=template)
            except (ConfigurationError, ProviderChainExhausted):
                return await self._summary_analysis(sample_input, None, provider)
        if use_case == UseCase.FIND_SOURCE:
            question = "Give a concise analysis for preview purposes"
        else:
            question = "Summarize tone and core instruction for preview purposes"
        return await self.explain(sample_input, question, provider=provider, template=template)

    async def test_connection(self, provider: Provider, api_key: Optional[str] = None) -> ConnectionResult:
        provider = Provider(provider)
        resolution = await self.resolver.resolve(UseCase.GENERATE, provider)
        config = resolution.configs.get(provider, resolution.primary)
        if api_key:
            config = config.model_copy(update={"api_key": api_key.strip()})
        if not config.is_configured:
            return ConnectionResult(success=False, message=f"{provider.value} API key not configured")
        return await self.router.adapter(provider).test_connection(config)
