# generators/captioner.py
"""Caption pipelines: image, text theme and rewrite share one generation core."""

from typing import Optional

import httpx

from core.config import PipelineSettings
from core.errors import ConfigurationError, ImageProcessingError, InvalidRequestError
from core.inference import InferenceClient, build_inference
from core.logger import get_logger
from generators.caption_schema import (
    ValidationReport,
    drop_near_duplicates,
    parse_candidates,
    screen,
)
from generators.fact_extractor import extract_facts
from generators.prompt_manager import (
    ImageGrounding,
    RewriteGrounding,
    TextGrounding,
    build_caption_prompt,
)
from generators.ranker import generate_title_candidates, rank
from generators.retry_controller import RetryController
from models import (
    GenerationRequest,
    GenerationResult,
    ImageFacts,
    PayloadMode,
    Platform,
    PromotionMode,
    RankReason,
)
from personas.loader import CreatorProfileStore
from utils.profile_cache import CachedProfileStore

log = get_logger("Captioner")


def _grounding_for(request: GenerationRequest, mode: PayloadMode, facts: Optional[ImageFacts]):
    if mode == PayloadMode.IMAGE:
        return ImageGrounding(facts or {})
    if mode == PayloadMode.TEXT:
        return TextGrounding(request.theme, request.context)
    return RewriteGrounding(request.existing_caption, facts)


def resolve_promotion_url(
    request: GenerationRequest,
    profiles: Optional[CreatorProfileStore] = None,
) -> Optional[str]:
    """Creator link for the request; explicit promotion without one is a config error."""

    url = (request.promotion_url or "").strip() or None
    if url is None and request.creator_id:
        url = (profiles or CachedProfileStore()).promotion_url(request.creator_id)
    if request.promotion_mode == PromotionMode.EXPLICIT and not url:
        raise ConfigurationError(
            "promotion_mode 'explicit' needs a creator link "
            f"(creator_id={request.creator_id or '-'} has no promotion_url)"
        )
    return url


async def generate_variants(
    request: GenerationRequest,
    *,
    inference: InferenceClient,
    facts: Optional[ImageFacts] = None,
    hint: Optional[str] = None,
    settings: Optional[PipelineSettings] = None,
    promotion_url: Optional[str] = None,
) -> ValidationReport:
    """One attempt: exactly one inference call, then parse, validate and screen."""

    settings = settings or PipelineSettings.from_config()
    mode = request.payload_mode()
    prompt = build_caption_prompt(
        request,
        _grounding_for(request, mode, facts),
        variant_count=settings.variant_count,
        promotion_url=promotion_url,
        hint=hint,
    )
    log.debug(f"Caption prompt:\n{prompt}")

    raw = await inference.complete(prompt, response_format="json")
    report = parse_candidates(raw)
    # Fact coverage is enforced for image requests only; rewrites keep facts optional.
    report = screen(report, request, promotion_url, facts if mode == PayloadMode.IMAGE else None)
    existing = request.existing_caption if mode == PayloadMode.REWRITE else None
    return drop_near_duplicates(report, existing=existing)


async def _run_pipeline(
    request: GenerationRequest,
    mode: PayloadMode,
    *,
    inference: Optional[InferenceClient],
    settings: Optional[PipelineSettings],
    profiles: Optional[CreatorProfileStore],
    http_client: Optional[httpx.AsyncClient],
) -> GenerationResult:
    settings = settings or PipelineSettings.from_config()
    actual = request.payload_mode()
    if actual != mode:
        raise InvalidRequestError(f"expected a {mode.value} request, got {actual.value}")

    promotion_url = resolve_promotion_url(request, profiles)
    inference = inference or build_inference()

    facts: Optional[ImageFacts] = None
    if mode == PayloadMode.IMAGE:
        facts = await extract_facts(
            request.image_source, inference=inference, settings=settings, client=http_client
        )
    elif mode == PayloadMode.REWRITE and request.image_url:
        try:
            facts = await extract_facts(
                request.image_url, inference=inference, settings=settings, client=http_client
            )
        except ImageProcessingError as exc:
            log.warning(f"Rewriting without image facts: {exc}")

    async def attempt(hint):
        return await generate_variants(
            request,
            inference=inference,
            facts=facts,
            hint=hint,
            settings=settings,
            promotion_url=promotion_url,
        )

    controller = RetryController(settings.max_attempts, settings.inference_timeout)
    outcome = await controller.run(attempt)

    ranking = rank(
        outcome.report.valid,
        voice=request.voice,
        nsfw=request.nsfw,
        facts=facts,
        top_n=settings.top_variants,
    )
    final = ranking.final
    top_variants = ranking.top_variants
    if mode == PayloadMode.IMAGE or request.platform == Platform.REDDIT:
        titles = generate_title_candidates(final, outcome.report.valid)
        final = final.model_copy(update={"titles": titles})
        top_variants = (final,) + top_variants[1:]

    provider = getattr(inference, "provider", "unknown")
    log.info(
        f"{mode.value} caption ready for {request.platform.value} "
        f"via {provider} after {outcome.attempts} attempt(s)"
    )
    return GenerationResult(
        final=final,
        top_variants=top_variants,
        ranked=RankReason(reason=ranking.reason),
        facts=facts,
        provider=provider,
        attempts=outcome.attempts,
    )


async def generate_from_image(
    request: GenerationRequest,
    *,
    inference: Optional[InferenceClient] = None,
    settings: Optional[PipelineSettings] = None,
    profiles: Optional[CreatorProfileStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> GenerationResult:
    return await _run_pipeline(
        request,
        PayloadMode.IMAGE,
        inference=inference,
        settings=settings,
        profiles=profiles,
        http_client=http_client,
    )


async def generate_from_text(
    request: GenerationRequest,
    *,
    inference: Optional[InferenceClient] = None,
    settings: Optional[PipelineSettings] = None,
    profiles: Optional[CreatorProfileStore] = None,
) -> GenerationResult:
    return await _run_pipeline(
        request,
        PayloadMode.TEXT,
        inference=inference,
        settings=settings,
        profiles=profiles,
        http_client=None,
    )


async def rewrite_caption(
    request: GenerationRequest,
    *,
    inference: Optional[InferenceClient] = None,
    settings: Optional[PipelineSettings] = None,
    profiles: Optional[CreatorProfileStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> GenerationResult:
    """Rewrite ``existing_caption``; an unusable image only drops the facts."""

    return await _run_pipeline(
        request,
        PayloadMode.REWRITE,
        inference=inference,
        settings=settings,
        profiles=profiles,
        http_client=http_client,
    )
