# core/composer.py
"""Caller-facing entry point that decides what to do when a pipeline fails.

- image + unusable image       → retry as a text request (or NSFW path if preferred)
- image + model down           → same pipeline once on the other provider, then NSFW path
- image + exhausted            → NSFW fallback path
- text/rewrite exhausted       → error reaches the user
- quota and configuration errors always reach the user
"""

from typing import Optional

import httpx

from core.config import PipelineSettings
from core.errors import GenerationFailedError, ImageProcessingError, ModelUnavailable
from core.inference import InferenceClient, build_fallback_inference
from core.logger import get_logger
from generators.captioner import generate_from_image, generate_from_text, rewrite_caption
from generators.nsfw_fallback import nsfw_caption_fallback
from models import (
    CaptionCandidate,
    GenerationRequest,
    GenerationResult,
    NsfwFallbackResult,
    PayloadMode,
    RankReason,
    SafetyLevel,
)
from personas.loader import CreatorProfileStore

log = get_logger("Composer")


def neutral_theme(request: GenerationRequest) -> str:
    return f"a candid {request.platform.value} post about today's look and mood"


def wrap_nsfw_result(request: GenerationRequest, result: NsfwFallbackResult) -> GenerationResult:
    """Present a bare fallback caption in the normal result shape."""

    described = result.caption
    if described.startswith("[NSFW] "):
        described = described[len("[NSFW] "):]
    candidate = CaptionCandidate(
        caption=result.caption,
        alt=f"Image description: {described}",
        hashtags=(),
        cta="",
        mood=request.mood,
        style=request.style,
        safety_level=SafetyLevel.UNSAFE if result.nsfw else SafetyLevel.NORMAL,
        nsfw=result.nsfw,
    )
    return GenerationResult(
        final=candidate,
        top_variants=(candidate,),
        ranked=RankReason(reason=f"Fallback caption (label={result.label}, nsfw score {result.score:.2f})"),
        provider="huggingface",
        attempts=1,
        fallback="nsfw",
    )


async def create_caption(
    request: GenerationRequest,
    *,
    inference: Optional[InferenceClient] = None,
    settings: Optional[PipelineSettings] = None,
    profiles: Optional[CreatorProfileStore] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    fallback_theme: Optional[str] = None,
    prefer_nsfw_fallback: bool = False,
    fallback_inference: Optional[InferenceClient] = None,
) -> GenerationResult:
    settings = settings or PipelineSettings.from_config()
    mode = request.payload_mode()
    kwargs = dict(inference=inference, settings=settings, profiles=profiles)

    if mode == PayloadMode.TEXT:
        return await generate_from_text(request, **kwargs)
    if mode == PayloadMode.REWRITE:
        return await rewrite_caption(request, http_client=http_client, **kwargs)

    try:
        return await generate_from_image(request, http_client=http_client, **kwargs)
    except ImageProcessingError as exc:
        if prefer_nsfw_fallback:
            log.warning(f"Image unusable ({exc}); switching to NSFW fallback")
            return await _nsfw_path(request, settings, http_client)
        theme = fallback_theme or neutral_theme(request)
        log.warning(f"Image unusable ({exc}); retrying as text with theme '{theme}'")
        result = await generate_from_text(request.as_text_request(theme), **kwargs)
        return result.model_copy(update={"fallback": "text_only"})
    except ModelUnavailable as exc:
        backup = fallback_inference or build_fallback_inference(inference)
        if backup is None:
            log.warning(f"Image model unavailable ({exc}) and no second provider; switching to NSFW fallback")
            return await _nsfw_path(request, settings, http_client)
        log.warning(f"Image model unavailable ({exc}); retrying once with {backup.provider}")
        try:
            result = await generate_from_image(request, http_client=http_client, **dict(kwargs, inference=backup))
        except (ModelUnavailable, GenerationFailedError, ImageProcessingError) as backup_exc:
            log.warning(
                f"{backup.provider} also failed ({backup_exc.__class__.__name__}: {backup_exc}); "
                "switching to NSFW fallback"
            )
            return await _nsfw_path(request, settings, http_client)
        return result.model_copy(update={"fallback": "provider"})
    except GenerationFailedError as exc:
        log.warning(f"Image pipeline failed ({exc.__class__.__name__}: {exc}); switching to NSFW fallback")
        return await _nsfw_path(request, settings, http_client)


async def _nsfw_path(
    request: GenerationRequest,
    settings: PipelineSettings,
    http_client: Optional[httpx.AsyncClient],
) -> GenerationResult:
    result = await nsfw_caption_fallback(request.image_source, settings=settings, client=http_client)
    return wrap_nsfw_result(request, result)
