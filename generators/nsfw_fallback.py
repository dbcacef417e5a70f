# generators/nsfw_fallback.py
"""Degraded captioning path: classifier + plain caption model, no schema.

Used when the main pipeline cannot handle an image. The result is a bare
caption, prefixed with ``[NSFW] `` when the classifier says so.
"""

import asyncio
from typing import Any, List, Optional, Tuple

import httpx

from core.config import Config, PipelineSettings
from core.errors import ConfigurationError, ImageProcessingError, NsfwFallbackError
from core.logger import get_logger
from generators.image_fetcher import FetchedImage, fetch_image
from models import NsfwFallbackResult

log = get_logger("NsfwFallback")

NSFW_PREFIX = "[NSFW] "
TRANSIENT_RETRIES = 3
TRANSIENT_STATUS = {429, 500, 502, 503, 504}


async def _post_image(
    client: httpx.AsyncClient,
    model: str,
    image: FetchedImage,
    token: str,
    backoff: float,
) -> Any:
    url = f"{Config.HF_API_BASE.rstrip('/')}/{model}"
    headers = {"Authorization": f"Bearer {token}", "Content-Type": image.mime_type}
    last_error = ""

    for attempt in range(1, TRANSIENT_RETRIES + 2):
        try:
            res = await client.post(url, content=image.data, headers=headers)
        except httpx.TransportError as exc:
            last_error = f"connection error: {exc}"
        else:
            if res.status_code < 400:
                try:
                    return res.json()
                except ValueError as exc:
                    raise NsfwFallbackError(f"{model} returned a non-JSON body") from exc
            if res.status_code not in TRANSIENT_STATUS:
                raise NsfwFallbackError(f"{model} rejected the request: HTTP {res.status_code}")
            last_error = f"HTTP {res.status_code}"

        if attempt <= TRANSIENT_RETRIES:
            log.warning(f"{model} attempt {attempt} failed ({last_error}); retrying")
            await asyncio.sleep(backoff * (2 ** (attempt - 1)))

    raise NsfwFallbackError(f"{model} unavailable after {TRANSIENT_RETRIES} retries: {last_error}")


def _flatten(payload: Any) -> List[dict]:
    # The classifier answers [[{...}]] for some models and [{...}] for others.
    if isinstance(payload, list) and payload and isinstance(payload[0], list):
        payload = payload[0]
    if not isinstance(payload, list):
        raise NsfwFallbackError(f"Unexpected classifier response: {payload!r}"[:200])
    return [item for item in payload if isinstance(item, dict)]


def classify(payload: Any, threshold: float) -> Tuple[bool, Optional[str], float]:
    """Return (is_nsfw, top_label, nsfw_score) for a classifier response.

    NSFW means the top label is ``nsfw`` and its score reaches ``threshold``.
    On a score tie the first label listed counts as top.
    """

    labels = _flatten(payload)
    if not labels:
        raise NsfwFallbackError("Classifier returned no labels")
    top = max(labels, key=lambda item: float(item.get("score", 0.0)))
    nsfw_score = max(
        (float(item.get("score", 0.0)) for item in labels if str(item.get("label", "")).lower() == "nsfw"),
        default=0.0,
    )
    top_is_nsfw = str(top.get("label", "")).lower() == "nsfw"
    return top_is_nsfw and nsfw_score >= threshold, top.get("label"), nsfw_score


def _caption_text(payload: Any) -> str:
    if isinstance(payload, list) and payload and isinstance(payload[0], dict):
        text = payload[0].get("generated_text", "")
    elif isinstance(payload, dict):
        text = payload.get("generated_text", "")
    else:
        text = ""
    text = str(text).strip()
    if not text:
        raise NsfwFallbackError("Caption model returned no text")
    return text[:1].upper() + text[1:]


async def nsfw_caption_fallback(
    image_url: str,
    *,
    settings: Optional[PipelineSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
    token: Optional[str] = None,
    backoff: float = 1.0,
) -> NsfwFallbackResult:
    settings = settings or PipelineSettings.from_config()
    token = token or Config.HF_API_TOKEN
    if not token:
        raise ConfigurationError("HF_API_TOKEN missing; NSFW fallback captioning unavailable")

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=settings.inference_timeout)
    try:
        try:
            image = await fetch_image(image_url, settings=settings, client=client)
        except ImageProcessingError as exc:
            raise NsfwFallbackError(f"Fallback could not load the image: {exc}") from exc

        verdict = await _post_image(client, Config.HF_NSFW_MODEL, image, token, backoff)
        is_nsfw, label, score = classify(verdict, settings.nsfw_threshold)
        described = await _post_image(client, Config.HF_CAPTION_MODEL, image, token, backoff)
        caption = _caption_text(described)
    finally:
        if owns_client:
            await client.aclose()

    if is_nsfw:
        caption = NSFW_PREFIX + caption
    log.info(f"Fallback caption ready (label={label}, nsfw_score={score:.2f})")
    return NsfwFallbackResult(caption=caption, nsfw=is_nsfw, label=label, score=score)


nsfw_fallback = nsfw_caption_fallback
