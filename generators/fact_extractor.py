# generators/fact_extractor.py
"""One vision call per request that turns an image into structured facts."""

import asyncio
from typing import Optional

import httpx

from core.config import PipelineSettings
from core.errors import ImageProcessingError, InferenceTimeout
from core.inference import InferenceClient
from core.logger import get_logger
from generators.caption_schema import extract_json
from generators.image_fetcher import FetchedImage, fetch_image
from models import ImageFacts

log = get_logger("FactExtractor")

FACTS_PROMPT = (
    "Describe this photo as a JSON object with these keys: "
    '"subjects" (list of short strings), "setting" (string), "clothing" (list), '
    '"colors" (list), "lighting" (string), "objects" (list), "mood" (string), '
    '"text_visible" (string, empty if none), "explicit_content" (boolean). '
    "Only list what is actually visible. Do not guess names, ages or locations."
)


async def extract_facts(
    image_source: str,
    *,
    inference: InferenceClient,
    settings: Optional[PipelineSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> ImageFacts:
    settings = settings or PipelineSettings.from_config()
    image: FetchedImage = await fetch_image(image_source, settings=settings, client=client)

    try:
        raw = await asyncio.wait_for(
            inference.complete(FACTS_PROMPT, response_format="json", image=image),
            timeout=settings.inference_timeout,
        )
    except asyncio.TimeoutError as exc:
        raise InferenceTimeout(
            f"fact extraction exceeded {settings.inference_timeout:g}s"
        ) from exc

    try:
        facts = extract_json(raw)
    except ValueError as exc:
        raise ImageProcessingError(f"Vision model returned unreadable facts: {exc}") from exc
    if isinstance(facts, list) and len(facts) == 1 and isinstance(facts[0], dict):
        facts = facts[0]
    if not isinstance(facts, dict) or not facts:
        raise ImageProcessingError("Vision model returned no image facts")

    log.info(f"Extracted {len(facts)} fact field(s) from {image.mime_type} image")
    log.debug(f"Facts: {facts}")
    return facts
