# generators/image_fetcher.py

from __future__ import annotations

import base64
import binascii
import io
from dataclasses import dataclass
from typing import Optional

import httpx
from PIL import Image, UnidentifiedImageError

from core.config import PipelineSettings
from core.errors import ImageProcessingError
from core.logger import get_logger

log = get_logger("ImageFetcher")

MIN_IMAGE_BYTES = 32
SUPPORTED_FORMATS = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


@dataclass(frozen=True)
class FetchedImage:
    data: bytes
    mime_type: str
    width: int
    height: int


def _decode_base64(payload: str) -> bytes:
    cleaned = "".join(payload.split())
    cleaned += "=" * (-len(cleaned) % 4)
    try:
        return base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ImageProcessingError(f"Invalid base64 image data: {exc}") from exc


def _decode_data_url(url: str) -> bytes:
    header, sep, payload = url.partition(",")
    if not sep:
        raise ImageProcessingError("Invalid data URL: missing comma separator")
    if ";base64" not in header:
        raise ImageProcessingError("Only base64 data URLs are supported")
    mime = header[5:].split(";", 1)[0]
    if mime and not mime.startswith("image/"):
        raise ImageProcessingError(f"Unsupported content-type in data URL: {mime}")
    return _decode_base64(payload)


async def _download(url: str, settings: PipelineSettings, client: Optional[httpx.AsyncClient]) -> bytes:
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=settings.image_fetch_timeout, follow_redirects=True)
    try:
        res = await client.get(url)
    except httpx.HTTPError as exc:
        raise ImageProcessingError(f"Image fetch failed: {exc}") from exc
    finally:
        if owns_client:
            await client.aclose()

    if res.status_code >= 400:
        raise ImageProcessingError(f"Image fetch failed: HTTP {res.status_code}")
    content_type = res.headers.get("content-type", "")
    if not content_type.startswith("image/"):
        raise ImageProcessingError(f"Unsupported content-type: {content_type or 'missing'}")
    return res.content


def _prepare(data: bytes, settings: PipelineSettings) -> FetchedImage:
    if len(data) < MIN_IMAGE_BYTES:
        raise ImageProcessingError(f"Image data too small ({len(data)} bytes)")
    if len(data) > settings.image_max_bytes:
        raise ImageProcessingError(
            f"Image too large ({len(data)} bytes, limit {settings.image_max_bytes})"
        )

    try:
        with Image.open(io.BytesIO(data)) as checked:
            checked.verify()
        decoded = Image.open(io.BytesIO(data))
        decoded.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise ImageProcessingError(f"Image could not be decoded: {exc}") from exc

    with decoded as img:
        fmt = img.format or ""
        mime = SUPPORTED_FORMATS.get(fmt)
        if mime is None:
            raise ImageProcessingError(f"Unsupported image format: {fmt or 'unknown'}")

        width, height = img.size
        edge = settings.image_max_edge
        # Animated GIFs keep their frames, so they are sent as-is.
        if edge and max(width, height) > edge and fmt != "GIF":
            if fmt == "JPEG" and img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            img.thumbnail((edge, edge), Image.LANCZOS)
            buf = io.BytesIO()
            img.save(buf, format=fmt)
            data = buf.getvalue()
            log.debug(f"Resized image {width}x{height} → {img.size[0]}x{img.size[1]}")
            width, height = img.size

    return FetchedImage(data=data, mime_type=mime, width=width, height=height)


async def fetch_image(
    source: str,
    *,
    settings: Optional[PipelineSettings] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> FetchedImage:
    """Load an image from an http(s) URL, a data URL, or raw base64."""

    settings = settings or PipelineSettings.from_config()
    if not source or not source.strip():
        raise ImageProcessingError("Empty image source")
    source = source.strip()

    if source.startswith("data:"):
        data = _decode_data_url(source)
    elif source.startswith(("http://", "https://")):
        data = await _download(source, settings, client)
    else:
        data = _decode_base64(source)

    image = _prepare(data, settings)
    log.info(f"Image ready ({image.mime_type}, {image.width}x{image.height}, {len(image.data)} bytes)")
    return image
