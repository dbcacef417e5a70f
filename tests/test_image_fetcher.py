import base64
import io

import httpx
import pytest
from PIL import Image

from core.config import PipelineSettings
from core.errors import ImageProcessingError
from generators.image_fetcher import fetch_image


def _png(size):
    buf = io.BytesIO()
    Image.new("RGB", size, (10, 20, 30)).save(buf, format="PNG")
    return buf.getvalue()


@pytest.mark.asyncio
async def test_raw_base64_and_data_url(png_bytes, png_base64):
    image = await fetch_image(png_base64)
    assert image.mime_type == "image/png"
    assert (image.width, image.height) == (64, 48)
    assert image.data == png_bytes

    data_url = await fetch_image(f"data:image/png;base64,{png_base64}")
    assert data_url.data == png_bytes


@pytest.mark.asyncio
async def test_large_images_are_downsized():
    encoded = base64.b64encode(_png((2000, 100))).decode("ascii")
    image = await fetch_image(encoded, settings=PipelineSettings(image_max_edge=1536))
    assert max(image.width, image.height) == 1536
    assert Image.open(io.BytesIO(image.data)).size == (image.width, image.height)


@pytest.mark.asyncio
async def test_url_fetch_uses_client(png_bytes):
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, content=png_bytes, headers={"content-type": "image/png"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        image = await fetch_image("https://cdn.test/photo.png", client=client)
    assert seen == ["https://cdn.test/photo.png"]
    assert image.mime_type == "image/png"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404),
        httpx.Response(200, content=b"<html></html>" * 10, headers={"content-type": "text/html"}),
    ],
)
async def test_bad_http_responses_raise(response):
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda request: response)) as client:
        with pytest.raises(ImageProcessingError):
            await fetch_image("https://cdn.test/photo.png", client=client)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "source",
    [
        "",
        "!!!not-base64!!!",
        base64.b64encode(b"tiny").decode("ascii"),
        base64.b64encode(b"plain text pretending to be a photo " * 3).decode("ascii"),
        "data:text/plain;base64,aGVsbG8=",
        "data:image/png,rawbytes",
    ],
)
async def test_undecodable_sources_raise(source):
    with pytest.raises(ImageProcessingError):
        await fetch_image(source)


@pytest.mark.asyncio
async def test_oversized_payload_rejected(png_base64):
    with pytest.raises(ImageProcessingError):
        await fetch_image(png_base64, settings=PipelineSettings(image_max_bytes=40))


@pytest.mark.asyncio
@pytest.mark.parametrize("size", [(64, 48), (3000, 1500)])
async def test_decoded_images_are_closed(monkeypatch, size):
    opened = []
    real_open = Image.open

    def tracking_open(fp, *args, **kwargs):
        img = real_open(fp, *args, **kwargs)
        opened.append(img)
        return img

    monkeypatch.setattr(Image, "open", tracking_open)
    image = await fetch_image(base64.b64encode(_png(size)).decode("ascii"), settings=PipelineSettings())

    assert max(image.width, image.height) <= PipelineSettings().image_max_edge
    assert len(opened) == 2
    assert all(img.fp is None for img in opened)
