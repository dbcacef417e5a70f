import json

import pytest

from core.errors import ImageProcessingError, ModelUnavailable
from generators.fact_extractor import FACTS_PROMPT, extract_facts


@pytest.mark.asyncio
async def test_facts_from_vision_call(scripted, settings, png_base64):
    facts = {"subjects": ["cat"], "setting": "windowsill"}
    inference = scripted(["```json\n" + json.dumps(facts) + "\n```"])
    assert await extract_facts(png_base64, inference=inference, settings=settings) == facts
    assert inference.prompts == [FACTS_PROMPT]
    assert inference.images[0].mime_type == "image/png"


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", ["no idea", "{}", "[1, 2]"])
async def test_unreadable_facts_raise(scripted, settings, png_base64, reply):
    with pytest.raises(ImageProcessingError):
        await extract_facts(png_base64, inference=scripted([reply]), settings=settings)


@pytest.mark.asyncio
async def test_bad_image_never_reaches_model(scripted, settings):
    inference = scripted(["{}"])
    with pytest.raises(ImageProcessingError):
        await extract_facts("data:image/png;base64,AAAA", inference=inference, settings=settings)
    assert inference.calls == 0


@pytest.mark.asyncio
async def test_provider_errors_keep_their_type(scripted, settings, png_base64):
    with pytest.raises(ModelUnavailable):
        await extract_facts(png_base64, inference=scripted([ModelUnavailable("down")]), settings=settings)
