import base64
import io
import json
import sys
from pathlib import Path

import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.config import PipelineSettings  # noqa: E402

CAPTIONS = [
    "Golden hour on the rooftop and I refuse to go inside yet",
    "New gym playlist unlocked, deadlifts felt effortless today",
    "Rainy Sunday, oversized hoodie, three chapters into a thriller",
    "Tried the corner bakery's pistachio croissant and now I have opinions",
    "Packing for the coast with exactly zero plans beyond sunsets",
]
ALTS = [
    "Woman standing on a rooftop at sunset with the city skyline behind her",
    "Woman in workout clothes lifting a barbell in a bright gym",
    "Person curled up on a sofa in a grey hoodie holding a paperback",
    "Close-up of a green pistachio croissant on a white plate",
    "Open suitcase on a bed with sandals, sunglasses and a straw hat",
]
TAGS = [
    ["#rooftop", "#goldenhour", "#citynights"],
    ["#legday", "#deadlift", "#gymplaylist"],
    ["#rainyday", "#booklover", "#sundayreset"],
    ["#croissant", "#bakerylove", "#pistachio"],
    ["#roadtrip", "#coastbound", "#sunsetchaser"],
]


def candidate_dict(index=0, **overrides):
    data = {
        "caption": CAPTIONS[index],
        "alt": ALTS[index],
        "hashtags": list(TAGS[index]),
        "cta": "What would you do with a free evening?",
        "mood": "dreamy",
        "style": "authentic",
        "safety_level": "normal",
        "nsfw": False,
    }
    data.update(overrides)
    return data


def variants_json(count=5, **overrides):
    return json.dumps([candidate_dict(i, **overrides) for i in range(count)])


class ScriptedInference:
    """Fake inference client: replays scripted replies and records every prompt.

    The last scripted item repeats once the script runs out. Exception
    instances are raised instead of returned.
    """

    provider = "scripted"

    def __init__(self, responses):
        self.responses = list(responses)
        self.prompts = []
        self.images = []

    @property
    def calls(self):
        return len(self.prompts)

    async def complete(self, prompt, *, response_format="json", image=None):
        self.prompts.append(prompt)
        self.images.append(image)
        if not self.responses:
            raise AssertionError("unexpected inference call")
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        return item


class StaticProfiles:
    def __init__(self, url=None):
        self.url = url
        self.lookups = []

    def promotion_url(self, creator_id):
        self.lookups.append(creator_id)
        return self.url


def make_png(size=(64, 48), color=(200, 120, 80)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def settings():
    return PipelineSettings(
        max_attempts=3,
        top_variants=2,
        variant_count=5,
        inference_timeout=5.0,
        image_fetch_timeout=5.0,
    )


@pytest.fixture
def candidate():
    return candidate_dict


@pytest.fixture
def variants():
    return variants_json


@pytest.fixture
def scripted():
    return ScriptedInference


@pytest.fixture
def profiles():
    return StaticProfiles


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def png_base64(png_bytes):
    return base64.b64encode(png_bytes).decode("ascii")
