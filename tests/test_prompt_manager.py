from generators.prompt_manager import (
    ImageGrounding,
    RewriteGrounding,
    TextGrounding,
    build_caption_prompt,
)
from models import GenerationRequest


def test_hint_is_always_last_and_only_difference():
    request = GenerationRequest(theme="beach day", context="first swim of the year")
    grounding = TextGrounding(request.theme, request.context)
    plain = build_caption_prompt(request, grounding)
    hinted = build_caption_prompt(request, grounding, hint="fix the hashtags")
    assert hinted == plain + "\n\nHINT: fix the hashtags"
    assert "CONTEXT: first swim of the year" in plain


def test_unknown_voice_omits_guide_block():
    request = GenerationRequest(theme="t", voice="mystery_voice")
    prompt = build_caption_prompt(request, TextGrounding("t"))
    assert "VOICE: mystery_voice" in prompt
    assert "VOICE_GUIDE:" not in prompt


def test_section_order():
    request = GenerationRequest(theme="t", voice="arts_muse", platform="x")
    prompt = build_caption_prompt(request, TextGrounding("t"), variant_count=4)
    markers = ["PLATFORM: x", "VOICE: arts_muse", "VOICE_GUIDE:", "STYLE:", "MOOD:", "THEME: t", "NSFW:", "PROMOTION:", "PLATFORM_RULES:", "HASHTAGS:"]
    positions = [prompt.index(m) for m in markers]
    assert positions == sorted(positions)
    assert "array of 4 objects" in prompt


def test_promotion_instructions():
    explicit = GenerationRequest(theme="t", promotion_mode="explicit")
    prompt = build_caption_prompt(explicit, TextGrounding("t"), promotion_url="https://example.com/me")
    assert "https://example.com/me" in prompt
    none = build_caption_prompt(GenerationRequest(theme="t"), TextGrounding("t"))
    assert "link in bio" in none


def test_grounding_fragments():
    facts = {"setting": "cafe", "colors": ["red"]}
    assert '"setting": "cafe"' in ImageGrounding(facts).build_grounding_fragment()
    rewrite = RewriteGrounding("old words", facts).build_grounding_fragment()
    assert rewrite.startswith("EXISTING_CAPTION: old words")
    assert "IMAGE_FACTS" in rewrite
    assert "IMAGE_FACTS" not in RewriteGrounding("old words").build_grounding_fragment()
