# generators/prompt_manager.py
"""Caption prompt assembly.

Every pipeline shares one prompt layout; only the grounding fragment differs
between image, text and rewrite requests. The HINT section, when present, is
always the last block so retries change nothing else.
"""

import json
from typing import Optional

from models import GenerationRequest, ImageFacts, Platform, PromotionMode
from personas.voice_guides import build_voice_guide_block

SYSTEM_GUARD = (
    "You write social media captions for an adult content creator's public channels. "
    "Captions must be platform-safe unless NSFW is explicitly allowed below. "
    "Describe only what you are told; never invent people, places or events."
)

PLATFORM_RULES = {
    Platform.INSTAGRAM: "Instagram: 1-3 short lines, hook in the first line, at most 2200 characters.",
    Platform.X: "X: one tight line, the whole post (caption plus hashtags) must fit in 280 characters.",
    Platform.REDDIT: "Reddit: conversational, no hashtags, read like a real poster, not a brand.",
    Platform.TIKTOK: "TikTok: punchy hook, casual tone, at most 2200 characters.",
}

FIELD_FORMAT = (
    'Return a JSON array of {count} objects, each with exactly these keys: '
    '"caption" (string), "alt" (string, a literal image description that differs from the caption), '
    '"hashtags" (array of strings matching #[A-Za-z0-9]+, no duplicates), '
    '"cta" (string, may be empty), "mood" (string), "style" (string), '
    '"safety_level" ("normal" | "spicy_safe" | "unsafe"), "nsfw" (boolean). '
    'If your output must be an object, wrap the array as {{"variants": [...]}}.'
)


class ImageGrounding:
    def __init__(self, facts: ImageFacts):
        self.facts = facts

    def build_grounding_fragment(self) -> str:
        return (
            "IMAGE_FACTS (ground every caption in these; do not add details that are not listed):\n"
            + json.dumps(self.facts, sort_keys=True, ensure_ascii=False)
        )


class TextGrounding:
    def __init__(self, theme: str, context: Optional[str] = None):
        self.theme = theme
        self.context = context

    def build_grounding_fragment(self) -> str:
        lines = [f"THEME: {self.theme.strip()}"]
        if self.context and self.context.strip():
            lines.append(f"CONTEXT: {self.context.strip()}")
        lines.append("No image is attached; write from the theme alone.")
        return "\n".join(lines)


class RewriteGrounding:
    def __init__(self, existing_caption: str, facts: Optional[ImageFacts] = None):
        self.existing_caption = existing_caption
        self.facts = facts

    def build_grounding_fragment(self) -> str:
        lines = [
            f"EXISTING_CAPTION: {self.existing_caption.strip()}",
            "Rewrite it in the requested voice. Keep the meaning, change the wording noticeably.",
        ]
        if self.facts:
            lines.append(
                "IMAGE_FACTS (stay consistent with these): "
                + json.dumps(self.facts, sort_keys=True, ensure_ascii=False)
            )
        return "\n".join(lines)


def promotion_instruction(mode: PromotionMode, promotion_url: Optional[str]) -> str:
    if mode == PromotionMode.EXPLICIT:
        return (
            f"PROMOTION: explicit. Every variant must include this exact link in the caption or cta: "
            f"{promotion_url}"
        )
    if mode == PromotionMode.SUBTLE:
        return "PROMOTION: subtle. A soft call to action is fine (e.g. 'more on my page'); no raw links."
    return (
        "PROMOTION: none. Do not mention links, 'link in bio', subscription sites "
        "or any external profile."
    )


def hashtag_policy(request: GenerationRequest) -> str:
    if not request.include_hashtags or request.platform == Platform.REDDIT:
        return "HASHTAGS: return an empty hashtags array."
    if request.platform == Platform.X:
        return "HASHTAGS: at most 2 specific tags."
    return "HASHTAGS: 3-8 specific tags tied to the content; no generic filler like #love or #instagood."


def build_caption_prompt(
    request: GenerationRequest,
    grounding,
    *,
    variant_count: int = 5,
    promotion_url: Optional[str] = None,
    hint: Optional[str] = None,
) -> str:
    sections = [
        SYSTEM_GUARD,
        f"PLATFORM: {request.platform.value}",
        f"VOICE: {request.voice}",
    ]
    guide = build_voice_guide_block(request.voice)
    if guide:
        sections.append(guide)
    sections += [
        f"STYLE: {request.style}",
        f"MOOD: {request.mood}",
        grounding.build_grounding_fragment(),
        f"NSFW: {'allowed' if request.nsfw else 'not allowed; keep every variant safe for work'}",
        promotion_instruction(request.promotion_mode, promotion_url),
        f"PLATFORM_RULES: {PLATFORM_RULES[request.platform]}",
        hashtag_policy(request),
        FIELD_FORMAT.format(count=variant_count),
    ]
    if hint:
        sections.append(f"HINT: {hint}")
    return "\n\n".join(sections)
