# models.py
from __future__ import annotations

import re
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from core.errors import InvalidRequestError

HASHTAG_RE = re.compile(r"^#[A-Za-z0-9]+$")
_WHITESPACE_RE = re.compile(r"\s+")

# Aliases models tend to emit instead of the three canonical levels.
_SAFETY_ALIASES = {
    "safe": "normal",
    "sfw": "normal",
    "safe_for_work": "normal",
    "suggestive": "spicy_safe",
    "spicy": "spicy_safe",
    "spicy-safe": "spicy_safe",
    "nsfw": "unsafe",
    "explicit": "unsafe",
    "needs_review": "unsafe",
}

ImageFacts = Dict[str, Any]


class Platform(str, Enum):
    INSTAGRAM = "instagram"
    X = "x"
    REDDIT = "reddit"
    TIKTOK = "tiktok"


class SafetyLevel(str, Enum):
    NORMAL = "normal"
    SPICY_SAFE = "spicy_safe"
    UNSAFE = "unsafe"


class PromotionMode(str, Enum):
    NONE = "none"
    SUBTLE = "subtle"
    EXPLICIT = "explicit"


class PayloadMode(str, Enum):
    IMAGE = "image"
    TEXT = "text"
    REWRITE = "rewrite"


def normalize_text(value: str) -> str:
    return _WHITESPACE_RE.sub(" ", (value or "").strip()).casefold()


class CaptionCandidate(BaseModel):
    """One generated caption object. Constructing one enforces the validity rules."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    caption: str = Field(min_length=1)
    alt: str = Field(min_length=1)
    hashtags: Tuple[str, ...]
    cta: str
    mood: str
    style: str
    safety_level: SafetyLevel
    nsfw: bool
    titles: Tuple[str, ...] = ()

    @field_validator("caption", "alt", "cta", "mood", "style", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("hashtags", mode="before")
    @classmethod
    def _strip_tags(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return tuple(tag.strip() if isinstance(tag, str) else tag for tag in value)
        return value

    @field_validator("titles", mode="before")
    @classmethod
    def _null_titles(cls, value: Any) -> Any:
        return () if value is None else value

    @field_validator("hashtags")
    @classmethod
    def _check_tags(cls, value: Tuple[str, ...]) -> Tuple[str, ...]:
        seen: set[str] = set()
        for tag in value:
            if not HASHTAG_RE.match(tag):
                raise ValueError(f"hashtag {tag!r} must match #[A-Za-z0-9]+")
            key = tag.lower()
            if key in seen:
                raise ValueError(f"hashtags must not repeat ({tag} appears twice, case-insensitive)")
            seen.add(key)
        return value

    @field_validator("safety_level", mode="before")
    @classmethod
    def _normalize_safety(cls, value: Any) -> Any:
        if isinstance(value, str):
            key = value.strip().lower()
            return _SAFETY_ALIASES.get(key, key)
        return value

    @model_validator(mode="after")
    def _alt_differs(self) -> "CaptionCandidate":
        if normalize_text(self.alt) == normalize_text(self.caption):
            raise ValueError("alt must differ from caption")
        return self


class GenerationRequest(BaseModel):
    """Immutable input for one caption request."""

    model_config = ConfigDict(frozen=True)

    platform: Platform = Platform.INSTAGRAM
    voice: str = "flirty_playful"
    style: str = "authentic"
    mood: str = "engaging"
    nsfw: bool = False
    promotion_mode: PromotionMode = PromotionMode.NONE
    include_hashtags: bool = True

    image_url: Optional[str] = None
    image_base64: Optional[str] = None
    theme: Optional[str] = None
    context: Optional[str] = None
    existing_caption: Optional[str] = None

    creator_id: Optional[str] = None
    promotion_url: Optional[str] = None

    def payload_mode(self) -> PayloadMode:
        """Resolve the payload mode, refusing anything but exactly one."""

        has_image = bool(self.image_url) or bool(self.image_base64)
        has_theme = bool(self.theme and self.theme.strip())
        has_existing = bool(self.existing_caption and self.existing_caption.strip())

        if self.image_url and self.image_base64:
            raise InvalidRequestError("provide image_url or image_base64, not both")
        if self.context and not has_theme:
            raise InvalidRequestError("context is only accepted together with a theme")

        if has_existing:
            if has_theme or self.image_base64:
                raise InvalidRequestError(
                    "rewrite requests take existing_caption and an optional image_url only"
                )
            return PayloadMode.REWRITE
        if has_theme:
            if has_image:
                raise InvalidRequestError("text requests must not carry an image")
            return PayloadMode.TEXT
        if has_image:
            return PayloadMode.IMAGE
        raise InvalidRequestError(
            "request needs exactly one payload: image, theme or existing_caption"
        )

    @property
    def image_source(self) -> Optional[str]:
        return self.image_url or self.image_base64

    def as_text_request(self, theme: str, context: Optional[str] = None) -> "GenerationRequest":
        """Same tone parameters, re-shaped as a text-theme request."""

        return self.model_copy(
            update={
                "image_url": None,
                "image_base64": None,
                "existing_caption": None,
                "theme": theme,
                "context": context,
            }
        )


class RankReason(BaseModel):
    model_config = ConfigDict(frozen=True)

    reason: str


class GenerationResult(BaseModel):
    """What the caller owns after a successful request."""

    model_config = ConfigDict(frozen=True)

    final: CaptionCandidate
    top_variants: Tuple[CaptionCandidate, ...]
    ranked: RankReason
    facts: Optional[ImageFacts] = None
    provider: str
    attempts: int = 1
    fallback: Optional[str] = None


class NsfwFallbackResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    caption: str
    nsfw: bool
    label: Optional[str] = None
    score: float = 0.0
