# generators/caption_schema.py
"""Parsing, schema validation and policy screening of model output.

Malformed output is an expected outcome here, not an exceptional one: every
entry point returns a ``ValidationReport`` and never raises for bad JSON or
bad fields. The retry loop turns ``report.errors`` into the next hint.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from difflib import SequenceMatcher
from typing import Any, List, Optional

from pydantic import ValidationError as PydanticValidationError

from models import (
    CaptionCandidate,
    GenerationRequest,
    ImageFacts,
    Platform,
    PromotionMode,
    SafetyLevel,
    normalize_text,
)

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_URL_RE = re.compile(r"(https?://|www\.)\S+", re.IGNORECASE)
_EXTERNAL_PROFILE_RE = re.compile(
    r"\b(link in bio|linktree|onlyfans|fansly|patreon|my (?:page|profile|site))\b",
    re.IGNORECASE,
)
_WRAPPER_KEYS = ("variants", "captions", "candidates", "items")

PLATFORM_CHAR_LIMITS = {
    Platform.X: 280,
    Platform.INSTAGRAM: 2200,
    Platform.TIKTOK: 2200,
    Platform.REDDIT: 10000,
}
X_MAX_HASHTAGS = 2

_WORD_RE = re.compile(r"[a-z0-9']+")
_FACT_STOPWORDS = frozenset({"the", "and", "with", "a", "an", "of", "in", "on", "to", "for", "is", "none"})


@dataclass
class ValidationReport:
    """``positions`` holds the 1-based slot each valid candidate had in the model's array."""

    valid: List[CaptionCandidate] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    positions: List[int] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return len(self.valid) >= 1

    def keep(self, candidate: CaptionCandidate, position: int) -> None:
        self.valid.append(candidate)
        self.positions.append(position)

    def numbered(self):
        """Yield (position, candidate), falling back to list order when positions are missing."""

        for offset, candidate in enumerate(self.valid):
            position = self.positions[offset] if offset < len(self.positions) else offset + 1
            yield position, candidate


def fact_terms(facts: Optional[ImageFacts]) -> set:
    """Content words (lower-cased, >2 chars) found anywhere in the facts dict."""

    terms: set = set()

    def walk(value):
        if isinstance(value, str):
            terms.update(w for w in _WORD_RE.findall(value.casefold()) if len(w) > 2 and w not in _FACT_STOPWORDS)
        elif isinstance(value, dict):
            for item in value.values():
                walk(item)
        elif isinstance(value, (list, tuple)):
            for item in value:
                walk(item)

    walk(facts or {})
    return terms


def extract_json(text: str) -> Any:
    """Pull the JSON payload out of a model reply (fences and prose tolerated)."""

    cleaned = _FENCE_RE.sub("", text or "").strip()
    starts = [i for i in (cleaned.find("["), cleaned.find("{")) if i >= 0]
    end = max(cleaned.rfind("]"), cleaned.rfind("}"))
    if starts and end >= 0:
        cleaned = cleaned[min(starts) : end + 1]
    return json.loads(cleaned)


def _unwrap(payload: Any) -> Any:
    if isinstance(payload, dict):
        for key in _WRAPPER_KEYS:
            if isinstance(payload.get(key), list):
                return payload[key]
        if "caption" in payload:
            return [payload]
        lists = [value for value in payload.values() if isinstance(value, list)]
        if len(lists) == 1:
            return lists[0]
    return payload


def _describe(index: int, exc: PydanticValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        msg = str(err.get("msg", "is invalid"))
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, ") :]
        if err.get("type") == "missing":
            messages.append(f"variant {index}: `{loc}` is required")
        elif loc:
            messages.append(f"variant {index}: `{loc}` {msg}")
        else:
            messages.append(f"variant {index}: {msg}")
    return messages


def validate(candidates: Any) -> ValidationReport:
    """Check every element independently; partial validity is allowed."""

    report = ValidationReport()
    if not isinstance(candidates, list):
        report.errors.append(
            f"expected a JSON array of caption objects, got {type(candidates).__name__}"
        )
        return report
    if not candidates:
        report.errors.append("the JSON array was empty; return caption objects")
        return report

    for index, item in enumerate(candidates, start=1):
        if not isinstance(item, dict):
            report.errors.append(f"variant {index}: expected an object, got {type(item).__name__}")
            continue
        try:
            report.keep(CaptionCandidate.model_validate(item), index)
        except PydanticValidationError as exc:
            report.errors.extend(_describe(index, exc))
    return report


def parse_candidates(raw_text: str) -> ValidationReport:
    """Parse + validate in one fallible step."""

    if not raw_text or not raw_text.strip():
        return ValidationReport(errors=["the response was empty; return a JSON array"])
    try:
        payload = extract_json(raw_text)
    except ValueError as exc:
        return ValidationReport(errors=[f"the response was not valid JSON ({exc.__class__.__name__}: {exc})"])
    return validate(_unwrap(payload))


def check_policy(
    candidate: CaptionCandidate,
    request: GenerationRequest,
    promotion_url: Optional[str] = None,
    facts: Optional[ImageFacts] = None,
) -> List[str]:
    issues: List[str] = []

    if not request.nsfw and (candidate.nsfw or candidate.safety_level == SafetyLevel.UNSAFE):
        issues.append("is marked nsfw/unsafe but the request is SFW")

    terms = fact_terms(facts)
    if terms:
        seen = set(_WORD_RE.findall(f"{candidate.caption} {candidate.alt}".casefold()))
        if not terms & seen:
            issues.append("ignores the image; use concrete nouns from IMAGE_FACTS in the caption or alt")

    text = f"{candidate.caption}\n{candidate.cta}"
    mode = request.promotion_mode
    if mode == PromotionMode.NONE:
        if _URL_RE.search(text) or _EXTERNAL_PROFILE_RE.search(text):
            issues.append("must not reference links or external profiles (promotion mode none)")
    elif mode == PromotionMode.SUBTLE:
        if _URL_RE.search(text):
            issues.append("must not paste raw links (promotion mode subtle allows soft CTAs only)")
    elif mode == PromotionMode.EXPLICIT:
        if not promotion_url or promotion_url.casefold() not in text.casefold():
            issues.append(f"must include the creator link {promotion_url} in the caption or cta")

    limit = PLATFORM_CHAR_LIMITS.get(request.platform)
    if limit:
        length = len(candidate.caption)
        if request.platform == Platform.X and request.include_hashtags:
            length += sum(len(tag) + 1 for tag in candidate.hashtags[:X_MAX_HASHTAGS])
        if length > limit:
            issues.append(f"is {length} characters; {request.platform.value} allows {limit}")

    return issues


def normalize_for_request(candidate: CaptionCandidate, request: GenerationRequest) -> CaptionCandidate:
    if not request.include_hashtags or request.platform == Platform.REDDIT:
        hashtags: tuple = ()
    elif request.platform == Platform.X:
        hashtags = candidate.hashtags[:X_MAX_HASHTAGS]
    else:
        return candidate
    if hashtags == candidate.hashtags:
        return candidate
    return candidate.model_copy(update={"hashtags": hashtags})


def screen(
    report: ValidationReport,
    request: GenerationRequest,
    promotion_url: Optional[str] = None,
    facts: Optional[ImageFacts] = None,
) -> ValidationReport:
    """Apply request policy to schema-valid candidates, keeping model order.

    Pass ``facts`` only for image requests; with facts, a candidate whose
    caption and alt share no word with them is rejected.
    """

    screened = ValidationReport(errors=list(report.errors))
    for index, candidate in report.numbered():
        issues = check_policy(candidate, request, promotion_url, facts)
        if issues:
            screened.errors.extend(f"variant {index}: {issue}" for issue in issues)
            continue
        screened.keep(normalize_for_request(candidate, request), index)
    return screened


_TOKEN_RE = re.compile(r"[a-z0-9']+")
SIMILARITY_RATIO = 0.9
SIMILARITY_JACCARD = 0.82


def _tokens(text: str) -> set:
    return set(_TOKEN_RE.findall(text))


def captions_are_similar(a: str, b: str) -> bool:
    left, right = normalize_text(a), normalize_text(b)
    if not left or not right:
        return False
    if left == right or SequenceMatcher(None, left, right).ratio() > SIMILARITY_RATIO:
        return True
    ta, tb = _tokens(left), _tokens(right)
    if not ta or not tb:
        return False
    return len(ta & tb) / len(ta | tb) > SIMILARITY_JACCARD


def drop_near_duplicates(report: ValidationReport, existing: Optional[str] = None) -> ValidationReport:
    """Keep the first of each group of near-identical captions."""

    kept = ValidationReport(errors=list(report.errors))
    for index, candidate in report.numbered():
        if existing and captions_are_similar(candidate.caption, existing):
            kept.errors.append(f"variant {index}: barely changes the existing caption")
            continue
        if any(captions_are_similar(candidate.caption, prev.caption) for prev in kept.valid):
            kept.errors.append(f"variant {index}: near-duplicate of an earlier variant")
            continue
        kept.keep(candidate, index)
    return kept
