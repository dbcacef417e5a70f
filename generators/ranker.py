# generators/ranker.py
"""Deterministic scoring of validated variants.

No model call here: the same candidates, voice and facts always produce the
same order, so a ranking can be explained and reproduced.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from core.logger import get_logger
from generators.caption_schema import fact_terms
from models import CaptionCandidate, ImageFacts, SafetyLevel, normalize_text
from personas.voice_guides import taboo_phrases

log = get_logger("Ranker")

BASE_SCORE = 10.0
MAX_REASON_CHARS = 240

SPARKLE_PATTERNS = (
    (re.compile(r"check out this amazing content", re.I), "sparkle filler"),
    (re.compile(r"✨\s*enhanced", re.I), "sparkle filler"),
    (re.compile(r"\bliving my best life\b", re.I), "sparkle filler"),
)
CANNED_CTA_RE = re.compile(
    r"check(?:\s+it)?\s+out|click(?:\s+the)?\s+link|learn\s+more|follow\s+for\s+more|"
    r"tap\s+the\s+link|don't\s+miss\s+out|swipe\s+up",
    re.I,
)
GENERIC_HASHTAGS = frozenset(
    {
        "#content", "#creative", "#amazing", "#lifestyle", "#viral", "#follow",
        "#followme", "#instagood", "#like", "#mood", "#vibes", "#love",
    }
)
SPICY_WORDS_RE = re.compile(
    r"\b(sexy|naughty|steamy|spicy|sultry|seductive|lingerie|tease|teasing|thirst\w*)\b",
    re.I,
)
_WORD_RE = re.compile(r"[a-z0-9']+")


@dataclass(frozen=True)
class ScoredCandidate:
    index: int
    candidate: CaptionCandidate
    score: float
    notes: Tuple[str, ...]


@dataclass(frozen=True)
class RankOutcome:
    final: CaptionCandidate
    top_variants: Tuple[CaptionCandidate, ...]
    reason: str
    scored: Tuple[ScoredCandidate, ...] = ()


def score_candidate(
    candidate: CaptionCandidate,
    *,
    voice: Optional[str] = None,
    nsfw: bool = False,
    terms: Iterable[str] = (),
) -> Tuple[float, Tuple[str, ...]]:
    score = BASE_SCORE
    notes: List[str] = []
    text = f"{candidate.caption} {candidate.cta}"
    lowered = normalize_text(text)

    for pattern, label in SPARKLE_PATTERNS:
        if pattern.search(candidate.caption):
            score -= 3.0
            notes.append(label)

    generic = [tag for tag in candidate.hashtags if tag.lower() in GENERIC_HASHTAGS]
    if generic:
        score -= 1.0 * len(generic)
        notes.append(f"generic tags {' '.join(generic)}")

    if candidate.cta and CANNED_CTA_RE.search(candidate.cta):
        score -= 1.5
        notes.append("canned CTA")

    taboo_hits = [p for p in taboo_phrases(voice) if p.casefold() in lowered]
    if taboo_hits:
        score -= 2.0 * len(taboo_hits)
        notes.append(f"off-voice: {', '.join(taboo_hits)}")

    if not nsfw and candidate.safety_level == SafetyLevel.NORMAL and SPICY_WORDS_RE.search(text):
        score -= 2.0
        notes.append("spicy wording in a normal caption")

    if 3 <= len(candidate.hashtags) <= 8:
        score += 1.0
        notes.append("good tag count")

    if len(candidate.alt) >= 20 and len(candidate.alt.split()) >= 4:
        score += 1.0
        notes.append("descriptive alt")

    terms = set(terms)
    if terms:
        covered = terms & set(_WORD_RE.findall(lowered))
        if covered:
            score += min(2.0, 0.5 * len(covered))
            notes.append(f"uses {len(covered)} image fact(s)")

    return score, tuple(notes)


def _reason(best: ScoredCandidate, total: int) -> str:
    detail = "; ".join(best.notes) if best.notes else "no penalties"
    reason = f"Variant {best.index + 1} of {total} scored {best.score:.1f}: {detail}"
    if len(reason) > MAX_REASON_CHARS:
        reason = reason[: MAX_REASON_CHARS - 3] + "..."
    return reason


def rank(
    candidates: Sequence[CaptionCandidate],
    *,
    voice: Optional[str] = None,
    nsfw: bool = False,
    facts: Optional[ImageFacts] = None,
    top_n: int = 2,
) -> RankOutcome:
    if not candidates:
        raise ValueError("rank() needs at least one candidate")

    terms = fact_terms(facts)
    scored = []
    for index, candidate in enumerate(candidates):
        score, notes = score_candidate(candidate, voice=voice, nsfw=nsfw, terms=terms)
        scored.append(ScoredCandidate(index=index, candidate=candidate, score=score, notes=notes))

    # sorted() is stable; the index key makes the tie-break explicit anyway
    ordered = sorted(scored, key=lambda s: (-s.score, s.index))
    top = tuple(s.candidate for s in ordered[: max(1, top_n)])
    outcome = RankOutcome(
        final=top[0],
        top_variants=top,
        reason=_reason(ordered[0], len(candidates)),
        scored=tuple(ordered),
    )
    log.info(outcome.reason)
    return outcome


_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")
_STRIP_RE = re.compile(r"(https?://\S+|www\.\S+|#\w+|@\w+)")
_EMOJI_RE = re.compile(r"[^\w\s'&,:-]", re.UNICODE)
MAX_TITLE_WORDS = 9
MAX_TITLE_CHARS = 64


def _title_from(caption: str) -> Optional[str]:
    first = _SENTENCE_RE.split(caption.strip(), maxsplit=1)[0]
    cleaned = _EMOJI_RE.sub(" ", _STRIP_RE.sub(" ", first))
    words = cleaned.split()[:MAX_TITLE_WORDS]
    if len(words) < 2:
        return None
    title = " ".join(w if w.isupper() else w[:1].upper() + w[1:] for w in words).strip(" ,:-")
    if len(title) > MAX_TITLE_CHARS:
        title = title[:MAX_TITLE_CHARS].rsplit(" ", 1)[0]
    return title or None


def generate_title_candidates(
    final: CaptionCandidate,
    variants: Sequence[CaptionCandidate] = (),
    limit: int = 3,
) -> Tuple[str, ...]:
    titles: List[str] = []
    seen = set()
    for candidate in (final, *variants):
        title = _title_from(candidate.caption)
        if not title or title.casefold() in seen:
            continue
        seen.add(title.casefold())
        titles.append(title)
        if len(titles) == limit:
            break
    return tuple(titles)
