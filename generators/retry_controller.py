# generators/retry_controller.py
"""Bounded generate → validate → hint loop."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Sequence

from core.errors import GenerationFailedError, InferenceTimeout
from core.logger import get_logger
from generators.caption_schema import ValidationReport

log = get_logger("RetryController")

_CONTROL_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f]")
MAX_HINT_ERRORS = 6
MAX_ERROR_CHARS = 200

AttemptFn = Callable[[Optional[str]], Awaitable[ValidationReport]]


class AttemptState(str, Enum):
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    RETRYING = "retrying"
    EXHAUSTED = "exhausted"


@dataclass
class RetryOutcome:
    report: ValidationReport
    attempts: int
    hints: List[Optional[str]] = field(default_factory=list)


def build_hint(errors: Sequence[str]) -> str:
    """Turn validation errors into a short repair instruction for the next attempt."""

    seen = set()
    lines = []
    for raw in errors:
        text = _CONTROL_RE.sub(" ", str(raw)).replace("\n", " ").strip()
        if len(text) > MAX_ERROR_CHARS:
            text = text[: MAX_ERROR_CHARS - 3] + "..."
        if not text or text in seen:
            continue
        seen.add(text)
        lines.append(f"- {text}")
        if len(lines) == MAX_HINT_ERRORS:
            break
    if not lines:
        lines.append("- the previous response contained no usable variants")
    return (
        "Your previous response was rejected. Fix these problems and return the complete "
        "JSON array again:\n" + "\n".join(lines)
    )


class RetryController:
    def __init__(self, max_attempts: int = 3, timeout: Optional[float] = 30.0):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.state = AttemptState.ATTEMPTING
        self.transitions: List[AttemptState] = []

    def _move(self, state: AttemptState) -> None:
        self.state = state
        self.transitions.append(state)

    async def _attempt(self, attempt_fn: AttemptFn, hint: Optional[str]) -> ValidationReport:
        try:
            if self.timeout:
                return await asyncio.wait_for(attempt_fn(hint), timeout=self.timeout)
            return await attempt_fn(hint)
        except (asyncio.TimeoutError, InferenceTimeout) as exc:
            # timeout=None means the provider's own timeout fired
            waited = f"within {self.timeout:g}s" if self.timeout else "in time"
            log.warning(f"Inference call did not answer {waited} ({exc.__class__.__name__})")
            return ValidationReport(
                errors=[f"the model did not answer {waited}; answer faster with the JSON only"]
            )

    async def run(self, attempt_fn: AttemptFn) -> RetryOutcome:
        """Call ``attempt_fn(hint)`` until it yields a valid candidate or the budget runs out.

        Quota, model and network errors raised by ``attempt_fn`` are not caught.
        """

        hint: Optional[str] = None
        hints: List[Optional[str]] = []
        errors: List[str] = []

        for attempt in range(1, self.max_attempts + 1):
            self._move(AttemptState.ATTEMPTING)
            hints.append(hint)
            report = await self._attempt(attempt_fn, hint)

            if report.ok:
                self._move(AttemptState.SUCCESS)
                log.info(
                    f"Attempt {attempt}/{self.max_attempts} produced {len(report.valid)} valid variant(s)"
                )
                return RetryOutcome(report=report, attempts=attempt, hints=hints)

            errors = list(report.errors)
            log.warning(f"Attempt {attempt}/{self.max_attempts} rejected: {'; '.join(errors[:3])}")
            if attempt < self.max_attempts:
                self._move(AttemptState.RETRYING)
                hint = build_hint(errors)

        self._move(AttemptState.EXHAUSTED)
        log.error(f"Giving up after {self.max_attempts} attempt(s)")
        raise GenerationFailedError(errors, self.max_attempts)
