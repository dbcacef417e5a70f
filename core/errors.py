"""Error taxonomy for the caption pipeline.

Rejected model output is not an error here: it travels as a
``ValidationReport`` and feeds the next retry hint. The types below leave
the generation loop unchanged (an ``InferenceTimeout`` inside an attempt
only counts as a failed attempt) so ``core.composer`` or the caller can pick
the user-facing behaviour (retry as text, NSFW fallback, "wait or upgrade"
message, ...).
"""

from __future__ import annotations

from typing import Sequence


class CaptionError(Exception):
    """Base class for everything raised by the caption core."""


class GenerationFailedError(CaptionError):
    """Retry budget exhausted without a single valid candidate."""

    def __init__(self, errors: Sequence[str], attempts: int):
        self.errors = list(errors)
        self.attempts = attempts
        summary = "; ".join(self.errors[:3]) or "no valid candidates"
        super().__init__(f"caption generation failed after {attempts} attempt(s): {summary}")


class ImageProcessingError(CaptionError):
    """The image could not be fetched, decoded or described."""


class InvalidRequestError(CaptionError, ValueError):
    """The request does not carry exactly one payload mode."""


class ConfigurationError(CaptionError):
    """Something the request depends on is not configured (e.g. promotion link)."""


class QuotaExceeded(CaptionError):
    """The inference provider rejected the call for quota or billing reasons."""


class ModelUnavailable(CaptionError):
    """The inference provider or model is down, missing or not configured."""


class NetworkError(CaptionError):
    """Transport-level failure talking to a provider."""


class InferenceTimeout(NetworkError):
    """A single inference call exceeded its time budget."""


class NsfwFallbackError(CaptionError):
    """The degraded NSFW caption path failed; nothing else left to try."""


__all__ = [
    "CaptionError",
    "GenerationFailedError",
    "ImageProcessingError",
    "InvalidRequestError",
    "ConfigurationError",
    "QuotaExceeded",
    "ModelUnavailable",
    "NetworkError",
    "InferenceTimeout",
    "NsfwFallbackError",
]
