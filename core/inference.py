# core/inference.py
"""Inference capability used by every generation step.

The pipeline only ever sees ``complete(prompt, response_format=..., image=...)``.
Vendor SDK exceptions are translated here into the core error taxonomy so the
retry loop can tell "try again with a hint" apart from "stop, quota is gone".
"""

from __future__ import annotations

import base64
from typing import TYPE_CHECKING, Optional, Protocol

import httpx
import openai
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from openai import AsyncOpenAI

from core.config import Config
from core.errors import InferenceTimeout, ModelUnavailable, NetworkError, QuotaExceeded
from core.logger import get_logger

if TYPE_CHECKING:  # pragma: no cover - typing only
    from generators.image_fetcher import FetchedImage

log = get_logger("Inference")

JSON_ONLY_INSTRUCTION = "Respond with valid JSON only. No markdown, no commentary."


class InferenceClient(Protocol):
    provider: str

    async def complete(
        self,
        prompt: str,
        *,
        response_format: str = "json",
        image: Optional["FetchedImage"] = None,
    ) -> str:
        ...


class OpenAIInference:
    provider = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.model = model or Config.OPENAI_TEXT_MODEL
        if client is None:
            key = api_key or Config.OPENAI_API_KEY
            if not key:
                raise ModelUnavailable("OPENAI_API_KEY missing; OpenAI inference unavailable")
            # SDK-level retries would silently retry quota errors.
            client = AsyncOpenAI(api_key=key, max_retries=0)
        self._client = client

    async def complete(self, prompt, *, response_format="json", image=None) -> str:
        if image is not None:
            encoded = base64.b64encode(image.data).decode("ascii")
            user_content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": f"data:{image.mime_type};base64,{encoded}"}},
            ]
        else:
            user_content = prompt

        messages = []
        kwargs = {}
        if response_format == "json":
            messages.append({"role": "system", "content": JSON_ONLY_INSTRUCTION})
            kwargs["response_format"] = {"type": "json_object"}
        messages.append({"role": "user", "content": user_content})

        try:
            res = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0.8,
                **kwargs,
            )
        except openai.RateLimitError as exc:
            raise QuotaExceeded(f"OpenAI rate limit or quota exceeded: {exc}") from exc
        except openai.APITimeoutError as exc:
            raise InferenceTimeout(f"OpenAI request timed out: {exc}") from exc
        except openai.APIConnectionError as exc:
            raise NetworkError(f"OpenAI connection failed: {exc}") from exc
        except (openai.AuthenticationError, openai.PermissionDeniedError, openai.NotFoundError) as exc:
            raise ModelUnavailable(f"OpenAI model {self.model} unavailable: {exc}") from exc
        except openai.APIStatusError as exc:
            if exc.status_code == 402:
                raise QuotaExceeded(f"OpenAI billing limit reached: {exc}") from exc
            raise ModelUnavailable(f"OpenAI returned HTTP {exc.status_code}: {exc}") from exc

        if not res.choices:
            return ""
        return (res.choices[0].message.content or "").strip()


class GeminiInference:
    provider = "gemini"

    def __init__(
        self,
        api_key: Optional[str] = None,
        text_model: Optional[str] = None,
        vision_model: Optional[str] = None,
        client: Optional[genai.Client] = None,
    ):
        self.text_model = text_model or Config.GEMINI_TEXT_MODEL
        self.vision_model = vision_model or Config.GEMINI_VISION_MODEL
        if client is None:
            key = api_key or Config.GEMINI_API_KEY
            if not key:
                raise ModelUnavailable("GEMINI_API_KEY missing; Gemini inference unavailable")
            client = genai.Client(api_key=key)
        self._client = client

    async def complete(self, prompt, *, response_format="json", image=None) -> str:
        contents: list = [prompt]
        model = self.text_model
        if image is not None:
            contents.append(genai_types.Part.from_bytes(data=image.data, mime_type=image.mime_type))
            model = self.vision_model

        config = None
        if response_format == "json":
            config = genai_types.GenerateContentConfig(response_mime_type="application/json")

        try:
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except genai_errors.ClientError as exc:
            if exc.code == 429:
                raise QuotaExceeded(f"Gemini quota exceeded: {exc}") from exc
            raise ModelUnavailable(f"Gemini model {model} rejected the call (HTTP {exc.code}): {exc}") from exc
        except genai_errors.ServerError as exc:
            raise ModelUnavailable(f"Gemini model {model} unavailable (HTTP {exc.code}): {exc}") from exc
        except httpx.TimeoutException as exc:
            raise InferenceTimeout(f"Gemini request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"Gemini connection failed: {exc}") from exc

        return (response.text or "").strip()


def build_inference(provider: Optional[str] = None) -> InferenceClient:
    """Return the configured inference client, preferring Gemini."""

    choice = (provider or Config.CAPTION_PROVIDER or "gemini").lower()
    if choice == "openai":
        return OpenAIInference()
    if choice == "gemini":
        if Config.GEMINI_API_KEY:
            return GeminiInference()
        if Config.OPENAI_API_KEY:
            log.warning("GEMINI_API_KEY missing; using OpenAI for caption inference.")
            return OpenAIInference()
        raise ModelUnavailable("No inference provider configured (set GEMINI_API_KEY or OPENAI_API_KEY)")
    raise ModelUnavailable(f"Unknown caption provider '{choice}'")


def build_fallback_inference(primary: Optional[InferenceClient] = None) -> Optional[InferenceClient]:
    """Client for the provider ``primary`` is not, or None when that one has no key.

    With no ``primary`` the client ``build_inference()`` would pick is assumed.
    """

    current = getattr(primary, "provider", None)
    if current is None:
        current = (Config.CAPTION_PROVIDER or "gemini").lower()
        if current == "gemini" and not Config.GEMINI_API_KEY:
            current = "openai"
    if current == "gemini" and Config.OPENAI_API_KEY:
        return OpenAIInference()
    if current == "openai" and Config.GEMINI_API_KEY:
        return GeminiInference()
    return None
