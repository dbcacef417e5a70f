import pytest

from core.config import Config
from core.inference import OpenAIInference, build_fallback_inference


class _Primary:
    def __init__(self, provider):
        self.provider = provider


@pytest.fixture
def keys(monkeypatch):
    def apply(openai_key="", gemini_key="", provider="gemini"):
        monkeypatch.setattr(Config, "OPENAI_API_KEY", openai_key)
        monkeypatch.setattr(Config, "GEMINI_API_KEY", gemini_key)
        monkeypatch.setattr(Config, "CAPTION_PROVIDER", provider)

    return apply


def test_gemini_primary_falls_back_to_openai(keys):
    keys(openai_key="sk-test")
    backup = build_fallback_inference(_Primary("gemini"))
    assert isinstance(backup, OpenAIInference)
    assert backup.provider == "openai"


def test_no_second_key_means_no_fallback(keys):
    keys(gemini_key="g-test")
    assert build_fallback_inference(_Primary("gemini")) is None


def test_unknown_provider_has_no_fallback(keys):
    keys(openai_key="sk-test", gemini_key="g-test")
    assert build_fallback_inference(_Primary("scripted")) is None


def test_default_primary_follows_build_inference_choice(keys):
    # No Gemini key: build_inference() would already be on OpenAI.
    keys(openai_key="sk-test", provider="gemini")
    assert build_fallback_inference() is None
