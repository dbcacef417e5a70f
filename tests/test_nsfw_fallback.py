import httpx
import pytest

from core.config import Config, PipelineSettings
from core.errors import ConfigurationError, NsfwFallbackError
from generators.nsfw_fallback import classify, nsfw_caption_fallback


def _router(nsfw_score, caption="a woman relaxing on a sofa", failures=0):
    state = {"calls": 0, "failures": failures}

    def handler(request):
        state["calls"] += 1
        assert request.headers["authorization"] == "Bearer hf-test"
        if state["failures"]:
            state["failures"] -= 1
            return httpx.Response(503, json={"error": "model loading"})
        if Config.HF_NSFW_MODEL in str(request.url):
            return httpx.Response(
                200,
                json=[{"label": "nsfw", "score": nsfw_score}, {"label": "normal", "score": 1 - nsfw_score}],
            )
        return httpx.Response(200, json=[{"generated_text": caption}])

    return handler, state


async def _run(handler, png_base64, **kwargs):
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        return await nsfw_caption_fallback(
            f"data:image/png;base64,{png_base64}",
            settings=PipelineSettings(),
            client=client,
            token="hf-test",
            backoff=0,
            **kwargs,
        )


@pytest.mark.asyncio
async def test_high_score_gets_prefix(png_base64):
    handler, state = _router(0.87)
    result = await _run(handler, png_base64)
    assert result.caption == "[NSFW] A woman relaxing on a sofa"
    assert result.nsfw is True
    assert result.label == "nsfw"
    assert state["calls"] == 2


@pytest.mark.asyncio
async def test_low_score_is_plain(png_base64):
    handler, _ = _router(0.2)
    result = await _run(handler, png_base64)
    assert result.caption == "A woman relaxing on a sofa"
    assert result.nsfw is False
    assert result.label == "normal"


def test_threshold_is_inclusive():
    assert classify([[{"label": "nsfw", "score": 0.5}, {"label": "normal", "score": 0.5}]], 0.5)[0] is True
    assert classify([{"label": "NSFW", "score": 0.49}, {"label": "normal", "score": 0.51}], 0.5)[0] is False


def test_low_threshold_still_needs_nsfw_as_top_label():
    payload = [{"label": "normal", "score": 0.6}, {"label": "nsfw", "score": 0.4}]
    is_nsfw, label, score = classify(payload, 0.3)
    assert is_nsfw is False
    assert label == "normal"
    assert score == pytest.approx(0.4)
    assert classify([{"label": "nsfw", "score": 0.6}, {"label": "normal", "score": 0.4}], 0.3)[0] is True


@pytest.mark.asyncio
async def test_transient_errors_are_retried(png_base64):
    handler, state = _router(0.9, failures=2)
    result = await _run(handler, png_base64)
    assert result.nsfw is True
    assert state["calls"] == 4


@pytest.mark.asyncio
async def test_exhausted_retries_are_terminal(png_base64):
    handler, state = _router(0.9, failures=100)
    with pytest.raises(NsfwFallbackError):
        await _run(handler, png_base64)
    assert state["calls"] == 4


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(png_base64):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401)

    with pytest.raises(NsfwFallbackError):
        await _run(handler, png_base64)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_unloadable_image_is_terminal():
    with pytest.raises(NsfwFallbackError):
        await nsfw_caption_fallback("data:image/png;base64,AAAA", token="hf-test", backoff=0)


@pytest.mark.asyncio
async def test_missing_token_is_configuration_error(monkeypatch):
    monkeypatch.setattr(Config, "HF_API_TOKEN", "")
    with pytest.raises(ConfigurationError):
        await nsfw_caption_fallback("https://cdn.test/a.png")
