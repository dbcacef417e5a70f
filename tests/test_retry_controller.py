import asyncio

import pytest

from core.errors import GenerationFailedError, InferenceTimeout, ModelUnavailable, NetworkError, QuotaExceeded
from generators.caption_schema import ValidationReport, parse_candidates
from generators.retry_controller import AttemptState, RetryController, build_hint


def _failing(errors):
    async def attempt(hint):
        attempt.hints.append(hint)
        return ValidationReport(errors=list(errors))

    attempt.hints = []
    return attempt


@pytest.mark.asyncio
async def test_stops_after_exactly_max_attempts():
    attempt = _failing(["variant 1: alt must differ from caption"])
    controller = RetryController(max_attempts=3)
    with pytest.raises(GenerationFailedError) as info:
        await controller.run(attempt)
    assert len(attempt.hints) == 3
    assert info.value.attempts == 3
    assert info.value.errors == ["variant 1: alt must differ from caption"]
    assert controller.state == AttemptState.EXHAUSTED
    assert controller.transitions == [
        AttemptState.ATTEMPTING,
        AttemptState.RETRYING,
        AttemptState.ATTEMPTING,
        AttemptState.RETRYING,
        AttemptState.ATTEMPTING,
        AttemptState.EXHAUSTED,
    ]


@pytest.mark.asyncio
async def test_first_attempt_has_no_hint_and_later_ones_do(variants):
    replies = ["not json", variants(2)]

    async def attempt(hint):
        attempt.hints.append(hint)
        return parse_candidates(replies.pop(0))

    attempt.hints = []
    outcome = await RetryController(max_attempts=3).run(attempt)
    assert outcome.attempts == 2
    assert len(outcome.report.valid) == 2
    assert attempt.hints[0] is None
    assert "not valid JSON" in attempt.hints[1]


@pytest.mark.asyncio
async def test_timeout_counts_as_failed_attempt():
    calls = []

    async def slow(hint):
        calls.append(hint)
        await asyncio.sleep(1)

    with pytest.raises(GenerationFailedError) as info:
        await RetryController(max_attempts=2, timeout=0.01).run(slow)
    assert len(calls) == 2
    assert "did not answer" in info.value.errors[0]


@pytest.mark.asyncio
async def test_provider_timeout_is_also_counted():
    async def attempt(hint):
        attempt.calls += 1
        raise InferenceTimeout("read timeout")

    attempt.calls = 0
    with pytest.raises(GenerationFailedError):
        await RetryController(max_attempts=3).run(attempt)
    assert attempt.calls == 3


@pytest.mark.asyncio
async def test_quota_errors_are_not_retried():
    async def attempt(hint):
        attempt.calls += 1
        raise QuotaExceeded("monthly limit")

    attempt.calls = 0
    with pytest.raises(QuotaExceeded):
        await RetryController(max_attempts=3).run(attempt)
    assert attempt.calls == 1


@pytest.mark.asyncio
async def test_provider_timeout_without_local_timeout_is_counted():
    async def attempt(hint):
        attempt.hints.append(hint)
        raise InferenceTimeout("read timeout")

    attempt.hints = []
    with pytest.raises(GenerationFailedError) as info:
        await RetryController(max_attempts=2, timeout=None).run(attempt)
    assert len(attempt.hints) == 2
    assert "did not answer in time" in info.value.errors[0]
    assert "did not answer in time" in attempt.hints[1]


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [ModelUnavailable("model offline"), NetworkError("connection reset")])
async def test_model_and_network_errors_are_not_retried(error):
    async def attempt(hint):
        attempt.calls += 1
        raise error

    attempt.calls = 0
    controller = RetryController(max_attempts=3)
    with pytest.raises(type(error)):
        await controller.run(attempt)
    assert attempt.calls == 1
    assert controller.transitions == [AttemptState.ATTEMPTING]


@pytest.mark.asyncio
async def test_cancellation_propagates_without_another_attempt():
    started = asyncio.Event()

    async def attempt(hint):
        attempt.calls += 1
        started.set()
        await asyncio.sleep(10)

    attempt.calls = 0
    task = asyncio.create_task(RetryController(max_attempts=3, timeout=None).run(attempt))
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert attempt.calls == 1


def test_hint_dedupes_caps_and_sanitizes():
    errors = ["variant 1: bad\x07 tag"] * 3 + [f"variant {i}: problem" for i in range(10)]
    hint = build_hint(errors)
    bullet_lines = [line for line in hint.splitlines() if line.startswith("- ")]
    assert len(bullet_lines) == 6
    assert bullet_lines[0] == "- variant 1: bad  tag"
    assert "\x07" not in hint


def test_max_attempts_must_be_positive():
    with pytest.raises(ValueError):
        RetryController(max_attempts=0)
