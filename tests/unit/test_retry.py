"""Retry runner tests."""

import pytest

from stackflow.errors import RetryExhaustedError, RetryTimeoutError
from stackflow.utils.retry import RetryOptions, compute_backoff, retry_with_backoff


class _Recorder:
    def __init__(self) -> None:
        self.delays = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)


def test_compute_backoff_grows_and_caps():
    assert compute_backoff(0, 1.0, 2.0, 30.0) == 1.0
    assert compute_backoff(3, 1.0, 2.0, 30.0) == 8.0
    assert compute_backoff(10, 1.0, 2.0, 30.0) == 30.0


def test_compute_backoff_jitter_stays_within_fraction():
    for _ in range(50):
        delay = compute_backoff(1, 1.0, 2.0, 30.0, jitter=0.5)
        assert 2.0 <= delay <= 3.0


@pytest.mark.asyncio
async def test_retry_returns_first_success():
    calls = 0

    async def flaky():
        nonlocal calls
        calls += 1
        if calls < 3:
            raise RuntimeError("flaky")
        return "ok"

    recorder = _Recorder()
    result = await retry_with_backoff(
        flaky, RetryOptions(max_attempts=3, initial_delay=0.5), sleep=recorder.sleep
    )

    assert result == "ok"
    assert calls == 3
    assert recorder.delays == [0.5, 1.0]


@pytest.mark.asyncio
async def test_always_failing_operation_is_invoked_max_attempts_plus_one():
    calls = 0

    async def broken():
        nonlocal calls
        calls += 1
        raise RuntimeError("boom")

    recorder = _Recorder()
    options = RetryOptions(
        max_attempts=3, initial_delay=1.0, max_delay=3.0, operation_name="Delete change set"
    )
    with pytest.raises(RetryExhaustedError) as exc:
        await retry_with_backoff(broken, options, sleep=recorder.sleep)

    assert calls == 4
    assert recorder.delays == [1.0, 2.0, 3.0]
    assert all(a <= b for a, b in zip(recorder.delays, recorder.delays[1:]))
    message = str(exc.value)
    assert "Delete change set" in message
    assert "4 attempts" in message
    assert "boom" in message
    assert isinstance(exc.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_zero_max_attempts_makes_single_call():
    calls = 0

    async def broken():
        nonlocal calls
        calls += 1
        raise ValueError("nope")

    recorder = _Recorder()
    with pytest.raises(RetryExhaustedError):
        await retry_with_backoff(broken, RetryOptions(max_attempts=0), sleep=recorder.sleep)
    assert calls == 1
    assert recorder.delays == []


@pytest.mark.asyncio
async def test_total_timeout_stops_before_next_attempt():
    now = 0.0
    calls = 0

    def clock() -> float:
        return now

    async def sleep(delay: float) -> None:
        nonlocal now
        now += delay

    async def broken():
        nonlocal calls
        calls += 1
        raise RuntimeError("boom")

    options = RetryOptions(
        max_attempts=5,
        initial_delay=2.0,
        backoff_multiplier=1.0,
        total_timeout=3.0,
        operation_name="Cleanup",
    )
    with pytest.raises(RetryTimeoutError) as exc:
        await retry_with_backoff(broken, options, sleep=sleep, clock=clock)

    assert calls == 2
    message = str(exc.value)
    assert "Cleanup timed out after 3.0s on attempt #3/6" in message
    assert "Last error: boom" in message
