import asyncio

import pytest

from allergen_bot.errors import AnalysisCancelled
from allergen_bot.retry import retry_with_backoff


class FakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def flaky(failures: int, value: str = "ok", exc_type: type = RuntimeError):
    calls = {"n": 0}

    async def _operation() -> str:
        calls["n"] += 1
        if calls["n"] <= failures:
            raise exc_type(f"failure {calls['n']}")
        return value

    return _operation, calls


async def test_success_on_first_attempt_never_sleeps():
    sleep = FakeSleep()
    operation, calls = flaky(0)

    assert await retry_with_backoff(operation, sleep=sleep) == "ok"
    assert calls["n"] == 1
    assert sleep.delays == []


async def test_two_failures_then_success_waits_one_then_two_seconds():
    sleep = FakeSleep()
    operation, calls = flaky(2, value="verdict")

    result = await retry_with_backoff(operation, 3, sleep=sleep)

    assert result == "verdict"
    assert calls["n"] == 3
    assert sleep.delays == [1.0, 2.0]


async def test_always_failing_propagates_last_error_after_two_delays():
    sleep = FakeSleep()
    boom = ValueError("provider down")

    async def operation():
        raise boom

    with pytest.raises(ValueError) as info:
        await retry_with_backoff(operation, 3, sleep=sleep)

    assert info.value is boom
    assert sleep.delays == [1.0, 2.0]


async def test_delays_follow_configured_base():
    sleep = FakeSleep()
    operation, _ = flaky(3)

    await retry_with_backoff(operation, 4, sleep=sleep, base_delay=0.5)

    assert sleep.delays == [0.5, 1.0, 2.0]


async def test_single_attempt_does_not_retry():
    sleep = FakeSleep()
    operation, calls = flaky(1)

    with pytest.raises(RuntimeError):
        await retry_with_backoff(operation, 1, sleep=sleep)

    assert calls["n"] == 1
    assert sleep.delays == []


async def test_cancel_already_set_stops_before_retry():
    sleep = FakeSleep()
    cancel = asyncio.Event()
    cancel.set()
    operation, calls = flaky(2)

    with pytest.raises(AnalysisCancelled):
        await retry_with_backoff(operation, 3, cancel=cancel, sleep=sleep)

    assert calls["n"] == 1
    assert sleep.delays == []


async def test_cancel_during_wait_aborts_pending_sleep():
    cancel = asyncio.Event()
    operation, calls = flaky(2)

    async def slow_sleep(seconds: float) -> None:
        await asyncio.sleep(60)

    task = asyncio.create_task(retry_with_backoff(operation, 3, cancel=cancel, sleep=slow_sleep))
    await asyncio.sleep(0.05)
    cancel.set()

    with pytest.raises(AnalysisCancelled):
        await asyncio.wait_for(task, timeout=1)
    assert calls["n"] == 1


async def test_unset_cancel_token_lets_retries_complete():
    sleep = FakeSleep()
    operation, _ = flaky(1)

    assert await retry_with_backoff(operation, 3, cancel=asyncio.Event(), sleep=sleep) == "ok"
    assert sleep.delays == [1.0]


async def test_failing_sleep_surfaces_when_cancel_token_given():
    async def broken_sleep(seconds: float) -> None:
        raise OSError("clock unavailable")

    operation, calls = flaky(1)

    with pytest.raises(OSError, match="clock unavailable"):
        await retry_with_backoff(operation, 3, cancel=asyncio.Event(), sleep=broken_sleep)

    assert calls["n"] == 1
