# tests/test_rate_limiter.py
"""
RateLimiter: pacing, backoff, priority ordering, timeouts and queue clearing.

A fake clock advances only when the limiter sleeps, so spacing assertions
are exact and the suite never waits in real time.
"""
from __future__ import annotations

import asyncio
from typing import List

import pytest

from gigcrawler.errors import RateLimitTimeoutError, RequestCancelledError
from gigcrawler.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.t = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.t

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        await asyncio.sleep(0)
        self.t += seconds


def _limiter(clock: FakeClock, **overrides) -> RateLimiter:
    params = dict(
        max_concurrent=3,
        requests_per_second=2,
        min_delay_s=0.5,
        max_delay_s=10.0,
        backoff_multiplier=2.0,
        default_timeout_s=30.0,
        clock=clock,
        sleep=clock.sleep,
    )
    params.update(overrides)
    return RateLimiter(**params)


class Boom(Exception):
    pass


async def _fail() -> None:
    raise Boom("nope")


# ---------------------------------------------------------------------------
# Pacing + backoff
# ---------------------------------------------------------------------------

class TestPacing:
    def test_starts_are_spaced(self):
        clock = FakeClock()
        limiter = _limiter(clock)
        starts: List[float] = []

        async def task():
            starts.append(clock())
            return len(starts)

        async def scenario():
            return await asyncio.gather(*(limiter.execute(task) for _ in range(3)))

        results = asyncio.run(scenario())

        assert sorted(results) == [1, 2, 3]
        assert len(starts) == 3
        for a, b in zip(starts, starts[1:]):
            assert b - a >= 0.5

    def test_first_delay_is_min_delay(self):
        clock = FakeClock()
        limiter = _limiter(clock)
        assert limiter.calculate_delay() == 0.5

    def test_backoff_after_three_failures(self):
        clock = FakeClock()
        limiter = _limiter(clock)

        async def scenario():
            for _ in range(3):
                with pytest.raises(Boom):
                    await limiter.execute(_fail, domain="example.com")

        asyncio.run(scenario())

        assert limiter.get_stats().consecutive_errors == 3
        assert limiter.calculate_delay("example.com") >= 2.0

    def test_backoff_is_capped(self):
        clock = FakeClock()
        limiter = _limiter(clock)

        async def scenario():
            for _ in range(8):
                with pytest.raises(Boom):
                    await limiter.execute(_fail)

        asyncio.run(scenario())
        assert limiter.calculate_delay() == 10.0

    def test_success_resets_consecutive_errors(self):
        clock = FakeClock()
        limiter = _limiter(clock)

        async def ok():
            return "ok"

        async def scenario():
            with pytest.raises(Boom):
                await limiter.execute(_fail, domain="a")
            return await limiter.execute(ok, domain="a")

        assert asyncio.run(scenario()) == "ok"
        stats = limiter.get_stats()
        assert stats.consecutive_errors == 0
        assert stats.domains["a"].requests == 2
        assert stats.domains["a"].errors == 1
        assert stats.domains["a"].success_rate == 50.0

    def test_reset_errors(self):
        clock = FakeClock()
        limiter = _limiter(clock)

        async def scenario():
            for _ in range(2):
                with pytest.raises(Boom):
                    await limiter.execute(_fail, domain="a")

        asyncio.run(scenario())
        limiter.reset_errors("a")
        assert limiter.get_stats().domains["a"].consecutive_errors == 0
        assert limiter.get_stats().consecutive_errors == 2

        limiter.reset_errors()
        assert limiter.get_stats().consecutive_errors == 0


# ---------------------------------------------------------------------------
# Queue behaviour
# ---------------------------------------------------------------------------

class TestQueue:
    def test_priority_then_fifo(self):
        clock = FakeClock()
        limiter = _limiter(clock, max_concurrent=1)
        order: List[str] = []

        def make(name: str):
            async def task():
                order.append(name)
                return name
            return task

        async def scenario():
            await asyncio.gather(
                limiter.execute(make("a"), priority=0),
                limiter.execute(make("b"), priority=0),
                limiter.execute(make("c"), priority=5),
                limiter.execute(make("d"), priority=0),
            )

        asyncio.run(scenario())
        assert order == ["a", "c", "b", "d"]

    def test_concurrency_cap(self):
        clock = FakeClock()
        limiter = _limiter(clock, max_concurrent=2)
        peak = 0

        async def task():
            nonlocal peak
            peak = max(peak, limiter.active_requests)
            await asyncio.sleep(0)
            return True

        async def scenario():
            await asyncio.gather(*(limiter.execute(task) for _ in range(5)))

        asyncio.run(scenario())
        assert 1 <= peak <= 2
        assert limiter.active_requests == 0

    def test_active_count_released_on_error(self):
        clock = FakeClock()
        limiter = _limiter(clock)

        async def scenario():
            with pytest.raises(Boom):
                await limiter.execute(_fail)

        asyncio.run(scenario())
        assert limiter.active_requests == 0
        assert limiter.queue_length == 0

    def test_clear_queue_rejects_pending(self):
        clock = FakeClock()
        limiter = _limiter(clock, max_concurrent=1)

        async def scenario():
            gate = asyncio.Event()

            async def blocker():
                await gate.wait()
                return "first"

            async def other():
                return "other"

            first = asyncio.ensure_future(limiter.execute(blocker))
            second = asyncio.ensure_future(limiter.execute(other))
            third = asyncio.ensure_future(limiter.execute(other))
            for _ in range(3):
                await asyncio.sleep(0)

            cleared = limiter.clear_queue()
            gate.set()
            results = await asyncio.gather(first, second, third, return_exceptions=True)
            return cleared, results

        cleared, results = asyncio.run(scenario())

        assert cleared == 2
        assert results[0] == "first"
        assert isinstance(results[1], RequestCancelledError)
        assert isinstance(results[2], RequestCancelledError)
        assert limiter.queue_length == 0


# ---------------------------------------------------------------------------
# Timeout
# ---------------------------------------------------------------------------

def test_task_timeout():
    clock = FakeClock()
    limiter = _limiter(clock)

    async def slow():
        await asyncio.sleep(5)

    async def scenario():
        with pytest.raises(RateLimitTimeoutError) as exc:
            await limiter.execute(slow, domain="slow.example", timeout_s=0.01)
        return exc.value

    err = asyncio.run(scenario())
    assert err.domain == "slow.example"
    assert isinstance(err, TimeoutError)
    assert limiter.active_requests == 0
    assert limiter.get_stats().domains["slow.example"].errors == 1


def test_task_raising_timeout_error_is_not_rewrapped():
    clock = FakeClock()
    limiter = _limiter(clock)

    async def task():
        raise TimeoutError("upstream")

    async def scenario():
        with pytest.raises(TimeoutError) as exc:
            await limiter.execute(task)
        return exc.value

    err = asyncio.run(scenario())
    assert not isinstance(err, RateLimitTimeoutError)


@pytest.mark.parametrize("kwargs", [{"max_concurrent": 0}, {"requests_per_second": 0}])
def test_rejects_bad_parameters(kwargs):
    with pytest.raises(ValueError):
        RateLimiter(**kwargs)
