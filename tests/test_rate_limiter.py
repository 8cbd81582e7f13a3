"""
Unit tests for the token-bucket RateLimiter.

Tests: burst admission, refill delay, capacity ceiling, timeout,
       concurrent waiters, FIFO admission.
"""

import asyncio
import time

import pytest

from kitecli.broker.errors import RateLimitTimeout
from kitecli.broker.rate_limiter import RateLimiter


class FakeClock:
    """Monotonic clock that only moves when a waiter sleeps."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(rate=3, timeout=30.0, poll_interval=0.1, clock=clock, sleep=clock.sleep)


class TestBurst:
    @pytest.mark.asyncio
    async def test_three_concurrent_acquires_are_immediate_fourth_waits(self):
        limiter = RateLimiter(rate=3, timeout=5.0, poll_interval=0.01)
        start = time.monotonic()

        async def timed_acquire():
            await limiter.acquire()
            return time.monotonic() - start

        results = await asyncio.gather(*(timed_acquire() for _ in range(4)))

        assert all(elapsed < 0.1 for elapsed in results[:3])
        assert results[3] >= 0.3

    @pytest.mark.asyncio
    async def test_capacity_available_without_sleeping(self, limiter, clock):
        for _ in range(3):
            await limiter.acquire()
        assert clock.now == 1000.0


class TestBucketState:
    def test_credits_never_exceed_capacity(self, limiter, clock):
        clock.now += 3600
        assert limiter.available == 3.0

    def test_credits_never_negative(self, limiter):
        for _ in range(3):
            assert limiter.try_acquire() is True
        assert limiter.try_acquire() is False
        assert 0.0 <= limiter.available < 1.0

    def test_continuous_refill(self, limiter, clock):
        for _ in range(3):
            limiter.try_acquire()
        clock.now += 1 / 3
        assert limiter.available == pytest.approx(1.0)
        assert limiter.try_acquire() is True

    def test_invalid_rate(self):
        with pytest.raises(ValueError):
            RateLimiter(rate=-1)


class TestWaiting:
    @pytest.mark.asyncio
    async def test_fourth_call_waits_for_refill(self, limiter, clock):
        for _ in range(3):
            await limiter.acquire()
        await limiter.acquire()
        waited = clock.now - 1000.0
        assert 1 / 3 <= waited < 1 / 3 + 0.1 + 1e-9

    @pytest.mark.asyncio
    async def test_timeout_when_no_credit_frees(self, clock):
        limiter = RateLimiter(rate=1, timeout=0.5, poll_interval=0.1, clock=clock, sleep=clock.sleep)
        await limiter.acquire()

        with pytest.raises(RateLimitTimeout, match="Rate limit timeout"):
            await limiter.acquire()
        assert clock.now - 1000.0 == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_many_concurrent_callers_all_admitted(self, limiter, clock):
        await asyncio.gather(*(limiter.acquire() for _ in range(10)))
        # 7 callers beyond the burst need 7/3s of refill, rounded up to the poll grid
        elapsed = clock.now - 1000.0
        assert 7 / 3 <= elapsed <= 7 / 3 + 0.2

    @pytest.mark.asyncio
    async def test_waiters_admitted_in_arrival_order(self, limiter):
        admitted = []

        async def worker(i):
            await limiter.acquire()
            admitted.append(i)

        await asyncio.gather(*(worker(i) for i in range(8)))
        assert admitted == list(range(8))
