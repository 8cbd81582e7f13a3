"""
Token-bucket rate limiter shared by every outbound Kite Connect call.

Kite Connect allows 3 requests per second. The bucket holds up to
``rate`` credits and refills continuously at ``rate`` credits/second.
Bursts are smoothed rather than rejected: callers wait for a credit and
only fail with ``RateLimitTimeout`` once the bounded wait elapses.

Usage::

    limiter = RateLimiter()          # 3 req/s, 30s max wait
    await limiter.acquire()          # before each HTTP request
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Awaitable, Callable

from kitecli.broker.errors import RateLimitTimeout
from kitecli.config import settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """Continuous-refill token bucket.

    Refill and decrement happen together under a lock, so concurrent
    callers can never overdraw the bucket. Callers that find the bucket
    empty queue on a FIFO ``asyncio.Lock`` and poll at a fixed interval,
    which keeps admission roughly first-come-first-served.
    """

    def __init__(
        self,
        rate: int | None = None,
        timeout: float | None = None,
        poll_interval: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.rate = rate or settings.rate_limit_per_second
        if self.rate <= 0:
            raise ValueError(f"rate must be positive, got {self.rate}")
        self.capacity = float(self.rate)
        self.timeout = settings.rate_limit_timeout_seconds if timeout is None else timeout
        self.poll_interval = (
            settings.rate_limit_poll_seconds if poll_interval is None else poll_interval
        )
        self._clock = clock
        self._sleep = sleep

        self._credits = self.capacity
        self._last_refill = clock()
        self._state_lock = threading.Lock()
        self._queue: asyncio.Lock | None = None
        self._waiting = 0

    # ── Bucket state ───────────────────────────────────────────────────────

    def _refill(self, now: float) -> None:
        elapsed = max(0.0, now - self._last_refill)
        self._credits = min(self.capacity, self._credits + elapsed * self.rate)
        self._last_refill = now

    def try_acquire(self) -> bool:
        """Take one credit if available, without waiting."""
        with self._state_lock:
            self._refill(self._clock())
            if self._credits >= 1.0:
                self._credits -= 1.0
                return True
            return False

    @property
    def available(self) -> float:
        """Credits currently in the bucket (after lazy refill)."""
        with self._state_lock:
            self._refill(self._clock())
            return self._credits

    # ── Waiting ────────────────────────────────────────────────────────────

    def _queue_lock(self) -> asyncio.Lock:
        if self._queue is None:
            self._queue = asyncio.Lock()
        return self._queue

    async def acquire(self) -> None:
        """Wait for a credit.

        Raises:
            RateLimitTimeout: No credit became available within ``timeout``.
        """
        if self._waiting == 0 and self.try_acquire():
            return

        deadline = self._clock() + self.timeout
        queue = self._queue_lock()
        self._waiting += 1
        try:
            try:
                await asyncio.wait_for(queue.acquire(), timeout=max(0.0, self.timeout))
            except asyncio.TimeoutError:
                raise self._timeout_error() from None
            try:
                while not self.try_acquire():
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        raise self._timeout_error()
                    await self._sleep(min(self.poll_interval, remaining))
            finally:
                queue.release()
        finally:
            self._waiting -= 1

    def _timeout_error(self) -> RateLimitTimeout:
        logger.warning(
            "Rate limiter wait exceeded %.1fs (rate=%d/s, waiting=%d)",
            self.timeout,
            self.rate,
            self._waiting,
        )
        return RateLimitTimeout(
            f"Rate limit timeout: waited more than {self.timeout:g} seconds for a request slot"
        )
