"""
Token bucket limiter for calls to the generation service.

The bucket refills continuously at `rate_per_minute / 60` tokens per second
up to `capacity`. Every generation call takes one token, waiting if none is
available. A single bucket shared by all jobs in a process bounds the total
call rate no matter how many jobs run concurrently.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional

_EPSILON = 1e-9


class TokenBucket:
    """Async token bucket. `clock` and `sleep` are injectable for tests."""

    def __init__(
        self,
        rate_per_minute: float,
        capacity: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        if rate_per_minute <= 0:
            raise ValueError("rate_per_minute must be positive")
        if capacity < 1:
            raise ValueError("capacity must be at least 1")

        self.rate = rate_per_minute / 60.0
        self.capacity = float(capacity)
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._updated = clock()
        self._lock: Optional[asyncio.Lock] = None

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.rate)
        self._updated = now

    @property
    def available(self) -> float:
        self._refill()
        return self._tokens

    async def acquire(self) -> float:
        """
        Take one token, sleeping until one is available.

        Returns:
            Seconds spent waiting
        """
        if self._lock is None:
            self._lock = asyncio.Lock()

        waited = 0.0
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1.0 - _EPSILON:
                    self._tokens = max(0.0, self._tokens - 1.0)
                    return waited
                delay = (1.0 - self._tokens) / self.rate
                await self._sleep(delay)
                waited += delay
