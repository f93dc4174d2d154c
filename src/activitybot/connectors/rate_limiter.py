"""
Token bucket rate limiter for outbound delivery calls.

Waiters are served strictly in arrival order: a caller that finds tokens
available still queues behind anyone already waiting.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

# Tolerance for float drift after sleeping exactly the computed refill time
_EPSILON = 1e-9

# Floor for sleeps so a waiter never spins
_MIN_SLEEP_S = 0.001


@dataclass
class RateLimiterConfig:
    """Configuration for the token bucket.

    Defaults match the Telegram guidance of roughly one message per second
    to the same chat.
    """

    tokens_per_interval: int = 1
    interval_s: float = 1.0
    bucket_size: int = 1

    def __post_init__(self) -> None:
        if self.tokens_per_interval < 1:
            raise ValueError(f"tokens_per_interval must be >= 1, got {self.tokens_per_interval}")
        if self.interval_s <= 0:
            raise ValueError(f"interval_s must be > 0, got {self.interval_s}")
        if self.bucket_size < 1:
            raise ValueError(f"bucket_size must be >= 1, got {self.bucket_size}")

    @property
    def refill_rate(self) -> float:
        """Tokens added per second."""
        return self.tokens_per_interval / self.interval_s


@dataclass
class RateLimiterMetrics:
    """Counters for limiter observability."""

    acquired_immediately: int = 0
    acquired_deferred: int = 0
    total_wait_s: float = 0.0
    max_wait_s: float = 0.0
    current_queue_depth: int = 0


@dataclass(eq=False)
class _Waiter:
    """Queue entry for a caller waiting on a token. Compared by identity."""

    enqueue_time: float


@dataclass
class RateLimiter:
    """
    Async token bucket with a FIFO wait queue.

    Usage:
        limiter = RateLimiter(RateLimiterConfig(tokens_per_interval=1, interval_s=1.0))
        await limiter.acquire()  # suspends until a token is available
        # ... make the call ...

    Clock and sleep are injectable so tests can drive a fake clock.
    """

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)

    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default=0.0, init=False)
    _queue: deque[_Waiter] = field(default_factory=deque, init=False)

    metrics: RateLimiterMetrics = field(default_factory=RateLimiterMetrics, init=False)

    _time_fn: Callable[[], float] | None = field(default=None)
    _sleep_fn: Callable[[float], Awaitable[None]] | None = field(default=None)

    def __post_init__(self) -> None:
        """Start with a full bucket."""
        self._tokens = float(self.config.bucket_size)
        self._last_refill = self._now()

    def _now(self) -> float:
        if self._time_fn is not None:
            return self._time_fn()
        return time.monotonic()

    async def _sleep(self, delay_s: float) -> None:
        if self._sleep_fn is not None:
            await self._sleep_fn(delay_s)
        else:
            await asyncio.sleep(delay_s)

    def _refill(self, now: float) -> None:
        """Refill tokens based on elapsed time."""
        elapsed = now - self._last_refill
        if elapsed <= 0:
            return
        self._tokens = min(
            self._tokens + elapsed * self.config.refill_rate,
            float(self.config.bucket_size),
        )
        self._last_refill = now

    @property
    def queue_depth(self) -> int:
        return len(self._queue)

    async def acquire(self) -> None:
        """
        Suspend until a token is available, then consume it.

        Cancellation while waiting removes the caller from the queue without
        consuming a token.
        """
        now = self._now()
        self._refill(now)

        if not self._queue and self._tokens >= 1.0 - _EPSILON:
            self._tokens = max(self._tokens - 1.0, 0.0)
            self.metrics.acquired_immediately += 1
            return

        waiter = _Waiter(enqueue_time=now)
        self._queue.append(waiter)
        self.metrics.current_queue_depth = len(self._queue)

        try:
            while True:
                now = self._now()
                self._refill(now)

                position = self._queue.index(waiter)
                if position == 0 and self._tokens >= 1.0 - _EPSILON:
                    self._tokens = max(self._tokens - 1.0, 0.0)
                    self._queue.popleft()
                    waited = now - waiter.enqueue_time
                    self.metrics.acquired_deferred += 1
                    self.metrics.total_wait_s += waited
                    self.metrics.max_wait_s = max(self.metrics.max_wait_s, waited)
                    return

                # Tokens needed before this waiter reaches the front and is served
                needed = position + 1 - self._tokens
                delay = max(needed / self.config.refill_rate, _MIN_SLEEP_S)
                await self._sleep(delay)
        finally:
            if waiter in self._queue:
                self._queue.remove(waiter)
            self.metrics.current_queue_depth = len(self._queue)

    def get_wait_time_s(self) -> float:
        """Seconds until a new caller would be served (0 if immediate)."""
        now = self._now()
        self._refill(now)
        needed = len(self._queue) + 1 - self._tokens
        if needed <= _EPSILON:
            return 0.0
        return needed / self.config.refill_rate

    def get_status(self) -> dict[str, float | int]:
        """Get current limiter status for observability."""
        now = self._now()
        self._refill(now)
        return {
            "available_tokens": round(self._tokens, 3),
            "bucket_size": self.config.bucket_size,
            "refill_rate_per_s": self.config.refill_rate,
            "queue_depth": len(self._queue),
        }
