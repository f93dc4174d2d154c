"""
Rate-limited delivery to the channel sink.

Two layers of pacing apply to every message:
1. A local token must be acquired before each attempt.
2. If the channel still throttles, the Dispatcher waits out the suggested
   delay before reporting THROTTLED, so the next attempt (of any message)
   cannot start early.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from activitybot.delivery.sinks.base import DeliveryResult, DeliveryStatus

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from activitybot.connectors.rate_limiter import RateLimiter
    from activitybot.delivery.formatter import FormattedMessage
    from activitybot.delivery.sinks.base import DeliverySink

logger = logging.getLogger(__name__)

DEFAULT_RETRY_AFTER_S = 60.0


@dataclass
class DispatcherMetrics:
    """Counters for delivery attempts."""

    attempts: int = 0
    delivered: int = 0
    throttled: int = 0
    failed: int = 0
    throttle_wait_s: float = 0.0


class Dispatcher:
    """
    Delivers formatted messages through a sink, one attempt per call.

    The caller decides what to do with THROTTLED and FAILED results; the
    Dispatcher never retries internally.
    """

    def __init__(
        self,
        sink: DeliverySink,
        rate_limiter: RateLimiter,
        *,
        default_retry_after_s: float = DEFAULT_RETRY_AFTER_S,
        dry_run: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._sink = sink
        self._rate_limiter = rate_limiter
        self._default_retry_after_s = default_retry_after_s
        self._dry_run = dry_run
        self._sleep = sleep
        self._metrics = DispatcherMetrics()

    @property
    def metrics(self) -> DispatcherMetrics:
        return self._metrics

    async def deliver(self, message: FormattedMessage) -> DeliveryResult:
        """
        Acquire a token, send once, and back off if throttled.

        Returns:
            DeliveryResult with status DELIVERED, THROTTLED or FAILED.
        """
        await self._rate_limiter.acquire()
        self._metrics.attempts += 1

        if self._dry_run:
            logger.info("Dry run delivery", extra={"text": message.text[:200]})
            self._metrics.delivered += 1
            return DeliveryResult(status=DeliveryStatus.DELIVERED, sink_name="dry_run")

        result = await self._sink.send(message)

        if result.status is DeliveryStatus.DELIVERED:
            self._metrics.delivered += 1
        elif result.status is DeliveryStatus.THROTTLED:
            self._metrics.throttled += 1
            delay = result.retry_after_s
            if delay is None or delay < 0:
                delay = self._default_retry_after_s
            logger.warning(
                "Channel throttled delivery, backing off",
                extra={"sink": result.sink_name, "retry_after_s": delay},
            )
            self._metrics.throttle_wait_s += delay
            await self._sleep(delay)
        else:
            self._metrics.failed += 1

        return result

    async def close(self) -> None:
        await self._sink.close()
