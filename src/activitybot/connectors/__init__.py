"""Connectors for external services (activity feed, rate limiting)."""

from activitybot.connectors.rate_limiter import (
    RateLimiter,
    RateLimiterConfig,
    RateLimiterMetrics,
)

__all__ = [
    "RateLimiter",
    "RateLimiterConfig",
    "RateLimiterMetrics",
]
