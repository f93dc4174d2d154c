"""
Prometheus metrics exporter.

Low-cardinality counters only: no repo, actor or event id labels.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from prometheus_client import Counter, Gauge
from prometheus_client.registry import CollectorRegistry

if TYPE_CHECKING:
    from datetime import datetime

    from activitybot.connectors.rate_limiter import RateLimiter
    from activitybot.poller.poller import CycleReport


class MetricsExporter:
    """
    Prometheus metrics for poll cycles and delivery.

    Usage:
        registry = CollectorRegistry()
        exporter = MetricsExporter(registry=registry)
        exporter.record_cycle(report)
        # generate_latest(registry) -> bytes for /metrics endpoint
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()

        self._cycles_total = Counter(
            "activitybot_cycles",
            "Poll cycles run to completion (including aborted)",
            registry=self._registry,
        )
        self._cycles_aborted = Counter(
            "activitybot_cycles_aborted",
            "Poll cycles aborted by a fetch error or unexpected exception",
            registry=self._registry,
        )
        self._cycles_skipped = Counter(
            "activitybot_cycles_skipped",
            "Ticks skipped because a cycle was still running",
            registry=self._registry,
        )
        self._records_fetched = Counter(
            "activitybot_records_fetched",
            "Records returned by the activity source",
            registry=self._registry,
        )
        self._records_delivered = Counter(
            "activitybot_records_delivered",
            "Records delivered to the channel",
            registry=self._registry,
        )
        self._records_failed = Counter(
            "activitybot_records_failed",
            "Records whose delivery failed (non-throttle)",
            registry=self._registry,
        )
        self._records_throttled = Counter(
            "activitybot_records_throttled",
            "Delivery attempts rejected by channel throttling",
            registry=self._registry,
        )
        self._records_skipped = Counter(
            "activitybot_records_skipped",
            "Records skipped because they produced no message",
            registry=self._registry,
        )
        self._cursor_ts = Gauge(
            "activitybot_cursor_timestamp_seconds",
            "created_at of the most recently delivered record (unix seconds)",
            registry=self._registry,
        )
        self._limiter_queue_depth = Gauge(
            "activitybot_limiter_queue_depth",
            "Callers waiting on the delivery rate limiter",
            registry=self._registry,
        )
        self._limiter_deferred = Gauge(
            "activitybot_limiter_deferred_acquisitions",
            "Token acquisitions that had to wait",
            registry=self._registry,
        )
        self._limiter_tokens = Gauge(
            "activitybot_limiter_available_tokens",
            "Tokens currently in the delivery rate limiter bucket",
            registry=self._registry,
        )
        self._limiter_wait = Gauge(
            "activitybot_limiter_wait_seconds",
            "Seconds a new delivery would wait for a token",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_cycle(self, report: CycleReport) -> None:
        """Fold one cycle report into the counters."""
        self._cycles_total.inc()
        if report.aborted:
            self._cycles_aborted.inc()
        self._records_fetched.inc(report.fetched)
        self._records_delivered.inc(report.delivered)
        self._records_failed.inc(report.failed)
        self._records_throttled.inc(report.throttled)
        self._records_skipped.inc(report.skipped_format)

    def record_skipped_cycle(self) -> None:
        self._cycles_skipped.inc()

    def set_cursor(self, created_at: datetime) -> None:
        self._cursor_ts.set(created_at.timestamp())

    def update_limiter(self, limiter: RateLimiter) -> None:
        """Snapshot rate limiter gauges."""
        self._limiter_queue_depth.set(limiter.queue_depth)
        self._limiter_deferred.set(limiter.metrics.acquired_deferred)
        self._limiter_tokens.set(limiter.get_status()["available_tokens"])
        self._limiter_wait.set(limiter.get_wait_time_s())
