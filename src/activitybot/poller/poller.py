"""
Poller: runs fetch -> select -> format -> deliver cycles on a fixed schedule.

State machine:
    IDLE --(tick / startup trigger)--> RUNNING --(cycle ends)--> IDLE

A tick that arrives while RUNNING is skipped. The cursor has a single
writer (the running cycle) and is advanced right after each confirmed
delivery, never batched at the end of the cycle.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from activitybot.connectors.github.types import SourceRateLimitError
from activitybot.delivery.dedupe import Cursor, select_new
from activitybot.delivery.formatter import FormattingError
from activitybot.delivery.sinks.base import DeliveryStatus

if TYPE_CHECKING:
    from datetime import datetime

    from activitybot.contracts.events import ActivityRecord
    from activitybot.delivery.dispatcher import Dispatcher
    from activitybot.delivery.formatter import EventFormatter
    from activitybot.monitoring.exporter import MetricsExporter

logger = logging.getLogger(__name__)


class RecordSource(Protocol):
    """Anything that can fetch candidate records for a cycle."""

    async def fetch_new_records(self, cursor: datetime | None) -> list[ActivityRecord]: ...


class PollerState(str, Enum):
    """Poller lifecycle state."""

    IDLE = "IDLE"
    RUNNING = "RUNNING"


@dataclass
class PollerConfig:
    """Poller scheduling and throttle policy."""

    # Seconds between cycle starts
    interval_s: float = 300.0

    # Re-attempts of the same message after THROTTLED before deferring the
    # rest of the batch to the next cycle
    max_throttle_retries: int = 0

    def __post_init__(self) -> None:
        if self.interval_s <= 0:
            raise ValueError(f"interval_s must be > 0, got {self.interval_s}")
        if self.max_throttle_retries < 0:
            raise ValueError(f"max_throttle_retries must be >= 0, got {self.max_throttle_retries}")


@dataclass
class CycleReport:
    """Outcome of one cycle."""

    fetched: int = 0
    selected: int = 0
    delivered: int = 0
    failed: int = 0
    throttled: int = 0
    skipped_format: int = 0
    deferred: int = 0
    aborted: bool = False
    error: str | None = None
    failed_ids: list[str] = field(default_factory=list)


class Poller:
    """
    Orchestrates delivery cycles and owns the cursor.

    Usage:
        poller = Poller(source, formatter, dispatcher, config=PollerConfig())
        await poller.run_forever(stop_event)
    """

    def __init__(
        self,
        source: RecordSource,
        formatter: EventFormatter,
        dispatcher: Dispatcher,
        *,
        config: PollerConfig | None = None,
        cursor: Cursor | None = None,
        metrics_exporter: MetricsExporter | None = None,
    ) -> None:
        self._source = source
        self._formatter = formatter
        self._dispatcher = dispatcher
        self._config = config or PollerConfig()
        self._cursor = cursor or Cursor()
        self._exporter = metrics_exporter
        self._state = PollerState.IDLE
        self._task: asyncio.Task[CycleReport | None] | None = None
        self._cycles_completed = 0
        self._cycles_skipped = 0

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def cursor(self) -> datetime | None:
        """Read-only view of the cursor value."""
        return self._cursor.value

    @property
    def cycles_completed(self) -> int:
        return self._cycles_completed

    @property
    def cycles_skipped(self) -> int:
        return self._cycles_skipped

    def _advance_cursor(self, created_at: datetime) -> None:
        """Single mutation point for the cursor."""
        if self._cursor.advance(created_at) and self._exporter is not None:
            self._exporter.set_cursor(created_at)

    def _skip(self) -> None:
        self._cycles_skipped += 1
        if self._exporter is not None:
            self._exporter.record_skipped_cycle()
        logger.warning("Previous cycle still running, skipping tick")

    async def run_cycle(self) -> CycleReport | None:
        """
        Run one cycle unless one is already running.

        Returns:
            CycleReport, or None if skipped. Never raises (except on
            cancellation): top-level errors end the cycle and are logged.
        """
        # Checked and set before the first await so two triggers cannot both start
        if self._state is PollerState.RUNNING:
            self._skip()
            return None
        self._state = PollerState.RUNNING

        report = CycleReport()
        try:
            await self._execute(report)
        except SourceRateLimitError as e:
            report.aborted = True
            report.error = str(e)
            reset = e.reset_at.isoformat() if e.reset_at is not None else "unknown"
            logger.error(
                "GitHub rate limit exceeded. Try again after %s",
                reset,
                extra={"status": e.status},
            )
        except Exception as e:
            report.aborted = True
            report.error = str(e)
            logger.exception("Cycle aborted")
        finally:
            self._state = PollerState.IDLE
            self._cycles_completed += 1
            if self._exporter is not None:
                self._exporter.record_cycle(report)

        return report

    async def _execute(self, report: CycleReport) -> None:
        batch = await self._source.fetch_new_records(self._cursor.value)
        report.fetched = len(batch)

        fresh = select_new(batch, self._cursor.value)
        report.selected = len(fresh)

        for index, record in enumerate(fresh):
            try:
                message = self._formatter.format(record)
            except FormattingError as e:
                logger.warning(
                    "Skipping unformattable event",
                    extra={"event_id": record.id, "event_type": record.type, "error": str(e)},
                )
                logger.debug("Unformattable event JSON: %s", record.to_json().decode())
                report.skipped_format += 1
                self._advance_cursor(record.created_at)
                continue

            if message is None:
                report.skipped_format += 1
                self._advance_cursor(record.created_at)
                continue

            throttle_retries = 0
            while True:
                result = await self._dispatcher.deliver(message)

                if result.status is DeliveryStatus.DELIVERED:
                    report.delivered += 1
                    self._advance_cursor(record.created_at)
                    break

                if result.status is DeliveryStatus.THROTTLED:
                    report.throttled += 1
                    if throttle_retries < self._config.max_throttle_retries:
                        throttle_retries += 1
                        continue
                    # A record sharing the cursor's timestamp would never be
                    # re-selected, so it is retried here; the Dispatcher has
                    # already waited out retry-after
                    if record.created_at == self._cursor.value:
                        logger.warning(
                            "Delivery throttled, retrying event at cursor timestamp",
                            extra={"event_id": record.id},
                        )
                        continue
                    # Leave this record and everything after it for the next cycle
                    report.deferred = len(fresh) - index
                    logger.warning(
                        "Delivery throttled, deferring remaining events to next cycle",
                        extra={"event_id": record.id, "deferred": report.deferred},
                    )
                    self._log_summary(report)
                    return

                report.failed += 1
                report.failed_ids.append(record.id)
                logger.error(
                    "Error sending Telegram message",
                    extra={"event_id": record.id, "error": result.error},
                )
                break

        self._log_summary(report)

    def _log_summary(self, report: CycleReport) -> None:
        logger.info(
            "Processed %d new activities",
            report.selected,
            extra={
                "fetched": report.fetched,
                "delivered": report.delivered,
                "failed": report.failed,
                "throttled": report.throttled,
                "deferred": report.deferred,
            },
        )

    def trigger(self) -> asyncio.Task[CycleReport | None] | None:
        """
        Start a cycle in the background unless one is running.

        Returns:
            The cycle task, or None if the tick was skipped.
        """
        if self._state is PollerState.RUNNING or (self._task is not None and not self._task.done()):
            self._skip()
            return None
        self._task = asyncio.create_task(self.run_cycle())
        return self._task

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        """
        Trigger a cycle immediately, then every interval_s until stop_event is set.

        Ticks are spaced from cycle start to cycle start. On stop, the
        in-flight cycle is allowed to finish.
        """
        loop = asyncio.get_running_loop()
        next_tick = loop.time()

        logger.info("Poller started", extra={"interval_s": self._config.interval_s})
        try:
            while not stop_event.is_set():
                self.trigger()
                next_tick += self._config.interval_s
                timeout = max(next_tick - loop.time(), 0.0)
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    pass
        finally:
            if self._task is not None and not self._task.done():
                logger.info("Waiting for in-flight cycle to finish")
                await asyncio.shield(self._task)
            logger.info("Poller stopped")
