"""
Application wiring.

Builds the source -> poller -> dispatcher graph from a BotConfig and runs
it until a stop event is set.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field

from activitybot.connectors.github.rest_client import GitHubRestClient
from activitybot.connectors.github.source import ActivitySource
from activitybot.connectors.github.types import GitHubSourceConfig
from activitybot.connectors.rate_limiter import RateLimiter, RateLimiterConfig
from activitybot.delivery.config import DELIVERY_REDACTED_ENV_VARS, TelegramSinkConfig
from activitybot.delivery.dispatcher import Dispatcher
from activitybot.delivery.formatter import EventFormatter
from activitybot.delivery.sinks.telegram import TelegramSink
from activitybot.monitoring.exporter import MetricsExporter
from activitybot.monitoring.metrics_server import start_metrics_server, stop_metrics_server
from activitybot.poller.poller import Poller, PollerConfig

logger = logging.getLogger(__name__)

# Env var names that must never be logged
REDACTED_ENV_VARS = DELIVERY_REDACTED_ENV_VARS | frozenset({"GITHUB_PERSONAL_ACCESS_TOKEN"})

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_number(name: str, default: float) -> float:
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e


@dataclass
class BotConfig:
    """Top-level configuration."""

    source: GitHubSourceConfig = field(default_factory=GitHubSourceConfig)
    telegram: TelegramSinkConfig = field(default_factory=TelegramSinkConfig)
    rate_limit: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    poller: PollerConfig = field(default_factory=PollerConfig)

    # Metrics server port (0 = disabled)
    metrics_port: int = 0

    # Log messages instead of sending them
    dry_run: bool = False

    # Run a single cycle and exit
    once: bool = False

    def __post_init__(self) -> None:
        if not 0 <= self.metrics_port <= 65535:
            raise ValueError(f"metrics_port must be 0..65535, got {self.metrics_port}")

    @classmethod
    def from_env(cls, **overrides: object) -> BotConfig:
        """
        Build config from environment variables.

        Reads POLL_INTERVAL_S, METRICS_PORT and DRY_RUN here; credentials
        are read by the nested configs. Keyword overrides win over env.
        """
        values: dict[str, object] = {
            "poller": PollerConfig(interval_s=_env_number("POLL_INTERVAL_S", 300.0)),
            "metrics_port": int(_env_number("METRICS_PORT", 0)),
            "dry_run": _env_bool("DRY_RUN"),
        }
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]

    def describe(self) -> dict[str, object]:
        """Loggable summary (no secrets)."""
        return {
            "username": self.source.username,
            "chat_id": self.telegram.chat_id,
            "authenticated": bool(self.source.token),
            "interval_s": self.poller.interval_s,
            "rate_per_s": self.rate_limit.refill_rate,
            "metrics_port": self.metrics_port,
            "dry_run": self.dry_run,
        }


def build_poller(
    config: BotConfig,
    *,
    metrics_exporter: MetricsExporter | None = None,
) -> tuple[Poller, ActivitySource, Dispatcher, RateLimiter]:
    """Wire components. The limiter is created once and injected."""
    client = GitHubRestClient(config.source)
    source = ActivitySource(
        client,
        per_page=config.source.per_page,
        max_records=config.source.max_records,
    )
    limiter = RateLimiter(config=config.rate_limit)
    dispatcher = Dispatcher(
        TelegramSink(config.telegram),
        limiter,
        default_retry_after_s=config.telegram.default_retry_after_s,
        dry_run=config.dry_run,
    )
    poller = Poller(
        source,
        EventFormatter(),
        dispatcher,
        config=config.poller,
        metrics_exporter=metrics_exporter,
    )
    return poller, source, dispatcher, limiter


async def run_bot(config: BotConfig, stop_event: asyncio.Event | None = None) -> int:
    """
    Run the bot until stop_event is set (or for one cycle with config.once).

    Returns:
        Exit code (0 = success, 1 = the single cycle aborted).
    """
    stop_event = stop_event or asyncio.Event()

    exporter: MetricsExporter | None = None
    if config.metrics_port > 0:
        exporter = MetricsExporter()

    poller, source, dispatcher, limiter = build_poller(config, metrics_exporter=exporter)

    metrics_runner = None
    if exporter is not None:
        metrics_runner = await start_metrics_server(
            exporter.registry,
            port=config.metrics_port,
            refresh_fn=lambda: exporter.update_limiter(limiter),
        )

    logger.info("GitHub Activity Bot starting", extra=config.describe())

    try:
        if config.once:
            report = await poller.run_cycle()
            return 1 if report is None or report.aborted else 0
        await poller.run_forever(stop_event)
        return 0
    finally:
        await source.close()
        await dispatcher.close()
        if metrics_runner is not None:
            await stop_metrics_server(metrics_runner)
