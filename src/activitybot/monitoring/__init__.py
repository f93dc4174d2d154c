"""Prometheus metrics for the poller."""

from activitybot.monitoring.exporter import MetricsExporter
from activitybot.monitoring.metrics_server import (
    create_metrics_app,
    start_metrics_server,
    stop_metrics_server,
)

__all__ = [
    "MetricsExporter",
    "create_metrics_app",
    "start_metrics_server",
    "stop_metrics_server",
]
