"""Polling loop: fetch, select, format, deliver."""

from activitybot.poller.poller import CycleReport, Poller, PollerConfig, PollerState

__all__ = [
    "CycleReport",
    "Poller",
    "PollerConfig",
    "PollerState",
]
