"""Data contracts shared between the source, delivery and poller modules."""

from activitybot.contracts.events import ActivityRecord, Actor, Repo

__all__ = [
    "ActivityRecord",
    "Actor",
    "Repo",
]
