"""GitHub user events feed connector."""

from activitybot.connectors.github.rest_client import EventsPage, GitHubRestClient
from activitybot.connectors.github.source import ActivitySource
from activitybot.connectors.github.types import (
    GitHubSourceConfig,
    SourceFetchError,
    SourceRateLimitError,
)

__all__ = [
    "ActivitySource",
    "EventsPage",
    "GitHubRestClient",
    "GitHubSourceConfig",
    "SourceFetchError",
    "SourceRateLimitError",
]
