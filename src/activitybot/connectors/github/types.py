"""
Configuration and error types for the GitHub events connector.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime

GITHUB_API_BASE = "https://api.github.com"

# The events API serves at most 300 events per user
DEFAULT_MAX_RECORDS = 300
DEFAULT_PER_PAGE = 100


class SourceFetchError(Exception):
    """Raised when a page fetch fails (network error, non rate-limit HTTP error)."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.body = body


class SourceRateLimitError(SourceFetchError):
    """Raised on 403/429 with x-ratelimit-remaining: 0.

    reset_at is the UTC time the quota resets, when the header was present.
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        reset_at: datetime | None = None,
    ) -> None:
        super().__init__(message, status=status)
        self.reset_at = reset_at


@dataclass
class GitHubSourceConfig:
    """Activity source configuration.

    username and token fall back to GITHUB_USERNAME and
    GITHUB_PERSONAL_ACCESS_TOKEN. The token is optional; unauthenticated
    requests get a much smaller rate limit.
    """

    username: str = ""
    token: str = ""
    base_url: str = GITHUB_API_BASE
    per_page: int = DEFAULT_PER_PAGE
    max_records: int = DEFAULT_MAX_RECORDS
    user_agent: str = "GitHub-Activity-Bot"
    timeout_s: float = 10.0

    def __post_init__(self) -> None:
        if not self.username:
            self.username = os.environ.get("GITHUB_USERNAME", "")
        if not self.token:
            self.token = os.environ.get("GITHUB_PERSONAL_ACCESS_TOKEN", "")
        if not self.username:
            raise ValueError("GITHUB_USERNAME required")
        if not 1 <= self.per_page <= 100:
            raise ValueError(f"per_page must be 1..100, got {self.per_page}")
        if self.max_records < 1:
            raise ValueError(f"max_records must be >= 1, got {self.max_records}")
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0, got {self.timeout_s}")
        self.base_url = self.base_url.rstrip("/")
