"""
REST client for the GitHub user events feed.

One call per page; retries are left to the poll schedule.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import aiohttp
from pydantic import ValidationError

from activitybot.connectors.github.types import (
    GitHubSourceConfig,
    SourceFetchError,
    SourceRateLimitError,
)
from activitybot.contracts.events import ActivityRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventsPage:
    """One page of the events feed.

    Attributes:
        records: Valid records, in the order the API returned them.
        raw_count: Number of items in the response body, valid or not.
        has_next: Whether the Link header advertises a next page.
            None when the response had no Link header.
    """

    records: list[ActivityRecord]
    raw_count: int
    has_next: bool | None = None


def _parse_reset(value: str | None) -> datetime | None:
    """Parse x-ratelimit-reset (epoch seconds) into a UTC datetime."""
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=UTC)
    except (ValueError, OverflowError, OSError):
        return None


def _has_next(link_header: str | None) -> bool | None:
    if link_header is None:
        return None
    return 'rel="next"' in link_header


class GitHubRestClient:
    """
    Async client for GET /users/{username}/events.
    """

    def __init__(self, config: GitHubSourceConfig) -> None:
        self._config = config
        self._session: aiohttp.ClientSession | None = None

    @property
    def events_url(self) -> str:
        return f"{self._config.base_url}/users/{self._config.username}/events"

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": self._config.user_agent,
        }
        if self._config.token:
            headers["Authorization"] = f"Bearer {self._config.token}"
        return headers

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def get_events_page(self, page: int) -> EventsPage:
        """
        Fetch one page of the user's events.

        Args:
            page: 1-based page number.

        Returns:
            EventsPage with validated records.

        Raises:
            SourceRateLimitError: If the API quota is exhausted.
            SourceFetchError: On network errors, other HTTP errors or a
                malformed body.
        """
        params = {"page": str(page), "per_page": str(self._config.per_page)}

        try:
            session = await self._get_session()
            async with session.get(self.events_url, params=params, headers=self._headers()) as response:
                status = response.status

                if status in (403, 429) and response.headers.get("x-ratelimit-remaining") == "0":
                    reset_at = _parse_reset(response.headers.get("x-ratelimit-reset"))
                    raise SourceRateLimitError(
                        "GitHub rate limit exceeded",
                        status=status,
                        reset_at=reset_at,
                    )

                if status >= 400:
                    text = await response.text()
                    raise SourceFetchError(
                        f"HTTP {status} fetching events page {page}",
                        status=status,
                        body=text[:200],
                    )

                data: Any = await response.json(content_type=None)
                link = response.headers.get("Link")

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SourceFetchError(f"Connection error: {e}") from e

        if not isinstance(data, list):
            raise SourceFetchError(
                f"Unexpected response type {type(data).__name__} for events page {page}",
                status=status,
            )

        records: list[ActivityRecord] = []
        for item in data:
            try:
                records.append(ActivityRecord.model_validate(item))
            except ValidationError as e:
                event_id = item.get("id") if isinstance(item, dict) else None
                logger.warning(
                    "Dropping malformed event",
                    extra={"event_id": event_id, "errors": e.error_count()},
                )

        logger.debug(
            "Fetched events page",
            extra={"page": page, "count": len(data), "valid": len(records)},
        )
        return EventsPage(records=records, raw_count=len(data), has_next=_has_next(link))
