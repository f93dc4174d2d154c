"""
Paginated fetch of new activity records.

Stops at the first of:
- an empty page (end of history)
- max_records accumulated
- a page whose trailing record is not newer than the cursor
- a short page, or a Link header without rel="next"
- ceil(max_records / per_page) pages requested, even if items were invalid

Any page failure propagates and aborts the whole fetch; no partial batch
is returned.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from datetime import datetime

    from activitybot.connectors.github.rest_client import EventsPage
    from activitybot.contracts.events import ActivityRecord

logger = logging.getLogger(__name__)


class EventsClient(Protocol):
    """Anything that can fetch a page of events."""

    async def get_events_page(self, page: int) -> EventsPage: ...

    async def close(self) -> None: ...


class ActivitySource:
    """
    Fetches the records that may be newer than the cursor.

    The returned order is the API's order; callers must not assume it is
    sorted.
    """

    def __init__(
        self,
        client: EventsClient,
        *,
        per_page: int = 100,
        max_records: int = 300,
    ) -> None:
        self._client = client
        self._per_page = per_page
        self._max_records = max_records

    async def fetch_new_records(self, cursor: datetime | None) -> list[ActivityRecord]:
        """
        Paginate from page 1 until a stop condition is met.

        Args:
            cursor: created_at of the last delivered record, or None.

        Returns:
            At most max_records records.

        Raises:
            SourceRateLimitError: If the API quota is exhausted.
            SourceFetchError: If any page fetch fails.
        """
        records: list[ActivityRecord] = []
        max_pages = math.ceil(self._max_records / self._per_page)
        page = 1

        while True:
            result = await self._client.get_events_page(page)

            if result.raw_count == 0:
                stop_reason = "empty_page"
                break

            records.extend(result.records)

            if len(records) >= self._max_records:
                stop_reason = "max_records"
                break
            if cursor is not None and result.records and result.records[-1].created_at <= cursor:
                stop_reason = "reached_cursor"
                break
            if result.raw_count < self._per_page:
                stop_reason = "short_page"
                break
            if result.has_next is False:
                stop_reason = "no_next_link"
                break
            if page >= max_pages:
                stop_reason = "page_cap"
                break

            page += 1

        logger.debug(
            "Fetch finished",
            extra={"pages": page, "count": len(records), "stop_reason": stop_reason},
        )
        return records[: self._max_records]

    async def close(self) -> None:
        await self._client.close()
