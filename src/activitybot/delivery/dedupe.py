"""
Cursor-based deduplication.

select_new() is pure; Cursor.advance() is the only way the high-watermark
changes, and it never moves backwards.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from activitybot.contracts.events import ActivityRecord


def select_new(
    batch: Iterable[ActivityRecord],
    cursor: datetime | None,
) -> list[ActivityRecord]:
    """
    Filter to records strictly newer than the cursor, oldest first.

    Ties on created_at keep their batch order (sorted() is stable).
    An unset cursor (None) admits every record.
    """
    if cursor is None:
        fresh = list(batch)
    else:
        fresh = [r for r in batch if r.created_at > cursor]
    return sorted(fresh, key=lambda r: r.created_at)


class Cursor:
    """High-watermark of the most recently delivered record.

    In-memory only; a restart starts again from unset.
    """

    def __init__(self, value: datetime | None = None) -> None:
        self._value = value

    @property
    def value(self) -> datetime | None:
        return self._value

    @property
    def is_set(self) -> bool:
        return self._value is not None

    def advance(self, created_at: datetime) -> bool:
        """
        Move the cursor forward to created_at.

        Returns:
            True if the cursor moved, False if created_at was not newer.
        """
        if self._value is not None and created_at <= self._value:
            return False
        self._value = created_at
        return True

    def __repr__(self) -> str:
        value = self._value.isoformat() if self._value is not None else None
        return f"Cursor(value={value!r})"
