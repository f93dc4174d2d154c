"""Tests for ActivityRecord contract."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import orjson
import pytest
from pydantic import ValidationError

from activitybot.contracts.events import ActivityRecord

RAW_EVENT = {
    "id": "35067813370",
    "type": "WatchEvent",
    "actor": {"id": 1, "login": "octocat", "url": "https://api.github.com/users/octocat"},
    "repo": {"id": 2, "name": "octo-org/hello-world"},
    "payload": {"action": "started"},
    "public": True,
    "created_at": "2024-01-15T10:30:00Z",
}


class TestActivityRecord:
    """Tests for ActivityRecord validation."""

    def test_parses_api_event(self) -> None:
        """Extra API fields are ignored, nested objects parsed."""
        record = ActivityRecord.model_validate(RAW_EVENT)

        assert record.id == "35067813370"
        assert record.type == "WatchEvent"
        assert record.actor.login == "octocat"
        assert record.repo.name == "octo-org/hello-world"
        assert record.created_at == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)

    def test_integer_id_coerced(self) -> None:
        record = ActivityRecord.model_validate({**RAW_EVENT, "id": 42})
        assert record.id == "42"

    def test_offset_timestamp_normalized_to_utc(self) -> None:
        record = ActivityRecord.model_validate({**RAW_EVENT, "created_at": "2024-01-15T12:30:00+02:00"})
        assert record.created_at == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
        assert record.created_at.utcoffset() == timedelta(0)

    def test_naive_timestamp_assumed_utc(self) -> None:
        record = ActivityRecord.model_validate({**RAW_EVENT, "created_at": "2024-01-15T10:30:00"})
        assert record.created_at.tzinfo is not None
        assert record.created_at == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)

    def test_missing_actor_rejected(self) -> None:
        raw = {k: v for k, v in RAW_EVENT.items() if k != "actor"}
        with pytest.raises(ValidationError):
            ActivityRecord.model_validate(raw)

    def test_missing_created_at_rejected(self) -> None:
        raw = {k: v for k, v in RAW_EVENT.items() if k != "created_at"}
        with pytest.raises(ValidationError):
            ActivityRecord.model_validate(raw)

    def test_frozen(self) -> None:
        record = ActivityRecord.model_validate(RAW_EVENT)
        with pytest.raises(ValidationError):
            record.type = "PushEvent"  # type: ignore[misc]

    def test_to_json(self) -> None:
        record = ActivityRecord.model_validate(RAW_EVENT)

        data = orjson.loads(record.to_json())

        assert data["created_at"] == "2024-01-15T10:30:00Z"
        assert data["actor"] == {"login": "octocat"}
        assert ActivityRecord.model_validate(data) == record
