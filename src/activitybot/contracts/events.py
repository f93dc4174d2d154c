"""
Data contracts for GitHub activity records.

Only the fields the pipeline relies on are declared; everything else the
events API returns is ignored at validation time.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import orjson
from pydantic import BaseModel, ConfigDict, Field, field_validator


class Actor(BaseModel):
    """User who performed the activity."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    login: str = Field(..., min_length=1, description="GitHub login")


class Repo(BaseModel):
    """Repository the activity happened in."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = Field(..., min_length=1, description="owner/name")


class ActivityRecord(BaseModel):
    """
    One entry of a user's public events feed.

    Attributes:
        id: Event id, unique within the feed.
        type: Event discriminator (e.g. "PushEvent").
        created_at: Event timestamp (timezone-aware, UTC).
        actor: User who performed the activity.
        repo: Repository the activity refers to.
        payload: Type-specific body, passed to the formatter untouched.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., min_length=1, description="Event id")
    type: str = Field(..., min_length=1, description="Event type discriminator")
    created_at: datetime = Field(..., description="Event timestamp")
    actor: Actor
    repo: Repo
    payload: dict[str, Any] = Field(default_factory=dict, description="Type-specific data")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """The API has returned ids as both strings and integers."""
        if isinstance(v, int):
            return str(v)
        return v

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Naive timestamps are taken to be UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v.astimezone(UTC)

    def to_json(self) -> bytes:
        """Serialize to JSON bytes using orjson."""
        return orjson.dumps(self.model_dump(mode="json"))
