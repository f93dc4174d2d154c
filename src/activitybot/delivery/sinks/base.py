"""
Base sink protocol.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from activitybot.delivery.formatter import FormattedMessage


class DeliveryStatus(str, Enum):
    """Outcome of one delivery attempt."""

    DELIVERED = "delivered"
    THROTTLED = "throttled"
    FAILED = "failed"


@dataclass(frozen=True)
class DeliveryResult:
    """Result of a delivery attempt."""

    status: DeliveryStatus
    sink_name: str
    error: str | None = None
    status_code: int | None = None
    retry_after_s: float | None = None  # For throttling responses

    @property
    def success(self) -> bool:
        return self.status is DeliveryStatus.DELIVERED


class DeliverySink(ABC):
    """Abstract base class for delivery sinks.

    send() makes exactly one attempt and reports the outcome; pacing and
    throttle backoff belong to the Dispatcher.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique name for this sink."""
        ...

    @abstractmethod
    async def send(self, message: FormattedMessage) -> DeliveryResult:
        """Send a formatted message to this sink."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any resources held by this sink."""
        ...

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
