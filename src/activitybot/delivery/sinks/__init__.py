"""
Delivery sinks.
"""

from __future__ import annotations

from activitybot.delivery.sinks.base import DeliveryResult, DeliverySink, DeliveryStatus
from activitybot.delivery.sinks.telegram import TelegramSink

__all__ = [
    "DeliveryResult",
    "DeliverySink",
    "DeliveryStatus",
    "TelegramSink",
]
