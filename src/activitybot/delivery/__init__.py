"""
Activity delivery.

Selects new records against the cursor, formats them and delivers them to
the Telegram channel through a rate-limited Dispatcher.
"""

from __future__ import annotations

from activitybot.delivery.config import TelegramSinkConfig
from activitybot.delivery.dedupe import Cursor, select_new
from activitybot.delivery.dispatcher import Dispatcher
from activitybot.delivery.formatter import EventFormatter, FormattedMessage, FormattingError

__all__ = [
    "Cursor",
    "Dispatcher",
    "EventFormatter",
    "FormattedMessage",
    "FormattingError",
    "TelegramSinkConfig",
    "select_new",
]
