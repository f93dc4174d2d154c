"""
Delivery configuration.

Telegram credentials come from the environment when not passed explicitly.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal

# Env vars that must never be logged
DELIVERY_REDACTED_ENV_VARS = frozenset({
    "TELEGRAM_BOT_TOKEN",
})


@dataclass
class TelegramSinkConfig:
    """Telegram sink configuration."""

    bot_token: str = ""  # From TELEGRAM_BOT_TOKEN env var
    chat_id: str = ""  # From TELEGRAM_CHANNEL_ID env var
    parse_mode: Literal["Markdown", ""] = "Markdown"
    timeout_s: float = 10.0
    disable_web_page_preview: bool = True
    # Used when a throttling response carries no usable retry delay
    default_retry_after_s: float = 60.0

    def __post_init__(self) -> None:
        if not self.bot_token:
            self.bot_token = os.environ.get("TELEGRAM_BOT_TOKEN", "")
        if not self.chat_id:
            self.chat_id = os.environ.get("TELEGRAM_CHANNEL_ID", "")
        if not self.bot_token:
            raise ValueError("TELEGRAM_BOT_TOKEN required")
        if not self.chat_id:
            raise ValueError("TELEGRAM_CHANNEL_ID required")
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0, got {self.timeout_s}")
        if self.default_retry_after_s < 0:
            raise ValueError(f"default_retry_after_s must be >= 0, got {self.default_retry_after_s}")
