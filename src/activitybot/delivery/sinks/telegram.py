"""
Telegram sink.

Delivers messages via the Bot API sendMessage endpoint, one attempt per call.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Any

import aiohttp

from activitybot.delivery.sinks.base import DeliveryResult, DeliverySink, DeliveryStatus

if TYPE_CHECKING:
    from collections.abc import Mapping

    from activitybot.delivery.config import TelegramSinkConfig
    from activitybot.delivery.formatter import FormattedMessage

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"

THROTTLE_MARKER = "Too Many Requests"

_RETRY_AFTER_IN_TEXT = re.compile(r"retry after (\d+(?:\.\d+)?)", re.I)


def parse_retry_after(data: Mapping[str, Any], headers: Mapping[str, str]) -> float | None:
    """
    Extract the server-suggested retry delay in seconds.

    Looks at parameters.retry_after in the body, then the Retry-After
    header, then a "retry after N" hint in the description. Returns None
    when none of them parse.
    """
    parameters = data.get("parameters")
    if isinstance(parameters, dict) and parameters.get("retry_after") is not None:
        try:
            return float(parameters["retry_after"])
        except (TypeError, ValueError):
            pass

    header = headers.get("Retry-After") or headers.get("retry-after")
    if header is not None:
        try:
            return float(header)
        except ValueError:
            pass

    match = _RETRY_AFTER_IN_TEXT.search(str(data.get("description", "")))
    if match:
        return float(match.group(1))
    return None


class TelegramSink(DeliverySink):
    """
    Telegram delivery sink using Bot API.

    Uses sendMessage with Markdown parse mode by default. A 429 or a
    "Too Many Requests" description is reported as THROTTLED; the sink
    itself never sleeps or retries.
    """

    def __init__(self, config: TelegramSinkConfig) -> None:
        self._config = config
        self._session: aiohttp.ClientSession | None = None

    @property
    def name(self) -> str:
        return f"telegram:{self._config.chat_id}"

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._config.timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    @staticmethod
    async def _read_json(resp: aiohttp.ClientResponse) -> dict[str, Any]:
        try:
            data = await resp.json(content_type=None)
        except (aiohttp.ContentTypeError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    async def send(self, message: FormattedMessage) -> DeliveryResult:
        """Send message to Telegram."""
        if self._config.parse_mode == "Markdown":
            text = message.markdown
        else:
            text = message.text

        url = f"{TELEGRAM_API_BASE}/bot{self._config.bot_token}/sendMessage"
        payload: dict[str, Any] = {
            "chat_id": self._config.chat_id,
            "text": text,
            "disable_web_page_preview": self._config.disable_web_page_preview,
        }
        if self._config.parse_mode:
            payload["parse_mode"] = self._config.parse_mode

        try:
            session = await self._get_session()
            async with session.post(url, json=payload) as resp:
                status = resp.status
                data = await self._read_json(resp)
                description = str(data.get("description", ""))

                if status == 200 and data.get("ok", True):
                    return DeliveryResult(
                        status=DeliveryStatus.DELIVERED,
                        sink_name=self.name,
                        status_code=status,
                    )

                if status == 429 or THROTTLE_MARKER in description:
                    retry_after = parse_retry_after(data, resp.headers)
                    logger.warning(
                        "Telegram rate limited",
                        extra={"status": status, "retry_after": retry_after},
                    )
                    return DeliveryResult(
                        status=DeliveryStatus.THROTTLED,
                        sink_name=self.name,
                        error=description or THROTTLE_MARKER,
                        status_code=status,
                        retry_after_s=retry_after,
                    )

                error_text = description or f"HTTP {status}"
                logger.error(
                    "Telegram send failed",
                    extra={"status": status, "error": error_text},
                )
                return DeliveryResult(
                    status=DeliveryStatus.FAILED,
                    sink_name=self.name,
                    error=f"HTTP {status}: {error_text[:200]}",
                    status_code=status,
                )

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(
                "Telegram connection error",
                extra={"error": str(e)},
            )
            return DeliveryResult(
                status=DeliveryStatus.FAILED,
                sink_name=self.name,
                error=f"Connection error: {e}",
            )

    async def close(self) -> None:
        """Close aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
