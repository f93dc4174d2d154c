#!/usr/bin/env python3
"""
Run the GitHub activity bot.

Polls a user's GitHub events feed and relays new activity to a Telegram
channel.

Usage:
    python -m scripts.run_bot               # run until SIGINT/SIGTERM
    python -m scripts.run_bot --once        # one cycle, then exit
    python -m scripts.run_bot --dry-run     # log messages instead of sending

Configuration comes from the environment (a .env file is loaded if present):
    TELEGRAM_BOT_TOKEN, TELEGRAM_CHANNEL_ID, GITHUB_USERNAME,
    GITHUB_PERSONAL_ACCESS_TOKEN (optional), POLL_INTERVAL_S, METRICS_PORT,
    DRY_RUN, LOG_LEVEL, LOG_JSON
"""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys

from dotenv import load_dotenv

from activitybot.app import BotConfig, run_bot
from activitybot.logging_config import get_logger, setup_logging
from activitybot.poller.poller import PollerConfig

logger = get_logger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Relay GitHub activity to a Telegram channel.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single poll cycle and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log formatted messages instead of sending them",
    )
    parser.add_argument(
        "--interval-s",
        type=float,
        default=None,
        help="Seconds between cycle starts (default: env POLL_INTERVAL_S or 300)",
    )
    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Prometheus /metrics port (0 to disable; default: env METRICS_PORT or 0)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level (default: env LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--plain-logs",
        action="store_true",
        help="Human-readable logs instead of JSON",
    )
    return parser


def config_from_args(args: argparse.Namespace) -> BotConfig:
    """Environment config with CLI flags applied on top."""
    overrides: dict[str, object] = {"once": args.once}
    if args.dry_run:
        overrides["dry_run"] = True
    if args.interval_s is not None:
        overrides["poller"] = PollerConfig(interval_s=args.interval_s)
    if args.metrics_port is not None:
        overrides["metrics_port"] = args.metrics_port
    return BotConfig.from_env(**overrides)


def setup_signal_handlers(stop_event: asyncio.Event) -> None:
    """Set stop_event on SIGINT/SIGTERM; the poller finishes its cycle and exits."""
    loop = asyncio.get_running_loop()

    def handler(sig: signal.Signals) -> None:
        logger.info("Received signal %s, initiating shutdown", sig.name)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handler, sig)


async def _amain(config: BotConfig) -> int:
    stop_event = asyncio.Event()
    setup_signal_handlers(stop_event)
    return await run_bot(config, stop_event)


def main() -> int:
    """Main entry point."""
    load_dotenv()
    args = build_arg_parser().parse_args()

    json_logs = not args.plain_logs and os.environ.get("LOG_JSON", "1").lower() not in ("0", "false", "no")
    setup_logging(
        level=(args.log_level or os.environ.get("LOG_LEVEL") or "INFO").upper(),
        json_format=json_logs,
    )

    try:
        config = config_from_args(args)
    except ValueError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    return asyncio.run(_amain(config))


if __name__ == "__main__":
    sys.exit(main())
