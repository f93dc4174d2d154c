"""
Config validation tests for BotConfig and the component configs.

Tests __post_init__ validation, environment fallback and CLI overrides.
"""

from __future__ import annotations

import pytest
from scripts.run_bot import build_arg_parser, config_from_args

from activitybot.app import BotConfig
from activitybot.delivery.config import TelegramSinkConfig

ENV_VARS = (
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHANNEL_ID",
    "GITHUB_USERNAME",
    "GITHUB_PERSONAL_ACCESS_TOKEN",
    "POLL_INTERVAL_S",
    "METRICS_PORT",
    "DRY_RUN",
)


@pytest.fixture()
def env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """Minimal valid environment."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("TELEGRAM_CHANNEL_ID", "@activity")
    monkeypatch.setenv("GITHUB_USERNAME", "octocat")
    return monkeypatch


class TestTelegramSinkConfig:
    def test_env_fallback(self, env: pytest.MonkeyPatch) -> None:
        config = TelegramSinkConfig()
        assert config.bot_token == "123:abc"
        assert config.chat_id == "@activity"
        assert config.parse_mode == "Markdown"
        assert config.default_retry_after_s == 60.0

    def test_token_required(self, env: pytest.MonkeyPatch) -> None:
        env.delenv("TELEGRAM_BOT_TOKEN")
        with pytest.raises(ValueError, match="TELEGRAM_BOT_TOKEN"):
            TelegramSinkConfig()

    def test_chat_id_required(self, env: pytest.MonkeyPatch) -> None:
        env.delenv("TELEGRAM_CHANNEL_ID")
        with pytest.raises(ValueError, match="TELEGRAM_CHANNEL_ID"):
            TelegramSinkConfig()

    def test_invalid_timeout(self, env: pytest.MonkeyPatch) -> None:
        with pytest.raises(ValueError, match="timeout_s"):
            TelegramSinkConfig(timeout_s=0)


class TestBotConfig:
    def test_defaults_from_env(self, env: pytest.MonkeyPatch) -> None:
        config = BotConfig.from_env()

        assert config.poller.interval_s == 300.0
        assert config.metrics_port == 0
        assert config.dry_run is False
        assert config.rate_limit.refill_rate == 1.0
        assert config.source.username == "octocat"

    def test_env_values(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("POLL_INTERVAL_S", "60")
        env.setenv("METRICS_PORT", "9100")
        env.setenv("DRY_RUN", "true")

        config = BotConfig.from_env()

        assert config.poller.interval_s == 60.0
        assert config.metrics_port == 9100
        assert config.dry_run is True

    def test_invalid_interval(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("POLL_INTERVAL_S", "soon")
        with pytest.raises(ValueError, match="POLL_INTERVAL_S"):
            BotConfig.from_env()

    def test_non_positive_interval(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("POLL_INTERVAL_S", "0")
        with pytest.raises(ValueError, match="interval_s"):
            BotConfig.from_env()

    @pytest.mark.parametrize("port", [-1, 70000])
    def test_invalid_metrics_port(self, env: pytest.MonkeyPatch, port: int) -> None:
        with pytest.raises(ValueError, match="metrics_port"):
            BotConfig(metrics_port=port)

    def test_describe_has_no_secrets(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("GITHUB_PERSONAL_ACCESS_TOKEN", "ghp_secret")

        summary = BotConfig.from_env().describe()

        assert summary["authenticated"] is True
        assert "ghp_secret" not in str(summary)
        assert "123:abc" not in str(summary)


class TestCliOverrides:
    def test_flags_override_env(self, env: pytest.MonkeyPatch) -> None:
        env.setenv("POLL_INTERVAL_S", "60")
        args = build_arg_parser().parse_args(["--once", "--dry-run", "--interval-s", "5", "--metrics-port", "9200"])

        config = config_from_args(args)

        assert config.once is True
        assert config.dry_run is True
        assert config.poller.interval_s == 5.0
        assert config.metrics_port == 9200

    def test_no_flags(self, env: pytest.MonkeyPatch) -> None:
        config = config_from_args(build_arg_parser().parse_args([]))
        assert config.once is False
        assert config.poller.interval_s == 300.0
