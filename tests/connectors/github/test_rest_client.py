"""Tests for the GitHub events REST client."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from activitybot.connectors.github import (
    GitHubRestClient,
    GitHubSourceConfig,
    SourceFetchError,
    SourceRateLimitError,
)


def make_event(event_id: int, created_at: str = "2024-01-15T10:30:00Z") -> dict[str, Any]:
    return {
        "id": str(event_id),
        "type": "WatchEvent",
        "actor": {"login": "octocat"},
        "repo": {"name": "octo-org/hello-world"},
        "payload": {"action": "started"},
        "created_at": created_at,
    }


def make_response(
    status: int = 200,
    data: Any = None,
    headers: dict[str, str] | None = None,
    text: str = "",
) -> MagicMock:
    mock_response = MagicMock()
    mock_response.status = status
    mock_response.headers = headers or {}
    mock_response.json = AsyncMock(return_value=data)
    mock_response.text = AsyncMock(return_value=text)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)
    return mock_response


def make_client(mock_response: MagicMock, token: str = "ghp_testtoken") -> tuple[GitHubRestClient, AsyncMock]:
    client = GitHubRestClient(GitHubSourceConfig(username="octocat", token=token))
    mock_session = AsyncMock()
    mock_session.closed = False
    mock_session.get = MagicMock(return_value=mock_response)
    client._session = mock_session
    return client, mock_session


class TestGitHubRestClient:
    """Tests for GitHubRestClient.get_events_page()."""

    @pytest.mark.asyncio
    async def test_fetch_page(self) -> None:
        link = '<https://api.github.com/user/1/events?page=2>; rel="next"'
        client, mock_session = make_client(make_response(200, [make_event(1), make_event(2)], {"Link": link}))

        page = await client.get_events_page(1)

        assert [r.id for r in page.records] == ["1", "2"]
        assert page.raw_count == 2
        assert page.has_next is True

        call = mock_session.get.call_args
        assert call.args[0] == "https://api.github.com/users/octocat/events"
        assert call.kwargs["params"] == {"page": "1", "per_page": "100"}
        headers = call.kwargs["headers"]
        assert headers["Authorization"] == "Bearer ghp_testtoken"
        assert headers["User-Agent"] == "GitHub-Activity-Bot"
        assert headers["Accept"] == "application/vnd.github+json"

    @pytest.mark.asyncio
    async def test_no_token_no_auth_header(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GITHUB_PERSONAL_ACCESS_TOKEN", raising=False)
        client, mock_session = make_client(make_response(200, []), token="")

        await client.get_events_page(1)

        assert "Authorization" not in mock_session.get.call_args.kwargs["headers"]

    @pytest.mark.asyncio
    async def test_link_without_next(self) -> None:
        link = '<https://api.github.com/user/1/events?page=1>; rel="first"'
        client, _ = make_client(make_response(200, [make_event(1)], {"Link": link}))

        page = await client.get_events_page(3)

        assert page.has_next is False

    @pytest.mark.asyncio
    async def test_no_link_header(self) -> None:
        client, _ = make_client(make_response(200, [make_event(1)]))
        page = await client.get_events_page(1)
        assert page.has_next is None

    @pytest.mark.asyncio
    async def test_rate_limited(self) -> None:
        headers = {"x-ratelimit-remaining": "0", "x-ratelimit-reset": "1705314600"}
        client, _ = make_client(make_response(403, {"message": "API rate limit exceeded"}, headers))

        with pytest.raises(SourceRateLimitError) as exc_info:
            await client.get_events_page(1)

        assert exc_info.value.status == 403
        assert exc_info.value.reset_at == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_forbidden_without_quota_header_is_fetch_error(self) -> None:
        client, _ = make_client(make_response(403, None, {"x-ratelimit-remaining": "12"}, text="forbidden"))

        with pytest.raises(SourceFetchError) as exc_info:
            await client.get_events_page(1)

        assert not isinstance(exc_info.value, SourceRateLimitError)
        assert exc_info.value.status == 403
        assert exc_info.value.body == "forbidden"

    @pytest.mark.asyncio
    async def test_server_error(self) -> None:
        client, _ = make_client(make_response(502, None, text="x" * 500))

        with pytest.raises(SourceFetchError, match="HTTP 502") as exc_info:
            await client.get_events_page(2)

        assert exc_info.value.body is not None
        assert len(exc_info.value.body) == 200

    @pytest.mark.asyncio
    async def test_connection_error_wrapped(self) -> None:
        client = GitHubRestClient(GitHubSourceConfig(username="octocat", token="t"))
        mock_session = AsyncMock()
        mock_session.closed = False
        mock_session.get = MagicMock(side_effect=aiohttp.ClientConnectionError("reset"))
        client._session = mock_session

        with pytest.raises(SourceFetchError, match="Connection error"):
            await client.get_events_page(1)

    @pytest.mark.asyncio
    async def test_non_list_body(self) -> None:
        client, _ = make_client(make_response(200, {"message": "Not Found"}))

        with pytest.raises(SourceFetchError, match="Unexpected response type"):
            await client.get_events_page(1)

    @pytest.mark.asyncio
    async def test_malformed_item_dropped(self) -> None:
        bad = {"id": "3", "type": "PushEvent"}
        client, _ = make_client(make_response(200, [make_event(1), bad, "junk", make_event(2)]))

        page = await client.get_events_page(1)

        assert [r.id for r in page.records] == ["1", "2"]
        assert page.raw_count == 4

    @pytest.mark.asyncio
    async def test_close(self) -> None:
        client, mock_session = make_client(make_response(200, []))

        await client.close()

        mock_session.close.assert_awaited_once()
        assert client._session is None


class TestGitHubSourceConfig:
    """Tests for GitHubSourceConfig validation."""

    def test_env_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITHUB_USERNAME", "hubot")
        monkeypatch.setenv("GITHUB_PERSONAL_ACCESS_TOKEN", "ghp_env")

        config = GitHubSourceConfig()

        assert config.username == "hubot"
        assert config.token == "ghp_env"

    def test_username_required(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GITHUB_USERNAME", raising=False)
        with pytest.raises(ValueError, match="GITHUB_USERNAME"):
            GitHubSourceConfig()

    @pytest.mark.parametrize("per_page", [0, 101])
    def test_per_page_bounds(self, per_page: int) -> None:
        with pytest.raises(ValueError, match="per_page"):
            GitHubSourceConfig(username="octocat", token="t", per_page=per_page)

    def test_base_url_trailing_slash(self) -> None:
        config = GitHubSourceConfig(username="octocat", token="t", base_url="https://ghe.example.com/api/v3/")
        client = GitHubRestClient(config)
        assert client.events_url == "https://ghe.example.com/api/v3/users/octocat/events"
