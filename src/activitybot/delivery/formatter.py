"""
Activity record formatter.

Pure mapping from an ActivityRecord to display text. Each record renders
twice from the same template: Telegram legacy Markdown (links, inline code)
and plain text (link labels only).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from activitybot.contracts.events import ActivityRecord

GITHUB_WEB_BASE = "https://github.com"

EVENT_TYPE_ICONS = {
    "PushEvent": "\U0001f528",  # hammer
    "CreateEvent": "✨",  # sparkles
    "IssuesEvent": "\U0001f4dd",  # memo
    "PullRequestEvent": "\U0001f500",  # twisted arrows
    "ForkEvent": "\U0001f374",  # fork and knife
    "WatchEvent": "⭐",  # star
}

# Characters Telegram legacy Markdown treats as entity delimiters; a backslash
# is only an escape in front of one of these, so it is left as is
_MARKDOWN_SPECIAL = ("_", "*", "`", "[")


class FormattingError(Exception):
    """Raised when a known event type has a missing or mistyped payload field."""


@dataclass(frozen=True)
class FormattedMessage:
    """Formatted message ready for delivery."""

    text: str  # Plain text version
    markdown: str  # Telegram Markdown version


class _MarkdownStyle:
    @staticmethod
    def link(label: str, url: str) -> str:
        return f"[{label}]({url})"

    @staticmethod
    def code(text: str) -> str:
        return f"`{text}`"

    @staticmethod
    def escape(text: str) -> str:
        for char in _MARKDOWN_SPECIAL:
            text = text.replace(char, f"\\{char}")
        return text


class _PlainStyle:
    @staticmethod
    def link(label: str, url: str) -> str:  # noqa: ARG004
        return label

    @staticmethod
    def code(text: str) -> str:
        return text

    @staticmethod
    def escape(text: str) -> str:
        return text


def _require(record: ActivityRecord, *path: str, kind: type | tuple[type, ...] = str) -> Any:
    """Walk the payload along path, raising FormattingError on a gap or a value not of kind."""
    node: Any = record.payload
    dotted = ".".join(path)
    for key in path:
        if not isinstance(node, dict) or node.get(key) is None:
            raise FormattingError(f"{record.type} {record.id}: payload missing '{dotted}'")
        node = node[key]
    # bool is an int subclass but never a valid number or label here
    if isinstance(node, bool) or not isinstance(node, kind):
        raise FormattingError(
            f"{record.type} {record.id}: payload '{dotted}' has type {type(node).__name__}"
        )
    return node


def _capitalize(action: str) -> str:
    return action[:1].upper() + action[1:]


class EventFormatter:
    """
    Deterministic template formatter for GitHub events.

    Known types get a dedicated template; any other type gets a generic
    "<Type> in <repo>" line, so format() only returns None for types listed
    in suppressed_types.
    """

    def __init__(self, suppressed_types: Iterable[str] = ()) -> None:
        self._suppressed = frozenset(suppressed_types)

    def format(self, record: ActivityRecord) -> FormattedMessage | None:
        """
        Format a record into a delivery message.

        Raises:
            FormattingError: If a known type lacks a required payload field
                or carries one of the wrong type.
        """
        if record.type in self._suppressed:
            return None
        try:
            return FormattedMessage(
                text=self._render(record, _PlainStyle),
                markdown=self._render(record, _MarkdownStyle),
            )
        except (TypeError, ValueError, AttributeError, KeyError) as e:
            raise FormattingError(f"{record.type} {record.id}: malformed payload ({e})") from e

    def _render(self, record: ActivityRecord, style: type[_MarkdownStyle] | type[_PlainStyle]) -> str:
        repo = record.repo.name
        repo_url = f"{GITHUB_WEB_BASE}/{repo}"
        actor = record.actor.login
        ts = record.created_at.strftime("%Y-%m-%d %H:%M:%S UTC")
        icon = EVENT_TYPE_ICONS.get(record.type, "")

        head = f"{style.link(actor, f'{GITHUB_WEB_BASE}/{actor}')} "
        repo_link = style.link(repo, repo_url)

        if record.type == "PushEvent":
            ref: str = _require(record, "ref")
            branch = ref.removeprefix("refs/heads/")
            commits = record.payload.get("commits")
            if isinstance(commits, list):
                count = len(commits)
            else:
                commits = []
                size = record.payload.get("size") or 0
                if isinstance(size, bool) or not isinstance(size, int):
                    raise FormattingError(f"{record.type} {record.id}: payload 'size' is not an integer")
                count = size
            lines = [
                f"{head}{icon} Pushed {count} commit(s) to "
                f"{style.link(repo, f'{repo_url}/tree/{branch}')} at {ts}",
                "",
            ]
            for commit in commits:
                if not isinstance(commit, dict):
                    raise FormattingError(f"{record.type} {record.id}: malformed commit entry")
                sha = str(commit.get("sha", ""))
                message = str(commit.get("message", "")).strip()
                first_line = message.splitlines()[0] if message else ""
                lines.append(
                    f"- {style.link(sha[:7], f'{repo_url}/commit/{sha}')}: {style.escape(first_line)}"
                )
            return "\n".join(lines).rstrip()

        if record.type == "CreateEvent":
            ref_type: str = _require(record, "ref_type")
            ref = record.payload.get("ref")
            if ref is not None and not isinstance(ref, str):
                raise FormattingError(f"{record.type} {record.id}: payload 'ref' has type {type(ref).__name__}")
            if ref:
                text = f"{head}{icon} Created {ref_type} {style.code(ref)} in {repo_link} at {ts}"
            else:
                text = f"{head}{icon} Created {ref_type} {repo_link} at {ts}"
            if ref_type == "branch" and ref:
                text += f"\n{style.link('View branch', f'{repo_url}/tree/{ref}')}"
            return text

        if record.type == "IssuesEvent":
            action: str = _require(record, "action")
            number = _require(record, "issue", "number", kind=int)
            title: str = _require(record, "issue", "title")
            issue_link = style.link(f"#{number}", f"{repo_url}/issues/{number}")
            return (
                f"{head}{icon} {_capitalize(action)} issue {issue_link} in {repo_link} at {ts}\n"
                f"Title: {style.escape(title)}"
            )

        if record.type == "PullRequestEvent":
            action = _require(record, "action")
            number = _require(record, "pull_request", "number", kind=int)
            title = _require(record, "pull_request", "title")
            pr_link = style.link(f"#{number}", f"{repo_url}/pull/{number}")
            return (
                f"{head}{icon} {_capitalize(action)} pull request {pr_link} in {repo_link} at {ts}\n"
                f"Title: {style.escape(title)}"
            )

        if record.type == "ForkEvent":
            forkee: str = _require(record, "forkee", "full_name")
            fork_link = style.link(forkee, f"{GITHUB_WEB_BASE}/{forkee}")
            return f"{head}{icon} Forked {repo_link} to {fork_link} at {ts}"

        if record.type == "WatchEvent":
            return f"{head}{icon} Starred {repo_link} at {ts}"

        return f"{head}{style.escape(record.type)} in {repo_link} at {ts}"
