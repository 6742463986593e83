"""Shared fixtures."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from shared.models import CommitSummary, RepoRef
from integrations.github import GitHubClient
from integrations.slack import SlackClient


@pytest.fixture
def since():
    return datetime(2026, 10, 18, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def source():
    source = AsyncMock(spec=GitHubClient)
    source.get_authenticated_user.return_value = "alice"
    source.list_commits.return_value = [
        CommitSummary(
            sha="abc1234",
            message="Fix login redirect",
            url="https://github.com/acme/api/commit/abc1234",
            timestamp="2026-10-18T10:00:00Z",
        )
    ]
    source.list_pull_requests.return_value = []
    source.list_issue_activity.return_value = []
    return source


@pytest.fixture
def poster():
    return AsyncMock(spec=SlackClient)


@pytest.fixture
def tool_context(source, poster, since):
    from tools.context import ToolContext

    return ToolContext(
        source=source,
        poster=poster,
        since=since,
        slack_token="xoxp-test",
        slack_channel_id="C123",
        timezone="UTC",
        allowed_repos=(RepoRef(owner="acme", repo="api"),),
        allowed_members=("alice", "bob"),
    )


@pytest.fixture
def registry():
    from tools.handlers import build_standup_registry

    return build_standup_registry()


@pytest.fixture
def executor(registry):
    from tools.executor import ToolExecutor

    return ToolExecutor(registry)
