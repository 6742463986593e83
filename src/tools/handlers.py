"""The four standup tools: definitions and handlers.

Read tools check the repository allow-list, then the member allow-list,
then call the data source. The posting tool checks that there is at least
one entry, then checks every entry's author, and only then posts. A denied
request never reaches the network.
"""

import json
from datetime import datetime
from typing import Awaitable, Callable, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel

from shared.logging import get_logger
from shared.models import (
    ErrorKind,
    ExecutionType,
    FetchActivityInput,
    PostStandupInput,
    ToolDefinition,
    ToolKind,
    ToolResult,
    utcnow,
)
from shared.schema import string_list_property, string_property
from tools.auth import authorize_member, authorize_repo, authorize_standup_members
from tools.context import ToolContext
from tools.errors import ErrorSource, normalize_error
from tools.registry import ToolRegistry

logger = get_logger(__name__)

STANDUP_TITLE = "Daily Standup"

_REPO_PROPERTIES = {
    "owner": string_property("GitHub repository owner (user or org)"),
    "repo": string_property("GitHub repository name"),
}


def _activity_schema(username_description: str) -> dict:
    return {
        "type": "object",
        "properties": {
            **_REPO_PROPERTIES,
            "username": string_property(username_description),
        },
        "required": ["owner", "repo", "username"],
    }


FETCH_COMMITS = ToolDefinition(
    kind=ToolKind.FETCH_COMMITS,
    description=(
        "Fetch recent commits by a specific user in a GitHub repository. "
        "Returns an array of commits with sha, message, url, and timestamp."
    ),
    input_schema=_activity_schema("GitHub username to fetch commits for"),
    input_model=FetchActivityInput,
    execution_type=ExecutionType.READ,
)

FETCH_PULL_REQUESTS = ToolDefinition(
    kind=ToolKind.FETCH_PULL_REQUESTS,
    description=(
        "Fetch recent pull request activity by a specific user in a GitHub repository. "
        "Returns PRs authored, merged, and reviewed by the user."
    ),
    input_schema=_activity_schema("GitHub username to fetch PR activity for"),
    input_model=FetchActivityInput,
    execution_type=ExecutionType.READ,
)

FETCH_ISSUES = ToolDefinition(
    kind=ToolKind.FETCH_ISSUES,
    description=(
        "Fetch recent issue activity by a specific user in a GitHub repository. "
        "Returns issues opened, closed, commented on, and assigned to the user."
    ),
    input_schema=_activity_schema("GitHub username to fetch issue activity for"),
    input_model=FetchActivityInput,
    execution_type=ExecutionType.READ,
)

POST_STANDUP = ToolDefinition(
    kind=ToolKind.POST_STANDUP,
    description=(
        "Post the final standup notes to Slack. Call this once after gathering and "
        "analyzing all team members' activity. Each entry should have yesterday "
        "(what they did), today (what they'll do next), and blockers."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "standup_notes": {
                "type": "array",
                "description": "Array of standup entries, one per team member",
                "items": {
                    "type": "object",
                    "properties": {
                        "username": string_property("GitHub username of the team member"),
                        "yesterday": string_list_property("List of things they did (based on activity data)"),
                        "today": string_list_property("List of inferred upcoming tasks"),
                        "blockers": string_list_property("List of blockers (empty array if none)"),
                    },
                    "required": ["username", "yesterday", "today", "blockers"],
                },
            },
        },
        "required": ["standup_notes"],
    },
    input_model=PostStandupInput,
    execution_type=ExecutionType.WRITE,
)


def _success(kind: ToolKind, records: Sequence[BaseModel]) -> ToolResult:
    return ToolResult(
        tool_name=kind.value,
        content=json.dumps([r.model_dump(exclude_none=True) for r in records], indent=2),
    )


async def _fetch_activity(
    kind: ToolKind,
    params: FetchActivityInput,
    ctx: ToolContext,
    fetch: Callable[[str, str, str, datetime], Awaitable[Sequence[BaseModel]]]
) -> ToolResult:
    allowed, denial = authorize_repo(params.owner, params.repo, ctx.allowed_repos)
    if not allowed:
        return ToolResult.failure(kind.value, denial, ErrorKind.ACCESS_DENIED)

    allowed, denial = authorize_member(params.username, ctx.allowed_members)
    if not allowed:
        return ToolResult.failure(kind.value, denial, ErrorKind.ACCESS_DENIED)

    try:
        records = await fetch(params.owner, params.repo, params.username, ctx.since)
    except Exception as e:
        normalized = normalize_error(e, ErrorSource.GITHUB)
        logger.warning(
            "Activity fetch failed",
            tool=kind.value,
            repo=f"{params.owner}/{params.repo}",
            username=params.username,
            error_kind=normalized.kind.value,
            error=str(e)
        )
        return ToolResult.failure(kind.value, normalized.message, normalized.kind, is_error=True)

    return _success(kind, records)


async def fetch_commits(params: FetchActivityInput, ctx: ToolContext) -> ToolResult:
    return await _fetch_activity(ToolKind.FETCH_COMMITS, params, ctx, ctx.source.list_commits)


async def fetch_pull_requests(params: FetchActivityInput, ctx: ToolContext) -> ToolResult:
    return await _fetch_activity(ToolKind.FETCH_PULL_REQUESTS, params, ctx, ctx.source.list_pull_requests)


async def fetch_issues(params: FetchActivityInput, ctx: ToolContext) -> ToolResult:
    return await _fetch_activity(ToolKind.FETCH_ISSUES, params, ctx, ctx.source.list_issue_activity)


def standup_date_label(tz_name: str, now: Optional[datetime] = None) -> str:
    """Long-form local date, e.g. ``Monday, 19 October 2026``."""
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone, using UTC", timezone=tz_name)
        tz = ZoneInfo("UTC")
    local = (now or utcnow()).astimezone(tz)
    return f"{local.strftime('%A')}, {local.day} {local.strftime('%B %Y')}"


async def post_standup_to_slack(params: PostStandupInput, ctx: ToolContext) -> ToolResult:
    """
    Post the planner's standup notes.

    Every author is checked before anything is sent, so a rejected standup
    is never partially posted.
    """
    tool_name = ToolKind.POST_STANDUP.value
    notes = params.standup_notes

    if not notes:
        return ToolResult.failure(
            tool_name,
            "No standup notes provided. Include at least one team member.",
            ErrorKind.VALIDATION_ERROR,
        )

    allowed, denial = authorize_standup_members([n.username for n in notes], ctx.allowed_members)
    if not allowed:
        return ToolResult.failure(tool_name, denial, ErrorKind.ACCESS_DENIED)

    try:
        await ctx.poster.post_standup(
            ctx.slack_token,
            ctx.slack_channel_id,
            notes,
            STANDUP_TITLE,
            standup_date_label(ctx.timezone),
        )
    except Exception as e:
        normalized = normalize_error(e, ErrorSource.SLACK)
        logger.error("Standup post failed", error_kind=normalized.kind.value, error=str(e))
        return ToolResult.failure(tool_name, normalized.message, normalized.kind, is_error=True)

    return ToolResult(
        tool_name=tool_name,
        content=f"Standup posted to Slack for {len(notes)} team member(s).",
    )


def build_standup_registry() -> ToolRegistry:
    """Registry holding exactly the four standup tools."""
    registry = ToolRegistry()
    registry.register(FETCH_COMMITS, fetch_commits)
    registry.register(FETCH_PULL_REQUESTS, fetch_pull_requests)
    registry.register(FETCH_ISSUES, fetch_issues)
    registry.register(POST_STANDUP, post_standup_to_slack)
    return registry
