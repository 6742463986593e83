"""Per-session context threaded through every tool call."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from shared.config import Settings
from shared.models import RepoRef, utcnow
from integrations.base import ActivitySource, StandupPoster


@dataclass(frozen=True)
class ToolContext:
    """Immutable bundle built once per session.

    allowed_repos / allowed_members: None means unrestricted; a tuple is a
    closed set checked case-insensitively before any network call.
    """

    source: ActivitySource
    poster: StandupPoster
    since: datetime
    slack_token: str = ""
    slack_channel_id: str = ""
    timezone: str = "UTC"
    allowed_repos: Optional[tuple[RepoRef, ...]] = None
    allowed_members: Optional[tuple[str, ...]] = None


def build_tool_context(
    settings: Settings,
    source: ActivitySource,
    poster: StandupPoster,
    now: Optional[datetime] = None
) -> ToolContext:
    """Derive the lookback window and allow-lists from settings."""
    now = now or utcnow()
    standup = settings.standup
    repos = standup.repositories()

    return ToolContext(
        source=source,
        poster=poster,
        since=now - timedelta(hours=standup.lookback_hours),
        slack_token=settings.slack.user_token or "",
        slack_channel_id=settings.slack.channel_id or "",
        timezone=standup.timezone,
        allowed_repos=tuple(repos) if repos else None,
        allowed_members=tuple(standup.team_members) if standup.team_members else None,
    )
