"""Slack posting client.

Formats a list of standup entries into a single Block Kit message and
sends it with ``chat.postMessage`` on behalf of the configured user token.
"""

from typing import Any, Optional

import httpx

from shared.logging import get_logger
from shared.models import StandupEntry
from integrations.base import IntegrationError, RESTClient

logger = get_logger(__name__)


class SlackAPIError(IntegrationError):
    """Slack rejected a call; ``message`` holds Slack's error code."""


def _bullets(items: list[str], empty: str) -> str:
    if not items:
        return f"• {empty}"
    return "\n".join(f"• {item}" for item in items)


def format_standup_blocks(
    entries: list[StandupEntry],
    title: str,
    date_label: str
) -> list[dict[str, Any]]:
    """Render the standup as Block Kit blocks, one section per member."""
    blocks: list[dict[str, Any]] = [
        {"type": "header", "text": {"type": "plain_text", "text": title}},
        {"type": "context", "elements": [{"type": "mrkdwn", "text": date_label}]},
        {"type": "divider"},
    ]
    for entry in entries:
        text = (
            f"*{entry.username}*\n"
            f"*Yesterday*\n{_bullets(entry.yesterday, 'Nothing reported')}\n"
            f"*Today*\n{_bullets(entry.today, 'Nothing planned')}\n"
            f"*Blockers*\n{_bullets(entry.blockers, 'None')}"
        )
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": text}})
    return blocks


class SlackClient(RESTClient):
    """Posts standups to a Slack channel."""

    error_class = SlackAPIError

    def __init__(
        self,
        api_url: str = "https://slack.com/api",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        super().__init__(api_url, timeout=timeout, transport=transport)

    async def post_standup(
        self,
        token: str,
        channel_id: str,
        entries: list[StandupEntry],
        title: str,
        date_label: str
    ) -> None:
        """
        Post all entries as one message.

        Raises:
            SlackAPIError: If the HTTP call fails or Slack answers ``ok: false``
        """
        payload = {
            "channel": channel_id,
            "text": f"{title} - {date_label}",
            "blocks": format_standup_blocks(entries, title, date_label),
            "unfurl_links": False,
        }
        data = await self._request(
            "POST",
            "/chat.postMessage",
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )
        if not data.get("ok"):
            raise SlackAPIError(data.get("error", "unknown_error"))

        logger.info("Standup posted", channel=channel_id, entries=len(entries), ts=data.get("ts"))
