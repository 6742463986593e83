"""Base classes for the collaborator clients.

The clients sit at the edge of the system:
- Translate tool operations to REST calls
- Handle authentication headers
- Normalize responses into shared models
- Never decide access control (that happens in the tool layer)
- Never depend on the LLM
"""

from datetime import datetime, timezone
from typing import Any, Optional, Protocol

import httpx

from shared.logging import get_logger
from shared.models import (
    CommitSummary,
    IssueActivitySummary,
    PullRequestSummary,
    StandupEntry,
)

logger = get_logger(__name__)


class IntegrationError(Exception):
    """Base exception for collaborator failures."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is not None:
            return f"{self.status_code} {self.message}"
        return self.message


class ActivitySource(Protocol):
    """Data source able to list a member's recent activity in a repository."""

    async def get_authenticated_user(self) -> str: ...

    async def list_commits(
        self, owner: str, repo: str, username: str, since: datetime
    ) -> list[CommitSummary]: ...

    async def list_pull_requests(
        self, owner: str, repo: str, username: str, since: datetime
    ) -> list[PullRequestSummary]: ...

    async def list_issue_activity(
        self, owner: str, repo: str, username: str, since: datetime
    ) -> list[IssueActivitySummary]: ...


class StandupPoster(Protocol):
    """Channel client able to publish a multi-entry standup."""

    async def post_standup(
        self,
        token: str,
        channel_id: str,
        entries: list[StandupEntry],
        title: str,
        date_label: str,
    ) -> None: ...


def iso(dt: datetime) -> str:
    """Second-precision ISO-8601 UTC timestamp with a ``Z`` suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an API timestamp; ``None`` for empty or malformed values."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class RESTClient:
    """
    Base client for REST API backends.

    Provides a lazily created ``httpx.AsyncClient`` and error mapping.
    Subclasses set ``error_class`` to the exception they raise.
    """

    error_class: type[IntegrationError] = IntegrationError

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._headers = headers or {}
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=self._headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "RESTClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        """
        Make an HTTP request and return the decoded JSON body.

        Raises:
            error_class: On transport failures, HTTP errors or invalid JSON
        """
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise self.error_class(f"Request timed out: {e}") from e
        except httpx.TransportError as e:
            raise self.error_class(f"Cannot connect to {self.base_url}: {e}") from e

        if response.status_code >= 400:
            logger.debug("HTTP request failed", method=method, path=path, status=response.status_code)
            raise self._error_from_response(response)

        try:
            return response.json()
        except ValueError as e:
            raise self.error_class("Invalid JSON in response", response.status_code) from e

    def _error_from_response(self, response: httpx.Response) -> IntegrationError:
        """Build an error carrying the status code and the API's own message."""
        try:
            body = response.json()
            detail = body.get("message") if isinstance(body, dict) else None
        except ValueError:
            detail = None
        return self.error_class(detail or response.text or response.reason_phrase, response.status_code)
