"""GitHub data source.

Lists a member's recent commits, pull request activity and issue activity
in one repository. Only the top-level listing call of each operation can
fail the operation; per-item follow-up calls (reviews of one PR, the issue
behind one comment) are skipped when they fail.
"""

import re
from datetime import datetime
from typing import Any, Optional

import httpx

from shared.logging import get_logger
from shared.models import CommitSummary, IssueActivitySummary, PullRequestSummary
from integrations.base import IntegrationError, RESTClient, iso, parse_timestamp

logger = get_logger(__name__)

ISSUE_NUMBER_PATTERN = re.compile(r"/issues/(\d+)$")
COMMENT_EXCERPT_LENGTH = 200


class GitHubAPIError(IntegrationError):
    """A GitHub REST call failed."""


class GitHubClient(RESTClient):
    """Async GitHub REST client scoped to what the standup tools need."""

    error_class = GitHubAPIError

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        headers = {
            "Accept": "application/vnd.github+json",
            "User-Agent": "standup-agent/1.0",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        super().__init__(api_url, timeout=timeout, headers=headers, transport=transport)

    def _error_from_response(self, response: httpx.Response) -> IntegrationError:
        error = super()._error_from_response(response)
        remaining = response.headers.get("X-RateLimit-Remaining")
        if response.status_code in (403, 429) and remaining == "0":
            return GitHubAPIError("API rate limit exceeded", response.status_code)
        return error

    async def get_authenticated_user(self) -> str:
        """Return the login the token belongs to."""
        data = await self._request("GET", "/user")
        return data.get("login", "")

    async def list_commits(
        self,
        owner: str,
        repo: str,
        username: str,
        since: datetime
    ) -> list[CommitSummary]:
        """Commits authored by ``username`` since the window start."""
        data = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/commits",
            params={"author": username, "since": iso(since), "per_page": 50},
        )
        commits = []
        for item in data:
            commit = item.get("commit") or {}
            message = commit.get("message") or ""
            commits.append(CommitSummary(
                sha=item.get("sha", "")[:7],
                message=message.split("\n")[0],
                url=item.get("html_url", ""),
                timestamp=(commit.get("author") or {}).get("date") or "",
            ))
        return commits

    async def list_pull_requests(
        self,
        owner: str,
        repo: str,
        username: str,
        since: datetime
    ) -> list[PullRequestSummary]:
        """PRs the user opened in the window, plus PRs they reviewed in it."""
        pulls = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls",
            params={"state": "all", "per_page": 50},
        )
        login = username.lower()
        results: list[PullRequestSummary] = []

        for pr in pulls:
            if _login(pr.get("user")) != login:
                continue
            created = parse_timestamp(pr.get("created_at"))
            if created is None or created < since:
                continue
            if pr.get("merged_at"):
                action = "merged"
            elif pr.get("state") == "closed":
                action = "closed"
            else:
                action = "opened"
            results.append(_pull_request_summary(pr, action, pr.get("created_at", "")))

        for pr in pulls:
            if _login(pr.get("user")) == login:
                continue
            try:
                reviews = await self._request(
                    "GET", f"/repos/{owner}/{repo}/pulls/{pr['number']}/reviews"
                )
            except GitHubAPIError as e:
                logger.debug("Skipping reviews", pull_number=pr.get("number"), error=str(e))
                continue
            mine = []
            for review in reviews:
                submitted = parse_timestamp(review.get("submitted_at"))
                if _login(review.get("user")) == login and submitted and submitted >= since:
                    mine.append(review)
            if mine:
                results.append(_pull_request_summary(pr, "reviewed", mine[0]["submitted_at"]))

        return results

    async def list_issue_activity(
        self,
        owner: str,
        repo: str,
        username: str,
        since: datetime
    ) -> list[IssueActivitySummary]:
        """Issues the user commented on, opened, closed, or is assigned to."""
        login = username.lower()
        results: list[IssueActivitySummary] = []

        comments = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/issues/comments",
            params={"since": iso(since), "per_page": 100},
        )
        for comment in comments:
            if _login(comment.get("user")) != login:
                continue
            match = ISSUE_NUMBER_PATTERN.search(comment.get("issue_url") or "")
            if not match:
                continue
            number = int(match.group(1))
            try:
                issue = await self._request("GET", f"/repos/{owner}/{repo}/issues/{number}")
            except GitHubAPIError as e:
                logger.debug("Skipping commented issue", issue_number=number, error=str(e))
                continue
            if issue.get("pull_request"):
                continue
            body = comment.get("body") or ""
            results.append(IssueActivitySummary(
                number=number,
                title=issue.get("title", ""),
                state=issue.get("state", ""),
                action="commented",
                url=issue.get("html_url", ""),
                comment=body[:COMMENT_EXCERPT_LENGTH],
                timestamp=comment.get("created_at", ""),
            ))

        created = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/issues",
            params={"state": "all", "creator": username, "since": iso(since), "per_page": 50},
        )
        for issue in created:
            if issue.get("pull_request"):
                continue
            results.append(_issue_summary(
                issue,
                "closed" if issue.get("state") == "closed" else "opened",
                issue.get("created_at", ""),
            ))

        assigned = await self._request(
            "GET",
            f"/repos/{owner}/{repo}/issues",
            params={"state": "open", "assignee": username, "per_page": 20},
        )
        seen = {item.number for item in results}
        for issue in assigned:
            if issue.get("pull_request") or issue.get("number") in seen:
                continue
            results.append(_issue_summary(issue, "assigned", issue.get("updated_at", "")))

        return results


def _login(user: Optional[dict[str, Any]]) -> str:
    return ((user or {}).get("login") or "").lower()


def _pull_request_summary(pr: dict[str, Any], action: str, timestamp: str) -> PullRequestSummary:
    return PullRequestSummary(
        number=pr["number"],
        title=pr.get("title", ""),
        state=pr.get("state", ""),
        action=action,
        url=pr.get("html_url", ""),
        timestamp=timestamp,
    )


def _issue_summary(issue: dict[str, Any], action: str, timestamp: str) -> IssueActivitySummary:
    return IssueActivitySummary(
        number=issue["number"],
        title=issue.get("title", ""),
        state=issue.get("state", ""),
        action=action,
        url=issue.get("html_url", ""),
        timestamp=timestamp,
    )
