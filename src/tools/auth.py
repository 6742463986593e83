"""Access control for tool calls.

Checks requested repositories and team members against the session's
allow-lists. Matching is exact set membership, case-insensitive; there is
no pattern or partial matching. The same member check guards the reads
and the final Slack post, independently.

Denial messages enumerate the whole allowed set so the planner (or the
user) can correct the request without another failed attempt.
"""

from typing import Iterable, Optional

from shared.logging import get_logger
from shared.models import RepoRef

logger = get_logger(__name__)


def authorize_repo(
    owner: str,
    repo: str,
    allowed_repos: Optional[Iterable[RepoRef]]
) -> tuple[bool, Optional[str]]:
    """
    Check that ``owner/repo`` is in the repository allow-list.

    Args:
        owner: Requested repository owner
        repo: Requested repository name
        allowed_repos: Configured allow-list, or None for unrestricted

    Returns:
        Tuple of (is_allowed, denial_message)
    """
    if allowed_repos is None:
        return True, None

    allowed = list(allowed_repos)
    wanted = (owner.lower(), repo.lower())
    if any((r.owner.lower(), r.repo.lower()) == wanted for r in allowed):
        return True, None

    logger.warning("Access denied (repository)", repo=f"{owner}/{repo}")
    listing = ", ".join(r.slug for r in allowed)
    return False, (
        f'Access denied: repository "{owner}/{repo}" is not in the configured list. '
        f"Allowed repos: {listing}"
    )


def authorize_member(
    username: str,
    allowed_members: Optional[Iterable[str]]
) -> tuple[bool, Optional[str]]:
    """
    Check that ``username`` is a configured team member.

    Returns:
        Tuple of (is_allowed, denial_message)
    """
    if allowed_members is None:
        return True, None

    allowed = list(allowed_members)
    if username.lower() in {m.lower() for m in allowed}:
        return True, None

    logger.warning("Access denied (member)", username=username)
    return False, (
        f'Access denied: "{username}" is not a configured team member. '
        f"Allowed members: {', '.join(allowed)}"
    )


def authorize_standup_members(
    usernames: Iterable[str],
    allowed_members: Optional[Iterable[str]]
) -> tuple[bool, Optional[str]]:
    """
    Check every standup author at once, before anything is posted.

    Returns:
        Tuple of (is_allowed, denial_message naming every rejected user)
    """
    if allowed_members is None:
        return True, None

    allowed = list(allowed_members)
    rejected = [name for name in usernames if not authorize_member(name, allowed)[0]]
    if not rejected:
        return True, None

    return False, (
        f"Access denied: standup includes non-team members: {', '.join(rejected)}. "
        f"Allowed: {', '.join(allowed)}"
    )
