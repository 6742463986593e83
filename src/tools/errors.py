"""Error normalization.

Maps heterogeneous upstream failures (GitHub, Slack, the inference
provider) onto the small ``ErrorKind`` taxonomy and a message the planner
or the user can act on. Classification is best-effort: anything that is
not recognized stays ``unknown`` and keeps its original message. Nothing
here raises.
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel

from shared.logging import get_logger
from shared.models import ErrorKind

logger = get_logger(__name__)


class ErrorSource(str, Enum):
    """Which collaborator the failure came from."""
    GITHUB = "github"
    SLACK = "slack"
    INFERENCE = "inference"


class NormalizedError(BaseModel):
    kind: ErrorKind
    message: str


# Checked in order; the first kind with a matching signal wins.
_STATUS_SIGNALS: list[tuple[ErrorKind, set[int]]] = [
    (ErrorKind.NOT_FOUND_OR_PRIVATE, {404}),
    (ErrorKind.AUTH_FAILURE, {401}),
    (ErrorKind.RATE_LIMITED, {429}),
    (ErrorKind.UPSTREAM_OVERLOADED, {503, 529}),
]

_TEXT_SIGNALS: list[tuple[ErrorKind, tuple[str, ...]]] = [
    (ErrorKind.NOT_FOUND_OR_PRIVATE, ("not found", "404", "channel_not_found")),
    (ErrorKind.AUTH_FAILURE, (
        "bad credentials", "401", "authentication", "invalid_auth",
        "not_authed", "token_revoked", "account_inactive",
    )),
    (ErrorKind.RATE_LIMITED, ("rate limit", "rate_limit", "ratelimited", "429")),
    (ErrorKind.UPSTREAM_OVERLOADED, ("overloaded", "529", "503", "service unavailable")),
]

_MESSAGES: dict[ErrorSource, dict[ErrorKind, str]] = {
    ErrorSource.GITHUB: {
        ErrorKind.NOT_FOUND_OR_PRIVATE: (
            "Repository or user not found. The repo may be private or the name may be incorrect."
        ),
        ErrorKind.AUTH_FAILURE: "GitHub authentication failed. The token may be invalid or expired.",
        ErrorKind.RATE_LIMITED: "GitHub API rate limit exceeded. Please wait a few minutes and try again.",
        ErrorKind.UPSTREAM_OVERLOADED: "GitHub is temporarily unavailable. Please try again shortly.",
    },
    ErrorSource.SLACK: {
        ErrorKind.NOT_FOUND_OR_PRIVATE: "Slack channel not found. Check your SLACK_CHANNEL_ID.",
        ErrorKind.AUTH_FAILURE: "Slack authentication failed. Check your SLACK_USER_TOKEN.",
        ErrorKind.RATE_LIMITED: "Slack rate limit hit. Please wait a moment and try again.",
        ErrorKind.UPSTREAM_OVERLOADED: "Slack is temporarily unavailable. Please try again shortly.",
    },
    ErrorSource.INFERENCE: {
        ErrorKind.NOT_FOUND_OR_PRIVATE: "Inference API resource not found. Check the configured model name.",
        ErrorKind.AUTH_FAILURE: "Inference API authentication failed. Check your LLM_API_KEY.",
        ErrorKind.RATE_LIMITED: "Inference API rate limit hit. Please wait a moment and try again.",
        ErrorKind.UPSTREAM_OVERLOADED: "Inference API is overloaded. Please try again in a few seconds.",
    },
}

_UNKNOWN_PREFIX: dict[ErrorSource, str] = {
    ErrorSource.GITHUB: "",
    ErrorSource.SLACK: "Slack posting failed: ",
    ErrorSource.INFERENCE: "API error: ",
}


def _status_code(error: BaseException) -> Optional[int]:
    """Find an HTTP-like status code on an exception, if it carries one."""
    for candidate in (
        getattr(error, "status_code", None),
        getattr(getattr(error, "response", None), "status_code", None),
        getattr(error, "status", None),
    ):
        if isinstance(candidate, int):
            return candidate
    return None


def classify_error(error: Union[BaseException, str], source: Optional[ErrorSource] = None) -> ErrorKind:
    """
    Classify an upstream error.

    Args:
        error: The exception, or a bare error message
        source: Originating collaborator; GitHub reports rate limiting as 403

    Returns:
        The matching ErrorKind, ``ErrorKind.UNKNOWN`` when nothing matches
    """
    try:
        status = None if isinstance(error, str) else _status_code(error)
        if status is not None:
            for kind, codes in _STATUS_SIGNALS:
                if status in codes:
                    return kind
            if status == 403 and source is ErrorSource.GITHUB:
                return ErrorKind.RATE_LIMITED

        text = str(error).lower()
        for kind, needles in _TEXT_SIGNALS:
            if any(needle in text for needle in needles):
                return kind
        if source is ErrorSource.GITHUB and "403" in text:
            return ErrorKind.RATE_LIMITED
    except Exception as e:
        logger.debug("Error classification failed", error=repr(e))

    return ErrorKind.UNKNOWN


def normalize_error(error: Union[BaseException, str], source: ErrorSource) -> NormalizedError:
    """
    Classify an error and attach a message suited to its source.

    Unrecognized errors keep their original text.
    """
    kind = classify_error(error, source)
    message = _MESSAGES[source].get(kind)
    if message is None:
        try:
            original = str(error) or type(error).__name__
        except Exception:
            original = type(error).__name__
        message = f"{_UNKNOWN_PREFIX[source]}{original}"
    return NormalizedError(kind=kind, message=message)
