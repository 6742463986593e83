"""Collaborator clients: the GitHub data source and the Slack poster.

Clients are isolated from each other and from the LLM: they only
translate calls into REST requests and normalize the responses.
"""

from integrations.base import ActivitySource, IntegrationError, StandupPoster
from integrations.github import GitHubAPIError, GitHubClient
from integrations.slack import SlackAPIError, SlackClient

__all__ = [
    "ActivitySource",
    "IntegrationError",
    "StandupPoster",
    "GitHubAPIError",
    "GitHubClient",
    "SlackAPIError",
    "SlackClient",
]
