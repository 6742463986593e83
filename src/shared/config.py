"""Configuration management for the standup agent.

Supports YAML configuration files and environment variable overrides
(``.env`` is read as well). Configuration is loaded once and cached.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.models import RepoRef


DEFAULT_MODEL = "claude-sonnet-4-5-20250929"


class LLMSettings(BaseSettings):
    """Inference provider configuration."""
    provider: str = Field(default="anthropic", description="LLM provider: anthropic, openai, azure_openai, mock")
    model: str = Field(default=DEFAULT_MODEL, description="Model name")
    api_key: Optional[str] = Field(default=None, description="API key")
    api_base: Optional[str] = Field(default=None, description="API base URL")
    api_version: Optional[str] = Field(default="2024-02-15-preview", description="API version (Azure)")
    deployment_name: Optional[str] = Field(default=None, description="Azure deployment name")
    temperature: float = Field(default=0.2, ge=0, le=2)
    max_tokens: int = Field(default=4096, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore"
    )


class GitHubSettings(BaseSettings):
    """GitHub data source configuration."""
    token: Optional[str] = Field(default=None, description="Personal access token (repo, read:org)")
    api_url: str = Field(default="https://api.github.com")
    timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="GITHUB_",
        env_file=".env",
        extra="ignore"
    )


class SlackSettings(BaseSettings):
    """Slack posting destination."""
    user_token: Optional[str] = Field(default=None)
    channel_id: Optional[str] = Field(default=None)
    api_url: str = Field(default="https://slack.com/api")
    timeout_seconds: float = Field(default=30.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="SLACK_",
        env_file=".env",
        extra="ignore"
    )


class StandupSettings(BaseSettings):
    """Team, repositories and agent limits."""
    team_members: list[str] = Field(default_factory=list)
    github_owner: Optional[str] = Field(default=None)
    github_repo: Optional[str] = Field(default=None)
    github_repos: list[RepoRef] = Field(default_factory=list)
    lookback_hours: int = Field(default=24, gt=0)
    timezone: str = Field(default="UTC")
    max_iterations: int = Field(default=20, gt=0)

    # Audit trail of tool executions
    enable_audit: bool = Field(default=True)
    audit_log_path: str = Field(default="logs/audit.log")

    model_config = SettingsConfigDict(
        env_prefix="STANDUP_",
        env_file=".env",
        extra="ignore"
    )

    @field_validator("github_repos", mode="before")
    @classmethod
    def _parse_repo_slugs(cls, value: Any) -> Any:
        # Accept "owner/repo" strings as well as {owner, repo} mappings.
        if isinstance(value, list):
            return [RepoRef.parse(item) if isinstance(item, str) else item for item in value]
        return value

    def repositories(self) -> list[RepoRef]:
        """Configured repositories, falling back to the single owner/repo pair."""
        if self.github_repos:
            return list(self.github_repos)
        if self.github_owner and self.github_repo:
            return [RepoRef(owner=self.github_owner, repo=self.github_repo)]
        return []


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Component settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    slack: SlackSettings = Field(default_factory=SlackSettings)
    standup: StandupSettings = Field(default_factory=StandupSettings)

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file; a missing file yields defaults."""
        return cls(**load_yaml_config(path))

    def missing_credentials(self) -> list[str]:
        """Names of the credentials a live run needs but does not have."""
        missing = []
        if self.llm.provider != "mock" and not self.llm.api_key:
            missing.append("LLM_API_KEY")
        if not self.github.token:
            missing.append("GITHUB_TOKEN")
        if not self.slack.user_token:
            missing.append("SLACK_USER_TOKEN")
        if not self.slack.channel_id:
            missing.append("SLACK_CHANNEL_ID")
        if not self.standup.repositories():
            missing.append("standup.github_repos")
        return missing


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


@lru_cache
def get_settings(config_path: Optional[str] = None) -> Settings:
    """Get cached application settings."""
    path = config_path or os.environ.get("STANDUP_CONFIG_PATH", "config/settings.yaml")
    return Settings.from_yaml(path)
