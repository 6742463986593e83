"""Shared models, configuration and logging for the standup agent."""

from shared.models import (
    ConversationMessage,
    ErrorKind,
    LLMResponse,
    RepoRef,
    StandupEntry,
    ToolCall,
    ToolDefinition,
    ToolKind,
    ToolResult,
)
from shared.config import Settings, get_settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "ConversationMessage",
    "ErrorKind",
    "LLMResponse",
    "RepoRef",
    "StandupEntry",
    "ToolCall",
    "ToolDefinition",
    "ToolKind",
    "ToolResult",
    "Settings",
    "get_settings",
    "get_logger",
    "setup_logging",
]
