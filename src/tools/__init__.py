"""Tool layer: registry, access control, error normalization and execution.

The planner never decides authorization; every call is validated here
before it can reach GitHub or Slack.
"""

from tools.audit import AuditLogger
from tools.context import ToolContext, build_tool_context
from tools.executor import ToolExecutor
from tools.handlers import build_standup_registry
from tools.registry import ToolRegistry

__all__ = [
    "AuditLogger",
    "ToolContext",
    "build_tool_context",
    "ToolExecutor",
    "build_standup_registry",
    "ToolRegistry",
]
