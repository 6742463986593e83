"""Core data models for the standup agent.

This module defines the shared data structures that flow between the
conversation driver, the tool executor and the collaborator clients:
conversation content blocks, tool calls and results, the activity records
returned by the data source, and the standup entries posted to Slack.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class ExecutionType(str, Enum):
    """Type of tool execution - read operations vs write operations."""
    READ = "read"
    WRITE = "write"


class ToolKind(str, Enum):
    """The closed set of tools exposed to the planner."""
    FETCH_COMMITS = "fetch_commits"
    FETCH_PULL_REQUESTS = "fetch_pull_requests"
    FETCH_ISSUES = "fetch_issues"
    POST_STANDUP = "post_standup_to_slack"

    @classmethod
    def parse(cls, name: str) -> Optional["ToolKind"]:
        """Resolve a provider-supplied tool name, or None if it is not ours."""
        try:
            return cls(name)
        except ValueError:
            return None


class ErrorKind(str, Enum):
    """Error taxonomy for tool and provider failures."""
    ACCESS_DENIED = "access_denied"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND_OR_PRIVATE = "not_found_or_private"
    AUTH_FAILURE = "auth_failure"
    RATE_LIMITED = "rate_limited"
    UPSTREAM_OVERLOADED = "upstream_overloaded"
    UNKNOWN_TOOL = "unknown_tool"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Conversation content
# ---------------------------------------------------------------------------

class TextBlock(BaseModel):
    """Plain text produced by the planner (or typed by the user)."""
    type: Literal["text"] = "text"
    text: str


class ToolUseBlock(BaseModel):
    """A tool invocation requested by the planner."""
    type: Literal["tool_use"] = "tool_use"
    id: str = Field(..., description="Correlation identifier assigned by the provider")
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultBlock(BaseModel):
    """The answer to one ToolUseBlock, fed back verbatim to the planner."""
    type: Literal["tool_result"] = "tool_result"
    tool_use_id: str
    content: str
    is_error: bool = False


ContentBlock = Annotated[
    Union[TextBlock, ToolUseBlock, ToolResultBlock],
    Field(discriminator="type"),
]


class ConversationMessage(BaseModel):
    """A single entry in the conversation history."""
    role: Literal["user", "assistant"]
    content: Union[str, list[ContentBlock]]
    timestamp: datetime = Field(default_factory=utcnow)


class LLMResponse(BaseModel):
    """Response from the inference layer."""
    content: list[ContentBlock] = Field(default_factory=list)
    stop_reason: str = "end_turn"
    usage: dict[str, int] = Field(default_factory=dict)

    @property
    def tool_calls(self) -> list[ToolUseBlock]:
        """Tool-use blocks in the order the planner issued them."""
        return [block for block in self.content if isinstance(block, ToolUseBlock)]

    @property
    def text(self) -> str:
        """All non-empty text blocks joined by newlines."""
        return "\n".join(
            block.text.strip()
            for block in self.content
            if isinstance(block, TextBlock) and block.text.strip()
        )


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------

class ToolDefinition(BaseModel):
    """
    Declarative definition of one planner-facing tool.

    The JSON Schema is what the provider sees; the input model is the typed
    shape the handler receives once the schema check has passed.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    kind: ToolKind
    description: str = Field(..., description="Clear description for LLM usage")
    input_schema: dict[str, Any] = Field(
        default_factory=dict,
        description="JSON Schema for input validation"
    )
    input_model: type[BaseModel] = Field(..., exclude=True)
    execution_type: ExecutionType = Field(default=ExecutionType.READ)

    @property
    def name(self) -> str:
        return self.kind.value


class ToolCall(BaseModel):
    """A request to execute one tool, as issued by the planner."""
    call_id: str = Field(..., description="Correlation identifier")
    tool_name: str
    parameters: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_block(cls, block: ToolUseBlock) -> "ToolCall":
        return cls(call_id=block.id, tool_name=block.name, parameters=block.input)


class ToolResult(BaseModel):
    """
    Result of a tool execution.

    ``content`` is the exact string handed back to the planner: a JSON
    document for data and errors, or a plain confirmation sentence.
    """
    call_id: str = ""
    tool_name: str
    content: str
    is_error: bool = False
    error_kind: Optional[ErrorKind] = None
    execution_time_ms: float = 0

    @property
    def succeeded(self) -> bool:
        return self.error_kind is None

    @classmethod
    def failure(
        cls,
        tool_name: str,
        message: str,
        kind: ErrorKind,
        is_error: bool = False,
        call_id: str = ""
    ) -> "ToolResult":
        """Build an ``{"error": ...}`` result."""
        return cls(
            call_id=call_id,
            tool_name=tool_name,
            content=json.dumps({"error": message}),
            is_error=is_error,
            error_kind=kind,
        )

    def to_block(self) -> ToolResultBlock:
        return ToolResultBlock(
            tool_use_id=self.call_id,
            content=self.content,
            is_error=self.is_error,
        )


# ---------------------------------------------------------------------------
# Domain records
# ---------------------------------------------------------------------------

class RepoRef(BaseModel):
    """An owner/name pair identifying one repository."""
    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    @classmethod
    def parse(cls, value: str) -> "RepoRef":
        """Parse ``owner/repo``."""
        owner, sep, repo = value.strip().partition("/")
        if not sep or not owner or not repo or "/" in repo:
            raise ValueError(f"Repository must be in 'owner/repo' format, got {value!r}")
        return cls(owner=owner, repo=repo)


class CommitSummary(BaseModel):
    sha: str
    message: str
    url: str
    timestamp: str


class PullRequestSummary(BaseModel):
    number: int
    title: str
    state: str
    action: Literal["opened", "merged", "closed", "reviewed"]
    url: str
    timestamp: str


class IssueActivitySummary(BaseModel):
    number: int
    title: str
    state: str
    action: Literal["commented", "opened", "closed", "assigned"]
    url: str
    comment: Optional[str] = None
    timestamp: str


class StandupEntry(BaseModel):
    """One team member's standup, as written by the planner."""
    username: str
    yesterday: list[str] = Field(default_factory=list)
    today: list[str] = Field(default_factory=list)
    blockers: list[str] = Field(default_factory=list)


class FetchActivityInput(BaseModel):
    """Input shared by the three read-only tools."""
    owner: str = Field(..., description="GitHub repository owner (user or org)")
    repo: str = Field(..., description="GitHub repository name")
    username: str = Field(..., description="GitHub username to fetch activity for")


class PostStandupInput(BaseModel):
    """Input of the posting tool."""
    standup_notes: list[StandupEntry] = Field(
        default_factory=list,
        description="Array of standup entries, one per team member"
    )


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

class SessionState(str, Enum):
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    EXHAUSTED = "exhausted"
    FAILED = "failed"


class TurnOutcome(str, Enum):
    """What one turn reports back to its session."""
    CONTINUE = "continue"
    FINISHED = "finished"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TurnOutcome.CONTINUE


class SessionReport(BaseModel):
    """How one drive of the turn loop ended."""
    state: SessionState
    iterations: int = 0
    error: Optional[str] = None


class AuditEntry(BaseModel):
    """
    Audit log entry for tool executions.

    Captures tool, parameters, timestamp, and result for later review.
    """
    id: str
    timestamp: datetime = Field(default_factory=utcnow)
    call_id: str
    tool_name: str
    execution_type: Optional[ExecutionType] = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    status: Literal["success", "error"]
    error_kind: Optional[ErrorKind] = None
    error: Optional[str] = None
    execution_time_ms: float = 0
