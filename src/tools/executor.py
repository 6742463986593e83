"""Tool Executor.

Validates and runs exactly one planner-issued tool call. The executor
never raises: unknown tools, malformed input, access denials and upstream
failures all come back as ``ToolResult`` data so a single failing call
cannot abort the turn.
"""

import time
from typing import Optional

from pydantic import ValidationError

from shared.logging import get_logger
from shared.models import ErrorKind, ExecutionType, ToolCall, ToolResult
from tools.audit import AuditLogger
from tools.context import ToolContext
from tools.errors import ErrorSource, normalize_error
from tools.registry import ToolRegistry

logger = get_logger(__name__)


class ToolExecutor:
    """
    Dispatches tool calls to their handlers.

    Responsibilities:
    - Resolve the tool by name
    - Validate input against the tool's schema, then build the typed input
    - Run the handler (which applies access control before any network call)
    - Audit every execution
    """

    def __init__(
        self,
        registry: ToolRegistry,
        audit_logger: Optional[AuditLogger] = None
    ) -> None:
        self.registry = registry
        self.audit_logger = audit_logger or AuditLogger(enabled=False)

    async def execute(self, call: ToolCall, ctx: ToolContext) -> ToolResult:
        """
        Execute one tool call.

        Args:
            call: Tool call with its correlation identifier
            ctx: Session tool context

        Returns:
            Tool result carrying the same correlation identifier
        """
        start_time = time.perf_counter()
        tool = self.registry.get(call.tool_name)

        if tool is None:
            logger.warning("Unknown tool requested", tool=call.tool_name, call_id=call.call_id)
            result = ToolResult.failure(
                call.tool_name, f"Unknown tool: {call.tool_name}", ErrorKind.UNKNOWN_TOOL
            )
        else:
            result = await self._run(call, tool, ctx)

        result = result.model_copy(update={
            "call_id": call.call_id,
            "execution_time_ms": (time.perf_counter() - start_time) * 1000,
        })

        await self.audit_logger.log(call, result, tool.definition if tool else None)
        return result

    async def _run(self, call: ToolCall, tool, ctx: ToolContext) -> ToolResult:
        definition = tool.definition

        is_valid, errors = self.registry.validate_input(call.tool_name, call.parameters)
        if not is_valid:
            return ToolResult.failure(
                definition.name,
                f"Invalid input for {definition.name}: {'; '.join(errors)}",
                ErrorKind.VALIDATION_ERROR,
            )

        try:
            params = definition.input_model.model_validate(call.parameters)
        except ValidationError as e:
            return ToolResult.failure(
                definition.name,
                f"Invalid input for {definition.name}: {e.error_count()} validation error(s)",
                ErrorKind.VALIDATION_ERROR,
            )

        try:
            return await tool.handler(params, ctx)
        except Exception as e:
            # Handlers shape collaborator errors themselves; this catches the rest.
            source = ErrorSource.SLACK if definition.execution_type is ExecutionType.WRITE else ErrorSource.GITHUB
            normalized = normalize_error(e, source)
            logger.error(
                "Tool execution failed",
                tool=definition.name,
                call_id=call.call_id,
                error=str(e),
                exc_info=True
            )
            return ToolResult.failure(definition.name, normalized.message, normalized.kind, is_error=True)
