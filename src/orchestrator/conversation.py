"""Conversation Driver.

Runs one turn of the plan/act loop: a single inference call, then every
tool call from that response executed concurrently, with the results fed
back as one history entry. The driver is the only writer of the message
history.
"""

import asyncio
from typing import Callable, Optional

from shared.logging import get_logger
from shared.models import (
    ConversationMessage,
    ErrorKind,
    ToolCall,
    ToolResult,
    ToolUseBlock,
    TurnOutcome,
)
from orchestrator.llm import LLMProvider
from tools.context import ToolContext
from tools.errors import ErrorSource, NormalizedError, normalize_error
from tools.executor import ToolExecutor
from tools.registry import ToolRegistry

logger = get_logger(__name__)


class ConversationDriver:
    """
    Owns the message history and executes turns against it.

    Responsibilities:
    - Issue one inference call per turn with the full history
    - Append the assistant response unconditionally
    - Fan out tool calls, fan results back in by correlation id
    - Turn provider failures into a terminal outcome, never a retry
    """

    def __init__(
        self,
        llm: LLMProvider,
        executor: ToolExecutor,
        registry: ToolRegistry,
        messages: Optional[list[ConversationMessage]] = None,
        on_text: Optional[Callable[[str], None]] = None
    ) -> None:
        """
        Initialize the driver.

        Args:
            llm: Inference provider
            executor: Tool executor for planner-issued calls
            registry: Registry whose tools are offered to the planner
            messages: Existing history to continue from
            on_text: Called with the assistant's text whenever a response has any
        """
        self.llm = llm
        self.executor = executor
        self.registry = registry
        self.messages: list[ConversationMessage] = list(messages or [])
        self.on_text = on_text
        self.last_error: Optional[NormalizedError] = None

    def add_user_message(self, text: str) -> None:
        self.messages.append(ConversationMessage(role="user", content=text))

    async def run_turn(
        self,
        system_prompt: str,
        ctx: ToolContext,
        iteration: Optional[int] = None
    ) -> TurnOutcome:
        """
        Execute one turn.

        Args:
            system_prompt: System instruction for the session mode
            ctx: Tool context for this session
            iteration: Turn counter, used for logging only

        Returns:
            FINISHED when the response has no tool calls, CONTINUE after
            tool results were appended, FAILED when the inference call failed
        """
        log = logger.bind(iteration=iteration) if iteration is not None else logger

        try:
            response = await self.llm.complete(system_prompt, self.registry.get_tools_for_llm(), self.messages)
        except Exception as e:
            self.last_error = normalize_error(e, ErrorSource.INFERENCE)
            log.error(
                "Inference call failed",
                error_kind=self.last_error.kind.value,
                error=self.last_error.message
            )
            return TurnOutcome.FAILED

        self.messages.append(ConversationMessage(role="assistant", content=response.content))

        if response.text and self.on_text:
            self.on_text(response.text)

        tool_uses = response.tool_calls
        if not tool_uses:
            log.debug("Turn finished", stop_reason=response.stop_reason)
            return TurnOutcome.FINISHED

        log.info("Executing tool calls", tools=[b.name for b in tool_uses], count=len(tool_uses))

        results = await asyncio.gather(*(self._execute_one(block, ctx) for block in tool_uses))

        # Every result carries the call_id of the block that issued it
        self.messages.append(ConversationMessage(
            role="user",
            content=[result.to_block() for result in results],
        ))
        return TurnOutcome.CONTINUE

    async def _execute_one(self, block: ToolUseBlock, ctx: ToolContext) -> ToolResult:
        try:
            return await self.executor.execute(ToolCall.from_block(block), ctx)
        except Exception as e:
            logger.error("Tool executor raised", tool=block.name, call_id=block.id, error=str(e))
            return ToolResult.failure(
                block.name,
                f"Tool execution failed: {e}",
                ErrorKind.UNKNOWN,
                is_error=True,
                call_id=block.id,
            )
