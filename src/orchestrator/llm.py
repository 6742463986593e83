"""LLM Integration Layer using LlamaIndex.

Supports multiple LLM providers via LlamaIndex-compatible packages:
- Anthropic (default)
- OpenAI
- Azure OpenAI

The LLM only plans: it sees the tool definitions and the history, and
answers with text and/or tool-use blocks. It never calls GitHub or Slack
and never decides authorization.
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Optional

from shared.config import LLMSettings
from shared.logging import get_logger
from shared.models import (
    ContentBlock,
    ConversationMessage,
    LLMResponse,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)

logger = get_logger(__name__)


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    LLM Integration Rules:
    - LLM receives only the four standup tools and the conversation history
    - LLM outputs text, tool-use blocks, or both
    - LLM must not access APIs directly or decide authorization
    """

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        tools: list[dict[str, Any]],
        messages: list[ConversationMessage]
    ) -> LLMResponse:
        """
        Run one inference call.

        Args:
            system_prompt: System instruction for the session mode
            tools: ``{name, description, input_schema}`` entries offered to the model
            messages: Full conversation history

        Returns:
            LLM response with text and/or tool-use blocks

        Raises:
            Exception: Provider errors propagate unchanged; callers classify them
        """
        pass


def _not_invoked(**kwargs: Any) -> None:
    raise RuntimeError("Tools are executed by the ToolExecutor, not by the LLM layer")


class LlamaIndexProvider(LLMProvider):
    """Shared function-calling logic for LlamaIndex chat models."""

    def __init__(self, settings: LLMSettings) -> None:
        self.settings = settings
        self._llm = None

    @abstractmethod
    def _build_llm(self):
        """Construct the LlamaIndex LLM. Imports stay local to this method."""

    @abstractmethod
    def _encode_tool_call(self, block: ToolUseBlock) -> dict[str, Any]:
        """Render a tool-use block the way the provider's message converter expects."""

    def _get_llm(self):
        """Lazy initialization of LlamaIndex LLM."""
        if self._llm is None:
            self._llm = self._build_llm()
        return self._llm

    def _build_tools(self, tools: list[dict[str, Any]]) -> list:
        from orchestrator.tool_schema import schema_tool

        return [schema_tool(tool, _not_invoked) for tool in tools]

    def _convert_messages(self, system_prompt: str, messages: list[ConversationMessage]) -> list:
        """Convert internal messages to LlamaIndex format."""
        from llama_index.core.llms import ChatMessage, MessageRole

        result = [ChatMessage(role=MessageRole.SYSTEM, content=system_prompt)]

        for msg in messages:
            if isinstance(msg.content, str):
                role = MessageRole.USER if msg.role == "user" else MessageRole.ASSISTANT
                result.append(ChatMessage(role=role, content=msg.content))
                continue

            if msg.role == "assistant":
                text = "".join(b.text for b in msg.content if isinstance(b, TextBlock))
                tool_calls = [
                    self._encode_tool_call(b) for b in msg.content if isinstance(b, ToolUseBlock)
                ]
                chat_msg = ChatMessage(role=MessageRole.ASSISTANT, content=text)
                if tool_calls:
                    chat_msg.additional_kwargs = {"tool_calls": tool_calls}
                result.append(chat_msg)
                continue

            # User entries carry either typed text or a bundle of tool results.
            # LlamaIndex tool messages have no error flag, so is_error stays local.
            for block in msg.content:
                if isinstance(block, ToolResultBlock):
                    result.append(ChatMessage(
                        role=MessageRole.TOOL,
                        content=block.content,
                        additional_kwargs={"tool_call_id": block.tool_use_id},
                    ))
                elif isinstance(block, TextBlock):
                    result.append(ChatMessage(role=MessageRole.USER, content=block.text))

        return result

    async def complete(
        self,
        system_prompt: str,
        tools: list[dict[str, Any]],
        messages: list[ConversationMessage]
    ) -> LLMResponse:
        llm = self._get_llm()
        chat_history = self._convert_messages(system_prompt, messages)

        try:
            response = await llm.achat_with_tools(
                self._build_tools(tools),
                chat_history=chat_history,
                allow_parallel_tool_calls=True,
            )
            selections = llm.get_tool_calls_from_response(response, error_on_no_tool_call=False)
        except Exception as e:
            logger.error("LLM completion failed", provider=self.settings.provider, error=str(e))
            raise

        content: list[ContentBlock] = []
        if response.message and response.message.content:
            content.append(TextBlock(text=response.message.content))
        for selection in selections:
            content.append(ToolUseBlock(
                id=selection.tool_id,
                name=selection.tool_name,
                input=selection.tool_kwargs or {},
            ))

        return LLMResponse(
            content=content,
            stop_reason="tool_use" if selections else "end_turn",
            usage={}  # LlamaIndex does not expose usage uniformly
        )


class AnthropicProvider(LlamaIndexProvider):
    """Anthropic Messages API provider using LlamaIndex."""

    def _build_llm(self):
        from llama_index.llms.anthropic import Anthropic

        kwargs: dict[str, Any] = {}
        if self.settings.api_base:
            kwargs["base_url"] = self.settings.api_base

        return Anthropic(
            model=self.settings.model,
            api_key=self.settings.api_key,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
            **kwargs,
        )

    def _encode_tool_call(self, block: ToolUseBlock) -> dict[str, Any]:
        return {"id": block.id, "name": block.name, "input": block.input, "type": "tool_use"}


class OpenAIProvider(LlamaIndexProvider):
    """OpenAI LLM provider using LlamaIndex."""

    def _build_llm(self):
        from llama_index.llms.openai import OpenAI

        return OpenAI(
            model=self.settings.model,
            api_key=self.settings.api_key,
            api_base=self.settings.api_base,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
        )

    def _encode_tool_call(self, block: ToolUseBlock) -> dict[str, Any]:
        return {
            "id": block.id,
            "type": "function",
            "function": {"name": block.name, "arguments": json.dumps(block.input)},
        }


class AzureOpenAIProvider(OpenAIProvider):
    """Azure OpenAI LLM provider using LlamaIndex."""

    def _build_llm(self):
        from llama_index.llms.azure_openai import AzureOpenAI

        return AzureOpenAI(
            engine=self.settings.deployment_name or self.settings.model,
            model=self.settings.model,
            api_key=self.settings.api_key,
            azure_endpoint=self.settings.api_base,
            api_version=self.settings.api_version,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
        )


class MockLLMProvider(LLMProvider):
    """Mock LLM provider for testing without API calls."""

    def __init__(self, settings: Optional[LLMSettings] = None) -> None:
        self.settings = settings
        self.call_history: list[dict[str, Any]] = []
        self._queue: list[LLMResponse] = []
        self._error: Optional[Exception] = None

    def set_next_response(self, response: LLMResponse) -> None:
        """Set the next response to return."""
        self._queue.insert(0, response)

    def queue_responses(self, responses: list[LLMResponse]) -> None:
        """Append responses, returned in order on subsequent calls."""
        self._queue.extend(responses)

    def set_error(self, error: Exception) -> None:
        """Make the next call raise ``error``."""
        self._error = error

    async def complete(
        self,
        system_prompt: str,
        tools: list[dict[str, Any]],
        messages: list[ConversationMessage]
    ) -> LLMResponse:
        """Return mock response."""
        self.call_history.append({
            "system_prompt": system_prompt,
            "tools": [t["name"] for t in tools],
            "messages": list(messages),
        })

        if self._error is not None:
            error, self._error = self._error, None
            raise error

        if self._queue:
            return self._queue.pop(0)

        # Default mock response
        return LLMResponse(
            content=[TextBlock(text="This is a mock response.")],
            stop_reason="end_turn",
            usage={"input_tokens": 10, "output_tokens": 5}
        )


def create_llm_provider(settings: LLMSettings) -> LLMProvider:
    """
    Factory function to create appropriate LLM provider.

    Supports:
    - anthropic: Anthropic Messages API
    - openai: OpenAI API
    - azure_openai: Azure OpenAI Service
    - mock: Mock provider for testing

    Args:
        settings: LLM configuration settings

    Returns:
        Configured LLM provider

    Raises:
        ValueError: If provider is not supported
    """
    providers = {
        "anthropic": AnthropicProvider,
        "openai": OpenAIProvider,
        "azure_openai": AzureOpenAIProvider,
        "mock": MockLLMProvider,
    }

    provider_class = providers.get(settings.provider)
    if not provider_class:
        raise ValueError(
            f"Unsupported LLM provider: {settings.provider}. "
            f"Supported: {list(providers.keys())}"
        )

    logger.info("Creating LLM provider", provider=settings.provider, model=settings.model)
    return provider_class(settings)
