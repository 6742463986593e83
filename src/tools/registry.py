"""Tool Registry.

Maps the closed ``ToolKind`` enumeration to a definition and a typed
handler. Provider-supplied names are resolved through the enumeration, so
anything outside the four known tools never reaches a handler.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional

from pydantic import BaseModel

from shared.logging import get_logger
from shared.models import ToolDefinition, ToolKind, ToolResult
from shared.schema import validate_schema

if TYPE_CHECKING:
    from tools.context import ToolContext

logger = get_logger(__name__)


ToolHandler = Callable[[BaseModel, "ToolContext"], Awaitable[ToolResult]]


@dataclass(frozen=True)
class RegisteredTool:
    definition: ToolDefinition
    handler: ToolHandler


class ToolRegistry:
    """
    Registry of the tools offered to the planner.

    Responsibilities:
    - Register one handler per tool kind
    - Resolve provider-supplied names
    - Validate raw input against each tool's JSON Schema
    - Render definitions for the inference provider
    """

    def __init__(self) -> None:
        self._tools: dict[ToolKind, RegisteredTool] = {}

    def register(self, definition: ToolDefinition, handler: ToolHandler) -> None:
        """
        Register a tool.

        Raises:
            ValueError: If the tool kind is already registered
        """
        if definition.kind in self._tools:
            raise ValueError(f"Tool '{definition.name}' is already registered")

        self._tools[definition.kind] = RegisteredTool(definition=definition, handler=handler)
        logger.debug(
            "Tool registered",
            tool=definition.name,
            execution_type=definition.execution_type.value
        )

    def get(self, tool_name: str) -> Optional[RegisteredTool]:
        """Look up a tool by the name the provider used; None if unknown."""
        kind = ToolKind.parse(tool_name)
        if kind is None:
            return None
        return self._tools.get(kind)

    def list_tools(self) -> list[ToolDefinition]:
        return [tool.definition for tool in self._tools.values()]

    def validate_input(
        self,
        tool_name: str,
        parameters: dict[str, Any]
    ) -> tuple[bool, list[str]]:
        """
        Validate input parameters against the tool's input schema.

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        tool = self.get(tool_name)
        if not tool:
            return False, [f"Tool '{tool_name}' not found"]

        return validate_schema(parameters, tool.definition.input_schema)

    def get_tools_for_llm(self) -> list[dict[str, Any]]:
        """Definitions in the provider's tool format, in registration order."""
        return [
            {
                "name": tool.name,
                "description": tool.description,
                "input_schema": tool.input_schema,
            }
            for tool in self.list_tools()
        ]

    def __len__(self) -> int:
        return len(self._tools)
