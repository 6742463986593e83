"""LlamaIndex tool metadata backed by a hand-written JSON Schema.

LlamaIndex normally derives a tool's parameters from a pydantic model.
The standup tools ship their own schemas, with per-field descriptions and
strict ``required`` lists, so the providers hand those over verbatim.
"""

import copy
from dataclasses import dataclass, field
from typing import Any

from llama_index.core.tools import FunctionTool, ToolMetadata


@dataclass
class SchemaToolMetadata(ToolMetadata):
    """Tool metadata whose parameters are a fixed JSON Schema."""

    parameters: dict[str, Any] = field(default_factory=dict)

    def get_parameters_dict(self) -> dict:
        return copy.deepcopy(self.parameters)


def schema_tool(tool: dict[str, Any], fn) -> FunctionTool:
    """
    Build a ``FunctionTool`` from a ``{name, description, input_schema}`` entry.

    ``fn`` is only there to satisfy LlamaIndex; tool calls are parsed from the
    response, never invoked through the tool object.
    """
    metadata = SchemaToolMetadata(
        name=tool["name"],
        description=tool["description"],
        parameters=tool["input_schema"],
    )
    return FunctionTool(fn=fn, metadata=metadata)
