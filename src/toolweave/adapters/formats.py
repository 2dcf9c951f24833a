"""Tool catalog converters for model provider APIs.

Converts discovered ToolDescriptors into the native tool format of the
backends that support tool calling: OpenAI function calling and Anthropic
tool_use. Gemini gets the catalog in its prompt instead (see text.py).

Example:
    >>> tools = await client.list_tools()
    >>> openai_tools = to_openai(tools)
    >>> anthropic_tools = to_anthropic(tools)
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from toolweave.mcp.types import ToolDescriptor

OpenAITool = dict[str, Any]
AnthropicTool = dict[str, Any]


def _clean_schema(tool: ToolDescriptor) -> dict[str, Any]:
    """Object schema with provider-irrelevant metadata removed."""
    schema = tool.input_schema
    properties = schema.get("properties") or {}
    return {
        "type": "object",
        "properties": {
            name: {k: v for k, v in prop.items() if k != "title"} if isinstance(prop, dict) else prop
            for name, prop in properties.items()
        },
        "required": list(schema.get("required") or []),
    }


# ─────────────────────────────────────────────────────────────────────────────
# OpenAI Format
# ─────────────────────────────────────────────────────────────────────────────

def tool_to_openai(tool: ToolDescriptor) -> OpenAITool:
    """Convert a tool to OpenAI function calling format.

    ```json
    {"type": "function", "function": {"name": ..., "description": ..., "parameters": {...}}}
    ```
    """
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": _clean_schema(tool),
        },
    }


def to_openai(tools: Sequence[ToolDescriptor]) -> list[OpenAITool]:
    return [tool_to_openai(tool) for tool in tools]


# ─────────────────────────────────────────────────────────────────────────────
# Anthropic Format
# ─────────────────────────────────────────────────────────────────────────────

def tool_to_anthropic(tool: ToolDescriptor) -> AnthropicTool:
    """Convert a tool to Anthropic tool_use format.

    ```json
    {"name": ..., "description": ..., "input_schema": {"type": "object", ...}}
    ```
    """
    return {
        "name": tool.name,
        "description": tool.description,
        "input_schema": _clean_schema(tool),
    }


def to_anthropic(tools: Sequence[ToolDescriptor]) -> list[AnthropicTool]:
    return [tool_to_anthropic(tool) for tool in tools]
