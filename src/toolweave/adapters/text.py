"""Text-pattern tool calling for backends without native tool support.

The system prompt lists the catalog and instructs the model to emit one
line per invocation:

    TOOL_CALL: tool_name({"arg": "value"})

`parse_tool_calls` recovers invocations from the reply. Lines with an
argument list are preferred; the bare `TOOL_CALL: tool_name` form is only
considered when no line carried arguments. Text after the closing
parenthesis on a call line is ignored.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from toolweave.io.codec import DecodeError, decode
from toolweave.mcp.types import ToolDescriptor

from .base import ToolInvocation

TOOL_CALL_PATTERN = re.compile(r"^\s*TOOL_CALL:[ \t]*([a-zA-Z0-9_-]+)[ \t]*\((.*)\)", re.MULTILINE)
BARE_TOOL_CALL_PATTERN = re.compile(r"^\s*TOOL_CALL:\s*([a-zA-Z0-9_-]+)\s*$", re.MULTILINE)
CALL_LINE_PATTERN = re.compile(r"^[ \t]*TOOL_CALL:.*$", re.MULTILINE)

_PROMPT_HEADER = """You are a helpful AI assistant that can interact with an infrastructure management platform.

You have access to the following tools. When you need to perform an action, call the appropriate tool by responding in this EXACT format:

TOOL_CALL: tool_name({"param1": "value1", "param2": "value2"})

If a tool requires no parameters, use:

TOOL_CALL: tool_name({})

Available tools:
"""

_PROMPT_RULES = """
IMPORTANT RULES:
1. When you need to use a tool, output EXACTLY in the format: TOOL_CALL: tool_name({json_args})
2. You can call multiple tools by outputting multiple TOOL_CALL lines
3. Use proper JSON format for arguments and provide all [REQUIRED] parameters
4. Don't make up tool names - only use the tools listed above
5. After receiving tool results, analyze them and provide a clear, helpful response
6. If no tool is needed, answer directly without any TOOL_CALL line
"""


def describe_tools(tools: Sequence[ToolDescriptor]) -> str:
    lines: list[str] = []
    for tool in tools:
        lines.append(f"\n{tool.name}: {tool.description}")
        if tool.parameters:
            lines.append("  Parameters:")
            for p in tool.parameters:
                mark = " [REQUIRED]" if p.required else ""
                lines.append(f"    - {p.name} ({p.type}){mark}: {p.description}")
        else:
            lines.append("  Parameters: None required")
    return "\n".join(lines)


def build_system_prompt(tools: Sequence[ToolDescriptor], preamble: str | None = None) -> str:
    """System prompt describing the catalog and the TOOL_CALL format."""
    header = f"{preamble}\n\n{_PROMPT_HEADER}" if preamble else _PROMPT_HEADER
    return f"{header}{describe_tools(tools)}\n{_PROMPT_RULES}"


def parse_tool_calls(content: str, tools: Sequence[ToolDescriptor]) -> list[ToolInvocation]:
    """Extract invocations of catalog tools from model text.

    Unknown tool names are dropped, unparseable argument JSON becomes empty
    arguments, and ids are assigned `call_1`, `call_2`, ... in reply order.

    Example:
        >>> parse_tool_calls('TOOL_CALL: get_blueprints({})', catalog)
        [ToolInvocation(id='call_1', name='get_blueprints', arguments={})]
    """
    known = {tool.name for tool in tools}
    found: list[tuple[str, str]] = [(m.group(1), m.group(2)) for m in TOOL_CALL_PATTERN.finditer(content)]
    if not found:
        found = [(m.group(1), "") for m in BARE_TOOL_CALL_PATTERN.finditer(content)]

    calls: list[ToolInvocation] = []
    for name, raw in found:
        if name not in known:
            continue
        calls.append(ToolInvocation(id=f"call_{len(calls) + 1}", name=name, arguments=_parse_arguments(raw)))
    return calls


def _parse_arguments(raw: str) -> dict:
    # Commentary may follow the call on the same line; retry at each
    # earlier closing parenthesis until the argument JSON decodes.
    raw = raw.strip()
    while raw:
        try:
            value = decode(raw)
        except DecodeError:
            cut = raw.rfind(")")
            if cut < 0:
                return {}
            raw = raw[:cut].rstrip()
            continue
        return value if isinstance(value, dict) else {}
    return {}


def strip_tool_calls(content: str) -> str:
    """Reply text with TOOL_CALL lines removed."""
    text = CALL_LINE_PATTERN.sub("", content)
    return re.sub(r"\n{3,}", "\n\n", text).strip()
