"""Model backends behind one Adapter protocol.

- OpenAIAdapter: native function calling
- AnthropicAdapter: native tool use
- GeminiAdapter: tools described in the prompt, calls parsed from text
- create_adapter: pick one from AdapterSettings
"""

from .anthropic import AnthropicAdapter
from .base import (
    DEFAULT_SYSTEM_PROMPT,
    Adapter,
    ChatResponse,
    Message,
    Role,
    ToolInvocation,
    ToolResult,
    Usage,
    render_history,
)
from .factory import ADAPTERS, create_adapter
from .formats import to_anthropic, to_openai
from .gemini import GeminiAdapter
from .openai import OpenAIAdapter
from .text import build_system_prompt, parse_tool_calls

__all__ = [
    # Protocol and conversation types
    "Adapter", "ChatResponse", "Message", "Role", "ToolInvocation", "ToolResult", "Usage",
    "DEFAULT_SYSTEM_PROMPT", "render_history",
    # Backends
    "OpenAIAdapter", "AnthropicAdapter", "GeminiAdapter", "ADAPTERS", "create_adapter",
    # Formats
    "to_openai", "to_anthropic",
    "build_system_prompt", "parse_tool_calls",
]
