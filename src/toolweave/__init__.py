"""Toolweave - let a chat model work through a catalog of remote MCP tools.

Connects to a Model Context Protocol server, discovers its tools and runs
a bounded loop in which the model requests tools, toolweave executes them
(concurrently, with a TTL result cache) and feeds the outcomes back until
the model answers in plain text.

Quick Start:
    >>> from toolweave import ToolClient, StdioTransport, OpenAIAdapter, ResultCache, Orchestrator
    >>>
    >>> client = ToolClient(StdioTransport("blueprint-mcp"))
    >>> loop = Orchestrator(client, OpenAIAdapter("gpt-4o", api_key="sk-..."), ResultCache())
    >>> result = await loop.process_prompt("What blueprints can I deploy?")
    >>> result.response
    'You can deploy git-repo ...'

From Environment:
    >>> from toolweave import build_service, configure_logging, get_settings
    >>>
    >>> settings = get_settings()   # TOOLWEAVE_SERVER_COMMAND, TOOLWEAVE_ADAPTER_API_KEY, ...
    >>> configure_logging(settings.logging.level, settings.logging.format)
    >>> service = await build_service(settings)
    >>> (await service.process_prompt("List my resources")).to_dict()
"""

__version__ = "0.1.0"

from .adapters import (
    Adapter,
    AnthropicAdapter,
    ChatResponse,
    GeminiAdapter,
    Message,
    OpenAIAdapter,
    ToolInvocation,
    ToolResult,
    create_adapter,
)
from .foundation.config import ToolweaveSettings, clear_settings_cache, get_settings
from .foundation.errors import (
    AdapterError,
    ConfigurationError,
    ErrorCode,
    OrchestrationCancelledError,
    RpcError,
    ToolConnectionError,
    ToolError,
    ToolNotFoundError,
    ToolweaveError,
    TransportError,
)
from .io.cache import CacheEntry, ResultCache, make_key
from .mcp import (
    CallToolResult,
    ContentPart,
    HttpTransport,
    StdioTransport,
    StreamTransport,
    ToolClient,
    ToolDescriptor,
    Transport,
    create_transport,
)
from .observability import configure_logging
from .runtime import LoopState, OrchestrationResult, OrchestrationService, Orchestrator, build_service

__all__ = [
    "__version__",
    # Protocol client
    "ToolClient", "Transport", "StreamTransport", "StdioTransport", "HttpTransport", "create_transport",
    "ToolDescriptor", "CallToolResult", "ContentPart",
    # Cache
    "ResultCache", "CacheEntry", "make_key",
    # Adapters
    "Adapter", "ChatResponse", "Message", "ToolInvocation", "ToolResult",
    "OpenAIAdapter", "AnthropicAdapter", "GeminiAdapter", "create_adapter",
    # Loop
    "Orchestrator", "OrchestrationResult", "LoopState", "OrchestrationService", "build_service",
    # Errors
    "ToolweaveError", "ToolConnectionError", "TransportError", "RpcError", "ToolNotFoundError",
    "AdapterError", "OrchestrationCancelledError", "ConfigurationError", "ErrorCode", "ToolError",
    # Config & logging
    "ToolweaveSettings", "get_settings", "clear_settings_cache", "configure_logging",
]
