"""Model Context Protocol client.

- ToolClient: handshake, cached tool catalog, correlated tool calls
- Transports: StreamTransport, StdioTransport, HttpTransport
- Types: ToolDescriptor, ToolParameter, ContentPart, CallToolResult

Example:
    >>> from toolweave.mcp import ToolClient, StdioTransport
    >>> async with ToolClient(StdioTransport("blueprint-mcp")) as client:
    ...     print([tool.name for tool in await client.list_tools()])
"""

from .client import DEFAULT_CALL_TIMEOUT, ToolClient
from .transport import HttpTransport, StdioTransport, StreamTransport, Transport, create_transport
from .types import (
    PROTOCOL_VERSION,
    CallToolResult,
    ContentPart,
    Implementation,
    InitializeResult,
    JsonRpcRequest,
    JsonRpcResponse,
    ToolDescriptor,
    ToolParameter,
)

__all__ = [
    "ToolClient", "DEFAULT_CALL_TIMEOUT",
    "Transport", "StreamTransport", "StdioTransport", "HttpTransport", "create_transport",
    "PROTOCOL_VERSION", "CallToolResult", "ContentPart", "Implementation", "InitializeResult",
    "JsonRpcRequest", "JsonRpcResponse", "ToolDescriptor", "ToolParameter",
]
