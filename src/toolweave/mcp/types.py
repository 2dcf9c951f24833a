"""Wire and catalog types for the Model Context Protocol client.

JSON-RPC envelopes plus the MCP payloads the client consumes: tool
descriptors from `tools/list` and content parts from `tools/call`.
Field aliases follow the protocol's camelCase; Python attributes are
snake_case.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, computed_field

from toolweave.foundation.errors import JsonDict

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2024-11-05"


class _Wire(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ═══════════════════════════════════════════════════════════════════════════════
# JSON-RPC Envelopes
# ═══════════════════════════════════════════════════════════════════════════════


class JsonRpcRequest(_Wire):
    """Request (with id) or notification (id omitted)."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: int | None = None
    method: str
    params: JsonDict | None = None

    def to_wire(self) -> JsonDict:
        return self.model_dump(exclude_none=True)


class JsonRpcErrorObject(_Wire):
    code: int
    message: str
    data: Any = None


class JsonRpcResponse(_Wire):
    jsonrpc: str = JSONRPC_VERSION
    id: int | str | None = None
    result: Any = None
    error: JsonRpcErrorObject | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Handshake
# ═══════════════════════════════════════════════════════════════════════════════


class Implementation(_Wire):
    """Client or server identity."""

    name: str
    version: str = ""


class InitializeResult(_Wire):
    protocol_version: str = Field(default="", alias="protocolVersion")
    capabilities: JsonDict = Field(default_factory=dict)
    server_info: Implementation | None = Field(default=None, alias="serverInfo")
    instructions: str | None = None


# ═══════════════════════════════════════════════════════════════════════════════
# Tool Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class ToolParameter(BaseModel):
    """One named parameter derived from a tool's input schema."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: str = "any"
    description: str = ""
    required: bool = False


class ToolDescriptor(_Wire):
    """A tool exposed by the endpoint. Immutable after discovery."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    name: str = Field(min_length=1)
    description: str = ""
    input_schema: JsonDict = Field(default_factory=lambda: {"type": "object", "properties": {}}, alias="inputSchema")

    @computed_field
    @property
    def parameters(self) -> tuple[ToolParameter, ...]:
        """Named parameters with type, description and required flag."""
        properties = self.input_schema.get("properties") or {}
        required = set(self.input_schema.get("required") or ())
        return tuple(
            ToolParameter(
                name=name,
                type=str(spec.get("type", "any")) if isinstance(spec, dict) else "any",
                description=str(spec.get("description", "")) if isinstance(spec, dict) else "",
                required=name in required,
            )
            for name, spec in properties.items()
        )


class ListToolsResult(_Wire):
    tools: list[ToolDescriptor] = Field(default_factory=list)
    next_cursor: str | None = Field(default=None, alias="nextCursor")


# ═══════════════════════════════════════════════════════════════════════════════
# Tool Calls
# ═══════════════════════════════════════════════════════════════════════════════


class ContentPart(_Wire):
    """One ordered part of a tool response: text or a typed blob."""

    type: str = "text"
    text: str | None = None
    data: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")

    @property
    def is_text(self) -> bool:
        return self.type == "text" and self.text is not None


class CallToolResult(_Wire):
    """Outcome of `tools/call`. `is_error` marks a tool-level failure."""

    content: list[ContentPart] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")

    def texts(self) -> list[str]:
        return [part.text for part in self.content if part.is_text]  # type: ignore[misc]
