"""Unified error handling for toolweave.

- ErrorCode: Standard error codes for failures
- ToolError: Structured error rendered back to the model
- Exception taxonomy for client, adapter and loop failures
"""

from .errors import (
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
    classify_exception,
)
from .types import JsonDict, JsonMapping, JsonPrimitive, JsonValue

__all__ = [
    # Core errors
    "ErrorCode", "ToolError", "classify_exception",
    # Taxonomy
    "ToolweaveError", "ConfigurationError", "ToolConnectionError", "TransportError", "RpcError",
    "ToolNotFoundError", "AdapterError", "OrchestrationCancelledError",
    # JSON aliases
    "JsonDict", "JsonMapping", "JsonPrimitive", "JsonValue",
]
