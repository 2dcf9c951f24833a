"""Standardized error handling for tool orchestration.

Provides error codes, structured error responses for model feedback, and the
exception taxonomy raised by the protocol client, adapters and the loop.

Taxonomy:
    - ToolConnectionError: handshake/setup failure, fatal to the client
    - TransportError: mid-session I/O failure, recoverable per call
    - RpcError: JSON-RPC error response (a TransportError)
    - ToolNotFoundError: client-side validation, never dispatched
    - AdapterError: model backend failure, fatal to the current call
    - OrchestrationCancelledError: the caller's cancel signal fired
    - ConfigurationError: invalid or missing settings
"""

from __future__ import annotations

import traceback
from enum import StrEnum
from functools import lru_cache
from typing import Annotated, Self

from pydantic import BaseModel, ConfigDict, Field, computed_field


class ErrorCode(StrEnum):
    """Standard error codes for tool and orchestration failures.

    Used for programmatic error handling and log classification.
    """
    CONNECTION_FAILED = "CONNECTION_FAILED"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    RPC_ERROR = "RPC_ERROR"
    TOOL_NOT_FOUND = "TOOL_NOT_FOUND"
    ADAPTER_ERROR = "ADAPTER_ERROR"
    CANCELLED = "CANCELLED"
    CONFIGURATION = "CONFIGURATION"
    RATE_LIMITED = "RATE_LIMITED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    PARSE_ERROR = "PARSE_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    UNKNOWN = "UNKNOWN"


# Flattened pattern -> code mapping, checked in insertion order
_PATTERN_CODES: dict[str, ErrorCode] = {
    "timeout": ErrorCode.TIMEOUT,
    "connection": ErrorCode.NETWORK_ERROR,
    "network": ErrorCode.NETWORK_ERROR,
    "broken pipe": ErrorCode.NETWORK_ERROR,
    "rate": ErrorCode.RATE_LIMITED,
    "auth": ErrorCode.PERMISSION_DENIED,
    "permission": ErrorCode.PERMISSION_DENIED,
    "forbidden": ErrorCode.PERMISSION_DENIED,
    "parse": ErrorCode.PARSE_ERROR,
    "json": ErrorCode.PARSE_ERROR,
    "decode": ErrorCode.PARSE_ERROR,
}
_PATTERN_KEYS = tuple(_PATTERN_CODES.keys())


@lru_cache(maxsize=256)
def _classify_cached(exc_key: str) -> ErrorCode:
    haystack = exc_key.lower()
    for pattern in _PATTERN_KEYS:
        if pattern in haystack:
            return _PATTERN_CODES[pattern]
    return ErrorCode.UNKNOWN


def classify_exception(exc: BaseException) -> ErrorCode:
    """Map exception to error code. Taxonomy errors carry their own code."""
    if isinstance(exc, ToolweaveError):
        return exc.code
    return _classify_cached(f"{type(exc).__name__} {exc}")


# ═══════════════════════════════════════════════════════════════════════════════
# Structured Error Response
# ═══════════════════════════════════════════════════════════════════════════════


class ToolError(BaseModel):
    """Tool failure rendered back to the model as text.

    Carries the classification used in logs (`code`, `recoverable`) next
    to the message the model sees via `render()`.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    tool_name: Annotated[str, Field(min_length=1)]
    message: Annotated[str, Field(min_length=1)]
    code: ErrorCode = ErrorCode.UNKNOWN
    recoverable: bool = True
    details: str | None = Field(default=None, description="Traceback or server-provided detail")

    @computed_field
    @property
    def is_retryable(self) -> bool:
        """Timeouts, rate limits and network failures may succeed on a later turn."""
        return self.code in _RETRYABLE_CODES

    @classmethod
    def create(
        cls,
        tool_name: str,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        *,
        recoverable: bool = True,
        details: str | None = None,
    ) -> Self:
        return cls(tool_name=tool_name, message=message, code=code, recoverable=recoverable, details=details)

    @classmethod
    def from_exception(
        cls,
        tool_name: str,
        exc: BaseException,
        context: str = "",
        *,
        include_trace: bool = False,
    ) -> Self:
        """Classify `exc`; taxonomy errors keep their own code and recoverability."""
        message = str(exc) or type(exc).__name__
        return cls(
            tool_name=tool_name,
            message=f"{context}: {message}" if context else message,
            code=classify_exception(exc),
            recoverable=exc.recoverable if isinstance(exc, ToolweaveError) else True,
            details=traceback.format_exc() if include_trace else None,
        )

    def render(self) -> str:
        """`Error calling tool {name}: {message}`, plus details when present."""
        text = f"Error calling tool {self.tool_name}: {self.message}"
        return f"{text}\n\nDetails:\n```\n{self.details}\n```" if self.details else text

    __str__ = render


_RETRYABLE_CODES: frozenset[ErrorCode] = frozenset({
    ErrorCode.RATE_LIMITED,
    ErrorCode.TIMEOUT,
    ErrorCode.NETWORK_ERROR,
    ErrorCode.TRANSPORT_ERROR,
})


# ═══════════════════════════════════════════════════════════════════════════════
# Exception Taxonomy
# ═══════════════════════════════════════════════════════════════════════════════


class ToolweaveError(Exception):
    """Base exception for toolweave."""

    code: ErrorCode = ErrorCode.UNKNOWN
    recoverable: bool = False


class ConfigurationError(ToolweaveError):
    """Settings are missing or inconsistent."""

    code = ErrorCode.CONFIGURATION


class ToolConnectionError(ToolweaveError):
    """Transport setup or handshake failed. Fatal to the client."""

    code = ErrorCode.CONNECTION_FAILED


class TransportError(ToolweaveError):
    """I/O failure during a session. Recoverable per call."""

    code = ErrorCode.TRANSPORT_ERROR
    recoverable = True


class RpcError(TransportError):
    """The endpoint answered a request with a JSON-RPC error object."""

    code = ErrorCode.RPC_ERROR

    __slots__ = ("rpc_code", "data")

    def __init__(self, rpc_code: int, message: str, data: object = None) -> None:
        self.rpc_code = rpc_code
        self.data = data
        super().__init__(f"JSON-RPC error {rpc_code}: {message}")


class ToolNotFoundError(ToolweaveError):
    """Requested tool is absent from the discovered catalog."""

    code = ErrorCode.TOOL_NOT_FOUND

    __slots__ = ("tool_name",)

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Tool '{tool_name}' not found in catalog")


class AdapterError(ToolweaveError):
    """Model backend failed. Aborts the current orchestration call."""

    code = ErrorCode.ADAPTER_ERROR

    __slots__ = ("provider",)

    def __init__(self, message: str, *, provider: str | None = None) -> None:
        self.provider = provider
        super().__init__(f"{provider} adapter error: {message}" if provider else message)


class OrchestrationCancelledError(ToolweaveError):
    """The caller's cancellation signal fired before the loop finished."""

    code = ErrorCode.CANCELLED
