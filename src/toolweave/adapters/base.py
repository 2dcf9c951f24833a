"""Adapter capability interface and conversation types.

An Adapter turns (prompt, tool catalog, history) into model output: text
plus zero or more tool invocations. Backends differ only in prompt
formatting and in how invocations are surfaced (native structured calls
or text parsed from the reply), so the loop treats them uniformly.

Any object with a `name` and an async `chat` satisfies the protocol; no
base class is required.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import StrEnum
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from toolweave.foundation.errors import AdapterError, JsonDict
from toolweave.io.codec import encode_str
from toolweave.mcp.types import ToolDescriptor

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant that can interact with an infrastructure management platform. "
    "You have access to various tools to help manage cloud resources. When asked to perform operations, "
    "use the available tools to accomplish the task."
)


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class ToolInvocation(BaseModel):
    """A tool call requested by the model. Ids are unique within a turn."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: JsonDict = Field(default_factory=dict)


class ToolResult(BaseModel):
    """Outcome of one invocation, fed back to the model."""

    model_config = ConfigDict(frozen=True)

    tool_call_id: str
    name: str
    content: str
    is_error: bool = False
    cached: bool = False


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatResponse(BaseModel):
    """One model turn: text plus ordered tool invocations."""

    content: str = ""
    tool_calls: list[ToolInvocation] = Field(default_factory=list)
    finish_reason: str = "stop"
    usage: Usage | None = None

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


class Message(BaseModel):
    """One conversation turn. History is append-only and lives for one request."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    tool_calls: tuple[ToolInvocation, ...] = ()
    tool_results: tuple[ToolResult, ...] = ()

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: Sequence[ToolInvocation] = ()) -> Message:
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, results: Sequence[ToolResult]) -> Message:
        return cls(role=Role.TOOL, tool_results=tuple(results))


@runtime_checkable
class Adapter(Protocol):
    """Capability set every model backend provides."""

    @property
    def name(self) -> str: ...

    async def chat(
        self,
        prompt: str,
        tools: Sequence[ToolDescriptor],
        history: Sequence[Message],
    ) -> ChatResponse: ...


# ─────────────────────────────────────────────────────────────────────────────
# Shared helpers
# ─────────────────────────────────────────────────────────────────────────────


def describe_tool_calls(calls: Sequence[ToolInvocation]) -> str:
    return "Requested tools: " + ", ".join(f"{c.name}({encode_str(c.arguments)})" for c in calls)


def render_history(history: Sequence[Message]) -> list[tuple[str, str]]:
    """Flatten history into (role, text) pairs for text-only chat APIs.

    Tool-result turns are skipped: the prompt that follows them already
    carries a per-invocation summary. Assistant turns that only requested
    tools are rendered as a short description of the request.
    """
    rendered: list[tuple[str, str]] = []
    for message in history:
        if message.role is Role.USER:
            rendered.append(("user", message.content))
        elif message.role is Role.ASSISTANT:
            text = message.content
            if message.tool_calls:
                note = describe_tool_calls(message.tool_calls)
                text = f"{text}\n\n{note}" if text else note
            if text:
                rendered.append(("assistant", text))
    return rendered


def wrap_backend_error(provider: str, exc: Exception, logger: logging.Logger) -> AdapterError:
    """Classify a backend exception into an AdapterError and log it."""
    status = getattr(exc, "status_code", None)
    kind = type(exc).__name__
    message = f"API error ({status}): {exc}" if status is not None else f"{kind}: {exc}"
    logger.error(f"[{provider}] {message}")
    return AdapterError(message, provider=provider)
