"""Anthropic adapter using native tool use blocks."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from anthropic import AnthropicError, AsyncAnthropic

from toolweave.mcp.types import ToolDescriptor

from .base import DEFAULT_SYSTEM_PROMPT, ChatResponse, Message, ToolInvocation, Usage, render_history, wrap_backend_error
from .formats import to_anthropic

logger = logging.getLogger("toolweave.adapters.anthropic")


class AnthropicAdapter:
    """Messages API with `tools`; `tool_use` blocks become invocations.

    The Messages API requires alternating roles starting with a user turn,
    so consecutive same-role turns are merged before sending.
    """

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
        max_tokens: int = 4096,
        system_prompt: str | None = None,
        client: AsyncAnthropic | None = None,
    ) -> None:
        self.model = model
        self._max_tokens = max_tokens
        self._system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT
        self._client = client or AsyncAnthropic(api_key=api_key, base_url=base_url, timeout=timeout)

    @property
    def name(self) -> str:
        return "anthropic"

    def build_messages(self, prompt: str, history: Sequence[Message]) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = []
        for role, text in [*render_history(history), ("user", prompt)]:
            if messages and messages[-1]["role"] == role:
                messages[-1]["content"] += f"\n\n{text}"
            else:
                messages.append({"role": role, "content": text})
        if messages and messages[0]["role"] != "user":
            messages.insert(0, {"role": "user", "content": "(conversation resumed)"})
        return messages

    async def chat(
        self,
        prompt: str,
        tools: Sequence[ToolDescriptor],
        history: Sequence[Message],
    ) -> ChatResponse:
        request: dict[str, Any] = {
            "model": self.model,
            "system": self._system_prompt,
            "messages": self.build_messages(prompt, history),
            "max_tokens": self._max_tokens,
        }
        if tools:
            request["tools"] = to_anthropic(tools)

        try:
            message = await self._client.messages.create(**request)
        except AnthropicError as exc:
            raise wrap_backend_error(self.name, exc, logger) from exc

        texts: list[str] = []
        calls: list[ToolInvocation] = []
        for block in message.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "tool_use":
                calls.append(ToolInvocation(id=block.id, name=block.name, arguments=dict(block.input or {})))

        usage = None
        if message.usage is not None:
            prompt_tokens, completion_tokens = message.usage.input_tokens, message.usage.output_tokens
            usage = Usage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            )
        return ChatResponse(
            content="".join(texts),
            tool_calls=calls,
            finish_reason=message.stop_reason or "stop",
            usage=usage,
        )
