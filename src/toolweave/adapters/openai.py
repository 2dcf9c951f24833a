"""OpenAI adapter using native function calling."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from toolweave.foundation.errors import AdapterError
from toolweave.io.codec import DecodeError, decode
from toolweave.mcp.types import ToolDescriptor

from .base import DEFAULT_SYSTEM_PROMPT, ChatResponse, Message, ToolInvocation, Usage, render_history, wrap_backend_error
from .formats import to_openai

logger = logging.getLogger("toolweave.adapters.openai")


class OpenAIAdapter:
    """Chat completions with `tools` and `tool_choice="auto"`.

    Args:
        model: Model identifier
        api_key: API key (required unless a client is supplied)
        base_url: Optional endpoint override for OpenAI-compatible servers
        timeout: Request timeout in seconds
        max_tokens: Completion token cap
        system_prompt: Replaces the default system prompt
        client: Pre-built AsyncOpenAI client (tests, shared pools)
    """

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
        max_tokens: int | None = None,
        system_prompt: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self._max_tokens = max_tokens
        self._system_prompt = system_prompt or DEFAULT_SYSTEM_PROMPT
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    @property
    def name(self) -> str:
        return "openai"

    def build_messages(self, prompt: str, history: Sequence[Message]) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [{"role": "system", "content": self._system_prompt}]
        messages.extend({"role": role, "content": text} for role, text in render_history(history))
        messages.append({"role": "user", "content": prompt})
        return messages

    async def chat(
        self,
        prompt: str,
        tools: Sequence[ToolDescriptor],
        history: Sequence[Message],
    ) -> ChatResponse:
        request: dict[str, Any] = {"model": self.model, "messages": self.build_messages(prompt, history)}
        if tools:
            request["tools"] = to_openai(tools)
            request["tool_choice"] = "auto"
        if self._max_tokens:
            request["max_tokens"] = self._max_tokens

        try:
            completion = await self._client.chat.completions.create(**request)
        except OpenAIError as exc:
            raise wrap_backend_error(self.name, exc, logger) from exc

        if not completion.choices:
            raise AdapterError("no response from OpenAI", provider=self.name)
        choice = completion.choices[0]
        return ChatResponse(
            content=choice.message.content or "",
            tool_calls=[self._invocation(call) for call in choice.message.tool_calls or ()],
            finish_reason=str(choice.finish_reason or "stop"),
            usage=Usage(
                prompt_tokens=completion.usage.prompt_tokens,
                completion_tokens=completion.usage.completion_tokens,
                total_tokens=completion.usage.total_tokens,
            ) if completion.usage else None,
        )

    def _invocation(self, call: Any) -> ToolInvocation:
        raw = call.function.arguments or "{}"
        try:
            arguments = decode(raw)
        except DecodeError as exc:
            raise AdapterError(f"failed to parse tool arguments for {call.function.name}: {exc}", provider=self.name) from exc
        if not isinstance(arguments, dict):
            raise AdapterError(f"tool arguments for {call.function.name} are not an object", provider=self.name)
        return ToolInvocation(id=call.id, name=call.function.name, arguments=arguments)
