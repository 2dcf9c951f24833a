"""Gemini adapter with text-pattern tool calls.

Talks to Gemini through its OpenAI-compatible endpoint, so the `openai`
SDK is reused. Tools are not sent natively: the catalog is described in
the system prompt and invocations are parsed from the reply text.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from toolweave.foundation.errors import AdapterError
from toolweave.mcp.types import ToolDescriptor

from .base import ChatResponse, Message, Usage, render_history, wrap_backend_error
from .text import build_system_prompt, parse_tool_calls, strip_tool_calls

logger = logging.getLogger("toolweave.adapters.gemini")

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"


class GeminiAdapter:
    """Gemini chat with `TOOL_CALL: name({...})` invocations."""

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
        self._preamble = system_prompt
        self._client = client or AsyncOpenAI(api_key=api_key, base_url=base_url or GEMINI_BASE_URL, timeout=timeout)

    @property
    def name(self) -> str:
        return "gemini"

    def build_messages(
        self,
        prompt: str,
        tools: Sequence[ToolDescriptor],
        history: Sequence[Message],
    ) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [{"role": "system", "content": build_system_prompt(tools, self._preamble)}]
        messages.extend({"role": role, "content": text} for role, text in render_history(history))
        messages.append({"role": "user", "content": prompt})
        return messages

    async def chat(
        self,
        prompt: str,
        tools: Sequence[ToolDescriptor],
        history: Sequence[Message],
    ) -> ChatResponse:
        request: dict[str, Any] = {"model": self.model, "messages": self.build_messages(prompt, tools, history)}
        if self._max_tokens:
            request["max_tokens"] = self._max_tokens

        try:
            completion = await self._client.chat.completions.create(**request)
        except OpenAIError as exc:
            raise wrap_backend_error(self.name, exc, logger) from exc

        if not completion.choices:
            raise AdapterError("no response from Gemini", provider=self.name)
        choice = completion.choices[0]
        content = choice.message.content or ""
        calls = parse_tool_calls(content, tools)
        if calls:
            logger.debug(f"[gemini] parsed {len(calls)} tool calls: {', '.join(c.name for c in calls)}")
            content = strip_tool_calls(content)
        return ChatResponse(
            content=content,
            tool_calls=calls,
            finish_reason="tool_calls" if calls else str(choice.finish_reason or "stop"),
            usage=Usage(
                prompt_tokens=completion.usage.prompt_tokens,
                completion_tokens=completion.usage.completion_tokens,
                total_tokens=completion.usage.total_tokens,
            ) if completion.usage else None,
        )
