"""Scripted model adapter for loop tests.

Replays a fixed sequence of model turns and records what the loop sent,
so tests can assert on prompts, history and the catalog without a real
backend.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from toolweave.adapters.base import ChatResponse, Message, ToolInvocation
from toolweave.foundation.errors import JsonDict
from toolweave.mcp.types import ToolDescriptor

Turn = ChatResponse | Exception | Callable[[str, Sequence[ToolDescriptor], Sequence[Message]], ChatResponse]


@dataclass(slots=True)
class ChatCall:
    """Record of one `chat` invocation."""
    prompt: str
    tools: tuple[ToolDescriptor, ...]
    history: tuple[Message, ...]


def text(content: str) -> ChatResponse:
    """A final turn: text and no tool requests."""
    return ChatResponse(content=content)


def invoke(*calls: tuple[str, JsonDict] | str, content: str = "") -> ChatResponse:
    """A tool-requesting turn. Ids are `call_1`, `call_2`, ... in order."""
    invocations = [
        ToolInvocation(id=f"call_{i}", name=c, arguments={}) if isinstance(c, str)
        else ToolInvocation(id=f"call_{i}", name=c[0], arguments=c[1])
        for i, c in enumerate(calls, start=1)
    ]
    return ChatResponse(content=content, tool_calls=invocations, finish_reason="tool_calls")


@dataclass
class ScriptedAdapter:
    """Adapter returning scripted turns in order.

    A turn may be a ChatResponse, an exception to raise, or a callable
    computing the response from (prompt, tools, history). When the script
    runs out, `repeat_last` keeps replaying the final turn.

    Example:
        >>> adapter = ScriptedAdapter([invoke("list_blueprints"), text("none found")])
        >>> result = await Orchestrator(client, adapter, cache).process_prompt("hi")
        >>> adapter.calls[1].prompt.startswith("Tool execution results")
        True
    """

    script: list[Turn] = field(default_factory=list)
    provider: str = "scripted"
    repeat_last: bool = False
    delay: float = 0.0
    calls: list[ChatCall] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.provider

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def chat(
        self,
        prompt: str,
        tools: Sequence[ToolDescriptor],
        history: Sequence[Message],
    ) -> ChatResponse:
        self.calls.append(ChatCall(prompt, tuple(tools), tuple(history)))
        if self.delay:
            await asyncio.sleep(self.delay)
        index = len(self.calls) - 1
        if index >= len(self.script):
            if not (self.repeat_last and self.script):
                raise AssertionError(f"adapter called {len(self.calls)} times, script has {len(self.script)} turns")
            index = len(self.script) - 1
        turn = self.script[index]
        if isinstance(turn, Exception):
            raise turn
        if callable(turn):
            return turn(prompt, tools, history)
        return turn
