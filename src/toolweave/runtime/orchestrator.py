"""Bounded multi-turn loop between a model adapter and the tool endpoint.

Each call to `process_prompt` walks a small state machine:

    AWAITING_MODEL ──(no invocations)──► DONE
          │
          └──(invocations)──► AWAITING_TOOLS ──► AWAITING_MODEL ...
                                                    │
                                 (max_iterations) ──► ITERATION_LIMIT_REACHED

Invocations of one turn run concurrently. Each is resolved through the
result cache first and the client on a miss; transport failures become
error results that are fed back to the model, never raised. Only adapter
failures and cancellation abort the call.

Example:
    >>> loop = Orchestrator(client, OpenAIAdapter("gpt-4o", api_key=key), ResultCache())
    >>> result = await loop.process_prompt("Which blueprints exist?")
    >>> result.response, result.metadata["iterations"]
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeVar

from toolweave.adapters.base import Adapter, ChatResponse, Message, ToolInvocation, ToolResult
from toolweave.foundation.errors import (
    AdapterError,
    OrchestrationCancelledError,
    ToolError,
    ToolNotFoundError,
    TransportError,
)
from toolweave.io.cache import ResultCache, make_key
from toolweave.mcp.client import ToolClient
from toolweave.mcp.types import ToolDescriptor

from .prompt import MAX_ITERATIONS_MESSAGE, format_tool_result, format_tool_results_for_prompt

logger = logging.getLogger("toolweave.runtime.orchestrator")

T = TypeVar("T")

DEFAULT_MAX_ITERATIONS = 5


class LoopState(StrEnum):
    AWAITING_MODEL = "awaiting_model"
    AWAITING_TOOLS = "awaiting_tools"
    DONE = "done"
    ITERATION_LIMIT_REACHED = "iteration_limit_reached"


@dataclass(slots=True)
class OrchestrationResult:
    """Final text plus the full invocation/result trace of one call."""

    response: str
    state: LoopState
    tool_calls: list[ToolInvocation] = field(default_factory=list)
    tool_results: list[ToolResult] = field(default_factory=list)
    history: list[Message] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def iterations(self) -> int:
        return int(self.metadata.get("iterations", 0))

    @property
    def max_reached(self) -> bool:
        return self.state is LoopState.ITERATION_LIMIT_REACHED

    def to_dict(self) -> dict[str, Any]:
        """Response body: `response`, `tool_calls`, `tool_results`, `metadata`."""
        body: dict[str, Any] = {"response": self.response}
        if self.tool_calls:
            body["tool_calls"] = [call.model_dump() for call in self.tool_calls]
        if self.tool_results:
            body["tool_results"] = [_result_body(result) for result in self.tool_results]
        if self.metadata:
            body["metadata"] = self.metadata
        return body


def _result_body(result: ToolResult) -> dict[str, Any]:
    body: dict[str, Any] = {"tool_call_id": result.tool_call_id, "name": result.name, "content": result.content}
    if result.is_error:
        body["is_error"] = True
    return body


@dataclass(slots=True)
class _Counters:
    hits: int = 0
    misses: int = 0


class Orchestrator:
    """Drives one adapter against one tool client.

    Args:
        client: Initialized (or lazily initializing) tool client
        adapter: Model backend
        cache: Result cache shared across calls; None disables caching
        max_iterations: Turn ceiling before giving up
        call_timeout: Per tool call timeout; the client's default when None
    """

    def __init__(
        self,
        client: ToolClient,
        adapter: Adapter,
        cache: ResultCache | None = None,
        *,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        call_timeout: float | None = None,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self._client = client
        self._adapter = adapter
        self._cache = cache
        self._max_iterations = max_iterations
        self._call_timeout = call_timeout

    @property
    def adapter(self) -> Adapter:
        return self._adapter

    @property
    def max_iterations(self) -> int:
        return self._max_iterations

    async def process_prompt(self, prompt: str, *, cancel: asyncio.Event | None = None) -> OrchestrationResult:
        """Run the loop until the model answers without tools or the ceiling is hit.

        Raises:
            AdapterError: the model backend failed
            OrchestrationCancelledError: `cancel` was set before completion
            ToolConnectionError: the catalog could not be discovered
        """
        start = time.perf_counter()
        catalog = await self._guard(self._client.list_tools(), cancel)
        history: list[Message] = []
        calls: list[ToolInvocation] = []
        results: list[ToolResult] = []
        counters = _Counters()
        current = prompt
        state = LoopState.AWAITING_MODEL
        iteration = 0

        while iteration < self._max_iterations:
            iteration += 1
            logger.debug(f"[loop] iteration {iteration}/{self._max_iterations}")
            response = await self._guard(self._chat(current, catalog, history), cancel)
            # The adapter sends `current` itself; it joins history only once answered.
            history.append(Message.user(current))
            history.append(Message.assistant(response.content, response.tool_calls))

            if not response.wants_tools:
                state = LoopState.DONE
                logger.info(f"[loop] done after {iteration} iterations ({(time.perf_counter() - start) * 1000:.1f}ms)")
                return OrchestrationResult(
                    response=response.content,
                    state=state,
                    tool_calls=calls,
                    tool_results=results,
                    history=history,
                    metadata=self._metadata(iteration, response, len(catalog), counters),
                )

            state = LoopState.AWAITING_TOOLS
            logger.info(f"[loop] iteration {iteration}: {len(response.tool_calls)} tool calls")
            calls.extend(response.tool_calls)
            turn = await self._guard(
                asyncio.gather(*(self._resolve(call, counters) for call in response.tool_calls)),
                cancel,
            )
            results.extend(turn)
            history.append(Message.tool(turn))
            current = format_tool_results_for_prompt(turn)
            state = LoopState.AWAITING_MODEL

        state = LoopState.ITERATION_LIMIT_REACHED
        logger.warning(f"[loop] maximum iterations ({self._max_iterations}) reached")
        metadata = self._metadata(iteration, None, len(catalog), counters)
        metadata["max_reached"] = True
        return OrchestrationResult(
            response=MAX_ITERATIONS_MESSAGE,
            state=state,
            tool_calls=calls,
            tool_results=results,
            history=history,
            metadata=metadata,
        )

    # ─────────────────────────────────────────────────────────────────────────
    # Model turn
    # ─────────────────────────────────────────────────────────────────────────

    async def _chat(self, prompt: str, catalog: tuple[ToolDescriptor, ...], history: list[Message]) -> ChatResponse:
        try:
            return await self._adapter.chat(prompt, catalog, tuple(history))
        except AdapterError:
            raise
        except Exception as exc:
            logger.error(f"[{self._adapter.name}] chat failed: {exc}")
            raise AdapterError(str(exc) or type(exc).__name__, provider=self._adapter.name) from exc

    # ─────────────────────────────────────────────────────────────────────────
    # Tool resolution
    # ─────────────────────────────────────────────────────────────────────────

    async def _resolve(self, call: ToolInvocation, counters: _Counters) -> ToolResult:
        """Cache-or-client resolution of one invocation. Never raises for tool failures."""
        key = make_key(call.name, call.arguments)
        if self._cache is not None and (entry := self._cache.get(key)) is not None:
            counters.hits += 1
            logger.debug(f"[{call.name}] cache hit")
            return ToolResult(
                tool_call_id=call.id, name=call.name, content=entry.content, is_error=entry.is_error, cached=True,
            )

        counters.misses += 1
        try:
            outcome = await self._client.call_tool(call.name, call.arguments, timeout=self._call_timeout)
        except (TransportError, ToolNotFoundError) as exc:
            logger.warning(f"[{call.name}] call failed: {exc}")
            return ToolResult(
                tool_call_id=call.id,
                name=call.name,
                content=ToolError.from_exception(call.name, exc).render(),
                is_error=True,
            )

        content = format_tool_result(outcome)
        if self._cache is not None and not outcome.is_error:
            self._cache.set(key, content)
        return ToolResult(tool_call_id=call.id, name=call.name, content=content, is_error=outcome.is_error)

    # ─────────────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────────────

    def _metadata(self, iterations: int, response: ChatResponse | None, tools: int, counters: _Counters) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "iterations": iterations,
            "provider": self._adapter.name,
            "tools_available": tools,
            "cache_hits": counters.hits,
            "cache_misses": counters.misses,
        }
        if response is not None:
            metadata["finish_reason"] = response.finish_reason
            if response.usage is not None:
                metadata["usage"] = response.usage.model_dump()
        if self._cache is not None:
            metadata["cache_stats"] = self._cache.stats()
        return metadata

    @staticmethod
    async def _guard(work: Awaitable[T], cancel: asyncio.Event | None) -> T:
        """Await `work`, abandoning it as soon as `cancel` is set."""
        if cancel is None:
            return await work
        if cancel.is_set():
            if asyncio.iscoroutine(work):
                work.close()
            elif isinstance(work, asyncio.Future):
                work.cancel()
            raise OrchestrationCancelledError("orchestration cancelled")

        task = asyncio.ensure_future(work)
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for pending in (task, waiter):
                if not pending.done():
                    pending.cancel()
        if task.done() and not task.cancelled():
            return task.result()
        await asyncio.wait({task})
        raise OrchestrationCancelledError("orchestration cancelled")
