"""Tool protocol client: handshake, catalog discovery and tool calls.

Owns one session to a tool-execution endpoint over any Transport. The
catalog is discovered once and cached for the client's lifetime as an
immutable tuple; callers receive that snapshot by value.

Example:
    >>> async with ToolClient(StdioTransport("blueprint-mcp")) as client:
    ...     tools = await client.list_tools()
    ...     result = await client.call_tool("list_blueprints", {})
    ...     print(result.is_error, result.texts())
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING

from pydantic import ValidationError

from toolweave.foundation.errors import JsonDict, JsonMapping, ToolConnectionError, ToolNotFoundError, TransportError

from .types import PROTOCOL_VERSION, CallToolResult, Implementation, InitializeResult, ListToolsResult, ToolDescriptor

if TYPE_CHECKING:
    from types import TracebackType

    from .transport import Transport

logger = logging.getLogger("toolweave.mcp.client")

DEFAULT_CALL_TIMEOUT: float = 30.0


class ToolClient:
    """Session with a tool-execution endpoint.

    Args:
        transport: Wire transport (stdio, stream or HTTP)
        client_info: Identity sent during the handshake
        protocol_version: Protocol revision requested from the server
        call_timeout: Per-request timeout, independent of caller cancellation
    """

    def __init__(
        self,
        transport: Transport,
        *,
        client_info: Implementation | None = None,
        protocol_version: str = PROTOCOL_VERSION,
        call_timeout: float | None = DEFAULT_CALL_TIMEOUT,
    ) -> None:
        self._transport = transport
        self._client_info = client_info or Implementation(name="toolweave", version="0.1.0")
        self._protocol_version = protocol_version
        self._call_timeout = call_timeout
        self._init_lock = asyncio.Lock()
        self._list_lock = asyncio.Lock()
        self._initialized = False
        self._server: InitializeResult | None = None
        self._tools: tuple[ToolDescriptor, ...] | None = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def connected(self) -> bool:
        return self._initialized and not self._transport.closed

    @property
    def server_info(self) -> Implementation | None:
        return self._server.server_info if self._server else None

    @property
    def capabilities(self) -> JsonDict:
        return dict(self._server.capabilities) if self._server else {}

    @property
    def tools(self) -> tuple[ToolDescriptor, ...]:
        """Cached catalog snapshot (empty before discovery)."""
        return self._tools or ()

    # ─────────────────────────────────────────────────────────────────────────
    # Handshake
    # ─────────────────────────────────────────────────────────────────────────

    async def initialize(self) -> InitializeResult:
        """Perform the capability handshake once. Safe to call repeatedly.

        Raises:
            ToolConnectionError: transport setup failed or the server rejected the handshake
        """
        async with self._init_lock:
            if self._initialized and self._server is not None:
                return self._server
            params: JsonDict = {
                "protocolVersion": self._protocol_version,
                "capabilities": {},
                "clientInfo": self._client_info.model_dump(),
            }
            try:
                await self._transport.start()
                raw = await self._transport.request("initialize", params, timeout=self._call_timeout)
                server = InitializeResult.model_validate(raw or {})
                await self._transport.notify("notifications/initialized")
            except ToolConnectionError:
                raise
            except (TransportError, ValidationError) as exc:
                raise ToolConnectionError(f"initialization failed: {exc}") from exc

            self._server, self._initialized = server, True
            name = server.server_info.name if server.server_info else "unknown"
            logger.info(f"[client] initialized with server {name} (protocol {server.protocol_version or '?'})")
            return server

    # ─────────────────────────────────────────────────────────────────────────
    # Catalog
    # ─────────────────────────────────────────────────────────────────────────

    async def list_tools(self) -> tuple[ToolDescriptor, ...]:
        """Return the full tool catalog, discovering it on first use.

        The result is cached for the client's lifetime and never refreshed.
        Pagination cursors are followed until the server stops returning one.
        """
        if self._tools is not None:
            return self._tools
        if not self._initialized:
            await self.initialize()
        async with self._list_lock:
            if self._tools is not None:
                return self._tools
            tools: list[ToolDescriptor] = []
            cursor: str | None = None
            while True:
                params: JsonDict = {"cursor": cursor} if cursor else {}
                try:
                    raw = await self._transport.request("tools/list", params, timeout=self._call_timeout)
                    page = ListToolsResult.model_validate(raw or {})
                except ValidationError as exc:
                    raise TransportError(f"invalid tools/list result: {exc}") from exc
                tools.extend(page.tools)
                if not (cursor := page.next_cursor):
                    break
            self._tools = tuple(tools)
            logger.info(f"[client] discovered {len(self._tools)} tools: {', '.join(t.name for t in self._tools)}")
            return self._tools

    def get_tool(self, name: str) -> ToolDescriptor | None:
        return next((t for t in self.tools if t.name == name), None)

    # ─────────────────────────────────────────────────────────────────────────
    # Tool calls
    # ─────────────────────────────────────────────────────────────────────────

    async def call_tool(
        self,
        name: str,
        arguments: JsonMapping | None = None,
        *,
        timeout: float | None = None,
    ) -> CallToolResult:
        """Execute one tool and wait for its correlated response.

        Returns:
            Ordered content parts plus `is_error` for tool-level failures

        Raises:
            ToolNotFoundError: name absent from the catalog (nothing is sent)
            TransportError: I/O failure, timeout or JSON-RPC error
        """
        catalog = await self.list_tools()
        if not any(tool.name == name for tool in catalog):
            raise ToolNotFoundError(name)

        params: JsonDict = {"name": name, "arguments": dict(arguments or {})}
        start = time.perf_counter()
        raw = await self._transport.request("tools/call", params, timeout=timeout or self._call_timeout)
        try:
            result = CallToolResult.model_validate(raw or {})
        except ValidationError as exc:
            raise TransportError(f"invalid tools/call result for {name}: {exc}") from exc
        duration_ms = (time.perf_counter() - start) * 1000
        status = "ERROR" if result.is_error else "OK"
        logger.info(f"[{name}] {status} ({duration_ms:.1f}ms, {len(result.content)} parts)")
        return result

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._transport.close()
        self._initialized = False

    async def __aenter__(self) -> ToolClient:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
