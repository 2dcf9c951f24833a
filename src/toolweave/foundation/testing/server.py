"""In-process MCP tool server for tests.

`FakeToolServer` answers `initialize`, `tools/list` and `tools/call`
from registered Python handlers. `connect()` wires it to a real
StreamTransport through an in-memory stream pair, so tests exercise the
same framing, correlation and reader-task code as the stdio transport.

Example:
    >>> server = FakeToolServer()
    >>> server.add_tool("list_blueprints", handler=lambda args: "[]")
    >>> client = ToolClient(server.connect())
    >>> await client.call_tool("list_blueprints", {})
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from toolweave.foundation.errors import JsonDict
from toolweave.io.codec import DecodeError, decode, encode_line
from toolweave.mcp.transport import StreamTransport

ToolHandler = Callable[[JsonDict], "str | JsonDict | Awaitable[str | JsonDict]"]


@dataclass(slots=True)
class ToolCall:
    """Record of one `tools/call` the server received."""
    name: str
    arguments: JsonDict


@dataclass(slots=True)
class _Tool:
    descriptor: JsonDict
    handler: ToolHandler


@dataclass
class FakeToolServer:
    """Scriptable JSON-RPC tool server.

    Handlers receive the call arguments and return either plain text
    (wrapped in one text part) or a full `tools/call` result dict. A
    handler that raises produces a JSON-RPC error response.

    Attributes:
        calls: Every `tools/call` received, in arrival order
        methods: Every method received (requests and notifications)
        reject_initialize: Answer the handshake with a JSON-RPC error
        page_size: Split `tools/list` into pages of this size (0 = one page)
    """

    name: str = "fake-tools"
    version: str = "1.0.0"
    calls: list[ToolCall] = field(default_factory=list)
    methods: list[str] = field(default_factory=list)
    reject_initialize: bool = False
    page_size: int = 0
    _tools: dict[str, _Tool] = field(default_factory=dict)

    def add_tool(
        self,
        name: str,
        description: str = "",
        *,
        handler: ToolHandler | None = None,
        schema: JsonDict | None = None,
    ) -> FakeToolServer:
        descriptor: JsonDict = {
            "name": name,
            "description": description or f"{name} tool",
            "inputSchema": schema or {"type": "object", "properties": {}},
        }
        self._tools[name] = _Tool(descriptor, handler or (lambda _args: "ok"))
        return self

    def call_count(self, name: str | None = None) -> int:
        return sum(1 for c in self.calls if name is None or c.name == name)

    # ─────────────────────────────────────────────────────────────────────────
    # JSON-RPC handling
    # ─────────────────────────────────────────────────────────────────────────

    async def handle(self, message: JsonDict) -> JsonDict | None:
        """Process one inbound message; None for notifications."""
        method = str(message.get("method", ""))
        self.methods.append(method)
        if "id" not in message:
            return None
        request_id = message["id"]
        params = message.get("params") or {}
        try:
            result = await self._dispatch(method, params)
        except LookupError as exc:
            return {"jsonrpc": "2.0", "id": request_id, "error": {"code": -32601, "message": str(exc)}}
        except Exception as exc:  # noqa: BLE001 - handler failures become JSON-RPC errors
            return {"jsonrpc": "2.0", "id": request_id, "error": {"code": -32603, "message": str(exc)}}
        return {"jsonrpc": "2.0", "id": request_id, "result": result}

    async def _dispatch(self, method: str, params: JsonDict) -> Any:
        match method:
            case "initialize":
                if self.reject_initialize:
                    raise RuntimeError("unsupported protocol version")
                return {
                    "protocolVersion": params.get("protocolVersion", ""),
                    "capabilities": {"tools": {}},
                    "serverInfo": {"name": self.name, "version": self.version},
                }
            case "tools/list":
                return self._list_page(params.get("cursor"))
            case "tools/call":
                return await self._call(str(params.get("name", "")), dict(params.get("arguments") or {}))
            case _:
                raise LookupError(f"Method not found: {method}")

    def _list_page(self, cursor: str | None) -> JsonDict:
        tools = [t.descriptor for t in self._tools.values()]
        if not self.page_size:
            return {"tools": tools}
        start = int(cursor or 0)
        end = start + self.page_size
        page: JsonDict = {"tools": tools[start:end]}
        if end < len(tools):
            page["nextCursor"] = str(end)
        return page

    async def _call(self, name: str, arguments: JsonDict) -> JsonDict:
        self.calls.append(ToolCall(name, arguments))
        tool = self._tools.get(name)
        if tool is None:
            return {"content": [{"type": "text", "text": f"unknown tool {name}"}], "isError": True}
        outcome = tool.handler(arguments)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        if isinstance(outcome, str):
            return {"content": [{"type": "text", "text": outcome}], "isError": False}
        return outcome

    # ─────────────────────────────────────────────────────────────────────────
    # Wiring
    # ─────────────────────────────────────────────────────────────────────────

    def connect(self) -> StreamTransport:
        """A StreamTransport whose peer is this server."""
        reader = asyncio.StreamReader()
        return StreamTransport(reader, LoopbackWriter(self, reader), name=self.name)  # type: ignore[arg-type]


class LoopbackWriter:
    """StreamWriter stand-in that delivers frames to a FakeToolServer.

    Each frame is handled in its own task, so responses may arrive out of
    request order. Lines written with `inject` bypass the server.
    """

    def __init__(self, server: FakeToolServer, reader: asyncio.StreamReader) -> None:
        self._server = server
        self._reader = reader
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False
        self._eof = False
        self.frames: list[JsonDict] = []

    def write(self, data: bytes) -> None:
        if self._closed:
            raise RuntimeError("writer is closed")
        for line in data.splitlines():
            try:
                message = decode(line)
            except DecodeError:
                continue
            self.frames.append(message)
            task = asyncio.get_running_loop().create_task(self._respond(message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        await asyncio.sleep(0)

    def inject(self, raw: bytes) -> None:
        """Push raw bytes to the client as if the server sent them."""
        if not self._eof:
            self._reader.feed_data(raw)

    def hang_up(self) -> None:
        """Simulate the server closing its end of the stream."""
        if not self._eof:
            self._eof = True
            self._reader.feed_eof()

    def close(self) -> None:
        self._closed = True
        for task in list(self._tasks):
            task.cancel()
        self.hang_up()

    def is_closing(self) -> bool:
        return self._closed

    async def wait_closed(self) -> None:
        await asyncio.sleep(0)

    async def _respond(self, message: JsonDict) -> None:
        reply = await self._server.handle(message)
        if reply is not None and not self._eof:
            self._reader.feed_data(encode_line(reply))
