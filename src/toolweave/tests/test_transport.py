"""Tests for stream, stdio and HTTP transports."""

from __future__ import annotations

import asyncio
import sys
import textwrap

import httpx
import orjson
import pytest

from toolweave.foundation.config import ServerSettings
from toolweave.foundation.errors import ConfigurationError, RpcError, ToolConnectionError, TransportError
from toolweave.foundation.testing import FakeToolServer, LoopbackWriter
from toolweave.mcp import HttpTransport, StdioTransport, StreamTransport, create_transport


def _wire(server: FakeToolServer) -> tuple[StreamTransport, LoopbackWriter]:
    reader = asyncio.StreamReader()
    writer = LoopbackWriter(server, reader)
    return StreamTransport(reader, writer, name="test"), writer  # type: ignore[arg-type]


async def _wait_for_pending(transport: StreamTransport, count: int = 1) -> None:
    for _ in range(200):
        if transport.pending_count >= count:
            return
        await asyncio.sleep(0.005)
    raise AssertionError(f"expected {count} pending calls, have {transport.pending_count}")


@pytest.fixture
def server() -> FakeToolServer:
    return FakeToolServer().add_tool("echo", handler=lambda args: str(args.get("text", "")))


# ─────────────────────────────────────────────────────────────────────────────
# StreamTransport
# ─────────────────────────────────────────────────────────────────────────────


class TestStreamTransport:
    @pytest.mark.asyncio
    async def test_request_roundtrip(self, server: FakeToolServer) -> None:
        transport, _ = _wire(server)
        result = await transport.request("tools/call", {"name": "echo", "arguments": {"text": "hi"}}, timeout=2)
        assert result == {"content": [{"type": "text", "text": "hi"}], "isError": False}
        assert transport.pending_count == 0
        await transport.close()

    @pytest.mark.asyncio
    async def test_ids_increase_monotonically(self, server: FakeToolServer) -> None:
        transport, writer = _wire(server)
        await transport.request("tools/list", {}, timeout=2)
        await transport.request("tools/list", {}, timeout=2)
        assert [f["id"] for f in writer.frames] == [1, 2]
        await transport.close()

    @pytest.mark.asyncio
    async def test_out_of_order_responses_are_correlated(self) -> None:
        async def slow(args: dict) -> str:
            await asyncio.sleep(args["delay"])
            return args["tag"]

        transport, _ = _wire(FakeToolServer().add_tool("slow", handler=slow))
        results = await asyncio.gather(
            transport.request("tools/call", {"name": "slow", "arguments": {"delay": 0.06, "tag": "first"}}, timeout=2),
            transport.request("tools/call", {"name": "slow", "arguments": {"delay": 0.0, "tag": "second"}}, timeout=2),
            transport.request("tools/call", {"name": "slow", "arguments": {"delay": 0.03, "tag": "third"}}, timeout=2),
        )
        assert [r["content"][0]["text"] for r in results] == ["first", "second", "third"]
        await transport.close()

    @pytest.mark.asyncio
    async def test_notification_has_no_id(self, server: FakeToolServer) -> None:
        transport, writer = _wire(server)
        await transport.notify("notifications/initialized")
        await asyncio.sleep(0.01)
        assert writer.frames == [{"jsonrpc": "2.0", "method": "notifications/initialized"}]
        await transport.close()

    @pytest.mark.asyncio
    async def test_malformed_frames_are_skipped(self, server: FakeToolServer) -> None:
        transport, writer = _wire(server)
        await transport.start()
        writer.inject(b"this is not json\n")
        writer.inject(b"[1, 2, 3]\n")
        writer.inject(b'{"jsonrpc": "2.0", "id": 999, "result": {}}\n')
        writer.inject(b'{"jsonrpc": "2.0", "method": "notifications/progress", "params": {}}\n')
        writer.inject(b"\n")
        result = await transport.request("tools/call", {"name": "echo", "arguments": {"text": "still alive"}}, timeout=2)
        assert result["content"][0]["text"] == "still alive"
        assert not transport.closed
        await transport.close()

    @pytest.mark.asyncio
    async def test_server_request_is_rejected(self, server: FakeToolServer) -> None:
        transport, writer = _wire(server)
        await transport.start()
        writer.inject(b'{"jsonrpc": "2.0", "id": "srv-1", "method": "sampling/createMessage"}\n')
        for _ in range(100):
            if any(f.get("id") == "srv-1" for f in writer.frames):
                break
            await asyncio.sleep(0.005)
        reply = next(f for f in writer.frames if f.get("id") == "srv-1")
        assert reply["error"]["code"] == -32601
        await transport.close()

    @pytest.mark.asyncio
    async def test_rpc_error_response(self) -> None:
        def broken(_args: dict) -> str:
            raise RuntimeError("database unavailable")

        transport, _ = _wire(FakeToolServer().add_tool("broken", handler=broken))
        with pytest.raises(RpcError) as info:
            await transport.request("tools/call", {"name": "broken", "arguments": {}}, timeout=2)
        assert info.value.rpc_code == -32603
        assert "database unavailable" in str(info.value)
        assert isinstance(info.value, TransportError)
        await transport.close()

    @pytest.mark.asyncio
    async def test_timeout_removes_pending_entry(self) -> None:
        never = asyncio.Event()

        async def hang(_args: dict) -> str:
            await never.wait()
            return "late"

        transport, _ = _wire(FakeToolServer().add_tool("hang", handler=hang))
        with pytest.raises(TransportError, match="timed out"):
            await transport.request("tools/call", {"name": "hang", "arguments": {}}, timeout=0.05)
        assert transport.pending_count == 0
        await transport.close()

    @pytest.mark.asyncio
    async def test_server_hang_up_fails_pending_calls(self) -> None:
        never = asyncio.Event()

        async def hang(_args: dict) -> str:
            await never.wait()
            return "late"

        transport, writer = _wire(FakeToolServer().add_tool("hang", handler=hang))
        call = asyncio.create_task(transport.request("tools/call", {"name": "hang", "arguments": {}}, timeout=5))
        await _wait_for_pending(transport)
        writer.hang_up()
        with pytest.raises(TransportError):
            await asyncio.wait_for(call, 2)
        assert transport.pending_count == 0
        assert transport.closed
        await transport.close()

    @pytest.mark.asyncio
    async def test_close_fails_pending_calls(self) -> None:
        never = asyncio.Event()

        async def hang(_args: dict) -> str:
            await never.wait()
            return "late"

        transport, _ = _wire(FakeToolServer().add_tool("hang", handler=hang))
        calls = [
            asyncio.create_task(transport.request("tools/call", {"name": "hang", "arguments": {}}, timeout=5))
            for _ in range(3)
        ]
        await _wait_for_pending(transport, 3)
        await transport.close()
        outcomes = await asyncio.wait_for(asyncio.gather(*calls, return_exceptions=True), 2)
        assert all(isinstance(o, TransportError) for o in outcomes)
        assert transport.pending_count == 0

    @pytest.mark.asyncio
    async def test_unencodable_params(self, server: FakeToolServer) -> None:
        transport, writer = _wire(server)
        with pytest.raises(TransportError, match="cannot encode tools/call"):
            await transport.request("tools/call", {"name": "echo", "arguments": {"n": 2**70}}, timeout=2)
        assert transport.pending_count == 0
        assert writer.frames == []
        await transport.close()

    @pytest.mark.asyncio
    async def test_request_after_close(self, server: FakeToolServer) -> None:
        transport, _ = _wire(server)
        await transport.start()
        await transport.close()
        with pytest.raises(TransportError):
            await transport.request("tools/list", {})

    @pytest.mark.asyncio
    async def test_start_without_streams(self) -> None:
        with pytest.raises(ToolConnectionError):
            await StreamTransport().start()


# ─────────────────────────────────────────────────────────────────────────────
# StdioTransport
# ─────────────────────────────────────────────────────────────────────────────


_ECHO_SERVER = textwrap.dedent(
    """
    import json, sys
    for line in sys.stdin:
        msg = json.loads(line)
        if "id" not in msg:
            continue
        if msg["method"] == "initialize":
            result = {"protocolVersion": "2024-11-05", "capabilities": {}, "serverInfo": {"name": "echo", "version": "1"}}
        else:
            result = {"content": [{"type": "text", "text": msg["method"]}], "isError": False}
        print("starting reply", file=sys.stderr, flush=True)
        print(json.dumps({"jsonrpc": "2.0", "id": msg["id"], "result": result}), flush=True)
    """
)


class TestStdioTransport:
    @pytest.mark.asyncio
    async def test_subprocess_roundtrip(self) -> None:
        transport = StdioTransport(sys.executable, ["-c", _ECHO_SERVER])
        try:
            result = await transport.request("initialize", {}, timeout=10)
            assert result["serverInfo"]["name"] == "echo"
            assert transport.pid is not None
            again = await transport.request("tools/list", {}, timeout=10)
            assert again["content"][0]["text"] == "tools/list"
        finally:
            await transport.close()
        assert transport.pid is None

    @pytest.mark.asyncio
    async def test_missing_executable(self) -> None:
        transport = StdioTransport("/nonexistent/toolweave-test-server")
        with pytest.raises(ToolConnectionError):
            await transport.start()


# ─────────────────────────────────────────────────────────────────────────────
# HttpTransport
# ─────────────────────────────────────────────────────────────────────────────


def _http(handler) -> tuple[HttpTransport, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpTransport("http://tools.test/mcp", headers={"X-Team": "infra"}, client=client), client


class TestHttpTransport:
    @pytest.mark.asyncio
    async def test_request_roundtrip(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            body = orjson.loads(request.content)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {"tools": []}})

        transport, client = _http(handler)
        assert await transport.request("tools/list", {}) == {"tools": []}
        assert seen[0].headers["X-Team"] == "infra"
        assert orjson.loads(seen[0].content)["method"] == "tools/list"
        await transport.close()
        await client.aclose()

    @pytest.mark.asyncio
    async def test_session_id_is_echoed(self) -> None:
        sessions: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sessions.append(request.headers.get("Mcp-Session-Id"))
            body = orjson.loads(request.content)
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "result": {}},
                headers={"Mcp-Session-Id": "abc123"},
            )

        transport, client = _http(handler)
        await transport.request("initialize", {})
        await transport.request("tools/list", {})
        assert sessions == [None, "abc123"]
        await client.aclose()

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        transport, client = _http(lambda request: httpx.Response(503, text="unavailable"))
        with pytest.raises(TransportError, match="503"):
            await transport.request("tools/list", {})
        await client.aclose()

    @pytest.mark.asyncio
    async def test_unencodable_params(self) -> None:
        sent: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            sent.append(request)
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {}})

        transport, client = _http(handler)
        with pytest.raises(TransportError, match="cannot encode"):
            await transport.request("tools/call", {"name": "t", "arguments": {"n": 2**70}})
        assert sent == []
        await client.aclose()

    @pytest.mark.asyncio
    async def test_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        transport, client = _http(handler)
        with pytest.raises(TransportError):
            await transport.request("tools/list", {})
        await client.aclose()

    @pytest.mark.asyncio
    async def test_mismatched_id(self) -> None:
        transport, client = _http(
            lambda request: httpx.Response(200, json={"jsonrpc": "2.0", "id": 42, "result": {}})
        )
        with pytest.raises(TransportError, match="does not match"):
            await transport.request("tools/list", {})
        await client.aclose()

    @pytest.mark.asyncio
    async def test_invalid_body(self) -> None:
        transport, client = _http(lambda request: httpx.Response(200, content=b"<html>"))
        with pytest.raises(TransportError, match="invalid response"):
            await transport.request("tools/list", {})
        await client.aclose()

    @pytest.mark.asyncio
    async def test_rpc_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            body = orjson.loads(request.content)
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32602, "message": "bad params"}}
            )

        transport, client = _http(handler)
        with pytest.raises(RpcError) as info:
            await transport.request("tools/call", {"name": "x"})
        assert info.value.rpc_code == -32602
        await client.aclose()

    @pytest.mark.asyncio
    async def test_closed_transport(self) -> None:
        transport, client = _http(lambda request: httpx.Response(200, json={}))
        await transport.close()
        assert transport.closed
        with pytest.raises(TransportError):
            await transport.request("tools/list", {})
        await client.aclose()


# ─────────────────────────────────────────────────────────────────────────────
# Factory
# ─────────────────────────────────────────────────────────────────────────────


class TestCreateTransport:
    def test_http(self) -> None:
        transport = create_transport(ServerSettings(transport="http", url="http://localhost:8080/mcp"))
        assert isinstance(transport, HttpTransport)

    def test_stdio(self) -> None:
        transport = create_transport(ServerSettings(command="blueprint-mcp", args=["--stdio"]))
        assert isinstance(transport, StdioTransport)

    def test_stdio_requires_command(self) -> None:
        with pytest.raises(ConfigurationError):
            create_transport(ServerSettings(transport="stdio"))

    def test_http_requires_url(self) -> None:
        with pytest.raises(ConfigurationError):
            create_transport(ServerSettings(transport="http"))
