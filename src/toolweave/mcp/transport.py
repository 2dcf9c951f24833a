"""Interchangeable JSON-RPC transports for the tool protocol client.

Transports:
    - StreamTransport: newline-delimited JSON-RPC over an asyncio stream pair
    - StdioTransport: spawns the tool server and talks over its stdin/stdout
    - HttpTransport: one HTTP POST per request via httpx

Stream transports correlate responses by integer request id. A single
reader task decodes inbound frames and resolves the matching pending
future; malformed frames are logged and skipped. When the stream closes,
every pending caller fails with TransportError.

Example:
    >>> transport = StdioTransport("blueprint-mcp", ["--stdio"])
    >>> await transport.start()
    >>> result = await transport.request("tools/list", {}, timeout=10)
    >>> await transport.close()
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import logging
import os
import threading
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import httpx
from pydantic import ValidationError

from toolweave.foundation.errors import JsonDict, RpcError, ToolConnectionError, TransportError
from toolweave.io.codec import DecodeError, EncodeError, decode, encode, encode_line

from .types import JsonRpcRequest, JsonRpcResponse

if TYPE_CHECKING:
    from toolweave.foundation.config import ServerSettings

logger = logging.getLogger("toolweave.mcp.transport")

# Large tool results arrive as single lines
STREAM_LIMIT = 16 * 1024 * 1024
METHOD_NOT_FOUND = -32601


@runtime_checkable
class Transport(Protocol):
    """Protocol every transport implements."""

    @property
    def closed(self) -> bool: ...

    async def start(self) -> None: ...
    async def request(self, method: str, params: JsonDict | None = None, *, timeout: float | None = None) -> Any: ...
    async def notify(self, method: str, params: JsonDict | None = None) -> None: ...
    async def close(self) -> None: ...


def _unwrap(response: JsonRpcResponse) -> Any:
    if response.error is not None:
        raise RpcError(response.error.code, response.error.message, response.error.data)
    return response.result


def _normalize_id(raw: object) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float) and raw.is_integer():
        return int(raw)
    if isinstance(raw, str) and raw.isdigit():
        return int(raw)
    return None


# ═══════════════════════════════════════════════════════════════════════════════
# Stream Transport
# ═══════════════════════════════════════════════════════════════════════════════


class StreamTransport:
    """Newline-framed JSON-RPC over an asyncio reader/writer pair.

    Each request owns a fresh id and future in the pending-call table. The
    table is guarded by a mutex that is never held across an await.

    Args:
        reader: Inbound stream (server -> client)
        writer: Outbound stream with write/drain/close
        name: Label used in log lines
    """

    def __init__(
        self,
        reader: asyncio.StreamReader | None = None,
        writer: asyncio.StreamWriter | None = None,
        *,
        name: str = "stream",
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._name = name
        self._ids = itertools.count(1)
        self._pending: dict[int, asyncio.Future[JsonRpcResponse]] = {}
        self._pending_lock = threading.Lock()
        self._reader_task: asyncio.Task[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        with self._pending_lock:
            return len(self._pending)

    async def _open(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        """Provide the stream pair. Subclasses that create their own streams override this."""
        if self._reader is None or self._writer is None:
            raise ToolConnectionError(f"[{self._name}] no streams to attach to")
        return self._reader, self._writer

    async def start(self) -> None:
        if self._reader_task is not None:
            return
        if self._closed:
            raise ToolConnectionError(f"[{self._name}] transport already closed")
        self._reader, self._writer = await self._open()
        self._reader_task = asyncio.create_task(self._read_loop(), name=f"toolweave-{self._name}-reader")

    async def request(self, method: str, params: JsonDict | None = None, *, timeout: float | None = None) -> Any:
        """Send one request and wait for its correlated response.

        Raises:
            TransportError: stream closed, write failed, or timeout elapsed
            RpcError: the endpoint returned a JSON-RPC error
        """
        if self._closed:
            raise TransportError(f"[{self._name}] transport is closed")
        if self._reader_task is None:
            await self.start()

        request_id = next(self._ids)
        future: asyncio.Future[JsonRpcResponse] = asyncio.get_running_loop().create_future()
        with self._pending_lock:
            self._pending[request_id] = future
        try:
            await self._send(JsonRpcRequest(id=request_id, method=method, params=params).to_wire())
            try:
                response = await asyncio.wait_for(future, timeout)
            except TimeoutError:
                raise TransportError(f"[{self._name}] {method} timed out after {timeout}s") from None
        finally:
            with self._pending_lock:
                self._pending.pop(request_id, None)
        return _unwrap(response)

    async def notify(self, method: str, params: JsonDict | None = None) -> None:
        if self._closed:
            raise TransportError(f"[{self._name}] transport is closed")
        if self._reader_task is None:
            await self.start()
        await self._send(JsonRpcRequest(method=method, params=params).to_wire())

    async def close(self) -> None:
        if self._closed and self._reader_task is None:
            return
        self._closed = True
        if self._writer is not None:
            with contextlib.suppress(OSError, RuntimeError):
                self._writer.close()
                await self._writer.wait_closed()
        if self._reader_task is not None:
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
            self._reader_task = None
        self._fail_pending("transport closed")

    async def _send(self, message: JsonDict) -> None:
        assert self._writer is not None
        try:
            frame = encode_line(message)
        except EncodeError as exc:
            raise TransportError(f"[{self._name}] cannot encode {message.get('method', 'reply')}: {exc}") from exc
        try:
            self._writer.write(frame)
            await self._writer.drain()
        except (OSError, RuntimeError) as exc:
            raise TransportError(f"[{self._name}] write failed: {exc}") from exc

    async def _read_loop(self) -> None:
        assert self._reader is not None
        try:
            while True:
                line = await self._reader.readline()
                if not line:
                    break
                await self._dispatch(line)
        except (OSError, ValueError) as exc:
            logger.warning(f"[{self._name}] reader stopped: {exc}")
        finally:
            self._closed = True
            self._fail_pending("connection closed by server")

    async def _dispatch(self, line: bytes) -> None:
        line = line.strip()
        if not line:
            return
        try:
            payload = decode(line)
        except DecodeError as exc:
            logger.warning(f"[{self._name}] skipping malformed frame: {exc}")
            return
        if not isinstance(payload, dict):
            logger.warning(f"[{self._name}] skipping non-object frame")
            return

        if "method" in payload:
            await self._handle_server_message(payload)
            return

        try:
            response = JsonRpcResponse.model_validate(payload)
        except ValidationError as exc:
            logger.warning(f"[{self._name}] skipping invalid response: {exc.error_count()} errors")
            return

        request_id = _normalize_id(response.id)
        if request_id is None:
            logger.warning(f"[{self._name}] skipping response with unusable id {response.id!r}")
            return
        with self._pending_lock:
            future = self._pending.pop(request_id, None)
        if future is None or future.done():
            logger.debug(f"[{self._name}] no pending call for id {request_id}")
            return
        future.set_result(response)

    async def _handle_server_message(self, payload: JsonDict) -> None:
        method = payload.get("method")
        if "id" not in payload:
            logger.debug(f"[{self._name}] server notification {method}")
            return
        # Server-initiated requests (sampling, roots) are not supported
        logger.debug(f"[{self._name}] rejecting server request {method}")
        reply = {"jsonrpc": "2.0", "id": payload["id"],
                 "error": {"code": METHOD_NOT_FOUND, "message": f"Method not supported: {method}"}}
        with contextlib.suppress(TransportError):
            await self._send(reply)

    def _fail_pending(self, reason: str) -> None:
        with self._pending_lock:
            pending = list(self._pending.values())
            self._pending.clear()
        for future in pending:
            if not future.done():
                future.set_exception(TransportError(f"[{self._name}] {reason}"))
        if pending:
            logger.warning(f"[{self._name}] failed {len(pending)} pending call(s): {reason}")


# ═══════════════════════════════════════════════════════════════════════════════
# Stdio Transport
# ═══════════════════════════════════════════════════════════════════════════════


class StdioTransport(StreamTransport):
    """Launch the tool server as a subprocess and speak JSON-RPC over its pipes.

    The server's stderr is drained into the log. Closing terminates the
    process, killing it if it does not exit within `shutdown_timeout`.
    """

    def __init__(
        self,
        command: str,
        args: Sequence[str] = (),
        env: Mapping[str, str] | None = None,
        *,
        shutdown_timeout: float = 5.0,
    ) -> None:
        super().__init__(name=os.path.basename(command) or "stdio")
        self._command = command
        self._args = tuple(args)
        self._env = dict(env or {})
        self._shutdown_timeout = shutdown_timeout
        self._process: asyncio.subprocess.Process | None = None
        self._stderr_task: asyncio.Task[None] | None = None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process else None

    async def _open(self) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        try:
            self._process = await asyncio.create_subprocess_exec(
                self._command,
                *self._args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, **self._env},
                limit=STREAM_LIMIT,
            )
        except OSError as exc:
            raise ToolConnectionError(f"failed to start tool server {self._command!r}: {exc}") from exc
        assert self._process.stdout and self._process.stdin and self._process.stderr
        self._stderr_task = asyncio.create_task(self._drain_stderr(self._process.stderr))
        logger.info(f"[{self._name}] started tool server pid={self._process.pid}")
        return self._process.stdout, self._process.stdin

    async def _drain_stderr(self, stream: asyncio.StreamReader) -> None:
        with contextlib.suppress(OSError, ValueError):
            while line := await stream.readline():
                logger.info(f"[{self._name} stderr] {line.decode(errors='replace').rstrip()}")

    async def close(self) -> None:
        await super().close()
        process, self._process = self._process, None
        if process is not None and process.returncode is None:
            with contextlib.suppress(ProcessLookupError):
                process.terminate()
            try:
                await asyncio.wait_for(process.wait(), self._shutdown_timeout)
            except TimeoutError:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
        if self._stderr_task is not None:
            self._stderr_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._stderr_task
            self._stderr_task = None


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP Transport
# ═══════════════════════════════════════════════════════════════════════════════


class HttpTransport:
    """JSON-RPC request/response over HTTP POST.

    Each request is correlated by the HTTP exchange itself; the response id
    is still checked. A session id issued by the server is echoed on later
    requests.

    Args:
        url: Endpoint URL
        headers: Extra headers sent with every request
        timeout: Default request timeout in seconds
        client: Optional pre-built httpx.AsyncClient (not closed by this transport)
    """

    SESSION_HEADER = "Mcp-Session-Id"

    def __init__(
        self,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._headers = {"Content-Type": "application/json", "Accept": "application/json", **(headers or {})}
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._ids = itertools.count(1)
        self._session_id: str | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        if self._closed:
            raise ToolConnectionError(f"[http] transport to {self._url} already closed")
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)

    async def request(self, method: str, params: JsonDict | None = None, *, timeout: float | None = None) -> Any:
        request_id = next(self._ids)
        response = await self._post(JsonRpcRequest(id=request_id, method=method, params=params).to_wire(), timeout)
        try:
            message = JsonRpcResponse.model_validate(decode(response.content))
        except (DecodeError, ValidationError) as exc:
            raise TransportError(f"[http] invalid response to {method}: {exc}") from exc
        if _normalize_id(message.id) != request_id:
            raise TransportError(f"[http] response id {message.id!r} does not match request {request_id}")
        return _unwrap(message)

    async def notify(self, method: str, params: JsonDict | None = None) -> None:
        await self._post(JsonRpcRequest(method=method, params=params).to_wire(), None)

    async def close(self) -> None:
        self._closed = True
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def _post(self, body: JsonDict, timeout: float | None) -> httpx.Response:
        if self._closed:
            raise TransportError("[http] transport is closed")
        if self._client is None:
            await self.start()
        assert self._client is not None
        headers = dict(self._headers)
        if self._session_id:
            headers[self.SESSION_HEADER] = self._session_id
        try:
            content = encode(body)
        except EncodeError as exc:
            raise TransportError(f"[http] cannot encode {body.get('method')}: {exc}") from exc
        try:
            response = await self._client.post(
                self._url, content=content, headers=headers, timeout=timeout or self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise TransportError(f"[http] {body.get('method')} timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"[http] {body.get('method')} failed: {exc}") from exc
        if response.status_code >= 400:
            raise TransportError(f"[http] {body.get('method')} returned HTTP {response.status_code}")
        if session := response.headers.get(self.SESSION_HEADER):
            self._session_id = session
        return response


def create_transport(settings: ServerSettings) -> Transport:
    """Build the transport selected by server settings."""
    settings.validate_target()
    if settings.transport == "http":
        assert settings.url is not None
        return HttpTransport(settings.url, headers=settings.headers, timeout=settings.call_timeout)
    assert settings.command is not None
    return StdioTransport(settings.command, settings.args, settings.env)
