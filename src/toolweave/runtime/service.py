"""Long-lived orchestration service.

Owns one tool client, one adapter, one result cache and the loop that
ties them together. Built once at startup, shared by every request.

Example:
    >>> service = await build_service(get_settings())
    >>> result = await service.process_prompt("List my resources")
    >>> service.health_check()
    {'mcp_client': 'connected', 'ai_provider': 'openai', 'tools_count': '4'}
    >>> await service.close()
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from toolweave.adapters import create_adapter
from toolweave.foundation.config import ToolweaveSettings, get_settings
from toolweave.foundation.errors import ToolConnectionError, TransportError
from toolweave.io.cache import ResultCache
from toolweave.mcp import Implementation, ToolClient, create_transport

from .orchestrator import Orchestrator, OrchestrationResult

if TYPE_CHECKING:
    from types import TracebackType

    from toolweave.adapters import Adapter

logger = logging.getLogger("toolweave.runtime.service")


class OrchestrationService:
    """Facade over client, adapter, cache and loop. Use `create` to build one."""

    def __init__(
        self,
        client: ToolClient,
        adapter: Adapter,
        cache: ResultCache | None,
        orchestrator: Orchestrator,
    ) -> None:
        self._client = client
        self._adapter = adapter
        self._cache = cache
        self._orchestrator = orchestrator

    @classmethod
    async def create(
        cls,
        client: ToolClient,
        adapter: Adapter,
        *,
        cache: ResultCache | None = None,
        settings: ToolweaveSettings | None = None,
    ) -> OrchestrationService:
        """Initialize the client, discover the catalog and start the cache sweeper.

        Raises:
            ToolConnectionError: the endpoint could not be reached, rejected the
                handshake or failed to list its tools
        """
        settings = settings or get_settings()
        await client.initialize()
        try:
            tools = await client.list_tools()
        except TransportError as exc:
            raise ToolConnectionError(f"tool discovery failed: {exc}") from exc

        if cache is None and settings.cache.enabled:
            cache = ResultCache(settings.cache.ttl, sweep_interval=settings.cache.sweep_interval)
        orchestrator = Orchestrator(
            client,
            adapter,
            cache,
            max_iterations=settings.loop.max_iterations,
            call_timeout=settings.server.call_timeout,
        )
        logger.info(f"[service] ready: provider={adapter.name}, tools={len(tools)}, cache={'on' if cache else 'off'}")
        return cls(client, adapter, cache, orchestrator)

    @property
    def client(self) -> ToolClient:
        return self._client

    @property
    def cache(self) -> ResultCache | None:
        return self._cache

    @property
    def orchestrator(self) -> Orchestrator:
        return self._orchestrator

    async def process_prompt(self, prompt: str, *, cancel: asyncio.Event | None = None) -> OrchestrationResult:
        return await self._orchestrator.process_prompt(prompt, cancel=cancel)

    def available_tools(self) -> list[dict[str, Any]]:
        """Catalog as `{name, description, parameters}` records."""
        return [
            {"name": tool.name, "description": tool.description, "parameters": dict(tool.input_schema)}
            for tool in self._client.tools
        ]

    def health_check(self) -> dict[str, str]:
        return {
            "mcp_client": "connected" if self._client.connected else "disconnected",
            "ai_provider": self._adapter.name,
            "tools_count": str(len(self._client.tools)),
        }

    async def close(self) -> None:
        if self._cache is not None:
            self._cache.stop()
        await self._client.close()
        logger.info("[service] closed")

    async def __aenter__(self) -> OrchestrationService:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()


async def build_service(settings: ToolweaveSettings | None = None) -> OrchestrationService:
    """Wire transport, client, adapter and cache from settings.

    Raises:
        ConfigurationError: missing server target or adapter credentials
        ToolConnectionError: the endpoint is unusable
    """
    settings = settings or get_settings()
    adapter = create_adapter(settings.adapter)
    client = ToolClient(
        create_transport(settings.server),
        client_info=Implementation(name=settings.server.client_name, version=settings.server.client_version),
        protocol_version=settings.server.protocol_version,
        call_timeout=settings.server.call_timeout,
    )
    try:
        return await OrchestrationService.create(client, adapter, settings=settings)
    except BaseException:
        await client.close()
        raise
