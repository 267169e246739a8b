"""Server state management."""

from __future__ import annotations

from typing import Any

from linear_mcp.cache import TTLCache
from linear_mcp.linear.client import LinearClient
from linear_mcp.logging_config import get_logger
from linear_mcp.server.config import LinearConfig
from linear_mcp.session.state import ConnectionState

logger = get_logger("server.state")


class ServerState:
    """Process-wide resources shared by every tool handler.

    Owns the upstream client (created lazily), the shared TTL cache, and
    the single ConnectionState the transport session and shutdown
    coordinator work on.
    """

    def __init__(
        self,
        config: LinearConfig,
        client: LinearClient | None = None,
        cache: TTLCache | None = None,
        connection: ConnectionState | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._cache: TTLCache[Any] = cache or TTLCache(
            default_ttl=config.cache_ttl,
            sweep_interval=config.cache_sweep_interval,
        )
        self._connection = connection or ConnectionState()
        self._started = False

    @property
    def config(self) -> LinearConfig:
        return self._config

    @property
    def client(self) -> LinearClient:
        if self._client is None:
            self._client = LinearClient(
                self._config.api_key,
                url=self._config.api_url,
                timeout=self._config.api_timeout,
            )
        return self._client

    @property
    def cache(self) -> TTLCache[Any]:
        return self._cache

    @property
    def connection(self) -> ConnectionState:
        return self._connection

    @property
    def enabled_tools(self) -> set[str]:
        return self._config.enabled_tools

    def start(self) -> None:
        """Start background work. Needs a running event loop."""
        if self._started:
            return
        self._cache.start()
        self._started = True
        logger.debug("server state started")

    async def aclose(self) -> None:
        await self._cache.stop()
        self._cache.clear()
        if self._client is not None:
            await self._client.aclose()
        self._started = False
        logger.debug("server state closed")
