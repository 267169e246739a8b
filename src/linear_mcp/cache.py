"""In-memory TTL cache for read-mostly upstream lookups.

Entries expire individually. get() evicts lazily; a background sweep
evicts entries nobody reads again, so memory stays bounded regardless of
access pattern.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from linear_mcp.logging_config import get_logger

logger = get_logger("cache")

V = TypeVar("V")

CACHE_TTL_SECONDS = 5 * 60
CACHE_SWEEP_INTERVAL_SECONDS = 10 * 60


@dataclass
class CacheEntry(Generic[V]):
    value: V
    stored_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at


@dataclass
class CacheStats:
    """Cache diagnostics."""

    size: int
    oldest_entry: float | None
    newest_entry: float | None


class TTLCache(Generic[V]):
    """String-keyed cache with per-entry time-to-live.

    Usage:
        cache: TTLCache[dict] = TTLCache()
        cache.start()  # periodic sweep, needs a running loop
        cache.set("team:abc", team)
        cache.get("team:abc")
        await cache.stop()
    """

    def __init__(
        self,
        default_ttl: float = CACHE_TTL_SECONDS,
        sweep_interval: float = CACHE_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if default_ttl <= 0:
            raise ValueError("default_ttl must be positive")
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: dict[str, CacheEntry[V]] = {}
        self._lock = threading.Lock()
        self._sweep_task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str) -> V | None:
        """Return the cached value, or None if absent or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: V, ttl: float | None = None) -> None:
        """Insert or overwrite an entry."""
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        now = self._clock()
        with self._lock:
            self._entries[key] = CacheEntry(
                value=value, stored_at=now, expires_at=now + ttl
            )

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Evict every expired entry.

        Returns:
            Number of entries evicted
        """
        now = self._clock()
        with self._lock:
            expired = [
                key
                for key, entry in self._entries.items()
                if entry.is_expired(now)
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("cache sweep evicted %d entries", len(expired))
        return len(expired)

    def stats(self) -> CacheStats:
        with self._lock:
            stamps = [entry.stored_at for entry in self._entries.values()]
        return CacheStats(
            size=len(stamps),
            oldest_entry=min(stamps) if stamps else None,
            newest_entry=max(stamps) if stamps else None,
        )

    # -------------------------------------------------------------------------
    # Background sweep
    # -------------------------------------------------------------------------

    @property
    def sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def start(self) -> None:
        """Launch the periodic sweep task on the running loop."""
        if self.sweeping:
            return
        self._stop_event = asyncio.Event()
        self._sweep_task = asyncio.create_task(
            self._sweep_loop(self._stop_event), name="cache-sweep"
        )

    async def stop(self) -> None:
        """Stop the periodic sweep task."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

    async def _sweep_loop(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.sweep_interval)
                break
            except asyncio.TimeoutError:
                pass
            try:
                self.sweep()
            except Exception as e:
                logger.exception("cache sweep error: %s", e)
