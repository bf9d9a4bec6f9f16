"""Short-TTL memoization of search responses with in-flight de-duplication."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import redis.asyncio as redis
from cachetools import TTLCache

from src.config import settings
from src.errors import SearchCancelledError
from src.services.storage.redis_client import get_redis_client

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """Storage for cached values. Values must be JSON-compatible."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the live value for ``key`` or None."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: float) -> None:
        """Store ``value`` for ``ttl`` seconds."""

    @abstractmethod
    async def clear(self, scope: str | None = None) -> int:
        """Drop every key starting with ``scope`` (all keys when None)."""


class MemoryCacheBackend(CacheBackend):
    """Process-local store on a ``cachetools.TTLCache``.

    Entries expire ``ttl`` seconds after they are written and the least
    recently used entry is evicted once ``max_entries`` is reached. The
    per-call ``ttl`` of :meth:`set` is ignored; every entry lives for the
    backend's ``ttl``.
    """

    def __init__(
        self,
        max_entries: int | None = None,
        ttl: float | None = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: TTLCache = TTLCache(
            maxsize=max_entries if max_entries is not None else settings.SEARCH_CACHE_MAX_ENTRIES,
            ttl=ttl if ttl is not None else settings.SEARCH_CACHE_TTL_SECONDS,
            timer=timer,
        )

    def __len__(self) -> int:
        self._entries.expire()
        return len(self._entries)

    async def get(self, key: str) -> Any | None:
        return self._entries.get(key)

    async def set(self, key: str, value: Any, ttl: float) -> None:
        self._entries[key] = value

    async def clear(self, scope: str | None = None) -> int:
        self._entries.expire()
        if scope is None:
            count = len(self._entries)
            self._entries.clear()
            return count
        doomed = [key for key in self._entries if key.startswith(scope)]
        for key in doomed:
            self._entries.pop(key, None)
        return len(doomed)


class RedisCacheBackend(CacheBackend):
    """Redis-backed store shared by every API replica."""

    def __init__(self, client: redis.Redis, key_prefix: str | None = None) -> None:
        self._client = client
        self._prefix = key_prefix if key_prefix is not None else settings.SEARCH_CACHE_KEY_PREFIX

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> Any | None:
        raw = await self._client.get(self._key(key))
        if not raw:
            return None
        return json.loads(raw)

    async def set(self, key: str, value: Any, ttl: float) -> None:
        await self._client.set(
            self._key(key),
            json.dumps(value),
            ex=max(1, int(ttl)),
        )

    async def clear(self, scope: str | None = None) -> int:
        pattern = f"{self._prefix}{scope or ''}*"
        keys = [key async for key in self._client.scan_iter(match=pattern)]
        if not keys:
            return 0
        return await self._client.delete(*keys)


class SearchCache:
    """Memoizes responses by key and shares pending fetches between callers."""

    def __init__(
        self,
        ttl_seconds: float | None = None,
        backend: CacheBackend | None = None,
    ) -> None:
        self.ttl_seconds = (
            ttl_seconds if ttl_seconds is not None else settings.SEARCH_CACHE_TTL_SECONDS
        )
        self._backend = (
            backend if backend is not None else MemoryCacheBackend(ttl=self.ttl_seconds)
        )
        self._in_flight: dict[str, asyncio.Task] = {}
        self._generation = 0

    @staticmethod
    def make_key(endpoint: str, params: Mapping[str, Any] | None = None) -> str:
        serialized = json.dumps(
            params or {},
            sort_keys=True,
            separators=(",", ":"),
            default=str,
        )
        return f"{endpoint}?{serialized}"

    @property
    def in_flight_count(self) -> int:
        return len(self._in_flight)

    async def get(self, key: str) -> Any | None:
        try:
            return await self._backend.get(key)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning("Search cache read failed for %s: %s", key, exc)
            return None

    async def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        try:
            await self._backend.set(key, value, ttl if ttl is not None else self.ttl_seconds)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.warning("Search cache write failed for %s: %s", key, exc)

    async def clear(self, scope: str | None = None) -> int:
        """Invalidate cached entries, optionally only those under ``scope``."""

        # Fetches started before this call must not repopulate the cache.
        self._generation += 1
        for key in [k for k in self._in_flight if scope is None or k.startswith(scope)]:
            self._in_flight.pop(key, None)
        cleared = await self._backend.clear(scope)
        logger.info(
            "Cleared search cache",
            extra={"scope": scope or "*", "cleared": cleared},
        )
        return cleared

    async def get_or_fetch(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        ttl: float | None = None,
        should_cache: Callable[[Any], bool] | None = None,
    ) -> tuple[Any, bool]:
        """Return ``(value, from_cache)``, issuing at most one fetch per key.

        ``should_cache`` can veto storing a fetched value; vetoed values are
        still shared with concurrent callers.
        """

        cached = await self.get(key)
        if cached is not None:
            return cached, True

        while True:
            task = self._in_flight.get(key)
            leader = task is None
            if leader:
                task = asyncio.ensure_future(
                    self._fetch_and_store(key, fetch, self._generation, ttl, should_cache)
                )
                self._in_flight[key] = task
                task.add_done_callback(lambda done, key=key: self._forget(key, done))
            else:
                logger.debug("Joining in-flight fetch for %s", key)
            try:
                return await asyncio.shield(task), False
            except SearchCancelledError:
                if leader:
                    raise
                # The caller that started the fetch abandoned it; fetch our own.
                if self._in_flight.get(key) is task:
                    del self._in_flight[key]
                continue

    async def _fetch_and_store(
        self,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
        generation: int,
        ttl: float | None,
        should_cache: Callable[[Any], bool] | None = None,
    ) -> Any:
        value = await fetch()
        if value is None or generation != self._generation:
            return value
        if should_cache is None or should_cache(value):
            await self.set(key, value, ttl)
        return value

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            task.exception()


def create_search_cache(client: redis.Redis | None = None) -> SearchCache:
    """Factory building the cache with the configured backend."""

    if settings.redis_cache_enabled:
        backend: CacheBackend = RedisCacheBackend(client or get_redis_client())
    else:
        backend = MemoryCacheBackend(
            settings.SEARCH_CACHE_MAX_ENTRIES,
            settings.SEARCH_CACHE_TTL_SECONDS,
        )
    return SearchCache(settings.SEARCH_CACHE_TTL_SECONDS, backend)
