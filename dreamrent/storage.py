"""Local key/value store used for cache entries and session markers.

Redis is used when reachable; otherwise an in-process :class:`MemoryCache`
takes its place so the dashboard keeps working without a cache server.
"""

from typing import Any

import redis.asyncio as redis
import structlog
from redis.exceptions import OutOfMemoryError, RedisError

from .core import get_settings
from .errors import StorageError, StorageQuotaError

logger = structlog.get_logger(__name__)


class MemoryCache:
    """Simple in-memory store used when Redis is unavailable.

    Args:
        quota_bytes: Optional limit on the total size of stored values; a
            write that would exceed it raises ``StorageQuotaError``.
    """

    def __init__(self, quota_bytes: int | None = None):
        self.store: dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def _size(self) -> int:
        return sum(len(k.encode()) + len(v.encode()) for k, v in self.store.items())

    async def get(self, key: str) -> str | None:
        """
        Retrieve a value from the in-memory store.

        Args:
            key (str): Cache key.

        Returns:
            str | None: Stored value if present.
        """
        return self.store.get(key)

    async def set(self, key: str, value: str) -> None:
        """
        Store a value, enforcing the optional quota.

        Args:
            key (str): Cache key.
            value (str): Value to store.

        Raises:
            StorageQuotaError: If the quota would be exceeded.
        """
        if self.quota_bytes is not None:
            current = self._size() - (
                len(key.encode()) + len(self.store[key].encode()) if key in self.store else 0
            )
            if current + len(key.encode()) + len(value.encode()) > self.quota_bytes:
                raise StorageQuotaError(f"quota of {self.quota_bytes} bytes exceeded")
        self.store[key] = value

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self.store.pop(key, None)

    async def close(self) -> None:
        return None


class RedisStore:
    """Key/value access on top of an async Redis client."""

    def __init__(self, client: Any):
        self.client = client

    async def get(self, key: str) -> str | None:
        try:
            return await self.client.get(key)
        except RedisError as exc:
            raise StorageError(str(exc)) from exc

    async def set(self, key: str, value: str) -> None:
        try:
            await self.client.set(key, value)
        except OutOfMemoryError as exc:
            raise StorageQuotaError(str(exc)) from exc
        except RedisError as exc:
            raise StorageError(str(exc)) from exc

    async def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            await self.client.delete(*keys)
        except RedisError as exc:
            raise StorageError(str(exc)) from exc

    async def close(self) -> None:
        await self.client.aclose()


KeyValueStore = MemoryCache | RedisStore


async def get_cache_client(url: str | None = None) -> KeyValueStore:
    """
    Return a Redis-backed store or an in-memory fallback.

    Returns:
        RedisStore | MemoryCache: Store instance.
    """
    settings = get_settings()
    client = redis.from_url(
        url or settings.REDIS_URL, encoding="utf-8", decode_responses=True
    )
    try:
        await client.ping()
    except (RedisError, OSError) as exc:
        logger.warning("redis_unavailable_using_memory_cache", error=str(exc))
        await client.aclose()
        return MemoryCache()
    return RedisStore(client)
