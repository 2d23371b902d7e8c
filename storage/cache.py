from __future__ import annotations  # Fast-access cache with in-memory fallback

import logging
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

import redis.asyncio as redis_asyncio

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):  # Plain async get/set/delete with TTL
    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl_s: int) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def aclose(self) -> None: ...


class MemoryCache:  # In-process TTL cache used when Redis is absent
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._items: Dict[str, Tuple[float, str]] = {}

    async def get(self, key: str) -> Optional[str]:
        item = self._items.get(key)
        if item is None:
            return None
        expires_at, value = item
        if self._clock() >= expires_at:
            self._items.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl_s: int) -> None:
        self._items[key] = (self._clock() + ttl_s, value)

    async def delete(self, key: str) -> None:
        self._items.pop(key, None)

    async def aclose(self) -> None:
        self._items.clear()


class RedisCache:  # redis.asyncio client wrapper
    def __init__(self, client: redis_asyncio.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCache":
        return cls(redis_asyncio.Redis.from_url(url, decode_responses=True))

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def get(self, key: str) -> Optional[str]:
        value = await self._client.get(key)
        return value if value is None or isinstance(value, str) else value.decode("utf-8")

    async def set(self, key: str, value: str, ttl_s: int) -> None:
        await self._client.set(key, value, ex=ttl_s)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def aclose(self) -> None:
        await self._client.aclose()


class SafeCache:
    """Cache facade whose operations never raise.

    Backend errors are logged and read as a miss or a skipped write. A failed
    write also tries to drop the key so a stale value cannot outlive it.
    """

    def __init__(self, backend: CacheBackend) -> None:
        self._backend = backend

    @property
    def backend(self) -> CacheBackend:
        return self._backend

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self._backend.get(key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cache get failed key=%s error=%s", key, exc)
            return None

    async def set(self, key: str, value: str, ttl_s: int) -> bool:
        try:
            await self._backend.set(key, value, ttl_s)
            return True
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cache set failed key=%s error=%s", key, exc)
        await self.delete(key)
        return False

    async def delete(self, key: str) -> None:
        try:
            await self._backend.delete(key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cache delete failed key=%s error=%s", key, exc)

    async def aclose(self) -> None:
        try:
            await self._backend.aclose()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Cache close failed error=%s", exc)


async def build_cache(redis_url: Optional[str]) -> SafeCache:  # Redis when reachable, memory otherwise
    if redis_url:
        backend = RedisCache.from_url(redis_url)
        try:
            await backend.ping()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Redis unavailable error=%s; using in-memory cache", exc)
            await SafeCache(backend).aclose()
        else:
            logger.info("Redis cache connected")
            return SafeCache(backend)
    return SafeCache(MemoryCache())


def session_key(session_id: str) -> str:
    return f"session:{session_id}"


def company_key(company_name: str) -> str:
    return f"company:{company_name.strip().lower()}"


__all__ = [
    "CacheBackend",
    "MemoryCache",
    "RedisCache",
    "SafeCache",
    "build_cache",
    "company_key",
    "session_key",
]
