"""
Cache strategies using Strategy Pattern.
Allows switching between different cache backends (Redis, In-Memory, Null).

The cache holds page metadata produced by the enrichment analyzer, so a
link created twice for the same page does not fetch it twice. Values are
JSON strings; keys are namespaced with a prefix so a shared Redis can
host other applications.
"""

import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "smartshort:"


class CacheStrategy(ABC):
    """
    Async key/value store for enrichment results.

    A cache outage must never fail link creation: implementations turn
    backend errors into misses (get) or False (set/delete).
    """

    prefix = DEFAULT_PREFIX

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Cached JSON string, or None on miss/expiry/error."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        """Store value for `ttl` seconds. False when the backend refused."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Drop a key; True if something was removed."""

    async def close(self) -> None:
        return None


class RedisCache(CacheStrategy):
    """
    Redis cache (redis.asyncio client).

    Shared by every API process, TTL enforced by Redis.
    """

    def __init__(self, redis_client, prefix: str = DEFAULT_PREFIX):
        """
        Args:
            redis_client: redis.asyncio.Redis instance
            prefix: Namespace prepended to every key
        """
        self.redis = redis_client
        self.prefix = prefix

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await self.redis.get(self._key(key))
        except Exception as e:
            logger.warning("⚠️  Redis cache read failed for %s: %s", key, e)
            return None
        return value.decode("utf-8") if isinstance(value, bytes) else value

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        try:
            return bool(await self.redis.set(self._key(key), value, ex=ttl))
        except Exception as e:
            logger.warning("⚠️  Redis cache write failed for %s: %s", key, e)
            return False

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self.redis.delete(self._key(key)))
        except Exception as e:
            logger.warning("⚠️  Redis cache delete failed for %s: %s", key, e)
            return False

    async def close(self) -> None:
        await self.redis.aclose()


class InMemoryCache(CacheStrategy):
    """
    Per-process LRU cache with lazy TTL expiry.

    Bounded by max_entries so a burst of distinct URLs cannot grow it
    without limit. Used in development and tests.
    """

    def __init__(self, max_entries: int = 1024):
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()

    async def get(self, key: str) -> Optional[str]:
        key = self._key(key)
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= time.monotonic():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        key = self._key(key)
        self._entries[key] = (value, time.monotonic() + ttl)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
        return True

    async def delete(self, key: str) -> bool:
        return self._entries.pop(self._key(key), None) is not None

    def __len__(self) -> int:
        return len(self._entries)


class NullCache(CacheStrategy):
    """
    Null Object Pattern - cache that does nothing.
    Every lookup is a miss (enrichment disabled caching).
    """

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        return False

    async def delete(self, key: str) -> bool:
        return False
