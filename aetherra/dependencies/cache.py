import json
import logging
import time
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

import redis.asyncio as redis
from redis.exceptions import RedisError
from fastapi import Request

from aetherra.core.config import settings
from aetherra.core.logging import db_logger

# Type variable for generic cache
T = TypeVar('T')


class TTLCache(Generic[T]):
    """
    Process-local cache with per-entry expiry.

    Entries are invalidated by TTL only. ``clock`` is injectable so tests can
    move time forward without sleeping.
    """

    def __init__(
        self,
        prefix: str = "cache",
        default_ttl: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval: float = 60.0,
    ):
        self.prefix = prefix
        self.default_ttl = default_ttl
        self.clock = clock
        self.sweep_interval = sweep_interval
        self._entries: Dict[str, Tuple[Optional[float], T]] = {}
        self._next_sweep = clock() + sweep_interval

    def _sweep(self, now: float) -> None:
        """Drop expired entries whose keys are never read again."""
        if now < self._next_sweep:
            return
        self._next_sweep = now + self.sweep_interval
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at is not None and now >= expires_at]
        for key in expired:
            del self._entries[key]

    def _get_key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    async def get(self, key: str, default: Optional[T] = None) -> Optional[T]:
        full_key = self._get_key(key)
        entry = self._entries.get(full_key)
        if entry is None:
            return default
        expires_at, value = entry
        if expires_at is not None and self.clock() >= expires_at:
            del self._entries[full_key]
            return default
        return value

    async def set(self, key: str, value: T, expire: Optional[int] = None) -> bool:
        now = self.clock()
        self._sweep(now)
        ttl = expire if expire is not None else self.default_ttl
        expires_at = now + ttl if ttl is not None else None
        self._entries[self._get_key(key)] = (expires_at, value)
        return True

    async def delete(self, key: str) -> bool:
        return self._entries.pop(self._get_key(key), None) is not None

    async def clear_prefix(self) -> bool:
        self._entries.clear()
        return True


class RedisCache(Generic[T]):
    """Redis cache wrapper with typed operations, shared across instances"""

    def __init__(
        self,
        prefix: str = "cache",
        default_ttl: Optional[int] = None,
        client: Optional[redis.Redis] = None,
    ):
        """
        Initialize Redis cache with a prefix for keys

        Args:
            prefix: Prefix for all keys in this cache instance
            default_ttl: Expiry in seconds applied when ``set`` gets none
            client: Redis client; built from settings when omitted
        """
        self.prefix = prefix
        self.default_ttl = default_ttl
        self.redis = client or redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
        )

    def _get_key(self, key: str) -> str:
        """Get prefixed key"""
        return f"{self.prefix}:{key}"

    async def get(self, key: str, default: Optional[T] = None) -> Optional[T]:
        """
        Get a value from cache

        Args:
            key: Cache key
            default: Default value if key doesn't exist or Redis is unreachable

        Returns:
            Cached value or default
        """
        full_key = self._get_key(key)
        try:
            value = await self.redis.get(full_key)
            if value is None:
                return default
            return json.loads(value)
        except (RedisError, json.JSONDecodeError) as e:
            db_logger.structured(
                logging.ERROR,
                f"Redis get error: {str(e)}",
                {"key": full_key}
            )
            return default

    async def set(self, key: str, value: T, expire: Optional[int] = None) -> bool:
        """
        Set a JSON-serializable value in cache

        Args:
            key: Cache key
            value: Value to cache
            expire: Expiration time in seconds

        Returns:
            True if successful
        """
        full_key = self._get_key(key)
        try:
            await self.redis.set(full_key, json.dumps(value, default=str), ex=expire or self.default_ttl)
            return True
        except (RedisError, TypeError, ValueError) as e:
            db_logger.structured(logging.ERROR, f"Redis set error: {str(e)}", {"key": full_key})
            return False

    async def delete(self, key: str) -> bool:
        full_key = self._get_key(key)
        try:
            return bool(await self.redis.delete(full_key))
        except RedisError as e:
            db_logger.structured(logging.ERROR, f"Redis delete error: {str(e)}", {"key": full_key})
            return False

    async def clear_prefix(self) -> bool:
        """
        Clear all keys with this cache's prefix

        Returns:
            True if successful
        """
        try:
            cursor = 0
            pattern = f"{self.prefix}:*"
            while True:
                cursor, keys = await self.redis.scan(cursor, match=pattern)
                if keys:
                    await self.redis.delete(*keys)
                if cursor == 0:
                    break
            return True
        except RedisError as e:
            db_logger.structured(logging.ERROR, f"Redis clear_prefix error: {str(e)}", {"prefix": self.prefix})
            return False


def build_cache(prefix: str, default_ttl: Optional[int] = None, backend: Optional[str] = None) -> Any:
    """Cache for one application instance, selected by ``CACHE_BACKEND``."""
    if (backend or settings.CACHE_BACKEND) == "redis":
        return RedisCache[dict](prefix, default_ttl=default_ttl)
    return TTLCache[dict](prefix, default_ttl=default_ttl)


def get_dashboard_cache(request: Request):
    """Dependency for the dashboard summary cache on ``app.state``"""
    return request.app.state.dashboard_cache
