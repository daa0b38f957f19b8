"""
Fixed-window rate limiting per caller identity and scope.

Each (scope, identity) pair gets ``max_requests`` per window; the window
starts with the first request and resets once it has elapsed.
"""

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

import redis.asyncio as redis
from fastapi import HTTPException, Request, status
from redis.exceptions import RedisError

from aetherra.core.config import settings
from aetherra.core.logging import api_logger

WRITE = "write"
READ = "read"
AI = "ai"


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: int


def client_identity(request: Request) -> str:
    """First ``X-Forwarded-For`` hop, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


class FixedWindowRateLimiter:
    """In-process limiter; ``clock`` is injectable for tests."""

    def __init__(self, window_seconds: int = 60, clock: Callable[[], float] = time.monotonic):
        self.window_seconds = window_seconds
        self.clock = clock
        self._windows: Dict[str, Tuple[float, int]] = {}
        self._next_sweep = clock() + window_seconds

    def _sweep(self, now: float) -> None:
        """Once per window, forget callers whose window has closed."""
        if now < self._next_sweep:
            return
        self._next_sweep = now + self.window_seconds
        self._windows = {key: window for key, window in self._windows.items() if window[0] > now}

    async def hit(self, key: str, max_requests: int) -> RateLimitResult:
        now = self.clock()
        self._sweep(now)
        reset_at, count = self._windows.get(key, (0.0, 0))
        if now >= reset_at:
            reset_at, count = now + self.window_seconds, 0

        if count >= max_requests:
            self._windows[key] = (reset_at, count)
            return RateLimitResult(False, 0, max(1, math.ceil(reset_at - now)))

        count += 1
        self._windows[key] = (reset_at, count)
        return RateLimitResult(True, max_requests - count, 0)


class RedisRateLimiter:
    """Shared limiter over INCR + PEXPIRE; falls back to memory when Redis fails."""

    def __init__(
        self,
        window_seconds: int = 60,
        client: Optional[redis.Redis] = None,
        fallback: Optional[FixedWindowRateLimiter] = None,
    ):
        self.window_seconds = window_seconds
        self.redis = client or redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
        )
        self.fallback = fallback or FixedWindowRateLimiter(window_seconds)

    async def hit(self, key: str, max_requests: int) -> RateLimitResult:
        redis_key = f"ratelimit:{key}"
        try:
            count = await self.redis.incr(redis_key)
            if count == 1:
                await self.redis.pexpire(redis_key, self.window_seconds * 1000)
            if count > max_requests:
                ttl_ms = await self.redis.pttl(redis_key)
                retry_after = math.ceil(ttl_ms / 1000) if ttl_ms and ttl_ms > 0 else self.window_seconds
                return RateLimitResult(False, 0, max(1, retry_after))
            return RateLimitResult(True, max_requests - count, 0)
        except RedisError as e:
            api_logger.warning(f"Redis rate limiter unavailable, using in-memory window: {e}")
            return await self.fallback.hit(key, max_requests)


def build_rate_limiter(backend: Optional[str] = None):
    """Limiter for one application instance, selected by ``RATE_LIMIT_BACKEND``."""
    if (backend or settings.RATE_LIMIT_BACKEND) == "redis":
        return RedisRateLimiter(settings.RATE_LIMIT_WINDOW_SECONDS)
    return FixedWindowRateLimiter(settings.RATE_LIMIT_WINDOW_SECONDS)


SCOPE_LIMITS = {
    WRITE: lambda: settings.RATE_LIMIT_WRITE_MAX,
    READ: lambda: settings.RATE_LIMIT_READ_MAX,
    AI: lambda: settings.RATE_LIMIT_AI_MAX,
}


def rate_limit(scope: str, max_requests: Optional[int] = None):
    """Dependency factory: 429 with ``Retry-After`` once the caller's window is spent."""

    async def dependency(request: Request) -> None:
        limiter = request.app.state.rate_limiter
        limit = max_requests if max_requests is not None else SCOPE_LIMITS[scope]()
        identity = client_identity(request)
        result = await limiter.hit(f"{scope}:{identity}", limit)
        if not result.allowed:
            api_logger.warning(f"Rate limit exceeded for {identity} on {scope} ({request.method} {request.url.path})")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests, please try again later",
                headers={"Retry-After": str(result.retry_after)},
            )

    return dependency
