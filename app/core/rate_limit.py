"""
Fixed-window rate limiting.

The counter state lives behind ``RateLimitStore`` so the limiter can run on an
in-process dict (tests, single worker) or on Redis (shared across workers).
A single ``FixedWindowRateLimiter`` is built at startup and handed to the
dispatch layer; nothing here is module-global.
"""

import asyncio
import math
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from fastapi import Request
from redis.asyncio import Redis, from_url

from app.core.config import Settings
from app.core.logging_config import get_logger

logger = get_logger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."


@dataclass
class Window:
    count: int
    started_at: float


class RateLimitStore(ABC):
    """Counter storage: one window per client key."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Window]:
        ...

    @abstractmethod
    async def increment(self, key: str, now: float, window_seconds: int) -> Window:
        """Count one request, opening a new window when none is live."""

    @abstractmethod
    async def expire(self, now: float, window_seconds: int) -> int:
        """Drop windows older than ``window_seconds``; returns how many were removed."""


class MemoryRateLimitStore(RateLimitStore):
    """Process-local store. Does not work across multiple server instances."""

    def __init__(self) -> None:
        self._windows: Dict[str, Window] = {}

    async def get(self, key: str) -> Optional[Window]:
        window = self._windows.get(key)
        return Window(window.count, window.started_at) if window else None

    async def increment(self, key: str, now: float, window_seconds: int) -> Window:
        window = self._windows.get(key)
        if window is None or now - window.started_at > window_seconds:
            window = Window(count=1, started_at=now)
            self._windows[key] = window
        else:
            window.count += 1
        return Window(window.count, window.started_at)

    async def expire(self, now: float, window_seconds: int) -> int:
        stale = [k for k, w in self._windows.items() if now - w.started_at > window_seconds]
        for key in stale:
            del self._windows[key]
        return len(stale)

    def __len__(self) -> int:
        return len(self._windows)


class RedisRateLimitStore(RateLimitStore):
    """Shared store: one hash per key, expired by Redis TTL."""

    def __init__(self, client: Redis) -> None:
        self._client = client

    async def get(self, key: str) -> Optional[Window]:
        data = await self._client.hgetall(key)
        if not data:
            return None
        return Window(count=int(data["count"]), started_at=float(data["started_at"]))

    async def increment(self, key: str, now: float, window_seconds: int) -> Window:
        # Same MULTI/EXEC as the increment; NX keeps the first window's TTL
        pipe = self._client.pipeline()
        pipe.hsetnx(key, "started_at", now)
        pipe.hincrby(key, "count", 1)
        pipe.hget(key, "started_at")
        pipe.expire(key, window_seconds, nx=True)
        _, count, started_at, _ = await pipe.execute()
        return Window(count=int(count), started_at=float(started_at))

    async def expire(self, now: float, window_seconds: int) -> int:
        # Keys carry their own TTL
        return 0


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: int

    def headers(self) -> Dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }


class FixedWindowRateLimiter:
    def __init__(
        self,
        store: RateLimitStore,
        max_requests: int = 100,
        window_seconds: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock

    async def hit(self, key: str) -> RateLimitDecision:
        window = await self.store.increment(key, self._clock(), self.window_seconds)
        allowed = window.count <= self.max_requests
        if not allowed:
            logger.warning(f"Rate limit exceeded for {key}: {self.max_requests}/{self.window_seconds}s")
        return RateLimitDecision(
            allowed=allowed,
            limit=self.max_requests,
            remaining=max(0, self.max_requests - window.count),
            reset_at=math.ceil(window.started_at + self.window_seconds),
        )

    async def purge(self) -> int:
        return await self.store.expire(self._clock(), self.window_seconds)

    async def run_cleanup(self, interval_seconds: float) -> None:
        """Background loop purging stale windows; cancelled on shutdown."""
        while True:
            await asyncio.sleep(interval_seconds)
            removed = await self.purge()
            if removed:
                logger.debug(f"Purged {removed} expired rate limit window(s)")


def client_key(request: Request) -> str:
    client_ip = request.client.host if request.client else "unknown"
    return f"ratelimit:{client_ip}"


def build_rate_limiter(settings: Settings) -> FixedWindowRateLimiter:
    """Redis-backed limiter when REDIS_URL is configured, in-memory otherwise."""
    if settings.redis_url:
        store: RateLimitStore = RedisRateLimitStore(
            from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
        )
    else:
        store = MemoryRateLimitStore()
    return FixedWindowRateLimiter(
        store,
        max_requests=settings.rate_limit_max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )


__all__ = [
    "FixedWindowRateLimiter",
    "MemoryRateLimitStore",
    "RateLimitDecision",
    "RateLimitStore",
    "RedisRateLimitStore",
    "build_rate_limiter",
    "client_key",
]
