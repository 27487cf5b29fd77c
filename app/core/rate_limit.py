import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from app.core.config.settings import settings
from app.core.database.redis import redis_manager
from app.core.logger import logger_manager


@dataclass
class RateLimitStatus:
    count: int
    limit: int
    reset_after: int

    @property
    def exceeded(self) -> bool:
        return self.count > self.limit

    @property
    def remaining(self) -> int:
        return max(self.limit - self.count, 0)


class RateLimitBackend(ABC):
    """Fixed-window request counters keyed by client."""

    @abstractmethod
    async def hit(self, key: str, limit: int, window: int) -> RateLimitStatus:
        """Count one request against ``key`` and report the window state."""

    @abstractmethod
    async def reset(self) -> None:
        """Forget all counters."""


class MemoryRateLimitBackend(RateLimitBackend):
    """Per-process counters. Not shared between workers."""

    def __init__(self):
        self._windows: Dict[str, Tuple[int, float]] = {}
        self._lock = asyncio.Lock()

    async def hit(self, key: str, limit: int, window: int) -> RateLimitStatus:
        now = time.monotonic()
        async with self._lock:
            count, started = self._windows.get(key, (0, now))
            if now - started >= window:
                count, started = 0, now
            count += 1
            self._windows[key] = (count, started)
            if len(self._windows) > 10000:
                self._evict(now, window)
        reset_after = max(int(started + window - now), 1)
        return RateLimitStatus(count=count, limit=limit, reset_after=reset_after)

    def _evict(self, now: float, window: int) -> None:
        expired = [k for k, (_, started) in self._windows.items() if now - started >= window]
        for k in expired:
            del self._windows[k]

    async def reset(self) -> None:
        async with self._lock:
            self._windows.clear()


class RedisRateLimitBackend(RateLimitBackend):
    """Counters shared by every instance through Redis INCR + EXPIRE."""

    async def hit(self, key: str, limit: int, window: int) -> RateLimitStatus:
        client = await redis_manager.get_async_client()
        redis_key = redis_manager.key("ratelimit", key)

        # 使用原子性递增操作获取当前计数
        count = await client.incr(redis_key)
        if count == 1:
            # 第一次访问, 设置过期时间
            await client.expire(redis_key, window)
        ttl = await client.ttl(redis_key)
        if ttl is None or ttl < 0:
            await client.expire(redis_key, window)
            ttl = window
        return RateLimitStatus(count=count, limit=limit, reset_after=max(int(ttl), 1))

    async def reset(self) -> None:
        client = await redis_manager.get_async_client()
        async for redis_key in client.scan_iter(match=redis_manager.key("ratelimit", "*")):
            await client.delete(redis_key)


_backend: Optional[RateLimitBackend] = None


def get_rate_limit_backend() -> RateLimitBackend:
    global _backend
    if _backend is None:
        if settings.rate_limit.RATE_LIMIT_BACKEND == "redis":
            _backend = RedisRateLimitBackend()
        else:
            _backend = MemoryRateLimitBackend()
        logger_manager.get_logger(__name__).info(
            f"🚦 Rate limiting uses the {settings.rate_limit.RATE_LIMIT_BACKEND} backend"
        )
    return _backend
