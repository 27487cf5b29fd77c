import asyncio
import time
from abc import ABC, abstractmethod
from typing import Dict

from app.core.config.settings import settings
from app.core.database.redis import redis_manager
from app.core.logger import logger_manager


class ProcessedEventStore(ABC):
    """Remembers webhook event ids so redelivered events run their side effects once."""

    @abstractmethod
    async def claim(self, event_id: str) -> bool:
        """Mark ``event_id`` as taken. False if it was already claimed."""

    @abstractmethod
    async def release(self, event_id: str) -> None:
        """Undo a claim so a retried delivery is processed again."""

    @abstractmethod
    async def is_processed(self, event_id: str) -> bool:
        pass


class InMemoryEventStore(ProcessedEventStore):
    def __init__(self, ttl: int):
        self.ttl = ttl
        self._claimed: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    def _purge(self, now: float) -> None:
        expired = [k for k, expires in self._claimed.items() if expires <= now]
        for k in expired:
            del self._claimed[k]

    async def claim(self, event_id: str) -> bool:
        now = time.monotonic()
        async with self._lock:
            self._purge(now)
            if event_id in self._claimed:
                return False
            self._claimed[event_id] = now + self.ttl
            return True

    async def release(self, event_id: str) -> None:
        async with self._lock:
            self._claimed.pop(event_id, None)

    async def is_processed(self, event_id: str) -> bool:
        async with self._lock:
            self._purge(time.monotonic())
            return event_id in self._claimed

    async def clear(self) -> None:
        async with self._lock:
            self._claimed.clear()


class RedisEventStore(ProcessedEventStore):
    def __init__(self, ttl: int):
        self.ttl = ttl

    async def claim(self, event_id: str) -> bool:
        client = await redis_manager.get_async_client()
        claimed = await client.set(
            redis_manager.key("webhook-event", event_id), "1", nx=True, ex=self.ttl
        )
        return bool(claimed)

    async def release(self, event_id: str) -> None:
        client = await redis_manager.get_async_client()
        await client.delete(redis_manager.key("webhook-event", event_id))

    async def is_processed(self, event_id: str) -> bool:
        client = await redis_manager.get_async_client()
        return bool(await client.exists(redis_manager.key("webhook-event", event_id)))


_event_store: ProcessedEventStore = None


def get_event_store() -> ProcessedEventStore:
    global _event_store
    if _event_store is None:
        ttl = settings.stripe.WEBHOOK_EVENT_TTL
        if settings.stripe.WEBHOOK_EVENT_STORE == "redis":
            _event_store = RedisEventStore(ttl)
        else:
            _event_store = InMemoryEventStore(ttl)
        logger_manager.get_logger(__name__).info(
            f"🧾 Webhook event ids tracked in {settings.stripe.WEBHOOK_EVENT_STORE}"
        )
    return _event_store
