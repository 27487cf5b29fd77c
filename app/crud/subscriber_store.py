import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Union

from app.core.config.settings import settings
from app.core.exceptions import AppError, DuplicateSubscriberError
from app.core.logger import logger_manager


class SubscriberStore(ABC):
    @abstractmethod
    async def list_subscribers(self) -> List[str]:
        """All subscribed addresses in subscription order."""

    @abstractmethod
    async def add_subscriber(self, email: str) -> str:
        """Append ``email``; raises DuplicateSubscriberError if already present."""

    @abstractmethod
    async def contains(self, email: str) -> bool:
        pass


class JsonFileSubscriberStore(SubscriberStore):
    """
    Subscribers kept as a JSON array of addresses.

    Every read-modify-write runs under one lock and the file is replaced
    atomically, so concurrent subscriptions cannot drop each other.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = logger_manager.get_logger(__name__)
        self._lock = asyncio.Lock()

    @staticmethod
    def _normalize(email: str) -> str:
        return email.strip().lower()

    def _read(self) -> List[str]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "[]")
        except (OSError, json.JSONDecodeError) as e:
            self.logger.error(f"❌ Failed to read subscribers from {self.path}: {e}")
            raise AppError("Failed to read subscribers")
        if not isinstance(data, list):
            self.logger.error(f"❌ Subscriber file {self.path} does not hold a list")
            raise AppError("Failed to read subscribers")
        return [str(item) for item in data]

    def _write(self, subscribers: List[str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(subscribers, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    async def list_subscribers(self) -> List[str]:
        async with self._lock:
            return await asyncio.to_thread(self._read)

    async def contains(self, email: str) -> bool:
        target = self._normalize(email)
        subscribers = await self.list_subscribers()
        return any(self._normalize(item) == target for item in subscribers)

    async def add_subscriber(self, email: str) -> str:
        normalized = self._normalize(email)
        async with self._lock:
            subscribers = await asyncio.to_thread(self._read)
            if any(self._normalize(item) == normalized for item in subscribers):
                raise DuplicateSubscriberError("Email already subscribed.")
            subscribers.append(normalized)
            await asyncio.to_thread(self._write, subscribers)
        self.logger.info(f"📬 New newsletter subscriber, total={len(subscribers)}")
        return normalized


_subscriber_store: SubscriberStore = None


def get_subscriber_store() -> SubscriberStore:
    global _subscriber_store
    if _subscriber_store is None:
        _subscriber_store = JsonFileSubscriberStore(settings.files.NEWSLETTER_SUBSCRIBERS_FILE)
    return _subscriber_store
