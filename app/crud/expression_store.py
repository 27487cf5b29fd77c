import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from app.core.exceptions import NotFoundError
from app.core.logger import logger_manager
from app.models.expression_model import ExpressionOfInterest, ExpressionStatus, utcnow


_UNSET = object()


class ExpressionStore(ABC):
    @abstractmethod
    async def list(self) -> List[ExpressionOfInterest]:
        pass

    @abstractmethod
    async def get(self, expression_id: int) -> ExpressionOfInterest:
        """Raises NotFoundError for an unknown id."""

    @abstractmethod
    async def create(self, fields: Dict[str, Any]) -> ExpressionOfInterest:
        """Assign the next id and store a new record built from ``fields``."""

    @abstractmethod
    async def update(
        self,
        expression_id: int,
        status: Optional[ExpressionStatus] = None,
        admin_notes: Any = _UNSET,
    ) -> ExpressionOfInterest:
        pass

    @abstractmethod
    async def delete(self, expression_id: int) -> ExpressionOfInterest:
        pass


class InMemoryExpressionStore(ExpressionStore):
    """Process-local records; ids increase monotonically and are never reused."""

    def __init__(self):
        self.logger = logger_manager.get_logger(__name__)
        self._items: Dict[int, ExpressionOfInterest] = {}
        self._next_id = 1
        self._lock = asyncio.Lock()

    async def list(self) -> List[ExpressionOfInterest]:
        async with self._lock:
            return [item.model_copy(deep=True) for item in self._items.values()]

    async def get(self, expression_id: int) -> ExpressionOfInterest:
        async with self._lock:
            return self._require(expression_id).model_copy(deep=True)

    def _require(self, expression_id: int) -> ExpressionOfInterest:
        item = self._items.get(expression_id)
        if item is None:
            raise NotFoundError("Expression of interest not found")
        return item

    async def create(self, fields: Dict[str, Any]) -> ExpressionOfInterest:
        async with self._lock:
            item = ExpressionOfInterest(id=self._next_id, **fields)
            self._items[item.id] = item
            self._next_id += 1
        self.logger.info(f"📝 Stored {item}")
        return item.model_copy(deep=True)

    async def update(
        self,
        expression_id: int,
        status: Optional[ExpressionStatus] = None,
        admin_notes: Any = _UNSET,
    ) -> ExpressionOfInterest:
        async with self._lock:
            item = self._require(expression_id)
            if status is not None:
                item.status = ExpressionStatus(status)
            if admin_notes is not _UNSET:
                item.admin_notes = admin_notes
            item.updated_at = utcnow()
            return item.model_copy(deep=True)

    async def delete(self, expression_id: int) -> ExpressionOfInterest:
        async with self._lock:
            item = self._require(expression_id)
            del self._items[expression_id]
        self.logger.info(f"🗑️ Deleted {item}")
        return item


_expression_store: ExpressionStore = None


def get_expression_store() -> ExpressionStore:
    global _expression_store
    if _expression_store is None:
        _expression_store = InMemoryExpressionStore()
    return _expression_store
