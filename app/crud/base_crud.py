import logging
from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseRepository(ABC, Generic[T]):
    """Abstract base repository providing consistent interface for database operations."""

    def __init__(self, model: type[T]):
        self.model = model
        self._logger = logging.getLogger(
            f"{self.__class__.__module__}.{self.__class__.__name__}"
        )

    @abstractmethod
    async def create(self, db: AsyncSession, *, obj_in: Any) -> T:
        """Create a new entity."""
        pass

    async def _count_where(self, db: AsyncSession, *conditions) -> int:
        """Exact count of rows matching all conditions."""
        statement = select(func.count()).select_from(self.model).where(*conditions)
        result = await db.execute(statement)
        return result.scalar_one()
