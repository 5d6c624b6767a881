import uuid
from typing import Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.crud.base_crud import BaseRepository
from app.models.book_status_model import BookStatus
from app.core.exception_utils import handle_exceptions
from app.core.exceptions import InternalServerError, ResourceAlreadyExists


class BookStatusRepository(BaseRepository[BookStatus]):
    """Repository for reading statuses."""

    def __init__(self):
        super().__init__(BookStatus)

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to fetch book status.",
    )
    async def get(
        self, db: AsyncSession, *, book_id: uuid.UUID, user_id: uuid.UUID
    ) -> Optional[BookStatus]:
        statement = select(self.model).where(
            self.model.book_id == book_id, self.model.user_id == user_id
        )
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to create book status.",
        integrity_exception=ResourceAlreadyExists,
    )
    async def create(self, db: AsyncSession, *, obj_in: BookStatus) -> BookStatus:
        db.add(obj_in)
        await db.commit()
        await db.refresh(obj_in)
        self._logger.info(
            f"Book status created: {obj_in.book_id}/{obj_in.user_id} -> {obj_in.status}"
        )
        return obj_in

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to count book statuses.",
    )
    async def count_by_book(self, db: AsyncSession, *, book_id: uuid.UUID) -> int:
        return await self._count_where(db, self.model.book_id == book_id)


book_status_repository = BookStatusRepository()
