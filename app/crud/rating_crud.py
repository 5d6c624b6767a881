import uuid
from typing import Optional, Tuple

from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession

from app.crud.base_crud import BaseRepository
from app.models.rating_model import Rating
from app.core.exception_utils import handle_exceptions
from app.core.exceptions import InternalServerError, ValidationError


class RatingRepository(BaseRepository[Rating]):
    """Repository for book ratings."""

    def __init__(self):
        super().__init__(Rating)

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to create rating.",
        integrity_exception=ValidationError,
    )
    async def create(self, db: AsyncSession, *, obj_in: Rating) -> Rating:
        """Insert a rating. The range check constraint surfaces as ValidationError."""
        db.add(obj_in)
        await db.commit()
        await db.refresh(obj_in)
        self._logger.info(f"Rating created: {obj_in.id} for book {obj_in.book_id}")
        return obj_in

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to fetch rating.",
    )
    async def get_for_user(
        self, db: AsyncSession, *, book_id: uuid.UUID, user_id: uuid.UUID
    ) -> Optional[Rating]:
        statement = (
            select(self.model)
            .where(self.model.book_id == book_id, self.model.user_id == user_id)
            .order_by(self.model.updated_at.desc())
        )
        result = await db.execute(statement)
        return result.scalars().first()

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to compute rating summary.",
    )
    async def get_summary(
        self, db: AsyncSession, *, book_id: uuid.UUID
    ) -> Tuple[Optional[float], int]:
        """Average rating and number of ratings for a book across all users."""
        statement = select(func.avg(self.model.rating), func.count(self.model.id)).where(
            self.model.book_id == book_id
        )
        average, total = (await db.execute(statement)).one()
        return (float(average) if average is not None else None), total

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to count ratings.",
    )
    async def count_by_book(self, db: AsyncSession, *, book_id: uuid.UUID) -> int:
        return await self._count_where(db, self.model.book_id == book_id)


rating_repository = RatingRepository()
