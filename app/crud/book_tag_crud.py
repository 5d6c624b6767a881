import logging
import uuid
from typing import List, Sequence, Set

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.crud.base_crud import BaseRepository
from app.models.book_tag_model import BookTag
from app.models.tag_model import Tag
from app.core.exception_utils import handle_exceptions
from app.core.exceptions import InternalServerError, ResourceAlreadyExists


logger = logging.getLogger(__name__)


class BookTagRepository(BaseRepository[BookTag]):
    """Repository for book-tag associations."""

    def __init__(self):
        super().__init__(BookTag)

    @handle_exceptions(
        default_exception=InternalServerError,
        message="An unexpected database error occurred.",
    )
    async def get_tag_ids(self, db: AsyncSession, *, book_id: uuid.UUID) -> Set[int]:
        """Ids of the tags already linked to a book."""
        statement = select(self.model.tag_id).where(self.model.book_id == book_id)
        result = await db.execute(statement)
        return set(result.scalars().all())

    @handle_exceptions(
        default_exception=InternalServerError,
        message="An unexpected database error occurred.",
    )
    async def get_tag_names(
        self, db: AsyncSession, *, book_id: uuid.UUID
    ) -> List[str]:
        """Names of a book's tags, alphabetically."""
        statement = (
            select(Tag.name)
            .join(self.model, self.model.tag_id == Tag.id)
            .where(self.model.book_id == book_id)
            .order_by(Tag.name)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to link tags to book.",
        integrity_exception=ResourceAlreadyExists,
    )
    async def create(self, db: AsyncSession, *, obj_in: BookTag) -> BookTag:
        """Creates a new book-tag link."""
        db.add(obj_in)
        await db.commit()
        await db.refresh(obj_in)
        return obj_in

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to link tags to book.",
        integrity_exception=ResourceAlreadyExists,
    )
    async def create_many(
        self, db: AsyncSession, *, book_id: uuid.UUID, tag_ids: Sequence[int]
    ) -> List[BookTag]:
        """Link a book to several tags in one transaction."""
        if not tag_ids:
            return []
        links = [self.model(book_id=book_id, tag_id=tag_id) for tag_id in tag_ids]
        db.add_all(links)
        await db.commit()
        return links

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to count book tags.",
    )
    async def count_by_book(self, db: AsyncSession, *, book_id: uuid.UUID) -> int:
        return await self._count_where(db, self.model.book_id == book_id)


# Singleton instance
book_tag_repository = BookTagRepository()
