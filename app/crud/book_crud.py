import logging
import uuid
from typing import Optional, List, Dict, Any

from sqlalchemy import update, delete
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.crud.base_crud import BaseRepository
from app.models.book_model import Book
from app.core.exception_utils import handle_exceptions
from app.core.exceptions import InternalServerError, DuplicateBook


logger = logging.getLogger(__name__)


class BookRepository(BaseRepository[Book]):
    """Repository for all database operations related to the Book model."""

    def __init__(self):
        super().__init__(Book)

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to fetch book.",
    )
    async def get(self, db: AsyncSession, *, obj_id: uuid.UUID) -> Optional[Book]:
        """Retrieves a book by its ID."""
        statement = select(self.model).where(self.model.id == obj_id)
        result = await db.execute(statement)
        return result.scalar_one_or_none()

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to check for duplicate book.",
    )
    async def get_by_title_and_author(
        self, db: AsyncSession, *, title: str, author: str, owner_id: uuid.UUID
    ) -> Optional[Book]:
        """Exact (title, author) match within one owner's books."""
        statement = select(self.model).where(
            self.model.title == title,
            self.model.author == author,
            self.model.created_by == owner_id,
        )
        result = await db.execute(statement)
        return result.scalars().first()

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to fetch recent books.",
    )
    async def get_recent_by_owner(
        self, db: AsyncSession, *, owner_id: uuid.UUID, limit: int = 10
    ) -> List[Book]:
        """Most recently created books of one owner."""
        statement = (
            select(self.model)
            .where(self.model.created_by == owner_id)
            .order_by(self.model.created_at.desc())
            .limit(limit)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to create book.",
        integrity_exception=DuplicateBook,
    )
    async def create(self, db: AsyncSession, *, obj_in: Book) -> Book:
        """Insert a pre-constructed Book. A (title, author, owner) clash raises DuplicateBook."""
        db.add(obj_in)
        await db.commit()
        await db.refresh(obj_in)
        self._logger.info(f"Book created: {obj_in.id}")
        return obj_in

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to update book.",
        integrity_exception=DuplicateBook,
    )
    async def update(
        self,
        db: AsyncSession,
        *,
        book_id: uuid.UUID,
        owner_id: uuid.UUID,
        fields_to_update: Dict[str, Any],
    ) -> Optional[Book]:
        """
        Update a book scoped by both id and owner.

        Returns None when no row matched, i.e. the book vanished or changed
        hands between the caller's ownership check and this statement.
        """
        statement = (
            update(self.model)
            .where(self.model.id == book_id, self.model.created_by == owner_id)
            .values(**fields_to_update)
        )
        result = await db.execute(statement)
        await db.commit()

        if result.rowcount == 0:
            return None

        refreshed = await db.execute(
            select(self.model)
            .where(self.model.id == book_id)
            .execution_options(populate_existing=True)
        )
        book = refreshed.scalar_one_or_none()

        self._logger.info(
            f"Book fields updated for {book_id}: {list(fields_to_update.keys())}"
        )
        return book

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to delete book.",
    )
    async def delete(
        self, db: AsyncSession, *, book_id: uuid.UUID, owner_id: uuid.UUID
    ) -> int:
        """
        Permanently delete a book scoped by id and owner.

        Dependent rows go with it through ON DELETE CASCADE. Returns the number
        of book rows removed (0 or 1).
        """
        statement = delete(self.model).where(
            self.model.id == book_id, self.model.created_by == owner_id
        )
        result = await db.execute(statement)
        await db.commit()
        self._logger.info(f"Book hard deleted: {book_id}")
        return result.rowcount


book_repository = BookRepository()
