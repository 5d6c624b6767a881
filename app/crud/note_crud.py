import uuid

from sqlmodel.ext.asyncio.session import AsyncSession

from app.crud.base_crud import BaseRepository
from app.models.note_model import Note
from app.core.exception_utils import handle_exceptions
from app.core.exceptions import InternalServerError


class NoteRepository(BaseRepository[Note]):
    """Notes are only counted by the book lifecycle."""

    def __init__(self):
        super().__init__(Note)

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to create note.",
    )
    async def create(self, db: AsyncSession, *, obj_in: Note) -> Note:
        db.add(obj_in)
        await db.commit()
        await db.refresh(obj_in)
        return obj_in

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to count notes.",
    )
    async def count_by_book(self, db: AsyncSession, *, book_id: uuid.UUID) -> int:
        return await self._count_where(db, self.model.book_id == book_id)

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to count notes.",
    )
    async def count_for_user(
        self, db: AsyncSession, *, book_id: uuid.UUID, user_id: uuid.UUID
    ) -> int:
        return await self._count_where(
            db, self.model.book_id == book_id, self.model.user_id == user_id
        )


note_repository = NoteRepository()
