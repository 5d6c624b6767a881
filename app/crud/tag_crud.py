import logging
from typing import List, Sequence

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.crud.base_crud import BaseRepository
from app.models.tag_model import Tag
from app.core.exception_utils import handle_exceptions
from app.core.exceptions import InternalServerError, ResourceAlreadyExists


logger = logging.getLogger(__name__)


class TagRepository(BaseRepository[Tag]):
    """Repository for all database operations related to the Tag model."""

    def __init__(self):
        super().__init__(Tag)

    @handle_exceptions(
        default_exception=InternalServerError,
        message="An unexpected database error occurred.",
    )
    async def get_by_names(
        self, db: AsyncSession, *, names: Sequence[str]
    ) -> List[Tag]:
        """Fetch every tag whose name is in ``names``. Names are expected normalized."""
        if not names:
            return []
        statement = select(self.model).where(self.model.name.in_(list(names)))
        result = await db.execute(statement)
        return list(result.scalars().all())

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to create tag.",
        integrity_exception=ResourceAlreadyExists,
    )
    async def create(self, db: AsyncSession, *, obj_in: Tag) -> Tag:
        db.add(obj_in)
        await db.commit()
        await db.refresh(obj_in)
        return obj_in

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to create tags.",
        integrity_exception=ResourceAlreadyExists,
    )
    async def create_many(
        self, db: AsyncSession, *, names: Sequence[str]
    ) -> List[Tag]:
        """
        Insert several tags in one transaction.

        If another writer inserted one of the names first, the whole batch is
        rolled back and ResourceAlreadyExists is raised so the caller can
        re-read and retry.
        """
        if not names:
            return []
        tags = [self.model(name=name) for name in names]
        db.add_all(tags)
        await db.commit()
        for tag in tags:
            await db.refresh(tag)
        self._logger.info(f"Tags created: {[tag.name for tag in tags]}")
        return tags


# Singleton instance
tag_repository = TagRepository()
