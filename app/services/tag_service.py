import logging
import uuid
from typing import Dict, Iterable, List, Optional

from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.core.exceptions import ResourceAlreadyExists
from app.crud.book_tag_crud import book_tag_repository, BookTagRepository
from app.crud.tag_crud import tag_repository, TagRepository
from app.schemas.tag_schema import TagLinkResult, TagResult

logger = logging.getLogger(__name__)


class TagService:
    """
    Turns free-text tag names into shared Tag rows linked to a book.

    Processing is an idempotent upsert: running it twice with overlapping
    names never duplicates tags or links.
    """

    def __init__(
        self,
        tag_repo: TagRepository = tag_repository,
        book_tag_repo: BookTagRepository = book_tag_repository,
        max_attempts: Optional[int] = None,
    ):
        self.tag_repository = tag_repo
        self.book_tag_repository = book_tag_repo
        self.max_attempts = max_attempts or settings.TAG_UPSERT_MAX_ATTEMPTS
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @staticmethod
    def normalize_tag_names(names: Iterable[str]) -> List[str]:
        """Lowercase and trim, drop empties, dedupe keeping first-seen order."""
        normalized: List[str] = []
        seen = set()
        for raw in names:
            if raw is None:
                continue
            name = raw.strip().lower()
            if name and name not in seen:
                seen.add(name)
                normalized.append(name)
        return normalized

    async def find_existing_tags(
        self, db: AsyncSession, *, names: List[str]
    ) -> Dict[str, int]:
        """Map of name -> id for the tags that already exist."""
        tags = await self.tag_repository.get_by_names(db=db, names=names)
        return {tag.name: tag.id for tag in tags}

    async def create_new_tags(
        self, db: AsyncSession, *, names: List[str]
    ) -> List[TagResult]:
        tags = await self.tag_repository.create_many(db=db, names=names)
        return [TagResult(id=tag.id, name=tag.name, is_new=True) for tag in tags]

    async def link_tags_to_book(
        self, db: AsyncSession, *, book_id: uuid.UUID, tag_ids: List[int]
    ) -> List[int]:
        """Link tags to a book, skipping links that already exist. Returns the ids actually linked."""
        for attempt in range(1, self.max_attempts + 1):
            already_linked = await self.book_tag_repository.get_tag_ids(
                db=db, book_id=book_id
            )
            to_link = [tag_id for tag_id in tag_ids if tag_id not in already_linked]
            if not to_link:
                return []
            try:
                await self.book_tag_repository.create_many(
                    db=db, book_id=book_id, tag_ids=to_link
                )
                return to_link
            except ResourceAlreadyExists:
                if attempt == self.max_attempts:
                    raise
                self._logger.info(
                    "Concurrent tag link detected, retrying",
                    extra={"book_id": str(book_id), "attempt": attempt},
                )
        return []

    async def process_tags_for_book(
        self, db: AsyncSession, *, book_id: uuid.UUID, tag_names: Iterable[str]
    ) -> TagLinkResult:
        """Normalize, upsert and link a book's tags."""

        # 1. Normalize
        names = self.normalize_tag_names(tag_names)
        if not names:
            return TagLinkResult(book_id=book_id, tag_names=[])

        # 2. Upsert; a concurrent creator of the same name makes us re-read
        created_tags: List[TagResult] = []
        for attempt in range(1, self.max_attempts + 1):
            existing = await self.find_existing_tags(db, names=names)
            missing = [name for name in names if name not in existing]
            if not missing:
                break
            try:
                created = await self.create_new_tags(db, names=missing)
            except ResourceAlreadyExists:
                if attempt == self.max_attempts:
                    raise
                self._logger.info(
                    "Concurrent tag creation detected, re-reading",
                    extra={"book_id": str(book_id), "attempt": attempt},
                )
                continue
            created_tags.extend(created)
            existing.update({tag.name: tag.id for tag in created})
            break

        # 3. Link
        tag_ids = [existing[name] for name in names]
        linked = await self.link_tags_to_book(db, book_id=book_id, tag_ids=tag_ids)

        self._logger.info(
            f"Tags processed for book {book_id}",
            extra={
                "book_id": str(book_id),
                "tags": names,
                "created_count": len(created_tags),
                "linked_count": len(linked),
            },
        )
        return TagLinkResult(
            book_id=book_id,
            tag_names=names,
            created_tags=created_tags,
            linked_tag_ids=linked,
        )


tag_service = TagService()
