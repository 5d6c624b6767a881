# tests/services/test_tag_service.py
import uuid

import pytest
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
from unittest.mock import patch

from app.core.exceptions import ResourceAlreadyExists
from app.crud.book_tag_crud import BookTagRepository
from app.crud.tag_crud import TagRepository
from app.models.book_model import Book
from app.models.book_tag_model import BookTag
from app.models.tag_model import Tag
from app.services.tag_service import TagService

# Mark all tests in this file as async
pytestmark = pytest.mark.asyncio


@pytest.fixture
def tag_service() -> TagService:
    """Fresh repositories per test so patches never leak into the singletons."""
    return TagService(
        tag_repo=TagRepository(), book_tag_repo=BookTagRepository(), max_attempts=2
    )


async def _all_tags(db: AsyncSession):
    return list((await db.execute(select(Tag))).scalars().all())


async def _links(db: AsyncSession, book_id: uuid.UUID):
    statement = select(BookTag).where(BookTag.book_id == book_id)
    return list((await db.execute(statement)).scalars().all())


# ==================== NORMALIZATION ====================


async def test_normalize_lowercases_trims_and_dedupes():
    assert TagService.normalize_tag_names(
        ["Fiction", " fiction ", "FICTION", "", "   ", "Sci-Fi"]
    ) == ["fiction", "sci-fi"]


async def test_normalize_keeps_first_seen_order():
    assert TagService.normalize_tag_names(["b", "A", "a", "c"]) == ["b", "a", "c"]


# ==================== PROCESSING ====================


async def test_case_variants_collapse_to_one_tag_and_one_link(
    db_session: AsyncSession, tag_service: TagService, sample_book: Book
):
    result = await tag_service.process_tags_for_book(
        db_session, book_id=sample_book.id, tag_names=["Fiction", " fiction ", "FICTION"]
    )

    assert result.tag_names == ["fiction"]
    assert [t.name for t in result.created_tags] == ["fiction"]
    tags = await _all_tags(db_session)
    assert [t.name for t in tags] == ["fiction"]
    assert len(await _links(db_session, sample_book.id)) == 1


async def test_empty_input_does_nothing(
    db_session: AsyncSession, tag_service: TagService, sample_book: Book
):
    result = await tag_service.process_tags_for_book(
        db_session, book_id=sample_book.id, tag_names=["  ", ""]
    )

    assert result.tag_names == []
    assert await _all_tags(db_session) == []


async def test_reprocessing_overlapping_tags_never_duplicates(
    db_session: AsyncSession, tag_service: TagService, sample_book: Book
):
    await tag_service.process_tags_for_book(
        db_session, book_id=sample_book.id, tag_names=["scifi", "classic"]
    )
    second = await tag_service.process_tags_for_book(
        db_session, book_id=sample_book.id, tag_names=["Classic", "space"]
    )

    assert [t.name for t in second.created_tags] == ["space"]
    assert len(second.linked_tag_ids) == 1
    assert sorted(t.name for t in await _all_tags(db_session)) == [
        "classic",
        "scifi",
        "space",
    ]
    assert len(await _links(db_session, sample_book.id)) == 3


async def test_existing_tags_are_shared_between_books(
    db_session: AsyncSession, tag_service: TagService, sample_book: Book
):
    other = Book(title="Hyperion", author="Dan Simmons", created_by=uuid.uuid4())
    db_session.add(other)
    await db_session.commit()

    await tag_service.process_tags_for_book(
        db_session, book_id=sample_book.id, tag_names=["scifi"]
    )
    result = await tag_service.process_tags_for_book(
        db_session, book_id=other.id, tag_names=["SCIFI"]
    )

    assert result.created_tags == []
    assert len(await _all_tags(db_session)) == 1


async def test_concurrent_tag_creation_is_retried(
    db_session: AsyncSession, tag_service: TagService, sample_book: Book
):
    """Another writer inserts the same tag first; we re-read and link it."""
    original = tag_service.tag_repository.create_many
    calls = 0

    async def racing_create_many(db, *, names):
        nonlocal calls
        calls += 1
        if calls == 1:
            await original(db=db, names=names)
            raise ResourceAlreadyExists()
        return await original(db=db, names=names)

    with patch.object(
        tag_service.tag_repository, "create_many", side_effect=racing_create_many
    ):
        result = await tag_service.process_tags_for_book(
            db_session, book_id=sample_book.id, tag_names=["fantasy"]
        )

    assert calls == 1
    assert result.tag_names == ["fantasy"]
    assert result.created_tags == []
    assert len(await _all_tags(db_session)) == 1
    assert len(await _links(db_session, sample_book.id)) == 1


async def test_tag_upsert_gives_up_after_max_attempts(
    db_session: AsyncSession, tag_service: TagService, sample_book: Book
):
    with patch.object(
        tag_service.tag_repository,
        "create_many",
        side_effect=ResourceAlreadyExists(),
    ):
        with pytest.raises(ResourceAlreadyExists):
            await tag_service.process_tags_for_book(
                db_session, book_id=sample_book.id, tag_names=["horror"]
            )
