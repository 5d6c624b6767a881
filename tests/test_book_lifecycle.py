# tests/test_book_lifecycle.py
"""End-to-end walk through the book lifecycle on a real (in-memory) database."""

import pytest
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.exceptions import BookNotFound
from app.models.audit_log_model import AuditLog
from app.models.tag_model import Tag
from app.schemas.book_schema import BookCreate, SideEffectStatus
from app.services.book_service import BookService
from tests.mocks.fake_redis import FakeRedis

# Mark all tests in this file as async
pytestmark = pytest.mark.asyncio


async def test_dune_create_delete_round_trip(
    db_session: AsyncSession, books: BookService, fake_redis: FakeRedis, owner_id
):
    # Create with a tag given twice in different spellings
    created = await books.create_book_with_related_data(
        db_session,
        book_data=BookCreate(title="Dune", author="Herbert", tags=["scifi", "scifi "]),
        user_id=owner_id,
    )
    book_id = created.book.id

    assert created.tags == ["scifi"]
    tags = (await db_session.execute(select(Tag))).scalars().all()
    assert [t.name for t in tags] == ["scifi"]

    fake_redis.store[f"book:detail:{book_id}"] = "stale"

    # Delete it
    result = await books.delete_book(db_session, book_id=book_id, user_id=owner_id)

    assert result.deleted_related_data.book_tags == 1
    assert result.deleted_related_data.book_statuses == 0
    assert result.deleted_related_data.ratings == 0
    assert result.deleted_related_data.notes == 0
    assert result.audit_status == SideEffectStatus.SUCCEEDED
    assert result.cache_status == SideEffectStatus.SUCCEEDED
    assert f"book:detail:{book_id}" not in fake_redis.store
    # Warmed again after invalidation
    assert f"user:{owner_id}:recent-books" in fake_redis.store

    # Shared tag rows outlive the book
    assert len((await db_session.execute(select(Tag))).scalars().all()) == 1

    audit = (
        await db_session.execute(
            select(AuditLog).where(AuditLog.resource_id == str(book_id))
        )
    ).scalars().all()
    assert [a.operation for a in audit] == ["DELETE"]

    with pytest.raises(BookNotFound):
        await books.get_book_detail(db_session, book_id=book_id, user_id=owner_id)
