from typing import AsyncGenerator
import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from app.db import base  # noqa: F401
from app.db.session import enable_sqlite_foreign_keys, get_session
from app.main import app
from app.models.book_model import Book
from app.services.book_service import BookService, book_service
from app.services.cache_service import CacheService
from tests.mocks.fake_redis import FakeRedis

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# --- Test Database Setup ---


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    A fresh in-memory database per test, with foreign keys enforced so the
    ON DELETE CASCADE behaviour matches production.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session


# --- Service Fixtures ---


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis: FakeRedis) -> CacheService:
    """Rebuilds aggregates inline on the caller's session so assertions see them."""
    return CacheService(
        redis=fake_redis, enabled=True, ttl=60, refresh_in_background=False
    )


@pytest_asyncio.fixture
async def background_cache(
    fake_redis: FakeRedis, test_engine: AsyncEngine
) -> AsyncGenerator[CacheService, None]:
    """Rebuilds aggregates in the background worker on sessions of its own."""
    session_factory = async_sessionmaker(
        bind=test_engine, class_=AsyncSession, expire_on_commit=False
    )
    service = CacheService(
        redis=fake_redis,
        enabled=True,
        ttl=60,
        session_factory=session_factory,
        refresh_in_background=True,
    )
    yield service
    await service.wait_for_refresh()


@pytest.fixture
def books(cache: CacheService) -> BookService:
    """BookService on the real repositories with Redis swapped for the fake."""
    return BookService(cache=cache)


@pytest_asyncio.fixture(scope="function")
async def test_client(
    db_session: AsyncSession, cache: CacheService, monkeypatch
) -> AsyncGenerator[AsyncClient, None]:
    """
    Provides an HTTP client for API testing, overriding the DB dependency.
    """

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_session] = override_get_session
    monkeypatch.setattr(book_service, "cache_service", cache)

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://testserver"
    ) as client:
        yield client

    app.dependency_overrides.clear()


# --- Test Data Fixtures ---


@pytest.fixture
def owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def other_user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest_asyncio.fixture
async def sample_book(db_session: AsyncSession, owner_id: uuid.UUID) -> Book:
    """A persisted book owned by ``owner_id`` with no dependent rows."""
    book = Book(
        title="The Left Hand of Darkness",
        author="Ursula K. Le Guin",
        isbn="9780441478125",
        created_by=owner_id,
    )
    db_session.add(book)
    await db_session.commit()
    await db_session.refresh(book)
    return book
