import asyncio
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from pydantic import TypeAdapter
from redis import asyncio as aioredis
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.crud.book_crud import book_repository, BookRepository
from app.crud.book_tag_crud import book_tag_repository, BookTagRepository
from app.crud.stats_crud import stats_repository, StatsRepository
from app.db.redis_conn import redis_client
from app.db.session import db as database
from app.models.stats_model import (
    BOOK_POPULARITY_STATS,
    USER_READING_STATS,
    UserReadingStats,
)
from app.schemas.book_schema import BookResponse
from app.schemas.cache_schema import CacheInvalidationResult, CacheStats

logger = logging.getLogger(__name__)

_book_list_adapter = TypeAdapter(List[BookResponse])


def book_keys(book_id: uuid.UUID, user_id: uuid.UUID) -> List[str]:
    return [
        f"book:{book_id}",
        f"book:detail:{book_id}",
        f"book:{book_id}:user:{user_id}",
        f"book:{book_id}:notes",
        f"book:{book_id}:ratings",
        f"book:{book_id}:tags",
    ]


def user_keys(user_id: uuid.UUID) -> List[str]:
    return [
        f"user:{user_id}:books",
        f"user:{user_id}:stats",
        f"user:{user_id}:reading-progress",
        f"user:{user_id}:recent-books",
        f"user:{user_id}:book-tags",
    ]


def user_patterns(user_id: uuid.UUID) -> List[str]:
    return [f"user:{user_id}:books:*"]


SEARCH_PATTERNS = ["search:books:*", "search:recent:*", "search:popular:*"]
AGGREGATES = [USER_READING_STATS, BOOK_POPULARITY_STATS]


class CacheService:
    """
    Keeps Redis and the derived aggregate tables coherent with the books table.

    Every public method is best-effort: failures are logged and reported in the
    returned result, they never propagate to the caller.

    Aggregate rebuilds scan whole tables, so by default they run in a single
    background worker with its own session. Requests that arrive while a
    rebuild is running are folded into one follow-up rebuild.
    """

    def __init__(
        self,
        redis: aioredis.Redis = redis_client,
        stats_repo: StatsRepository = stats_repository,
        book_repo: BookRepository = book_repository,
        book_tag_repo: BookTagRepository = book_tag_repository,
        enabled: Optional[bool] = None,
        ttl: Optional[int] = None,
        session_factory: Optional[async_sessionmaker] = None,
        refresh_in_background: Optional[bool] = None,
    ):
        self.redis = redis
        self.stats_repository = stats_repo
        self.book_repository = book_repo
        self.book_tag_repository = book_tag_repo
        self.enabled = settings.CACHE_ENABLED if enabled is None else enabled
        self.ttl = ttl or settings.CACHE_TTL
        self.refresh_in_background = (
            settings.AGGREGATE_REFRESH_IN_BACKGROUND
            if refresh_in_background is None
            else refresh_in_background
        )
        self._session_factory = session_factory
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

        self._refresh_task: Optional[asyncio.Task] = None
        self._refresh_requested = False

        self._total_invalidations = 0
        self._failed_invalidations = 0
        self._total_invalidation_ms = 0.0
        self._refresh_count = 0
        self._failed_background_refreshes = 0
        self._last_full_refresh: Optional[datetime] = None

    # ------ Redis primitives ------
    async def _delete_keys(self, keys: List[str]) -> List[str]:
        if keys:
            await self.redis.delete(*keys)
        return keys

    async def _delete_pattern(self, pattern: str) -> List[str]:
        matched = [key async for key in self.redis.scan_iter(match=pattern)]
        if matched:
            await self.redis.delete(*matched)
        return matched

    async def _invalidate(
        self, keys: List[str], patterns: List[str], result: CacheInvalidationResult
    ) -> None:
        try:
            result.invalidated_keys.extend(await self._delete_keys(keys))
        except Exception as e:
            self._logger.warning(
                "Cache key invalidation failed", extra={"keys": keys}, exc_info=True
            )
            result.errors.append(f"delete keys: {e}")

        for pattern in patterns:
            try:
                result.invalidated_keys.extend(await self._delete_pattern(pattern))
            except Exception as e:
                self._logger.warning(
                    f"Cache pattern invalidation failed: {pattern}", exc_info=True
                )
                result.errors.append(f"delete pattern {pattern}: {e}")

    # ------ Aggregates ------
    async def refresh_materialized_views(
        self, db: AsyncSession
    ) -> Tuple[List[str], List[str]]:
        """Recompute every derived aggregate. Returns (refreshed, errors)."""
        refreshed: List[str] = []
        errors: List[str] = []
        for name in AGGREGATES:
            try:
                await self.stats_repository.refresh(db=db, name=name)
                refreshed.append(name)
            except Exception as e:
                self._logger.warning(
                    f"Aggregate refresh failed: {name}", exc_info=True
                )
                errors.append(f"refresh {name}: {e}")

        self._refresh_count += len(refreshed)
        if len(refreshed) == len(AGGREGATES):
            self._last_full_refresh = datetime.now(timezone.utc)
        return refreshed, errors

    def schedule_aggregate_refresh(self) -> None:
        """Ask the background worker for a rebuild, starting it if idle."""
        self._refresh_requested = True
        if self._refresh_task is None or self._refresh_task.done():
            self._refresh_task = asyncio.create_task(self._refresh_worker())

    async def wait_for_refresh(self) -> None:
        """Block until the background worker has drained every pending rebuild."""
        if self._refresh_task is not None:
            await self._refresh_task

    async def _refresh_worker(self) -> None:
        while self._refresh_requested:
            self._refresh_requested = False
            try:
                session_factory = self._session_factory or database.session_factory
                if session_factory is None:
                    raise RuntimeError("Database is not connected.")
                async with session_factory() as session:
                    _, errors = await self.refresh_materialized_views(session)
                if errors:
                    self._failed_background_refreshes += 1
            except Exception:
                self._failed_background_refreshes += 1
                self._logger.warning("Background aggregate refresh failed", exc_info=True)

    # ------ Public API ------
    async def invalidate_book(
        self, db: AsyncSession, *, book_id: uuid.UUID, user_id: uuid.UUID
    ) -> CacheInvalidationResult:
        """Drop everything derived from one book and its owner, then refresh aggregates."""
        start = time.perf_counter()
        result = CacheInvalidationResult(success=True, skipped=not self.enabled)

        try:
            if self.enabled:
                await self._invalidate(
                    book_keys(book_id, user_id) + user_keys(user_id),
                    user_patterns(user_id) + SEARCH_PATTERNS,
                    result,
                )

            if self.refresh_in_background:
                self.schedule_aggregate_refresh()
                result.aggregate_refresh_scheduled = True
            else:
                refreshed, errors = await self.refresh_materialized_views(db)
                result.materialized_views_refreshed = refreshed
                result.errors.extend(errors)
        except Exception as e:
            self._logger.error("Cache invalidation crashed", exc_info=True)
            result.errors.append(str(e))

        result.success = not result.errors
        self._record(result, start)
        self._logger.info(
            f"Cache invalidated for book {book_id}",
            extra={
                "book_id": str(book_id),
                "user_id": str(user_id),
                "keys": len(result.invalidated_keys),
                "success": result.success,
                "skipped": result.skipped,
            },
        )
        return result

    async def invalidate_user_cache(
        self, *, user_id: uuid.UUID
    ) -> CacheInvalidationResult:
        """Drop every key of one user plus cached searches."""
        start = time.perf_counter()
        result = CacheInvalidationResult(success=True, skipped=not self.enabled)
        if self.enabled:
            try:
                await self._invalidate(
                    [], [f"user:{user_id}:*", "search:books:*"], result
                )
            except Exception as e:
                self._logger.error("User cache invalidation crashed", exc_info=True)
                result.errors.append(str(e))

        result.success = not result.errors
        self._record(result, start)
        return result

    async def warm_cache(
        self,
        db: AsyncSession,
        *,
        user_id: uuid.UUID,
        book_id: Optional[uuid.UUID] = None,
    ) -> bool:
        """Pre-populate the hottest keys after an invalidation. Returns False on any failure."""
        if not self.enabled:
            return False
        try:
            stats = await self.stats_repository.get_user_stats(db=db, user_id=user_id)
            if stats is None:
                stats = UserReadingStats(user_id=user_id)
            await self.redis.set(
                f"user:{user_id}:stats", stats.model_dump_json(), ex=self.ttl
            )

            recent = await self.book_repository.get_recent_by_owner(
                db=db, owner_id=user_id
            )
            payload = _book_list_adapter.dump_json(
                [BookResponse.model_validate(book) for book in recent]
            )
            await self.redis.set(
                f"user:{user_id}:recent-books", payload.decode(), ex=self.ttl
            )

            if book_id is not None:
                tags = await self.book_tag_repository.get_tag_names(
                    db=db, book_id=book_id
                )
                await self.redis.set(
                    f"book:{book_id}:tags",
                    TypeAdapter(List[str]).dump_json(tags).decode(),
                    ex=self.ttl,
                )
            return True
        except Exception:
            self._logger.warning(
                f"Cache warming failed for user {user_id}", exc_info=True
            )
            return False

    def get_cache_stats(self) -> CacheStats:
        average = (
            self._total_invalidation_ms / self._total_invalidations
            if self._total_invalidations
            else 0.0
        )
        return CacheStats(
            total_invalidations=self._total_invalidations,
            failed_invalidations=self._failed_invalidations,
            average_invalidation_time_ms=round(average, 3),
            materialized_view_refresh_count=self._refresh_count,
            last_full_refresh=self._last_full_refresh,
            failed_background_refreshes=self._failed_background_refreshes,
        )

    def _record(self, result: CacheInvalidationResult, start: float) -> None:
        self._total_invalidations += 1
        self._total_invalidation_ms += (time.perf_counter() - start) * 1000
        if not result.success:
            self._failed_invalidations += 1


# Create a single, reusable instance for the rest of the application
cache_service = CacheService()
