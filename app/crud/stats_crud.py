import logging
import uuid
from typing import Optional

from sqlalchemy import case, delete, insert
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.exception_utils import handle_exceptions
from app.core.exceptions import InternalServerError, ValidationError
from app.models.book_model import Book
from app.models.book_status_model import BookStatus, ReadingStatus
from app.models.note_model import Note
from app.models.rating_model import Rating
from app.models.stats_model import (
    BOOK_POPULARITY_STATS,
    USER_READING_STATS,
    BookPopularityStats,
    UserReadingStats,
)


logger = logging.getLogger(__name__)


def _status_total(status: ReadingStatus):
    return func.coalesce(func.sum(case((BookStatus.status == status, 1), else_=0)), 0)


def _status_count_for_book(status: ReadingStatus):
    return (
        select(func.count())
        .select_from(BookStatus)
        .where(BookStatus.book_id == Book.id, BookStatus.status == status)
        .scalar_subquery()
    )


class StatsRepository:
    """Rebuilds and reads the derived aggregate tables."""

    def __init__(self):
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._refreshers = {
            USER_READING_STATS: self._refresh_user_reading_stats,
            BOOK_POPULARITY_STATS: self._refresh_book_popularity_stats,
        }

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to refresh aggregate.",
    )
    async def refresh(self, db: AsyncSession, *, name: str) -> None:
        """Recompute one aggregate table from the source tables."""
        refresher = self._refreshers.get(name)
        if refresher is None:
            raise ValidationError(f"Unknown aggregate: {name}")
        await refresher(db)
        await db.commit()
        self._logger.debug(f"Aggregate refreshed: {name}")

    async def _refresh_user_reading_stats(self, db: AsyncSession) -> None:
        average_rating = (
            select(func.avg(Rating.rating))
            .where(Rating.user_id == BookStatus.user_id)
            .scalar_subquery()
        )
        source = select(
            BookStatus.user_id,
            _status_total(ReadingStatus.WANT_TO_READ),
            _status_total(ReadingStatus.READING),
            _status_total(ReadingStatus.FINISHED),
            average_rating,
        ).group_by(BookStatus.user_id)

        table = UserReadingStats.__table__
        await db.execute(delete(table))
        await db.execute(
            insert(table).from_select(
                [
                    "user_id",
                    "want_to_read_count",
                    "reading_count",
                    "finished_count",
                    "average_rating",
                ],
                source,
            )
        )

    async def _refresh_book_popularity_stats(self, db: AsyncSession) -> None:
        source = select(
            Book.id,
            Book.title,
            Book.author,
            select(func.avg(Rating.rating))
            .where(Rating.book_id == Book.id)
            .scalar_subquery(),
            _status_count_for_book(ReadingStatus.WANT_TO_READ),
            _status_count_for_book(ReadingStatus.READING),
            _status_count_for_book(ReadingStatus.FINISHED),
            select(func.count(Note.id)).where(Note.book_id == Book.id).scalar_subquery(),
        )

        table = BookPopularityStats.__table__
        await db.execute(delete(table))
        await db.execute(
            insert(table).from_select(
                [
                    "book_id",
                    "title",
                    "author",
                    "average_rating",
                    "want_to_read_count",
                    "reading_count",
                    "finished_count",
                    "notes_count",
                ],
                source,
            )
        )

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to fetch reading stats.",
    )
    async def get_user_stats(
        self, db: AsyncSession, *, user_id: uuid.UUID
    ) -> Optional[UserReadingStats]:
        statement = select(UserReadingStats).where(UserReadingStats.user_id == user_id)
        result = await db.execute(statement)
        return result.scalar_one_or_none()


stats_repository = StatsRepository()
