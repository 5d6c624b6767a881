# app/models/stats_model.py
"""
Derived reading aggregates.

These tables play the role of materialized views: CacheService rebuilds them
from books, statuses, ratings and notes after a mutation. They may be briefly
stale and are never used as a source of truth.
"""

import uuid
from typing import Optional

from sqlmodel import SQLModel, Field


class UserReadingStats(SQLModel, table=True):
    __tablename__ = "user_reading_stats"

    user_id: uuid.UUID = Field(primary_key=True)
    want_to_read_count: int = Field(default=0)
    reading_count: int = Field(default=0)
    finished_count: int = Field(default=0)
    average_rating: Optional[float] = Field(default=None)


class BookPopularityStats(SQLModel, table=True):
    __tablename__ = "book_popularity_stats"

    book_id: uuid.UUID = Field(primary_key=True)
    title: str
    author: str
    average_rating: Optional[float] = Field(default=None)
    want_to_read_count: int = Field(default=0)
    reading_count: int = Field(default=0)
    finished_count: int = Field(default=0)
    notes_count: int = Field(default=0)


# Aggregate names as they are referred to by the cache layer
USER_READING_STATS = UserReadingStats.__tablename__
BOOK_POPULARITY_STATS = BookPopularityStats.__tablename__
