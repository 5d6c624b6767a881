# app/models/book_status_model.py
"""
Reading status of a user for a book. One row per (book, user).
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field, Column, DateTime
from sqlalchemy import Index, func


class ReadingStatus(str, Enum):
    """Where a reader is with a book."""

    WANT_TO_READ = "want_to_read"
    READING = "reading"
    FINISHED = "finished"


class BookStatus(SQLModel, table=True):
    __tablename__ = "book_statuses"
    __table_args__ = (Index("idx_book_status_user_id", "user_id"),)

    book_id: uuid.UUID = Field(
        foreign_key="books.id",
        primary_key=True,
        ondelete="CASCADE",
        description="Book ID",
    )
    user_id: uuid.UUID = Field(primary_key=True, description="Reader ID")

    status: ReadingStatus = Field(
        default=ReadingStatus.WANT_TO_READ, description="Current reading status"
    )

    started_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
        description="Set when the status becomes 'reading'",
    )
    finished_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
        description="Set when the status becomes 'finished'",
    )
    updated_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True),
            server_default=func.now(),
            server_onupdate=func.now(),
            nullable=False,
        ),
        description="Status last updated timestamp",
    )

    def __repr__(self) -> str:
        return f"<BookStatus(book_id={self.book_id}, user_id={self.user_id}, status='{self.status}')>"
