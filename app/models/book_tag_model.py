# app/models/book_tag_model.py
"""
BookTag association model.

This module defines the many-to-many relationship between books and tags.
Deleting a book removes its links; the shared Tag rows are left in place.
"""

import uuid
from datetime import datetime

from sqlmodel import SQLModel, Field, Column, DateTime
from sqlalchemy import Index, func


class BookTag(SQLModel, table=True):
    __tablename__ = "book_tags"
    __table_args__ = (Index("idx_book_tag_tag_id", "tag_id"),)

    book_id: uuid.UUID = Field(
        foreign_key="books.id",
        primary_key=True,
        ondelete="CASCADE",
        description="Book ID",
    )
    tag_id: int = Field(
        foreign_key="tags.id",
        primary_key=True,
        ondelete="CASCADE",
        description="Tag ID",
    )

    created_at: datetime = Field(
        default=None,
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
        description="When the tag was added",
    )

    def __repr__(self) -> str:
        return f"<BookTag(book_id={self.book_id}, tag_id={self.tag_id})>"
