# app/models/book_model.py
"""
Book model definition.

A Book is the aggregate root of the reading tracker. Statuses, ratings, notes
and tag links reference it with ON DELETE CASCADE foreign keys, so deleting
the book row removes every dependent row in the same statement.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field, Column, DateTime
from sqlalchemy import Index, UniqueConstraint, func


class BookBase(SQLModel):

    title: str = Field(
        min_length=1,
        max_length=255,
        description="The title of the book",
        schema_extra={"example": "Dune"},
    )
    author: str = Field(
        min_length=1,
        max_length=255,
        description="The author of the book",
        schema_extra={"example": "Frank Herbert"},
    )
    isbn: Optional[str] = Field(
        default=None,
        max_length=20,
        description="ISBN-10 or ISBN-13",
        schema_extra={"example": "9780441172719"},
    )
    cover_url: Optional[str] = Field(
        default=None,
        max_length=500,
        description="URL of the cover image",
    )
    description: Optional[str] = Field(
        default=None,
        max_length=2000,
        description="Free-text description of the book",
    )


class Book(BookBase, table=True):
    __tablename__ = "books"
    __table_args__ = (
        UniqueConstraint(
            "title", "author", "created_by", name="uq_book_title_author_owner"
        ),
        Index("idx_book_created_by", "created_by"),
        Index("idx_book_created_at", "created_at"),
    )

    id: Optional[uuid.UUID] = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        description="Unique identifier of the book",
    )

    created_by: uuid.UUID = Field(
        nullable=False, description="Id of the user who owns this book."
    )

    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
        description="Book creation timestamp",
    )
    updated_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True),
            server_default=func.now(),
            server_onupdate=func.now(),
            nullable=False,
        ),
        description="Book last updated timestamp",
    )

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title}', author='{self.author}')>"
