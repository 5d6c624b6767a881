import uuid
from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field, Column, DateTime, Text
from sqlalchemy import Index, func


class Note(SQLModel, table=True):
    """Reader notes. Only counted here; their CRUD lives outside the core."""

    __tablename__ = "notes"
    __table_args__ = (Index("idx_note_book_user", "book_id", "user_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)

    book_id: uuid.UUID = Field(foreign_key="books.id", ondelete="CASCADE")
    user_id: uuid.UUID = Field(nullable=False)

    content: str = Field(sa_column=Column(Text, nullable=False))

    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        )
    )
    updated_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True),
            server_default=func.now(),
            server_onupdate=func.now(),
            nullable=False,
        )
    )
