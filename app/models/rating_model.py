import uuid
from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field, Column, DateTime
from sqlalchemy import Index, CheckConstraint, func


class Rating(SQLModel, table=True):

    __tablename__ = "ratings"
    __table_args__ = (
        Index("idx_rating_book_id", "book_id"),
        Index("idx_rating_user_id", "user_id"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_rating_range"),
    )

    id: Optional[int] = Field(
        primary_key=True, default=None, description="Unique identifier for Rating"
    )

    book_id: uuid.UUID = Field(
        foreign_key="books.id", ondelete="CASCADE", description="Rated book"
    )
    user_id: uuid.UUID = Field(nullable=False, description="User who rated")

    rating: int = Field(..., description="Rating from 1 to 5 stars")

    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
        description="Rating creation timestamp",
    )
    updated_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True),
            server_default=func.now(),
            server_onupdate=func.now(),
            nullable=False,
        ),
        description="Rating last updated timestamp",
    )

    def __repr__(self) -> str:
        return f"<Rating(id={self.id}, book_id={self.book_id}, rating={self.rating})>"
