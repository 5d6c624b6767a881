# app/models/tag_model.py
"""
Tag model definition.

Tag names are the natural key. They are stored already lowercased and
trimmed, so a plain unique constraint gives case-insensitive uniqueness on
every backend.
"""

from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field, Column, String, DateTime
from sqlalchemy import UniqueConstraint, func


class Tag(SQLModel, table=True):
    __tablename__ = "tags"
    __table_args__ = (UniqueConstraint("name", name="uq_tag_name"),)

    id: Optional[int] = Field(
        default=None, primary_key=True, description="Unique identifier for tags."
    )
    name: str = Field(
        sa_column=Column(String(50), nullable=False, index=True),
        description="Normalized (lowercase, trimmed) tag name",
    )

    created_at: datetime = Field(
        default=None,
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
        description="Tag creation timestamp",
    )

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name='{self.name}')>"
