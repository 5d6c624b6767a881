# app/schemas/book_schema.py
"""
Book schemas for request/response models.

This module defines Pydantic schemas for the book lifecycle: creation with
related data, partial updates, the detail view and the deletion outcome.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Annotated

from pydantic import (
    BaseModel,
    Field,
    ConfigDict,
    field_validator,
    model_validator,
)

from app.models.book_status_model import ReadingStatus


def _strip(v: Any) -> Any:
    return v.strip() if isinstance(v, str) else v


def _strip_or_clear(v: Any) -> Any:
    """Trim optional strings; an empty string means 'clear the field'."""
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


def _check_cover_url(v: Optional[str]) -> Optional[str]:
    if v is not None and not v.lower().startswith(("http://", "https://")):
        raise ValueError("Cover URL must be a valid URL")
    return v


TagName = Annotated[str, Field(min_length=1, max_length=50)]


# ------ Requests ------
class BookCreate(BaseModel):
    """Schema for creating a new book together with the reader's related data."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="The title of the book",
        examples=["Dune"],
    )
    author: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="The author of the book",
        examples=["Frank Herbert"],
    )
    isbn: Optional[str] = Field(None, max_length=20, examples=["9780441172719"])
    cover_url: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = Field(None, max_length=2000)
    status: Optional[ReadingStatus] = Field(
        None, description="Initial reading status for the creator"
    )
    rating: Optional[int] = Field(
        None, ge=1, le=5, description="Initial rating from 1 to 5 stars"
    )
    tags: List[TagName] = Field(
        default_factory=list,
        max_length=3,
        description="Free-text tag names",
        examples=[["scifi", "classic"]],
    )

    @field_validator("title", "author", mode="before")
    @classmethod
    def strip_whitespace(cls, v: Any) -> Any:
        """Strip leading and trailing whitespace."""
        return _strip(v)

    @field_validator("isbn", "cover_url", "description", mode="before")
    @classmethod
    def strip_optional(cls, v: Any) -> Any:
        return _strip_or_clear(v)

    @field_validator("cover_url")
    @classmethod
    def validate_cover_url(cls, v: Optional[str]) -> Optional[str]:
        return _check_cover_url(v)


class BookUpdate(BaseModel):
    """
    Partial update. Omitted fields are left untouched; ``None`` or an empty
    string on isbn/cover_url/description clears the stored value.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    author: Optional[str] = Field(None, min_length=1, max_length=255)
    isbn: Optional[str] = Field(None, max_length=20)
    cover_url: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="before")
    @classmethod
    def validate_at_least_one_field(cls, values: Any) -> Any:
        """Ensure at least one field is provided for update."""
        if isinstance(values, dict):
            if not set(values) & set(cls.model_fields):
                raise ValueError("At least one field must be provided for update")
            for required in ("title", "author"):
                if required in values and values[required] is None:
                    raise ValueError(f"{required} cannot be cleared")
        return values

    @field_validator("title", "author", mode="before")
    @classmethod
    def strip_whitespace(cls, v: Any) -> Any:
        return _strip(v)

    @field_validator("isbn", "cover_url", "description", mode="before")
    @classmethod
    def strip_optional(cls, v: Any) -> Any:
        return _strip_or_clear(v)

    @field_validator("cover_url")
    @classmethod
    def validate_cover_url(cls, v: Optional[str]) -> Optional[str]:
        return _check_cover_url(v)


# ------ Responses ------
class BookResponse(BaseModel):
    """Basic book response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    author: str
    isbn: Optional[str] = None
    cover_url: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class BookStatusResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    book_id: uuid.UUID
    user_id: uuid.UUID
    status: ReadingStatus
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    updated_at: datetime


class RatingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    book_id: uuid.UUID
    user_id: uuid.UUID
    rating: int
    created_at: datetime
    updated_at: datetime


class UserBookStatus(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: ReadingStatus
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class BookDetailResponse(BookResponse):
    """Book as seen by one reader, with aggregate rating data."""

    user_status: Optional[UserBookStatus] = None
    user_rating: Optional[int] = None
    tags: List[str] = Field(default_factory=list)
    average_rating: Optional[float] = None
    total_ratings: int = Field(default=0, ge=0)
    notes_count: int = Field(default=0, ge=0)


class DuplicateCheckResult(BaseModel):
    exists: bool
    book_id: Optional[uuid.UUID] = None


class SideEffectStatus(str, Enum):
    """Outcome of a side effect that runs after the primary mutation."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class BookCreationResult(BaseModel):
    book: BookResponse
    status: Optional[BookStatusResponse] = None
    rating: Optional[RatingResponse] = None
    tags: List[str] = Field(default_factory=list)
    cache_status: SideEffectStatus = SideEffectStatus.SKIPPED


class RelatedDataCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    book_statuses: int = 0
    ratings: int = 0
    notes: int = 0
    book_tags: int = 0


class BookDeletionAuditLog(BaseModel):
    """Immutable snapshot of a book taken right before it is deleted."""

    model_config = ConfigDict(frozen=True)

    book_id: uuid.UUID
    book_title: str
    book_author: str
    deleted_by: uuid.UUID
    deleted_at: datetime
    related_data_count: RelatedDataCount


class DeleteBookResult(BaseModel):
    """
    Deletion outcome. ``success`` is the primary effect only; the audit and
    cache statuses are reported separately so an unaudited delete can never
    pass for a fully successful one.
    """

    success: bool
    book_id: uuid.UUID
    deleted_related_data: RelatedDataCount
    audit_id: Optional[str] = None
    audit_status: SideEffectStatus
    cache_status: SideEffectStatus

    @property
    def fully_succeeded(self) -> bool:
        return self.success and self.audit_status == SideEffectStatus.SUCCEEDED


__all__ = [
    "BookCreate",
    "BookUpdate",
    "BookResponse",
    "BookStatusResponse",
    "RatingResponse",
    "UserBookStatus",
    "BookDetailResponse",
    "DuplicateCheckResult",
    "SideEffectStatus",
    "BookCreationResult",
    "RelatedDataCount",
    "BookDeletionAuditLog",
    "DeleteBookResult",
]
