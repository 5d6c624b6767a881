import logging
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.db.session import get_session
from app.utils.deps import get_current_user_id
from app.schemas.book_schema import (
    BookCreate,
    BookUpdate,
    BookResponse,
    BookDetailResponse,
    BookCreationResult,
    DeleteBookResult,
)
from app.services.book_service import book_service


logger = logging.getLogger(__name__)

router = APIRouter(
    tags=["Books"],
    prefix=f"{settings.API_V1_STR}/books",
)


@router.post(
    "/",
    response_model=BookCreationResult,
    summary="Create a new book",
    status_code=status.HTTP_201_CREATED,
    description="Create a book together with the caller's status, rating and tags",
)
async def create_book(
    *,
    db: AsyncSession = Depends(get_session),
    user_id: uuid.UUID = Depends(get_current_user_id),
    book_data: BookCreate,
):
    """
    Create a new book.
    - **title**: The title of the book (required)
    - **author**: The author of the book (required)
    - **status**: Initial reading status (want_to_read, reading, finished)
    - **rating**: Initial rating from 1 to 5
    - **tags**: Up to three tag names; stored lowercase

    The book is owned by the calling user.
    """
    return await book_service.create_book_with_related_data(
        db=db, book_data=book_data, user_id=user_id
    )


@router.get(
    "/{book_id}",
    response_model=BookDetailResponse,
    summary="Get book details",
    status_code=status.HTTP_200_OK,
)
async def get_book(
    *,
    db: AsyncSession = Depends(get_session),
    book_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    """Book fields plus the caller's status, rating and notes count."""
    return await book_service.get_book_detail(db=db, book_id=book_id, user_id=user_id)


@router.patch(
    "/{book_id}",
    response_model=BookResponse,
    summary="Update a book",
    status_code=status.HTTP_200_OK,
    description="Update a book by its ID",
)
async def update_book(
    *,
    db: AsyncSession = Depends(get_session),
    book_id: uuid.UUID,
    book_data: BookUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    """
    Update a book.

    Only the owner can update a book. Only provided fields are updated.
    """
    return await book_service.update_book(
        db=db, book_id=book_id, user_id=user_id, book_data=book_data
    )


@router.delete(
    "/{book_id}",
    response_model=DeleteBookResult,
    summary="Delete a book",
    status_code=status.HTTP_200_OK,
    description="Delete a book and everything attached to it",
)
async def delete_book(
    *,
    db: AsyncSession = Depends(get_session),
    book_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
):
    """
    Delete a book.

    Only the owner can delete a book. Statuses, ratings, notes and tag links
    are removed with it and the deletion is written to the audit trail.
    """
    return await book_service.delete_book(db=db, book_id=book_id, user_id=user_id)
