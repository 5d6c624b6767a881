import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlmodel.ext.asyncio.session import AsyncSession

from app.crud.book_crud import book_repository, BookRepository
from app.crud.book_status_crud import book_status_repository, BookStatusRepository
from app.crud.book_tag_crud import book_tag_repository, BookTagRepository
from app.crud.note_crud import note_repository, NoteRepository
from app.crud.rating_crud import rating_repository, RatingRepository
from app.models.book_model import Book
from app.models.book_status_model import BookStatus, ReadingStatus
from app.models.rating_model import Rating
from app.schemas.audit_schema import AuditResourceType, SecurityEventType
from app.schemas.book_schema import (
    BookCreate,
    BookUpdate,
    BookResponse,
    BookStatusResponse,
    RatingResponse,
    UserBookStatus,
    BookDetailResponse,
    DuplicateCheckResult,
    SideEffectStatus,
    BookCreationResult,
    RelatedDataCount,
    BookDeletionAuditLog,
    DeleteBookResult,
)
from app.schemas.cache_schema import CacheInvalidationResult
from app.services.audit_service import audit_service, AuditService
from app.services.cache_service import cache_service, CacheService
from app.services.saga import MutationSaga, StepPolicy
from app.services.tag_service import tag_service, TagService
from app.core.exception_utils import raise_for_status
from app.core.exceptions import (
    AuditLogFailed,
    BookNotFound,
    DuplicateBook,
    Forbidden,
    InsufficientPermissions,
    UnauditedDeletion,
)

logger = logging.getLogger(__name__)


def _cache_status(result: Optional[CacheInvalidationResult]) -> SideEffectStatus:
    if result is None:
        return SideEffectStatus.FAILED
    if result.skipped and result.success:
        return SideEffectStatus.SKIPPED
    return SideEffectStatus.SUCCEEDED if result.success else SideEffectStatus.FAILED


class BookService:
    """
    Orchestrates the book lifecycle across the book, its dependent rows, the
    audit trail and the cache.

    Storage gives no transaction across these steps, so every write runs as a
    MutationSaga: required steps abort the operation, the deletion audit entry
    is critical (loud failure after the row is gone), cache work is
    best-effort and only ever reported.
    """

    def __init__(
        self,
        book_repo: BookRepository = book_repository,
        book_status_repo: BookStatusRepository = book_status_repository,
        rating_repo: RatingRepository = rating_repository,
        note_repo: NoteRepository = note_repository,
        book_tag_repo: BookTagRepository = book_tag_repository,
        tags: TagService = tag_service,
        audit: AuditService = audit_service,
        cache: CacheService = cache_service,
    ):
        self.book_repository = book_repo
        self.book_status_repository = book_status_repo
        self.rating_repository = rating_repo
        self.note_repository = note_repo
        self.book_tag_repository = book_tag_repo
        self.tag_service = tags
        self.audit_service = audit
        self.cache_service = cache
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    # ------ Duplicate detection ------
    async def check_for_duplicate(
        self,
        db: AsyncSession,
        *,
        title: str,
        author: str,
        owner_id: uuid.UUID,
        exclude_book_id: Optional[uuid.UUID] = None,
    ) -> DuplicateCheckResult:
        """
        Advisory lookup of an exact (title, author) match among the owner's books.

        The unique constraint on the books table is what actually guarantees
        uniqueness; this only produces a friendlier error earlier.
        """
        match = await self.book_repository.get_by_title_and_author(
            db=db, title=title.strip(), author=author.strip(), owner_id=owner_id
        )
        if match is None or match.id == exclude_book_id:
            return DuplicateCheckResult(exists=False)
        return DuplicateCheckResult(exists=True, book_id=match.id)

    async def _ensure_not_duplicate(
        self,
        db: AsyncSession,
        *,
        title: str,
        author: str,
        owner_id: uuid.UUID,
        exclude_book_id: Optional[uuid.UUID] = None,
    ) -> None:
        duplicate = await self.check_for_duplicate(
            db,
            title=title,
            author=author,
            owner_id=owner_id,
            exclude_book_id=exclude_book_id,
        )
        raise_for_status(
            condition=duplicate.exists,
            exception=DuplicateBook,
            resource_type="Book",
            details={"book_id": str(duplicate.book_id)},
        )

    # ------ Create ------
    async def create_book_with_related_data(
        self, db: AsyncSession, *, book_data: BookCreate, user_id: uuid.UUID
    ) -> BookCreationResult:
        """Create a book plus the creator's status, rating and tags."""
        saga = MutationSaga("create_book", context={"user_id": str(user_id)})
        now = datetime.now(timezone.utc)

        # 1. Duplicate pre-check
        await saga.run(
            "check_duplicate",
            self._ensure_not_duplicate,
            db,
            title=book_data.title,
            author=book_data.author,
            owner_id=user_id,
        )

        # 2. Book row
        new_book = await saga.run(
            "insert_book",
            self.book_repository.create,
            db=db,
            obj_in=Book(
                title=book_data.title.strip(),
                author=book_data.author.strip(),
                isbn=book_data.isbn or None,
                cover_url=book_data.cover_url or None,
                description=book_data.description or None,
                created_by=user_id,
                created_at=now,
                updated_at=now,
            ),
        )
        # Snapshot now; later failures roll the session back and expire ORM rows
        book_response = BookResponse.model_validate(new_book)
        book_id = book_response.id
        saga.context["book_id"] = str(book_id)

        # 3. Reading status
        status_response = None
        if book_data.status is not None:
            status_row = await saga.run(
                "insert_status",
                self.book_status_repository.create,
                db=db,
                obj_in=self._build_status(book_id, user_id, book_data.status, now),
            )
            status_response = BookStatusResponse.model_validate(status_row)
        else:
            saga.skip("insert_status")

        # 4. Rating
        rating_response = None
        if book_data.rating is not None:
            rating_row = await saga.run(
                "insert_rating",
                self.rating_repository.create,
                db=db,
                obj_in=Rating(
                    book_id=book_id,
                    user_id=user_id,
                    rating=book_data.rating,
                    created_at=now,
                    updated_at=now,
                ),
            )
            rating_response = RatingResponse.model_validate(rating_row)
        else:
            saga.skip("insert_rating")

        # 5. Tags
        tag_names = []
        if book_data.tags:
            tag_result = await saga.run(
                "link_tags",
                self.tag_service.process_tags_for_book,
                db,
                book_id=book_id,
                tag_names=book_data.tags,
            )
            tag_names = tag_result.tag_names
        else:
            saga.skip("link_tags")

        # 6. Cache
        cache_result = await saga.run(
            "invalidate_cache",
            self.cache_service.invalidate_book,
            db,
            book_id=book_id,
            user_id=user_id,
            policy=StepPolicy.BEST_EFFORT,
        )

        self._logger.info(
            f"Book created: {book_id}",
            extra={
                "book_id": str(book_id),
                "user_id": str(user_id),
                "steps": saga.completed_steps,
            },
        )
        return BookCreationResult(
            book=book_response,
            status=status_response,
            rating=rating_response,
            tags=tag_names,
            cache_status=_cache_status(cache_result),
        )

    @staticmethod
    def _build_status(
        book_id: uuid.UUID,
        user_id: uuid.UUID,
        status: ReadingStatus,
        now: datetime,
    ) -> BookStatus:
        # Timestamps come from the clock, never from client input
        return BookStatus(
            book_id=book_id,
            user_id=user_id,
            status=status,
            started_at=now if status == ReadingStatus.READING else None,
            finished_at=now if status == ReadingStatus.FINISHED else None,
            updated_at=now,
        )

    # ------ Update ------
    async def update_book(
        self,
        db: AsyncSession,
        *,
        book_id: uuid.UUID,
        user_id: uuid.UUID,
        book_data: BookUpdate,
    ) -> BookResponse:
        """Owner-only partial update of a book's fields."""
        saga = MutationSaga(
            "update_book", context={"book_id": str(book_id), "user_id": str(user_id)}
        )

        existing = await saga.run("load_book", self._load_book, db, book_id=book_id)
        raise_for_status(
            condition=existing.created_by != user_id,
            exception=Forbidden,
            resource_type="Book",
            details={"book_id": str(book_id)},
        )

        update_data = book_data.model_dump(exclude_unset=True)
        new_title = update_data.get("title", existing.title)
        new_author = update_data.get("author", existing.author)

        # Only a changed title/author can create a duplicate
        if new_title != existing.title or new_author != existing.author:
            await saga.run(
                "check_duplicate",
                self._ensure_not_duplicate,
                db,
                title=new_title,
                author=new_author,
                owner_id=user_id,
                exclude_book_id=book_id,
            )

        update_data["updated_at"] = datetime.now(timezone.utc)
        updated = await saga.run(
            "update_book_row",
            self.book_repository.update,
            db=db,
            book_id=book_id,
            owner_id=user_id,
            fields_to_update=update_data,
        )
        raise_for_status(
            condition=updated is None,
            exception=BookNotFound,
            resource_type="Book",
            details={"book_id": str(book_id)},
        )
        response = BookResponse.model_validate(updated)

        await saga.run(
            "invalidate_cache",
            self.cache_service.invalidate_book,
            db,
            book_id=book_id,
            user_id=user_id,
            policy=StepPolicy.BEST_EFFORT,
        )

        self._logger.info(
            f"Book updated: {book_id}",
            extra={"book_id": str(book_id), "fields": sorted(update_data)},
        )
        return response

    # ------ Delete ------
    async def delete_book(
        self, db: AsyncSession, *, book_id: uuid.UUID, user_id: uuid.UUID
    ) -> DeleteBookResult:
        """
        Owner-only hard delete with an audit entry.

        Non-owners are recorded as a PERMISSION_DENIED security event before
        InsufficientPermissions is raised. If the book row is gone but the
        audit entry cannot be written, UnauditedDeletion is raised carrying
        the result, so callers never mistake it for either outcome alone.
        """
        saga = MutationSaga(
            "delete_book", context={"book_id": str(book_id), "user_id": str(user_id)}
        )

        # 1. Load and authorize
        book = await saga.run("load_book", self._load_book, db, book_id=book_id)
        await saga.run(
            "check_ownership",
            self._check_delete_permission,
            db,
            book=book,
            user_id=user_id,
        )

        # 2. Count what the cascade is about to remove
        counts = await saga.run(
            "count_dependents", self.count_related_data, db, book_id=book_id
        )

        # 3. Immutable snapshot for the audit trail
        audit_data = BookDeletionAuditLog(
            book_id=book.id,
            book_title=book.title,
            book_author=book.author,
            deleted_by=user_id,
            deleted_at=datetime.now(timezone.utc),
            related_data_count=counts,
        )

        # 4. Delete; dependents go with it
        await saga.run(
            "delete_book_row", self._delete_row, db, book_id=book_id, user_id=user_id
        )
        result = DeleteBookResult(
            success=True,
            book_id=book_id,
            deleted_related_data=counts,
            audit_status=SideEffectStatus.FAILED,
            cache_status=SideEffectStatus.SKIPPED,
        )

        # 5. Audit (critical)
        try:
            audit_entry = await saga.run(
                "write_audit_log",
                self.audit_service.log_book_deletion,
                db,
                audit_data=audit_data,
                policy=StepPolicy.CRITICAL,
            )
        except AuditLogFailed as e:
            self._logger.critical(
                f"Book {book_id} deleted without an audit entry",
                extra={
                    "book_id": str(book_id),
                    "user_id": str(user_id),
                    "book_title": audit_data.book_title,
                    "cascaded_deletions": counts.model_dump(),
                },
            )
            raise UnauditedDeletion(
                resource_type="Book",
                details={
                    "book_id": str(book_id),
                    "deleted": True,
                    "audit_error": e.detail,
                },
                result=result,
            ) from e

        result.audit_id = audit_entry.audit_id
        result.audit_status = SideEffectStatus.SUCCEEDED

        # 6. Cache (best-effort)
        cache_result = await saga.run(
            "invalidate_cache",
            self.cache_service.invalidate_book,
            db,
            book_id=book_id,
            user_id=user_id,
            policy=StepPolicy.BEST_EFFORT,
        )
        warmed = await saga.run(
            "warm_cache",
            self.cache_service.warm_cache,
            db,
            user_id=user_id,
            policy=StepPolicy.BEST_EFFORT,
        )
        result.cache_status = _cache_status(cache_result)
        if result.cache_status == SideEffectStatus.SUCCEEDED and not warmed:
            result.cache_status = SideEffectStatus.FAILED

        self._logger.info(
            f"Book deleted: {book_id}",
            extra={
                "book_id": str(book_id),
                "user_id": str(user_id),
                "audit_id": result.audit_id,
                "cascaded_deletions": counts.model_dump(),
            },
        )
        return result

    async def _check_delete_permission(
        self, db: AsyncSession, *, book: Book, user_id: uuid.UUID
    ) -> None:
        if book.created_by == user_id:
            return

        # Read before the audit write; a failed write rolls back and expires the row
        book_id, owner_id, title = book.id, book.created_by, book.title
        await self.audit_service.log_security_event(
            db,
            event=SecurityEventType.PERMISSION_DENIED,
            resource_type=AuditResourceType.BOOK.value,
            resource_id=str(book_id),
            user_id=str(user_id),
            metadata={
                "attempted_operation": "DELETE",
                "book_title": title,
                "book_owner": str(owner_id),
                "reason": "User attempted to delete a book they do not own",
            },
        )
        raise InsufficientPermissions(
            resource_type="Book",
            details={
                "book_id": str(book_id),
                "created_by": str(owner_id),
                "requested_by": str(user_id),
            },
        )

    async def _delete_row(
        self, db: AsyncSession, *, book_id: uuid.UUID, user_id: uuid.UUID
    ) -> None:
        deleted = await self.book_repository.delete(
            db=db, book_id=book_id, owner_id=user_id
        )
        # Zero rows: someone else deleted it between load and delete
        raise_for_status(
            condition=deleted == 0,
            exception=BookNotFound,
            resource_type="Book",
            details={"book_id": str(book_id)},
        )

    async def count_related_data(
        self, db: AsyncSession, *, book_id: uuid.UUID
    ) -> RelatedDataCount:
        """Dependent row counts for a book. Taken one after another on the same session."""
        return RelatedDataCount(
            book_statuses=await self.book_status_repository.count_by_book(
                db=db, book_id=book_id
            ),
            ratings=await self.rating_repository.count_by_book(db=db, book_id=book_id),
            notes=await self.note_repository.count_by_book(db=db, book_id=book_id),
            book_tags=await self.book_tag_repository.count_by_book(
                db=db, book_id=book_id
            ),
        )

    # ------ Read ------
    async def _load_book(self, db: AsyncSession, *, book_id: uuid.UUID) -> Book:
        book = await self.book_repository.get(db=db, obj_id=book_id)
        raise_for_status(
            condition=book is None,
            exception=BookNotFound,
            resource_type="Book",
            details={"book_id": str(book_id)},
        )
        return book

    async def get_book_detail(
        self, db: AsyncSession, *, book_id: uuid.UUID, user_id: uuid.UUID
    ) -> BookDetailResponse:
        """A book as seen by one reader. Always read from the store."""
        book = await self._load_book(db, book_id=book_id)
        base = BookResponse.model_validate(book)

        status = await self.book_status_repository.get(
            db=db, book_id=book_id, user_id=user_id
        )
        rating = await self.rating_repository.get_for_user(
            db=db, book_id=book_id, user_id=user_id
        )
        tags = await self.book_tag_repository.get_tag_names(db=db, book_id=book_id)
        average_rating, total_ratings = await self.rating_repository.get_summary(
            db=db, book_id=book_id
        )
        notes_count = await self.note_repository.count_for_user(
            db=db, book_id=book_id, user_id=user_id
        )

        return BookDetailResponse(
            **base.model_dump(),
            user_status=UserBookStatus.model_validate(status) if status else None,
            user_rating=rating.rating if rating else None,
            tags=tags,
            average_rating=average_rating,
            total_ratings=total_ratings,
            notes_count=notes_count,
        )


book_service = BookService()
