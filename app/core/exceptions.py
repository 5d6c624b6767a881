# app/core/exceptions.py
"""
Application exception hierarchy.

Every error raised by the service layer derives from BookTrackerException and
carries a stable ``error_code`` plus the HTTP status the transport layer should
use. The core never builds HTTP responses itself; app/core/exception_handler.py
does the translation.
"""

from typing import Any, Dict, Optional


class BookTrackerException(Exception):
    """Base class for all application errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    default_detail: str = "An unexpected error occurred."

    def __init__(
        self,
        detail: Optional[str] = None,
        *,
        resource_type: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.detail = detail or self.default_detail
        self.resource_type = resource_type
        self.details = details or {}
        super().__init__(self.detail)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.detail, "code": self.error_code}
        if self.details:
            body["details"] = self.details
        return body

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(code={self.error_code}, detail='{self.detail}')>"


# ------ 400 ------
class ValidationError(BookTrackerException):
    status_code = 400
    error_code = "VALIDATION_ERROR"
    default_detail = "Validation failed."


# ------ 401 / 403 ------
class NotAuthenticated(BookTrackerException):
    status_code = 401
    error_code = "UNAUTHORIZED"
    default_detail = "Authentication required."


class NotAuthorized(BookTrackerException):
    status_code = 403
    error_code = "FORBIDDEN"
    default_detail = "You are not authorized to perform this action."


class Forbidden(NotAuthorized):
    """Ownership violation on a non-destructive operation."""

    error_code = "FORBIDDEN"
    default_detail = "You do not have permission to edit this book."


class InsufficientPermissions(NotAuthorized):
    """Ownership violation on a destructive operation; always audited."""

    error_code = "INSUFFICIENT_PERMISSIONS"
    default_detail = "Forbidden: You can only delete books you created."


# ------ 404 ------
class ResourceNotFound(BookTrackerException):
    status_code = 404
    error_code = "NOT_FOUND"
    default_detail = "Resource not found."


class BookNotFound(ResourceNotFound):
    error_code = "BOOK_NOT_FOUND"
    default_detail = "Book not found."


# ------ 409 ------
class ResourceAlreadyExists(BookTrackerException):
    status_code = 409
    error_code = "RESOURCE_EXISTS"
    default_detail = "Resource already exists."


class DuplicateBook(ResourceAlreadyExists):
    error_code = "DUPLICATE_BOOK"
    default_detail = "Book with this title and author already exists."


# ------ 500 ------
class InternalServerError(BookTrackerException):
    status_code = 500
    error_code = "INTERNAL_ERROR"


class AuditLogFailed(InternalServerError):
    """An audit entry could not be persisted. Operationally critical."""

    error_code = "AUDIT_LOG_FAILED"
    default_detail = "Failed to create audit log entry."


class UnauditedDeletion(AuditLogFailed):
    """
    The book row was deleted but the deletion audit entry was not written.

    ``result`` holds the DeleteBookResult of the committed deletion so callers
    can tell "deleted but unaudited" apart from "not deleted".
    """

    default_detail = "Book was deleted but the deletion could not be audited."

    def __init__(self, detail: Optional[str] = None, *, result: Any = None, **kwargs):
        super().__init__(detail, **kwargs)
        self.result = result
