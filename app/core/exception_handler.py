# app/core/exception_handler.py
"""
Translates application exceptions into JSON error responses.

Body shape: {"error": {"message": ..., "code": ..., "details": {...}}}
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder

from app.core.exceptions import BookTrackerException, UnauditedDeletion

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "-")


async def book_tracker_exception_handler(
    request: Request, exc: BookTrackerException
) -> JSONResponse:
    log_extra = {
        "request_id": _request_id(request),
        "error_code": exc.error_code,
        "path": request.url.path,
    }
    if isinstance(exc, UnauditedDeletion):
        logger.critical(f"Unaudited deletion: {exc.detail}", extra=log_extra)
    elif exc.status_code >= 500:
        logger.error(f"Server error: {exc.detail}", extra=log_extra)
    else:
        logger.info(f"Request rejected: {exc.detail}", extra=log_extra)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": jsonable_encoder(exc.to_dict())},
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", ""),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "message": "Validation failed.",
                "code": "VALIDATION_ERROR",
                "details": {"errors": errors},
            }
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception",
        extra={"request_id": _request_id(request), "path": request.url.path},
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "message": "An unexpected error occurred.",
                "code": "INTERNAL_ERROR",
            }
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BookTrackerException, book_tracker_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
