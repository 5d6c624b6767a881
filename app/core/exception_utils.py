import functools
import logging
from typing import Any, Callable, Optional, Type

from sqlalchemy.exc import IntegrityError

from app.core.exceptions import BookTrackerException

logger = logging.getLogger(__name__)


def raise_for_status(
    condition: bool, exception: Type[BookTrackerException], **kwargs: Any
) -> None:
    """Raise ``exception(**kwargs)`` when ``condition`` is true."""
    if condition:
        raise exception(**kwargs)


def handle_exceptions(
    default_exception: Type[BookTrackerException],
    message: str,
    integrity_exception: Optional[Type[BookTrackerException]] = None,
) -> Callable:
    """
    Decorator for async repository methods.

    - Application exceptions pass through untouched.
    - IntegrityError rolls back the session (the ``db`` keyword argument) and is
      re-raised as ``integrity_exception`` (or ``default_exception``).
    - Anything else rolls back and becomes ``default_exception(message)``.
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except BookTrackerException:
                raise
            except IntegrityError as e:
                await _rollback(kwargs.get("db"))
                logger.warning(
                    f"Integrity violation in {func.__qualname__}",
                    extra={"error": str(e.orig) if e.orig else str(e)},
                )
                exc_cls = integrity_exception or default_exception
                raise exc_cls(
                    exc_cls.default_detail if integrity_exception else message
                ) from e
            except Exception as e:
                await _rollback(kwargs.get("db"))
                logger.error(f"Error in {func.__qualname__}: {e}", exc_info=True)
                raise default_exception(message) from e

        return wrapper

    return decorator


async def _rollback(db) -> None:
    if db is None:
        return
    try:
        await db.rollback()
    except Exception:
        logger.warning("Session rollback failed", exc_info=True)
