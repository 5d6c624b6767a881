# app/utils/deps.py
"""
FastAPI dependencies.

Authentication happens upstream: the gateway resolves the session and forwards
the user id in the X-User-Id header. This module only turns that header into a
UUID for the services.
"""

import logging
import uuid
from typing import Optional

from fastapi import Header

from app.core.exceptions import NotAuthenticated

logger = logging.getLogger(__name__)


async def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
) -> uuid.UUID:
    """The caller's user id; 401 when missing or malformed."""
    if not x_user_id:
        raise NotAuthenticated()
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        logger.warning("Malformed user id header", extra={"x_user_id": x_user_id})
        raise NotAuthenticated("Invalid user identity.")
