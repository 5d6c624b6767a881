# app/services/audit_service.py
"""
Append-only audit trail.

Writing an audit entry is a critical side effect: if the entry cannot be
persisted the caller gets AuditLogFailed, never a silent success. Each entry
is also emitted as one JSON line on the audit logger so log shipping keeps a
copy even when the table is unreachable afterwards.
"""

import json
import logging
import secrets
import string
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.config import settings
from app.core.exceptions import AuditLogFailed, BookTrackerException
from app.crud.audit_log_crud import audit_log_repository, AuditLogRepository
from app.models.audit_log_model import AuditLog
from app.schemas.audit_schema import (
    AuditLogCreate,
    AuditLogResponse,
    AuditOperation,
    AuditResourceType,
    AuditSeverity,
    SecurityEventType,
)
from app.schemas.book_schema import BookDeletionAuditLog

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_audit_id() -> str:
    """``audit_<epoch-ms>_<9 random chars>``"""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"audit_{int(time.time() * 1000)}_{suffix}"


class AuditService:
    def __init__(self, audit_repo: AuditLogRepository = audit_log_repository):
        self.audit_repository = audit_repo
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._audit_logger = logging.getLogger(settings.AUDIT_LOGGER_NAME)

    async def create_audit_log(
        self, db: AsyncSession, *, entry: AuditLogCreate
    ) -> AuditLogResponse:
        """Persist one audit entry. Any failure raises AuditLogFailed."""
        audit_id = generate_audit_id()
        created_at = datetime.now(timezone.utc)

        try:
            record = AuditLog(
                audit_id=audit_id,
                operation=entry.operation.value,
                resource_type=entry.resource_type,
                resource_id=entry.resource_id,
                user_id=entry.user_id,
                event_metadata=entry.metadata,
                created_at=created_at,
            )
            saved = await self.audit_repository.create(db=db, obj_in=record)
        except Exception as e:
            self._logger.critical(
                "Audit log write failed",
                extra={
                    "audit_id": audit_id,
                    "operation": entry.operation.value,
                    "resource_type": entry.resource_type,
                    "resource_id": entry.resource_id,
                },
                exc_info=True,
            )
            if isinstance(e, AuditLogFailed):
                raise
            detail = e.detail if isinstance(e, BookTrackerException) else str(e)
            raise AuditLogFailed(
                f"Failed to create audit log entry: {detail}",
                resource_type=entry.resource_type,
            ) from e

        self._audit_logger.info(
            json.dumps(
                {
                    "audit_id": audit_id,
                    "operation": entry.operation.value,
                    "resource_type": entry.resource_type,
                    "resource_id": entry.resource_id,
                    "user_id": entry.user_id,
                    "metadata": entry.metadata,
                    "timestamp": created_at.isoformat(),
                },
                default=str,
            )
        )
        return AuditLogResponse.model_validate(saved)

    async def log_book_deletion(
        self, db: AsyncSession, *, audit_data: BookDeletionAuditLog
    ) -> AuditLogResponse:
        counts = audit_data.related_data_count
        entry = AuditLogCreate(
            operation=AuditOperation.DELETE,
            resource_type=AuditResourceType.BOOK.value,
            resource_id=str(audit_data.book_id),
            user_id=str(audit_data.deleted_by),
            metadata={
                "book_title": audit_data.book_title,
                "book_author": audit_data.book_author,
                "deleted_at": audit_data.deleted_at.isoformat(),
                "cascaded_deletions": {
                    "book_statuses": counts.book_statuses,
                    "ratings": counts.ratings,
                    "notes": counts.notes,
                    "book_tags": counts.book_tags,
                },
                "operation_type": "BOOK_DELETION",
                "severity": AuditSeverity.HIGH.value,
            },
        )
        return await self.create_audit_log(db, entry=entry)

    async def log_security_event(
        self,
        db: AsyncSession,
        *,
        event: SecurityEventType,
        resource_type: str,
        resource_id: Optional[str] = None,
        user_id: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditLogResponse:
        """Record a denied or failed access attempt."""
        self._logger.warning(
            f"Security event: {event.value}",
            extra={
                "event_type": event.value,
                "target_resource_type": resource_type,
                "target_resource_id": resource_id,
                "user_id": user_id,
            },
        )
        entry = AuditLogCreate(
            operation=AuditOperation.SECURITY,
            resource_type=resource_type,
            resource_id=resource_id or "unknown",
            user_id=user_id or "anonymous",
            metadata={
                **(metadata or {}),
                "event_type": event.value,
                "target_resource_type": resource_type,
                "target_resource_id": resource_id,
                "severity": AuditSeverity.CRITICAL.value,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
        return await self.create_audit_log(db, entry=entry)

    async def get_audit_trail(
        self,
        db: AsyncSession,
        *,
        resource_type: str,
        resource_id: str,
        limit: int = 50,
    ) -> List[AuditLogResponse]:
        """Entries for one resource, newest first."""
        entries = await self.audit_repository.get_by_resource(
            db=db, resource_type=resource_type, resource_id=resource_id, limit=limit
        )
        return [AuditLogResponse.model_validate(entry) for entry in entries]


audit_service = AuditService()
