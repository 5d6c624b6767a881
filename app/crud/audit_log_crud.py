import logging
from typing import List

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.crud.base_crud import BaseRepository
from app.models.audit_log_model import AuditLog
from app.core.exception_utils import handle_exceptions
from app.core.exceptions import AuditLogFailed, InternalServerError


logger = logging.getLogger(__name__)


class AuditLogRepository(BaseRepository[AuditLog]):
    """
    Insert-only access to the audit trail.

    There is deliberately no update or delete here; see the mapper guards on
    the AuditLog model.
    """

    def __init__(self):
        super().__init__(AuditLog)

    @handle_exceptions(
        default_exception=AuditLogFailed,
        message="Failed to create audit log entry.",
    )
    async def create(self, db: AsyncSession, *, obj_in: AuditLog) -> AuditLog:
        db.add(obj_in)
        await db.commit()
        await db.refresh(obj_in)
        return obj_in

    @handle_exceptions(
        default_exception=InternalServerError,
        message="Failed to fetch audit log entries.",
    )
    async def get_by_resource(
        self,
        db: AsyncSession,
        *,
        resource_type: str,
        resource_id: str,
        limit: int = 50,
    ) -> List[AuditLog]:
        """Entries recorded against one resource, newest first."""
        statement = (
            select(self.model)
            .where(
                self.model.resource_type == resource_type,
                self.model.resource_id == resource_id,
            )
            .order_by(self.model.created_at.desc())
            .limit(limit)
        )
        result = await db.execute(statement)
        return list(result.scalars().all())


audit_log_repository = AuditLogRepository()
