# app/models/audit_log_model.py
"""
Audit log model definition.

Audit entries are append-only. Nothing in the application updates or deletes
them; the mapper events below turn any attempt to do so through the ORM into
an error instead of a silent rewrite of history.
"""

from datetime import datetime
from typing import Any, Dict

from sqlmodel import SQLModel, Field, Column, DateTime, String
from sqlalchemy import JSON, Index, event, func

from app.core.exceptions import InternalServerError


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("idx_audit_resource", "resource_type", "resource_id"),
        Index("idx_audit_user_id", "user_id"),
        Index("idx_audit_created_at", "created_at"),
    )

    audit_id: str = Field(
        sa_column=Column(String(64), primary_key=True),
        description="Generated unique audit identifier",
    )
    operation: str = Field(
        sa_column=Column(String(20), nullable=False),
        description="CREATE, UPDATE, DELETE or SECURITY",
    )
    resource_type: str = Field(sa_column=Column(String(20), nullable=False))
    resource_id: str = Field(sa_column=Column(String(64), nullable=False))
    user_id: str = Field(sa_column=Column(String(64), nullable=False))

    # "metadata" is reserved on declarative classes, so the attribute is renamed
    event_metadata: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False),
    )

    created_at: datetime = Field(
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), nullable=False
        ),
        description="When the entry was recorded",
    )

    def __repr__(self) -> str:
        return (
            f"<AuditLog(audit_id='{self.audit_id}', operation='{self.operation}', "
            f"resource='{self.resource_type}:{self.resource_id}')>"
        )


@event.listens_for(AuditLog, "before_update")
def _reject_audit_update(mapper, connection, target):
    raise InternalServerError(
        f"Audit log entries are append-only (audit_id={target.audit_id})."
    )


@event.listens_for(AuditLog, "before_delete")
def _reject_audit_delete(mapper, connection, target):
    raise InternalServerError(
        f"Audit log entries are append-only (audit_id={target.audit_id})."
    )
