# app/schemas/audit_schema.py
"""
Audit schemas.

AuditLogCreate is what callers hand to AuditService; the service adds the
audit id and timestamp before persisting it.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class AuditOperation(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SECURITY = "SECURITY"


class AuditResourceType(str, Enum):
    BOOK = "BOOK"


class SecurityEventType(str, Enum):
    AUTH_FAILURE = "AUTH_FAILURE"
    UNAUTHORIZED_ACCESS = "UNAUTHORIZED_ACCESS"
    PERMISSION_DENIED = "PERMISSION_DENIED"


class AuditSeverity(str, Enum):
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AuditLogCreate(BaseModel):
    operation: AuditOperation
    resource_type: str = Field(..., min_length=1, max_length=20)
    resource_id: str = Field(..., min_length=1, max_length=64)
    user_id: str = Field(..., min_length=1, max_length=64)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    audit_id: str
    operation: str
    resource_type: str
    resource_id: str
    user_id: str
    metadata: Dict[str, Any] = Field(validation_alias="event_metadata")
    created_at: datetime
