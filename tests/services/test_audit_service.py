# tests/services/test_audit_service.py
import json
import logging
import re
import uuid
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.exceptions import AuditLogFailed, InternalServerError
from app.crud.audit_log_crud import AuditLogRepository
from app.models.audit_log_model import AuditLog
from app.schemas.audit_schema import (
    AuditLogCreate,
    AuditOperation,
    SecurityEventType,
)
from app.schemas.book_schema import BookDeletionAuditLog, RelatedDataCount
from app.services.audit_service import AuditService, generate_audit_id

# Mark all tests in this file as async
pytestmark = pytest.mark.asyncio


@pytest.fixture
def audit_service() -> AuditService:
    return AuditService(audit_repo=AuditLogRepository())


async def _entries(db: AsyncSession):
    return list((await db.execute(select(AuditLog))).scalars().all())


async def test_audit_id_format():
    assert re.fullmatch(r"audit_\d{13}_[a-z0-9]{9}", generate_audit_id())
    assert generate_audit_id() != generate_audit_id()


async def test_create_audit_log_persists_and_emits_json(
    db_session: AsyncSession, audit_service: AuditService, caplog
):
    entry = AuditLogCreate(
        operation=AuditOperation.UPDATE,
        resource_type="BOOK",
        resource_id="b-1",
        user_id="u-1",
        metadata={"field": "title"},
    )

    with caplog.at_level(logging.INFO, logger="app.audit"):
        saved = await audit_service.create_audit_log(db_session, entry=entry)

    rows = await _entries(db_session)
    assert len(rows) == 1
    assert rows[0].audit_id == saved.audit_id
    assert rows[0].event_metadata == {"field": "title"}
    assert saved.metadata == {"field": "title"}

    audit_lines = [r for r in caplog.records if r.name == "app.audit"]
    assert len(audit_lines) == 1
    payload = json.loads(audit_lines[0].getMessage())
    assert payload["audit_id"] == saved.audit_id
    assert payload["operation"] == "UPDATE"


async def test_log_book_deletion_metadata(
    db_session: AsyncSession, audit_service: AuditService
):
    book_id, user_id = uuid.uuid4(), uuid.uuid4()
    audit_data = BookDeletionAuditLog(
        book_id=book_id,
        book_title="Dune",
        book_author="Herbert",
        deleted_by=user_id,
        deleted_at=datetime.now(timezone.utc),
        related_data_count=RelatedDataCount(book_statuses=1, ratings=2, book_tags=3),
    )

    saved = await audit_service.log_book_deletion(db_session, audit_data=audit_data)

    assert saved.operation == "DELETE"
    assert saved.resource_type == "BOOK"
    assert saved.resource_id == str(book_id)
    assert saved.user_id == str(user_id)
    assert saved.metadata["book_title"] == "Dune"
    assert saved.metadata["operation_type"] == "BOOK_DELETION"
    assert saved.metadata["severity"] == "HIGH"
    assert saved.metadata["cascaded_deletions"] == {
        "book_statuses": 1,
        "ratings": 2,
        "notes": 0,
        "book_tags": 3,
    }


async def test_security_event_defaults_missing_identities(
    db_session: AsyncSession, audit_service: AuditService
):
    saved = await audit_service.log_security_event(
        db_session,
        event=SecurityEventType.AUTH_FAILURE,
        resource_type="BOOK",
    )

    assert saved.operation == "SECURITY"
    assert saved.resource_id == "unknown"
    assert saved.user_id == "anonymous"
    assert saved.metadata["event_type"] == "AUTH_FAILURE"
    assert saved.metadata["severity"] == "CRITICAL"


async def test_write_failure_raises_audit_log_failed(audit_service: AuditService, caplog):
    audit_service.audit_repository = AsyncMock()
    audit_service.audit_repository.create.side_effect = InternalServerError("db down")
    entry = AuditLogCreate(
        operation=AuditOperation.DELETE,
        resource_type="BOOK",
        resource_id="b-1",
        user_id="u-1",
    )

    with caplog.at_level(logging.CRITICAL):
        with pytest.raises(AuditLogFailed) as exc_info:
            await audit_service.create_audit_log(None, entry=entry)

    assert exc_info.value.error_code == "AUDIT_LOG_FAILED"
    assert "db down" in exc_info.value.detail
    assert any(r.levelno == logging.CRITICAL for r in caplog.records)


async def test_audit_entries_cannot_be_updated(
    db_session: AsyncSession, audit_service: AuditService
):
    saved = await audit_service.log_security_event(
        db_session,
        event=SecurityEventType.PERMISSION_DENIED,
        resource_type="BOOK",
        resource_id="b-1",
        user_id="u-1",
    )
    row = await db_session.get(AuditLog, saved.audit_id)
    row.user_id = "someone-else"
    db_session.add(row)

    with pytest.raises(InternalServerError):
        await db_session.commit()


async def test_audit_entries_cannot_be_deleted(
    db_session: AsyncSession, audit_service: AuditService
):
    saved = await audit_service.log_security_event(
        db_session,
        event=SecurityEventType.PERMISSION_DENIED,
        resource_type="BOOK",
        resource_id="b-1",
        user_id="u-1",
    )
    row = await db_session.get(AuditLog, saved.audit_id)
    await db_session.delete(row)

    with pytest.raises(InternalServerError):
        await db_session.commit()


async def test_get_audit_trail_is_limited_to_resource(
    db_session: AsyncSession, audit_service: AuditService
):
    for _ in range(3):
        await audit_service.log_security_event(
            db_session,
            event=SecurityEventType.UNAUTHORIZED_ACCESS,
            resource_type="BOOK",
            resource_id="b-1",
            user_id="u-1",
        )
    await audit_service.log_security_event(
        db_session,
        event=SecurityEventType.UNAUTHORIZED_ACCESS,
        resource_type="BOOK",
        resource_id="b-2",
        user_id="u-1",
    )

    trail = await audit_service.get_audit_trail(
        db_session, resource_type="BOOK", resource_id="b-1", limit=2
    )

    assert len(trail) == 2
    assert all(entry.resource_id == "b-1" for entry in trail)
    assert trail[0].created_at >= trail[1].created_at
