# tests/services/test_saga.py
import logging

import pytest

from app.core.exceptions import AuditLogFailed, BookNotFound
from app.services.saga import MutationSaga, StepPolicy, StepStatus

# Mark all tests in this file as async
pytestmark = pytest.mark.asyncio


async def _ok(value):
    return value


async def _boom(exc):
    raise exc


async def test_completed_step_returns_value_and_is_recorded():
    saga = MutationSaga("test")

    result = await saga.run("first", _ok, 42)

    assert result == 42
    assert saga.completed_steps == ["first"]
    assert saga.status_of("first") == StepStatus.COMPLETED
    assert saga.executions[0].duration_ms is not None


async def test_required_failure_reraises_and_stops():
    saga = MutationSaga("test")

    with pytest.raises(BookNotFound):
        await saga.run("load", _boom, BookNotFound())

    assert saga.failed_steps == ["load"]
    assert saga.executions[0].error == BookNotFound.default_detail


async def test_critical_failure_logs_critical_and_reraises(caplog):
    saga = MutationSaga("test")

    with caplog.at_level(logging.CRITICAL, logger="app.services.saga"):
        with pytest.raises(AuditLogFailed):
            await saga.run(
                "audit", _boom, AuditLogFailed(), policy=StepPolicy.CRITICAL
            )

    assert any(r.levelno == logging.CRITICAL for r in caplog.records)
    assert saga.status_of("audit") == StepStatus.FAILED


async def test_best_effort_failure_is_swallowed():
    saga = MutationSaga("test")

    result = await saga.run(
        "cache", _boom, ConnectionError("redis down"), policy=StepPolicy.BEST_EFFORT
    )
    after = await saga.run("next", _ok, "still running")

    assert result is None
    assert after == "still running"
    assert saga.failed_steps == ["cache"]
    assert saga.completed_steps == ["next"]


async def test_skipped_step_is_recorded():
    saga = MutationSaga("test")

    saga.skip("insert_rating")

    assert saga.status_of("insert_rating") == StepStatus.SKIPPED
    assert saga.status_of("never_ran") is None
