# app/services/saga.py
"""
Step runner for multi-step writes.

The store gives no transaction spanning a book and its dependent rows, so each
write is an ordered list of named steps. Every step declares what its failure
means:

- REQUIRED: the operation cannot go on; log and re-raise, later steps never run.
- CRITICAL: the primary effect is already committed but this step must not fail
  silently; log at CRITICAL and re-raise.
- BEST_EFFORT: log, swallow, return None.

Each step is recorded so callers (and tests) can tell which side effects ran.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class StepPolicy(str, Enum):
    REQUIRED = "required"
    CRITICAL = "critical"
    BEST_EFFORT = "best_effort"


class StepStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StepExecution:
    """Outcome of a single saga step."""

    step_name: str
    policy: StepPolicy
    status: StepStatus
    started_at: Optional[datetime] = None
    duration_ms: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step_name": self.step_name,
            "policy": self.policy.value,
            "status": self.status.value,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }


@dataclass
class MutationSaga:
    """Runs the named steps of one mutation in order and records their outcome."""

    name: str
    context: Dict[str, Any] = field(default_factory=dict)
    executions: List[StepExecution] = field(default_factory=list)

    async def run(
        self,
        step_name: str,
        action: Callable[..., Awaitable[Any]],
        *args: Any,
        policy: StepPolicy = StepPolicy.REQUIRED,
        **kwargs: Any,
    ) -> Any:
        started_at = datetime.now(timezone.utc)
        start = time.perf_counter()
        try:
            result = await action(*args, **kwargs)
        except Exception as e:
            execution = self._record(
                step_name, policy, StepStatus.FAILED, started_at, start, error=str(e)
            )
            log_extra = {**self.context, "saga": self.name, **execution.to_dict()}

            if policy == StepPolicy.BEST_EFFORT:
                logger.warning(
                    f"Best-effort step '{step_name}' failed in {self.name}",
                    extra=log_extra,
                    exc_info=True,
                )
                return None
            if policy == StepPolicy.CRITICAL:
                logger.critical(
                    f"Critical step '{step_name}' failed in {self.name}",
                    extra=log_extra,
                    exc_info=True,
                )
            else:
                logger.info(
                    f"Step '{step_name}' aborted {self.name}: {e}", extra=log_extra
                )
            raise

        self._record(step_name, policy, StepStatus.COMPLETED, started_at, start)
        return result

    def skip(self, step_name: str, policy: StepPolicy = StepPolicy.REQUIRED) -> None:
        """Record a step that was not applicable (e.g. no rating supplied)."""
        self.executions.append(
            StepExecution(step_name=step_name, policy=policy, status=StepStatus.SKIPPED)
        )

    def _record(
        self,
        step_name: str,
        policy: StepPolicy,
        status: StepStatus,
        started_at: datetime,
        start: float,
        error: Optional[str] = None,
    ) -> StepExecution:
        execution = StepExecution(
            step_name=step_name,
            policy=policy,
            status=status,
            started_at=started_at,
            duration_ms=round((time.perf_counter() - start) * 1000, 3),
            error=error,
        )
        self.executions.append(execution)
        return execution

    def status_of(self, step_name: str) -> Optional[StepStatus]:
        for execution in reversed(self.executions):
            if execution.step_name == step_name:
                return execution.status
        return None

    @property
    def completed_steps(self) -> List[str]:
        return [e.step_name for e in self.executions if e.status == StepStatus.COMPLETED]

    @property
    def failed_steps(self) -> List[str]:
        return [e.step_name for e in self.executions if e.status == StepStatus.FAILED]
