"""Execution recorder: in-memory history of workflow runs.

One :class:`WorkflowExecution` is appended per call to
``WorkflowEngine.execute``.  Log entries and step results are appended
while the run progresses, and the record is finalized exactly once.

Several runs may share one recorder, so every mutation happens under a
lock.  Readers get snapshots, never the live records.  History lives for
the lifetime of the recorder and is not persisted.
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from time import monotonic
from typing import Any, Dict, List, Optional

from review_orchestrator.errors import ExecutionError
from review_orchestrator.workflows.models import WorkflowContext

logger = logging.getLogger(__name__)


class LogLevel(Enum):
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def logging_level(self) -> int:
        return _STDLIB_LEVELS[self]


_STDLIB_LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class ExecutionStatus(Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class LogEntry:
    """A single timestamped event of a run."""

    timestamp: datetime
    level: LogLevel
    message: str
    metadata: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level.value,
            "message": self.message,
            "metadata": dict(self.metadata),
        }


@dataclass
class WorkflowExecution:
    """History record of one workflow run."""

    id: str
    workflow_name: str
    context: WorkflowContext
    started_at: datetime
    status: ExecutionStatus = ExecutionStatus.RUNNING
    finished_at: Optional[datetime] = None
    duration: Optional[float] = None
    """Wall-clock duration in seconds, set on finish."""

    step_results: Dict[str, Any] = field(default_factory=dict)
    logs: List[LogEntry] = field(default_factory=list)
    _t0: float = field(default_factory=monotonic, repr=False, compare=False)

    @property
    def finished(self) -> bool:
        return self.finished_at is not None

    def snapshot(self) -> WorkflowExecution:
        """Copy whose containers are independent of this record."""
        return replace(self, step_results=dict(self.step_results), logs=list(self.logs))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "workflow_name": self.workflow_name,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration": self.duration,
            "context": self.context.to_dict(),
            "step_results": dict(self.step_results),
            "logs": [entry.to_dict() for entry in self.logs],
        }


class ExecutionRecorder:
    """Append-only, queryable history of workflow executions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._history: List[WorkflowExecution] = []
        self._index: Dict[str, WorkflowExecution] = {}

    # ── Writers ──────────────────────────────────────────────────────

    def start(self, workflow_name: str, context: WorkflowContext) -> str:
        """Append a new Running record and return its id."""
        execution = WorkflowExecution(
            id=str(uuid.uuid4()),
            workflow_name=workflow_name,
            context=context,
            started_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._history.append(execution)
            self._index[execution.id] = execution
        logger.info("Execution %s started for workflow '%s'.", execution.id, workflow_name)
        return execution.id

    def log(self, execution_id: str, level: LogLevel, message: str, **metadata: str) -> None:
        """Append a log entry to the record and mirror it to :mod:`logging`."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc),
            level=level,
            message=message,
            metadata={k: str(v) for k, v in metadata.items()},
        )
        with self._lock:
            self._get(execution_id).logs.append(entry)
        logger.log(level.logging_level, "[%s] %s", execution_id[:8], message)

    def record_step_result(self, execution_id: str, step_name: str, result: Any) -> None:
        with self._lock:
            self._get(execution_id).step_results[step_name] = result

    def finish(self, execution_id: str, status: ExecutionStatus) -> WorkflowExecution:
        """Finalize the record.  A second call for the same id is an error."""
        if status is ExecutionStatus.RUNNING:
            raise ValueError("An execution cannot be finished with status 'running'")
        with self._lock:
            execution = self._get(execution_id)
            if execution.finished:
                raise ExecutionError(f"Execution {execution_id} has already been finalized")
            execution.finished_at = datetime.now(timezone.utc)
            execution.duration = monotonic() - execution._t0
            execution.status = status
            snapshot = execution.snapshot()
        logger.info(
            "Execution %s finished: %s (%.3fs).",
            execution_id,
            status.value,
            snapshot.duration,
        )
        return snapshot

    # ── Readers ──────────────────────────────────────────────────────

    def list_executions(self) -> List[WorkflowExecution]:
        with self._lock:
            return [e.snapshot() for e in self._history]

    def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        with self._lock:
            execution = self._index.get(execution_id)
            return execution.snapshot() if execution is not None else None

    def logs(self, execution_id: str) -> List[LogEntry]:
        with self._lock:
            return list(self._get(execution_id).logs)

    def __len__(self) -> int:
        with self._lock:
            return len(self._history)

    # ── Internal ─────────────────────────────────────────────────────

    def _get(self, execution_id: str) -> WorkflowExecution:
        try:
            return self._index[execution_id]
        except KeyError:
            raise ExecutionError(f"Unknown execution id: {execution_id}") from None
