"""Workflow engine — submit-workflow and history API.

:class:`WorkflowEngine` ties the pieces together for one run::

    record start → merge variables → validate → build graph
        → schedule steps → aggregate outputs → finalize record

Validation problems are raised to the caller as
:class:`ConfigurationError` (after the run's record has been finalized as
failed).  Everything that goes wrong once steps are running is reported
in the returned :class:`WorkflowResult`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from review_orchestrator.agents.gateway import AgentGateway
from review_orchestrator.agents.project_detector import ProjectDetector
from review_orchestrator.config.schema import EngineSettings
from review_orchestrator.errors import ConfigurationError, ExecutionError
from review_orchestrator.workflows.executor import FailurePolicy, RunOutcome, WorkflowExecutor
from review_orchestrator.workflows.graph import build_execution_graph
from review_orchestrator.workflows.models import (
    WorkflowContext,
    WorkflowDefinition,
    resolve_variables,
)
from review_orchestrator.workflows.outputs import aggregate_outputs
from review_orchestrator.workflows.recorder import (
    ExecutionRecorder,
    ExecutionStatus,
    LogEntry,
    LogLevel,
    WorkflowExecution,
)
from review_orchestrator.workflows.validator import validate_workflow

logger = logging.getLogger(__name__)


@dataclass
class WorkflowResult:
    """What a caller gets back from :meth:`WorkflowEngine.execute`."""

    success: bool
    outputs: Dict[str, Any] = field(default_factory=dict)
    execution_time: float = 0.0
    error: Optional[str] = None
    logs: List[LogEntry] = field(default_factory=list)
    execution_id: str = ""
    step_statuses: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "execution_id": self.execution_id,
            "success": self.success,
            "outputs": self.outputs,
            "execution_time": round(self.execution_time, 4),
            "error": self.error,
            "step_statuses": dict(self.step_statuses),
            "logs": [entry.to_dict() for entry in self.logs],
        }


class WorkflowEngine:
    """Run workflow definitions against an agent gateway.

    Parameters
    ----------
    gateway:
        Name-keyed agent table the steps are executed through.
    project_detector:
        Used for ``project_info`` step inputs.
    settings:
        Failure policy, concurrency bound and backoff unit.
    recorder:
        Execution history.  A private recorder is created when omitted.

    One engine may run several workflows concurrently; each run gets its
    own graph, scheduler state and cancellation event.
    """

    def __init__(
        self,
        gateway: AgentGateway,
        *,
        project_detector: Optional[ProjectDetector] = None,
        settings: Optional[EngineSettings] = None,
        recorder: Optional[ExecutionRecorder] = None,
    ) -> None:
        self._gateway = gateway
        self._detector = project_detector
        self._settings = settings or EngineSettings()
        self._recorder = recorder or ExecutionRecorder()
        self._cancel_events: Dict[str, asyncio.Event] = {}

    @property
    def recorder(self) -> ExecutionRecorder:
        return self._recorder

    @property
    def settings(self) -> EngineSettings:
        return self._settings

    # ── Submit-workflow API ──────────────────────────────────────────

    async def execute(
        self,
        workflow: WorkflowDefinition,
        context: Optional[WorkflowContext] = None,
    ) -> WorkflowResult:
        """Run *workflow* once and return its result.

        Raises:
            ConfigurationError: The workflow (or its variables) is invalid.
                Nothing has been executed.
        """
        context = context or WorkflowContext()
        execution_id = self._recorder.start(workflow.name, context)
        cancel_event = asyncio.Event()
        self._cancel_events[execution_id] = cancel_event
        t0 = time.monotonic()
        self._log(execution_id, LogLevel.INFO, f"Starting workflow: {workflow.name}")

        try:
            try:
                effective = resolve_variables(workflow, context.variables)
                run_context = context.with_variables(effective)
                validate_workflow(workflow, self._gateway)
            except ConfigurationError as exc:
                self._log(execution_id, LogLevel.ERROR, f"Workflow validation failed: {exc}")
                self._recorder.finish(execution_id, ExecutionStatus.FAILED)
                raise

            graph = build_execution_graph(workflow)
            executor = WorkflowExecutor(
                self._gateway,
                self._recorder,
                project_detector=self._detector,
                failure_policy=FailurePolicy(self._settings.failure_policy),
                backoff_unit=self._settings.backoff_unit,
                max_concurrency=self._settings.max_concurrency,
            )
            try:
                outcome = await executor.run(
                    workflow, graph, run_context, execution_id, cancel_event
                )
            except asyncio.CancelledError:
                self._log(execution_id, LogLevel.WARN, "Workflow task cancelled by caller")
                self._recorder.finish(execution_id, ExecutionStatus.CANCELLED)
                raise

            return self._conclude(workflow, execution_id, outcome, time.monotonic() - t0)
        finally:
            self._cancel_events.pop(execution_id, None)

    def _conclude(
        self,
        workflow: WorkflowDefinition,
        execution_id: str,
        outcome: RunOutcome,
        elapsed: float,
    ) -> WorkflowResult:
        error = outcome.error
        success = outcome.success
        try:
            outputs = aggregate_outputs(workflow, outcome.results, strict=success)
        except ExecutionError as exc:
            success = False
            error = str(exc)
            outputs = aggregate_outputs(workflow, outcome.results, strict=False)

        if outcome.cancelled:
            status = ExecutionStatus.CANCELLED
        elif success:
            status = ExecutionStatus.COMPLETED
        else:
            status = ExecutionStatus.FAILED

        if success:
            self._log(execution_id, LogLevel.INFO, "Workflow completed successfully")
        else:
            self._log(execution_id, LogLevel.ERROR, f"Workflow failed: {error}")
        self._recorder.finish(execution_id, status)

        return WorkflowResult(
            success=success,
            outputs=outputs,
            execution_time=elapsed,
            error=error,
            logs=self._recorder.logs(execution_id),
            execution_id=execution_id,
            step_statuses={name: s.value for name, s in outcome.statuses.items()},
        )

    def cancel(self, execution_id: str) -> bool:
        """Request cancellation of a running execution.

        Returns ``False`` when no run with that id is in progress.
        """
        event = self._cancel_events.get(execution_id)
        if event is None:
            return False
        logger.info("Cancellation requested for execution %s.", execution_id)
        event.set()
        return True

    # ── History API ──────────────────────────────────────────────────

    def list_executions(self) -> List[WorkflowExecution]:
        return self._recorder.list_executions()

    def get_execution(self, execution_id: str) -> Optional[WorkflowExecution]:
        return self._recorder.get_execution(execution_id)

    def _log(self, execution_id: str, level: LogLevel, message: str) -> None:
        self._recorder.log(execution_id, level, message)
