"""Workflow DAG executor.

Drives an :class:`ExecutionGraph` to completion:

- steps whose dependencies are all Completed are launched as asyncio
  tasks, independent steps run concurrently
- the scheduler loop sleeps in ``asyncio.wait(FIRST_COMPLETED)`` until at
  least one in-flight step finishes (or the run is cancelled)
- each step task retries internally with backoff, every attempt bounded by
  the step timeout
- exhausted failures are handled by the configured failure policy:
  ``fail_fast`` or ``skip_dependents``

The graph is only touched by the scheduler loop.  Step tasks hand their
result back through task completion.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Deque, Dict, List, Optional, Set

from review_orchestrator.agents.gateway import AgentGateway
from review_orchestrator.agents.project_detector import ProjectDetector
from review_orchestrator.constants import DEFAULT_BACKOFF_UNIT
from review_orchestrator.errors import (
    AgentError,
    ExecutionError,
    OrchestratorError,
    StepTimeoutError,
    WorkflowCancelledError,
)
from review_orchestrator.workflows.graph import ExecutionGraph, NodeStatus
from review_orchestrator.workflows.inputs import InputResolver
from review_orchestrator.workflows.models import (
    WorkflowContext,
    WorkflowDefinition,
    WorkflowStep,
)
from review_orchestrator.workflows.recorder import ExecutionRecorder, LogLevel

logger = logging.getLogger(__name__)


class FailurePolicy(Enum):
    """What the scheduler does once a step has exhausted its retries."""

    FAIL_FAST = "fail_fast"
    """Cancel in-flight steps, skip everything not yet started, stop."""

    SKIP_DEPENDENTS = "skip_dependents"
    """Skip the failed step's transitive dependents, finish the other branches."""


@dataclass
class RunOutcome:
    """What a scheduler run produced."""

    results: Dict[str, Any] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)
    statuses: Dict[str, NodeStatus] = field(default_factory=dict)
    cancelled: bool = False

    @property
    def success(self) -> bool:
        return not self.failures and not self.cancelled and not self.skipped

    @property
    def error(self) -> Optional[str]:
        if self.cancelled:
            return "Workflow execution was cancelled"
        if self.failures:
            name, message = next(iter(self.failures.items()))
            extra = len(self.failures) - 1
            suffix = f" (and {extra} more failed step(s))" if extra else ""
            return f"Step '{name}' failed: {message}{suffix}"
        if self.skipped:
            return f"{len(self.skipped)} step(s) skipped"
        return None


class WorkflowExecutor:
    """Execute the graph of one workflow run.

    Parameters
    ----------
    gateway:
        Agent gateway used to run each step's agent.
    recorder:
        Execution recorder receiving the run's log events.
    project_detector:
        Collaborator for ``project_info`` inputs.
    failure_policy:
        Behaviour after a step exhausts its retries.
    backoff_unit:
        Length in seconds of one backoff time unit.
    max_concurrency:
        Upper bound on simultaneous agent calls, ``None`` for unbounded.
    """

    def __init__(
        self,
        gateway: AgentGateway,
        recorder: ExecutionRecorder,
        *,
        project_detector: Optional[ProjectDetector] = None,
        failure_policy: FailurePolicy = FailurePolicy.FAIL_FAST,
        backoff_unit: float = DEFAULT_BACKOFF_UNIT,
        max_concurrency: Optional[int] = None,
    ) -> None:
        if max_concurrency is not None and max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self._gateway = gateway
        self._recorder = recorder
        self._detector = project_detector
        self._policy = failure_policy
        self._backoff_unit = backoff_unit
        self._max_concurrency = max_concurrency

    async def run(
        self,
        workflow: WorkflowDefinition,
        graph: ExecutionGraph,
        context: WorkflowContext,
        execution_id: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> RunOutcome:
        """Run every step of *graph*; return when nothing is ready or in flight."""
        outcome = RunOutcome()
        resolver = InputResolver(workflow, self._detector)
        semaphore = (
            asyncio.Semaphore(self._max_concurrency) if self._max_concurrency is not None else None
        )
        cancel_event = cancel_event or asyncio.Event()

        ready: Deque[str] = deque(graph.roots())
        queued: Set[str] = set(ready)
        in_flight: Dict[asyncio.Task, str] = {}
        cancel_waiter: asyncio.Task = asyncio.create_task(cancel_event.wait())

        def log(level: LogLevel, message: str, **meta: str) -> None:
            self._recorder.log(execution_id, level, message, **meta)

        try:
            while ready or in_flight:
                if cancel_event.is_set():
                    break

                # 1. launch everything that is ready
                while ready:
                    name = ready.popleft()
                    queued.discard(name)
                    node = graph[name]
                    node.mark_running()
                    snapshot = MappingProxyType(dict(outcome.results))
                    task = asyncio.create_task(
                        self._run_step(
                            node.step, context, snapshot, resolver, semaphore,
                            cancel_event, execution_id,
                        ),
                        name=f"step:{name}",
                    )
                    in_flight[task] = name
                    log(LogLevel.INFO, f"Started step: {name}", step=name)

                if not in_flight:
                    break

                # 2. wait for at least one step (or a cancellation request)
                done, _ = await asyncio.wait(
                    set(in_flight) | {cancel_waiter},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                done.discard(cancel_waiter)

                # Steps that finished alongside a cancellation request keep their outcome.
                aborted = False
                for task in done:
                    name = in_flight.pop(task)
                    node = graph[name]
                    if task.cancelled():
                        exc: Optional[BaseException] = AgentError(
                            "agent call was cancelled", node.step.agent
                        )
                    else:
                        exc = task.exception()

                    # 3. success: publish result, release dependents
                    if exc is None:
                        result = task.result()
                        node.mark_completed(result)
                        outcome.results[name] = result
                        self._recorder.record_step_result(execution_id, name, result)
                        log(LogLevel.INFO, f"Completed step: {name}", step=name)
                        for dependent in node.dependents:
                            if dependent not in queued and graph.is_ready(dependent):
                                ready.append(dependent)
                                queued.add(dependent)
                        continue

                    # 4. exhausted failure: apply the policy
                    message = str(exc)
                    node.mark_failed(message)
                    outcome.failures[name] = message
                    log(LogLevel.ERROR, f"Step {name} failed: {message}", step=name)

                    if isinstance(exc, WorkflowCancelledError):
                        outcome.cancelled = True
                    if self._policy is FailurePolicy.FAIL_FAST or outcome.cancelled:
                        aborted = True
                    else:
                        self._skip_dependents(graph, name, outcome, log)
                        ready = deque(n for n in ready if graph[n].status is NodeStatus.PENDING)
                        queued.intersection_update(ready)

                if aborted and not cancel_event.is_set():
                    reason = "cancelled" if outcome.cancelled else "aborted after a step failure"
                    await self._abort(graph, in_flight, reason, outcome, log)
                    break

            if cancel_event.is_set():
                log(LogLevel.WARN, "Cancellation requested; stopping run")
                outcome.cancelled = True
                await self._abort(graph, in_flight, "cancelled", outcome, log)
        finally:
            # Run-scoped task group: nothing outlives this call.
            cancel_waiter.cancel()
            leftovers = list(in_flight) + [cancel_waiter]
            for task in leftovers:
                task.cancel()
            await asyncio.gather(*leftovers, return_exceptions=True)

        for name in graph.pending():
            graph[name].mark_skipped("not started")
            outcome.skipped.append(name)
            log(LogLevel.WARN, f"Skipped step: {name} (not started)", step=name)

        outcome.statuses = graph.statuses()
        return outcome

    # ── Failure handling ─────────────────────────────────────────────

    def _skip_dependents(self, graph: ExecutionGraph, failed: str, outcome: RunOutcome, log) -> None:
        for name in graph.transitive_dependents(failed):
            node = graph[name]
            if node.status is not NodeStatus.PENDING:
                continue
            node.mark_skipped(f"dependency '{failed}' failed")
            outcome.skipped.append(name)
            log(LogLevel.WARN, f"Skipped step: {name} (dependency '{failed}' failed)", step=name)

    async def _abort(
        self,
        graph: ExecutionGraph,
        in_flight: Dict[asyncio.Task, str],
        reason: str,
        outcome: RunOutcome,
        log,
    ) -> None:
        """Cancel and join every in-flight step, marking each Failed."""
        tasks = list(in_flight)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for task in tasks:
            name = in_flight.pop(task)
            message = f"Step cancelled: run {reason}"
            graph[name].mark_failed(message)
            outcome.failures.setdefault(name, message)
            log(LogLevel.WARN, f"Cancelled step: {name}", step=name)

    # ── Step task ────────────────────────────────────────────────────

    async def _run_step(
        self,
        step: WorkflowStep,
        context: WorkflowContext,
        results,
        resolver: InputResolver,
        semaphore: Optional[asyncio.Semaphore],
        cancel_event: asyncio.Event,
        execution_id: str,
    ) -> Any:
        """Run one step with retries.  Returns the output or raises the last error."""
        policy = step.retry_policy
        max_attempts = policy.max_attempts
        last_error: Optional[OrchestratorError] = None

        for attempt in range(1, max_attempts + 1):
            if cancel_event.is_set():
                raise WorkflowCancelledError(f"Run cancelled before attempt {attempt}")

            logger.debug("Executing step %s (attempt %d/%d)", step.name, attempt, max_attempts)
            try:
                payload = await resolver.resolve(step, context, results)
                return await self._call_agent(step, payload, semaphore)
            except asyncio.TimeoutError:
                last_error = StepTimeoutError(step.name, step.timeout, attempt, max_attempts)
            except asyncio.CancelledError as exc:
                # Only a cancel aimed at this task (abort, run cancel, teardown) propagates.
                current = asyncio.current_task()
                if cancel_event.is_set() or (current is not None and current.cancelling()):
                    raise
                last_error = AgentError("agent call was cancelled", step.agent, exc)
            except OrchestratorError as exc:
                last_error = exc
            except Exception as exc:
                last_error = AgentError(str(exc) or type(exc).__name__, step.agent, exc)

            self._recorder.log(execution_id, LogLevel.WARN, str(last_error), step=step.name)

            if attempt < max_attempts:
                delay = policy.delay_for(attempt) * self._backoff_unit
                logger.debug("Step %s retrying in %.3fs", step.name, delay)
                await asyncio.sleep(delay)

        logger.error("Step %s failed after %d attempt(s)", step.name, max_attempts)
        if last_error is None:
            raise ExecutionError(f"Step '{step.name}' failed without an error")
        raise last_error

    async def _call_agent(
        self,
        step: WorkflowStep,
        payload: Any,
        semaphore: Optional[asyncio.Semaphore],
    ) -> Any:
        call = self._gateway.execute(step.agent, payload, step.timeout)
        if semaphore is None:
            return await asyncio.wait_for(call, timeout=step.timeout)
        async with semaphore:
            return await asyncio.wait_for(call, timeout=step.timeout)
