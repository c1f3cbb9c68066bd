"""Workflows — DAGs of agent steps with retry, timeouts and history.

Definitions are built in Python (:mod:`models`), parsed from YAML
(:mod:`dsl`), or taken from :mod:`presets`, then run by
:class:`WorkflowEngine`.
"""

from review_orchestrator.workflows.dsl import load_workflow_yaml, parse_workflow
from review_orchestrator.workflows.engine import WorkflowEngine, WorkflowResult
from review_orchestrator.workflows.executor import FailurePolicy, RunOutcome, WorkflowExecutor
from review_orchestrator.workflows.graph import (
    ExecutionGraph,
    ExecutionNode,
    NodeStatus,
    build_execution_graph,
)
from review_orchestrator.workflows.models import (
    BackoffStrategy,
    Environment,
    InputKind,
    OutputKind,
    RetryPolicy,
    StepInput,
    StepOutput,
    TriggerKind,
    WorkflowContext,
    WorkflowDefinition,
    WorkflowStep,
    WorkflowVariable,
)
from review_orchestrator.workflows.recorder import (
    ExecutionRecorder,
    ExecutionStatus,
    LogEntry,
    LogLevel,
    WorkflowExecution,
)
from review_orchestrator.workflows.validator import find_cycle, validate_workflow

__all__ = [
    "BackoffStrategy",
    "Environment",
    "ExecutionGraph",
    "ExecutionNode",
    "ExecutionRecorder",
    "ExecutionStatus",
    "FailurePolicy",
    "InputKind",
    "LogEntry",
    "LogLevel",
    "NodeStatus",
    "OutputKind",
    "RetryPolicy",
    "RunOutcome",
    "StepInput",
    "StepOutput",
    "TriggerKind",
    "WorkflowContext",
    "WorkflowDefinition",
    "WorkflowEngine",
    "WorkflowExecution",
    "WorkflowExecutor",
    "WorkflowResult",
    "WorkflowStep",
    "WorkflowVariable",
    "build_execution_graph",
    "find_cycle",
    "load_workflow_yaml",
    "parse_workflow",
    "validate_workflow",
]
