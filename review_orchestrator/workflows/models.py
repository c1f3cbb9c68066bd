"""Immutable description of a workflow.

A :class:`WorkflowDefinition` is an ordered collection of
:class:`WorkflowStep` objects, each bound to an agent by name, plus the
declared outputs of the workflow.  Definitions are frozen and can be
executed any number of times.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from review_orchestrator.constants import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY,
    DEFAULT_STEP_TIMEOUT,
)
from review_orchestrator.errors import ConfigurationError

logger = logging.getLogger(__name__)


# ── Retry policy ─────────────────────────────────────────────────────────


class BackoffStrategy(Enum):
    """Mapping from retry attempt number to wait duration."""

    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class RetryPolicy:
    """Per-step retry configuration.

    Attributes
    ----------
    max_attempts:
        Total number of attempts, including the first one (>= 1).
    backoff_strategy:
        How the delay grows between attempts.
    max_delay:
        Upper bound, in time units, for linear and exponential delays.
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    max_delay: float = DEFAULT_MAX_DELAY

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError(
                f"RetryPolicy.max_attempts must be >= 1, got {self.max_attempts}"
            )
        if self.max_delay < 0:
            raise ConfigurationError(f"RetryPolicy.max_delay must be >= 0, got {self.max_delay}")

    def delay_for(self, attempt: int) -> float:
        """Return the delay (in time units) after failed attempt number *attempt*.

        Attempts are numbered from 1.  Fixed is always 1; linear is the
        attempt number; exponential is ``2 ** (attempt - 1)``.  Linear and
        exponential delays are capped at :attr:`max_delay`.
        """
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        if self.backoff_strategy is BackoffStrategy.FIXED:
            return 1.0
        if self.backoff_strategy is BackoffStrategy.LINEAR:
            return float(min(attempt, self.max_delay))
        return float(min(2 ** (attempt - 1), self.max_delay))


# ── Step inputs / outputs ────────────────────────────────────────────────


class InputKind(Enum):
    """What a step consumes."""

    PROJECT_PATH = "project_path"
    PROJECT_INFO = "project_info"
    ANALYSIS_RESULTS = "analysis_results"
    GENERATED_PROMPT = "generated_prompt"
    CUSTOM = "custom"


@dataclass(frozen=True)
class StepInput:
    """Tagged step input.  Only ``CUSTOM`` inputs carry a payload."""

    kind: InputKind = InputKind.CUSTOM
    payload: Any = None

    @classmethod
    def project_path(cls) -> StepInput:
        return cls(InputKind.PROJECT_PATH)

    @classmethod
    def project_info(cls) -> StepInput:
        return cls(InputKind.PROJECT_INFO)

    @classmethod
    def analysis_results(cls) -> StepInput:
        return cls(InputKind.ANALYSIS_RESULTS)

    @classmethod
    def generated_prompt(cls) -> StepInput:
        return cls(InputKind.GENERATED_PROMPT)

    @classmethod
    def custom(cls, payload: Any) -> StepInput:
        return cls(InputKind.CUSTOM, payload)


class OutputKind(Enum):
    """Kind of artifact a step produces (or a workflow declares)."""

    PROJECT_PATH = "project_path"
    PROJECT_INFO = "project_info"
    ANALYSIS_RESULTS = "analysis_results"
    GENERATED_PROMPT = "generated_prompt"
    GENERATED_RESPONSE = "generated_response"
    REPORT = "report"
    CUSTOM = "custom"


@dataclass(frozen=True)
class StepOutput:
    """Tagged step output.  ``CUSTOM`` outputs may be named."""

    kind: OutputKind = OutputKind.CUSTOM
    name: Optional[str] = None

    @property
    def key(self) -> str:
        """Conventional artifact name used for lookups and output maps."""
        if self.kind is OutputKind.CUSTOM:
            return self.name or "custom_output"
        return self.kind.value

    @classmethod
    def of(cls, kind: OutputKind) -> StepOutput:
        return cls(kind)

    @classmethod
    def custom(cls, name: Optional[str] = None) -> StepOutput:
        return cls(OutputKind.CUSTOM, name)


# ── Steps and workflows ──────────────────────────────────────────────────


@dataclass(frozen=True)
class WorkflowStep:
    """A single step in a workflow DAG.

    Attributes
    ----------
    name:
        Unique step name within the workflow.
    agent:
        Agent key, resolved through the agent gateway.
    input:
        What the step consumes, resolved just before each attempt.
    output:
        Kind of artifact the step produces.
    dependencies:
        Names of steps that must complete before this one runs.
    retry_policy:
        Attempts and backoff for this step.
    timeout:
        Per-attempt timeout in seconds.
    """

    name: str
    agent: str
    input: StepInput = field(default_factory=StepInput)
    output: StepOutput = field(default_factory=StepOutput)
    dependencies: Tuple[str, ...] = ()
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    timeout: float = DEFAULT_STEP_TIMEOUT

    def __post_init__(self) -> None:
        # Accept any iterable; keep declaration order, drop repeats.
        deps = tuple(dict.fromkeys(self.dependencies))
        object.__setattr__(self, "dependencies", deps)
        if self.timeout <= 0:
            raise ConfigurationError(
                f"Step '{self.name}' timeout must be positive, got {self.timeout}"
            )


class TriggerKind(Enum):
    """Events that may start a workflow."""

    PULL_REQUEST = "pull_request"
    PUSH = "push"
    MANUAL = "manual"
    SCHEDULE = "schedule"
    WEBHOOK = "webhook"


@dataclass(frozen=True)
class WorkflowVariable:
    """Named workflow variable with an optional default."""

    name: str
    value: Any = None
    required: bool = False
    default: Any = None


@dataclass(frozen=True)
class WorkflowDefinition:
    """Immutable workflow description.

    Attributes
    ----------
    name:
        Workflow name.
    version:
        Free-form version string.
    description:
        Human-readable description.
    triggers:
        Events this workflow is meant to run on.
    steps:
        Ordered steps.
    variables:
        Named variables, merged into the run context before execution.
    outputs:
        Declared outputs, projected from step results after the run.
    """

    name: str
    steps: Tuple[WorkflowStep, ...] = ()
    version: str = "1.0"
    description: str = ""
    triggers: Tuple[TriggerKind, ...] = (TriggerKind.MANUAL,)
    variables: Mapping[str, WorkflowVariable] = field(default_factory=dict)
    outputs: Tuple[StepOutput, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "triggers", tuple(self.triggers))
        object.__setattr__(self, "outputs", tuple(self.outputs))
        object.__setattr__(self, "variables", dict(self.variables))

    @property
    def step_names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self.steps)

    def get_step(self, name: str) -> Optional[WorkflowStep]:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def producers_of(self, key: str) -> Tuple[WorkflowStep, ...]:
        """Steps whose declared output artifact is named *key*."""
        return tuple(s for s in self.steps if s.output.key == key)


# ── Run context ──────────────────────────────────────────────────────────


class Environment(Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    PRODUCTION = "production"


@dataclass(frozen=True)
class WorkflowContext:
    """Per-run input: where to work and with which variables."""

    project_path: Path = field(default_factory=lambda: Path("."))
    environment: Environment = Environment.DEVELOPMENT
    variables: Mapping[str, Any] = field(default_factory=dict)
    metadata: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "project_path", Path(self.project_path))
        object.__setattr__(self, "variables", dict(self.variables))
        object.__setattr__(self, "metadata", dict(self.metadata))

    def with_variables(self, variables: Mapping[str, Any]) -> WorkflowContext:
        """Return a copy whose variables are *variables* overlaid by this context's own."""
        merged: Dict[str, Any] = dict(variables)
        merged.update(self.variables)
        return WorkflowContext(
            project_path=self.project_path,
            environment=self.environment,
            variables=merged,
            metadata=self.metadata,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_path": str(self.project_path),
            "environment": self.environment.value,
            "variables": dict(self.variables),
            "metadata": dict(self.metadata),
        }


def resolve_variables(
    workflow: WorkflowDefinition, provided: Mapping[str, Any]
) -> Dict[str, Any]:
    """Compute the effective values of *workflow*'s declared variables.

    A value supplied by the caller wins; otherwise the declared value,
    then the declared default.  A required variable that ends up without
    a value raises :class:`ConfigurationError`.
    """
    effective: Dict[str, Any] = {}
    missing: List[str] = []
    for name, var in workflow.variables.items():
        if name in provided:
            continue
        if var.value is not None:
            effective[name] = var.value
        elif var.default is not None:
            effective[name] = var.default
        elif var.required:
            missing.append(name)
    if missing:
        raise ConfigurationError(
            f"Workflow '{workflow.name}' is missing required variable(s): "
            + ", ".join(sorted(missing))
        )
    return effective
