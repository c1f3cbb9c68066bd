"""Pydantic configuration models for Review Orchestrator.

Two documents are validated here:

- the orchestrator configuration file (:class:`OrchestratorConfig`)
- workflow documents (:class:`WorkflowDocument`), parsed into
  :class:`~review_orchestrator.workflows.models.WorkflowDefinition` by
  :mod:`review_orchestrator.workflows.dsl`
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from review_orchestrator.constants import (
    DEFAULT_BACKOFF_UNIT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_DELAY,
    DEFAULT_STEP_TIMEOUT,
    LOG_DIR,
)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ── Engine settings ──────────────────────────────────────────────────────


class EngineSettings(BaseModel):
    """Scheduler behaviour shared by every run of one engine."""

    failure_policy: Literal["fail_fast", "skip_dependents"] = Field(
        default="fail_fast",
        description="What happens after a step exhausts its retries.",
    )
    max_concurrency: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum simultaneous agent calls per run. Unbounded when omitted.",
    )
    backoff_unit: float = Field(
        default=DEFAULT_BACKOFF_UNIT,
        ge=0,
        description="Seconds per backoff time unit.",
    )
    default_step_timeout: float = Field(
        default=DEFAULT_STEP_TIMEOUT,
        gt=0,
        description="Timeout in seconds for steps that do not declare one.",
    )

    @field_validator("failure_policy", mode="before")
    @classmethod
    def _normalise_policy(cls, v: Any) -> Any:
        """Accept 'fail-fast' / 'skip-dependents' spellings."""
        if isinstance(v, str):
            return v.strip().lower().replace("-", "_")
        return v


class LoggingSettings(BaseModel):
    """Console and log-file settings."""

    level: str = Field(default=DEFAULT_LOG_LEVEL, description="Root log level.")
    directory: str = Field(default=LOG_DIR, description="Directory for timestamped log files.")

    @field_validator("level")
    @classmethod
    def _validate_level(cls, v: str) -> str:
        v = v.strip().upper()
        if v == "WARN":
            v = "WARNING"
        if v not in _LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(_LOG_LEVELS)}, got '{v}'")
        return v


# ── Top-level config ────────────────────────────────────────────────────


class OrchestratorConfig(BaseModel):
    """Top-level validated configuration.

    Example::

        version: "1"
        engine:
          failure_policy: skip_dependents
          max_concurrency: 4
        logging:
          level: DEBUG
        workflows:
          - workflows/nightly.yaml
    """

    version: str = "1"
    engine: EngineSettings = Field(default_factory=EngineSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    workflows: List[str] = Field(
        default_factory=list,
        description="Workflow files to load, relative to the config file.",
    )


# ── Workflow documents ───────────────────────────────────────────────────


class RetryDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_attempts: int = Field(default=DEFAULT_MAX_ATTEMPTS, ge=1)
    backoff: Literal["fixed", "linear", "exponential"] = "exponential"
    max_delay: float = Field(default=DEFAULT_MAX_DELAY, ge=0)


_INPUT_KINDS = ("project_path", "project_info", "analysis_results", "generated_prompt")
_OUTPUT_KINDS = (
    "project_path",
    "project_info",
    "analysis_results",
    "generated_prompt",
    "generated_response",
    "report",
)


class StepDocument(BaseModel):
    """One step of a workflow document.

    ``input`` is either an input kind name or ``{custom: <payload>}``;
    ``output`` is either an output kind name or ``{custom: <name>}``.
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    agent: str = Field(..., min_length=1)
    input: Union[str, Dict[str, Any]] = Field(default_factory=lambda: {"custom": None})
    output: Union[str, Dict[str, Optional[str]]] = Field(default_factory=lambda: {"custom": None})
    depends_on: List[str] = Field(default_factory=list)
    retry: RetryDocument = Field(default_factory=RetryDocument)
    timeout: Optional[float] = Field(default=None, gt=0)

    @field_validator("name", "agent")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must be a non-empty string")
        return v

    @field_validator("input")
    @classmethod
    def _validate_input(cls, v: Union[str, Dict[str, Any]]) -> Union[str, Dict[str, Any]]:
        if isinstance(v, str):
            if v not in _INPUT_KINDS:
                raise ValueError(
                    f"unknown input kind '{v}' (expected one of {', '.join(_INPUT_KINDS)} "
                    "or a {custom: ...} mapping)"
                )
            return v
        if set(v) != {"custom"}:
            raise ValueError("a mapping input must have exactly one key: 'custom'")
        return v

    @field_validator("output")
    @classmethod
    def _validate_output(
        cls, v: Union[str, Dict[str, Optional[str]]]
    ) -> Union[str, Dict[str, Optional[str]]]:
        if isinstance(v, str):
            if v not in _OUTPUT_KINDS:
                raise ValueError(
                    f"unknown output kind '{v}' (expected one of {', '.join(_OUTPUT_KINDS)} "
                    "or a {custom: <name>} mapping)"
                )
            return v
        if set(v) != {"custom"}:
            raise ValueError("a mapping output must have exactly one key: 'custom'")
        return v


class VariableDocument(BaseModel):
    model_config = ConfigDict(extra="forbid")

    value: Any = None
    required: bool = False
    default: Any = None


class WorkflowDocument(BaseModel):
    """A workflow as written in YAML.

    Example::

        name: quick-review
        triggers: [manual]
        variables:
          environment: development
          pr_number: {required: true}
        steps:
          - name: detect
            agent: project_detector
            input: project_path
            output: project_info
          - name: prompt
            agent: prompt_generator
            input: project_info
            output: generated_prompt
            depends_on: [detect]
            retry: {max_attempts: 2, backoff: fixed}
            timeout: 30
        outputs: [report]
    """

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1)
    version: str = "1.0"
    description: str = ""
    triggers: List[
        Literal["pull_request", "push", "manual", "schedule", "webhook"]
    ] = Field(default_factory=lambda: ["manual"])
    variables: Dict[str, VariableDocument] = Field(default_factory=dict)
    steps: List[StepDocument] = Field(..., min_length=1)
    outputs: List[Union[str, Dict[str, Optional[str]]]] = Field(default_factory=list)

    @field_validator("version", mode="before")
    @classmethod
    def _version_to_str(cls, v: Any) -> Any:
        """YAML reads ``version: 1.0`` as a float."""
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("variables", mode="before")
    @classmethod
    def _wrap_plain_values(cls, v: Any) -> Any:
        """A variable given as a plain value is shorthand for ``{value: ...}``."""
        if not isinstance(v, dict):
            return v
        return {
            name: spec if isinstance(spec, dict) else {"value": spec} for name, spec in v.items()
        }

    @field_validator("outputs")
    @classmethod
    def _validate_outputs(cls, v: List[Any]) -> List[Any]:
        for item in v:
            if isinstance(item, str) and item not in _OUTPUT_KINDS:
                raise ValueError(f"unknown output kind '{item}'")
            if isinstance(item, dict) and set(item) != {"custom"}:
                raise ValueError("a mapping output must have exactly one key: 'custom'")
        return v
