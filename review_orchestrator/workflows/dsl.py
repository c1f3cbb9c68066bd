"""Workflow DSL — YAML / dict → :class:`WorkflowDefinition`.

Structure is checked with the Pydantic models in
:mod:`review_orchestrator.config.schema`; every structural problem in a
document is reported in one :class:`ConfigurationError`.  Graph-level
checks (unique names, dangling dependencies, cycles, unknown agents) are
done by :func:`~review_orchestrator.workflows.validator.validate_workflow`
right before execution.

Example workflow YAML::

    name: quick-review
    variables:
      environment: ${DEPLOY_ENV}
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
        retry: {max_attempts: 2, backoff: linear, max_delay: 10}
    outputs: [report, {custom: prompt}]
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from review_orchestrator.config.loader import format_validation_errors, read_yaml_mapping
from review_orchestrator.config.migration import expand_env_vars
from review_orchestrator.config.schema import StepDocument, WorkflowDocument
from review_orchestrator.constants import DEFAULT_STEP_TIMEOUT
from review_orchestrator.errors import ConfigurationError
from review_orchestrator.workflows.models import (
    BackoffStrategy,
    InputKind,
    OutputKind,
    RetryPolicy,
    StepInput,
    StepOutput,
    TriggerKind,
    WorkflowDefinition,
    WorkflowStep,
    WorkflowVariable,
)

logger = logging.getLogger(__name__)


def parse_workflow(
    data: Dict[str, Any],
    *,
    default_timeout: float = DEFAULT_STEP_TIMEOUT,
) -> WorkflowDefinition:
    """Parse a workflow definition from a dict (loaded from YAML/JSON).

    ``${ENV_VAR}`` placeholders are expanded first.  Steps without a
    ``timeout`` get *default_timeout*.

    Raises :class:`ConfigurationError` listing every structural error.
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Workflow document must be a mapping")

    data = expand_env_vars(data)
    try:
        doc = WorkflowDocument.model_validate(data)
    except ValidationError as exc:
        name = data.get("name") or "<unnamed>"
        raise ConfigurationError(
            f"Workflow '{name}' is invalid ({len(exc.errors())} error(s)):\n"
            f"{format_validation_errors(exc)}"
        ) from exc

    workflow = WorkflowDefinition(
        name=doc.name,
        version=doc.version,
        description=doc.description,
        triggers=tuple(TriggerKind(t) for t in doc.triggers),
        steps=tuple(_to_step(s, default_timeout) for s in doc.steps),
        variables={
            name: WorkflowVariable(
                name=name, value=var.value, required=var.required, default=var.default
            )
            for name, var in doc.variables.items()
        },
        outputs=tuple(_to_output(o) for o in doc.outputs),
    )
    logger.debug("Parsed workflow '%s' with %d step(s).", workflow.name, len(workflow.steps))
    return workflow


def load_workflow_yaml(
    path: str,
    *,
    default_timeout: float = DEFAULT_STEP_TIMEOUT,
) -> WorkflowDefinition:
    """Load a workflow from a YAML file."""
    data = read_yaml_mapping(path, what="workflow")
    return parse_workflow(data, default_timeout=default_timeout)


# ── Conversion ───────────────────────────────────────────────────────────


def _to_step(doc: StepDocument, default_timeout: float) -> WorkflowStep:
    return WorkflowStep(
        name=doc.name,
        agent=doc.agent,
        input=_to_input(doc.input),
        output=_to_output(doc.output),
        dependencies=tuple(doc.depends_on),
        retry_policy=RetryPolicy(
            max_attempts=doc.retry.max_attempts,
            backoff_strategy=BackoffStrategy(doc.retry.backoff),
            max_delay=doc.retry.max_delay,
        ),
        timeout=doc.timeout if doc.timeout is not None else default_timeout,
    )


def _to_input(value: Union[str, Dict[str, Any]]) -> StepInput:
    if isinstance(value, str):
        return StepInput(InputKind(value))
    return StepInput.custom(value["custom"])


def _to_output(value: Union[str, Dict[str, Optional[str]]]) -> StepOutput:
    if isinstance(value, str):
        return StepOutput.of(OutputKind(value))
    return StepOutput.custom(value["custom"])
