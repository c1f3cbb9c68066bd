"""Step input resolution.

Each step's declared input is turned into an agent payload right before
an attempt is made.  Result-typed inputs read from a snapshot of the
results completed when the step was launched, never from live graph
state.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from review_orchestrator.agents.project_detector import ProjectDetector
from review_orchestrator.errors import ExecutionError
from review_orchestrator.workflows.models import (
    InputKind,
    WorkflowContext,
    WorkflowDefinition,
    WorkflowStep,
)
from review_orchestrator.workflows.outputs import lookup_artifact

logger = logging.getLogger(__name__)


class InputResolver:
    """Resolve :class:`StepInput` values for one workflow.

    Parameters
    ----------
    workflow:
        Definition used to find which steps produce which artifacts.
    project_detector:
        Collaborator for ``project_info`` inputs.  Optional; steps that
        need it fail with :class:`ExecutionError` when it is missing.
    """

    def __init__(
        self,
        workflow: WorkflowDefinition,
        project_detector: Optional[ProjectDetector] = None,
    ) -> None:
        self._workflow = workflow
        self._detector = project_detector

    async def resolve(
        self,
        step: WorkflowStep,
        context: WorkflowContext,
        results: Mapping[str, Any],
    ) -> Any:
        kind = step.input.kind

        if kind is InputKind.CUSTOM:
            return step.input.payload

        if kind is InputKind.PROJECT_PATH:
            return {"project_path": str(context.project_path)}

        if kind is InputKind.PROJECT_INFO:
            if self._detector is None:
                raise ExecutionError(
                    f"Step '{step.name}' needs project info but no project detector is configured"
                )
            info = await self._detector.detect(context.project_path)
            return info.to_dict()

        # analysis_results / generated_prompt: prior results first, then context.
        key = kind.value
        try:
            return lookup_artifact(self._workflow, results, key)
        except KeyError:
            pass
        if key in context.variables:
            logger.debug("Step '%s': '%s' taken from context variables.", step.name, key)
            return context.variables[key]
        label = key.replace("_", " ").capitalize()
        raise ExecutionError(f"{label} not found for step '{step.name}'")
