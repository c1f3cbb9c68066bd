"""Built-in agents.

Only the agents that need nothing outside this package are provided:

- ``project_detector``: detect the project at ``payload["project_path"]``
- ``prompt_generator``: build a code-review prompt from project info

Analysis, scanning and LLM agents are registered by the host
application (see ``review-orchestrator run --agents``).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from review_orchestrator.agents.gateway import AgentRegistry
from review_orchestrator.agents.project_detector import MarkerFileDetector, ProjectDetector
from review_orchestrator.errors import AgentError
from review_orchestrator.workflows.outputs import build_review_prompt

logger = logging.getLogger(__name__)


def make_project_detector_agent(detector: ProjectDetector):
    async def detect_project(payload: Any) -> Dict[str, Any]:
        if not isinstance(payload, Mapping) or "project_path" not in payload:
            raise AgentError("payload must contain 'project_path'", agent_name="project_detector")
        info = await detector.detect(Path(payload["project_path"]))
        return info.to_dict()

    return detect_project


async def generate_prompt(payload: Any) -> str:
    """Build a review prompt.

    Accepts a project-info mapping, or ``{"project_info": ..., "variables": ...}``.
    """
    if not isinstance(payload, Mapping):
        raise AgentError(
            f"expected a mapping payload, got {type(payload).__name__}",
            agent_name="prompt_generator",
        )
    project_info = payload.get("project_info", payload)
    variables = payload.get("variables", {})
    if not isinstance(project_info, Mapping) or not isinstance(variables, Mapping):
        raise AgentError("'project_info' and 'variables' must be mappings", agent_name="prompt_generator")
    return build_review_prompt(project_info, variables)


def default_registry(detector: Optional[ProjectDetector] = None) -> AgentRegistry:
    """Return a registry holding the built-in agents."""
    registry = AgentRegistry()
    registry.register(
        "project_detector",
        make_project_detector_agent(detector or MarkerFileDetector()),
        description="Detect project type, language and build system from marker files",
    )
    registry.register(
        "prompt_generator",
        generate_prompt,
        description="Build a code-review prompt from project information",
    )
    logger.debug("Built-in agents registered: %s", ", ".join(registry.names()))
    return registry
