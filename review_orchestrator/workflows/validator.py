"""Structural validation of workflow definitions.

Runs once per execution, before the execution graph is built.  The checks
are ordered and the first failure is raised:

1. the workflow has a name
2. step names are unique
3. every dependency names a step of the same workflow
4. every step's agent is known to the agent gateway
5. the dependency relation is acyclic
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Set

from review_orchestrator.agents.gateway import AgentGateway
from review_orchestrator.errors import ConfigurationError, CycleError
from review_orchestrator.workflows.models import WorkflowDefinition

logger = logging.getLogger(__name__)


def validate_workflow(workflow: WorkflowDefinition, gateway: Optional[AgentGateway] = None) -> None:
    """Validate *workflow*, raising :class:`ConfigurationError` on the first problem.

    When *gateway* is ``None`` the agent existence check is skipped (used
    by ``review-orchestrator validate`` without an agent table).
    """
    if not workflow.name or not workflow.name.strip():
        raise ConfigurationError("Workflow name cannot be empty")

    seen: Set[str] = set()
    for step in workflow.steps:
        if not step.name:
            raise ConfigurationError(f"Workflow '{workflow.name}' has a step with an empty name")
        if step.name in seen:
            raise ConfigurationError(
                f"Duplicate step name '{step.name}' in workflow '{workflow.name}'"
            )
        seen.add(step.name)

    for step in workflow.steps:
        for dep in step.dependencies:
            if dep not in seen:
                raise ConfigurationError(
                    f"Step '{step.name}' depends on non-existent step '{dep}' "
                    f"in workflow '{workflow.name}'"
                )

    if gateway is not None:
        for step in workflow.steps:
            if not gateway.exists(step.agent):
                raise ConfigurationError(
                    f"Agent '{step.agent}' not found for step '{step.name}'"
                )

    cycle = find_cycle(workflow)
    if cycle is not None:
        raise CycleError(workflow.name, cycle)

    logger.debug("Workflow '%s' validated (%d step(s)).", workflow.name, len(workflow.steps))


def find_cycle(workflow: WorkflowDefinition) -> Optional[List[str]]:
    """Return one dependency cycle as a list of names, or ``None``.

    Depth-first traversal along dependency edges, keeping the current
    path as the recursion stack.  An edge into a name already on the
    stack closes a cycle; the returned list starts and ends with that
    name.  Iterative so long chains do not hit the interpreter's
    recursion limit.
    """
    deps: Dict[str, List[str]] = {s.name: list(s.dependencies) for s in workflow.steps}
    visited: Set[str] = set()

    for start in deps:
        if start in visited:
            continue
        stack: List[str] = [start]
        on_stack: Set[str] = {start}
        cursors: List[int] = [0]
        visited.add(start)

        while stack:
            current = stack[-1]
            children = deps.get(current, [])
            idx = cursors[-1]
            if idx >= len(children):
                stack.pop()
                cursors.pop()
                on_stack.discard(current)
                continue
            cursors[-1] = idx + 1
            child = children[idx]
            if child in on_stack:
                return stack[stack.index(child):] + [child]
            if child in visited or child not in deps:
                continue
            visited.add(child)
            stack.append(child)
            on_stack.add(child)
            cursors.append(0)

    return None
