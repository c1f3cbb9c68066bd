"""Execution graph: per-run mutable DAG of step nodes.

Built once from a validated :class:`WorkflowDefinition`.  Each node keeps
forward edges (``dependencies``) and reverse edges (``dependents``) so the
scheduler can find the steps to re-examine when a node completes without
scanning the whole graph.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from review_orchestrator.errors import ExecutionError
from review_orchestrator.workflows.models import WorkflowDefinition, WorkflowStep

logger = logging.getLogger(__name__)


class NodeStatus(Enum):
    """Execution status of a step node."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


# Legal transitions; every node moves through this table at most once.
_TRANSITIONS = {
    NodeStatus.PENDING: {NodeStatus.RUNNING, NodeStatus.SKIPPED},
    NodeStatus.RUNNING: {NodeStatus.COMPLETED, NodeStatus.FAILED},
    NodeStatus.COMPLETED: set(),
    NodeStatus.FAILED: set(),
    NodeStatus.SKIPPED: set(),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExecutionNode:
    """Runtime state of one step."""

    step: WorkflowStep
    status: NodeStatus = NodeStatus.PENDING
    dependencies: List[str] = field(default_factory=list)
    dependents: List[str] = field(default_factory=list)
    result: Any = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def name(self) -> str:
        return self.step.name

    @property
    def is_terminal(self) -> bool:
        return self.status in (NodeStatus.COMPLETED, NodeStatus.FAILED, NodeStatus.SKIPPED)

    def _move(self, new_status: NodeStatus) -> None:
        if new_status not in _TRANSITIONS[self.status]:
            raise ExecutionError(
                f"Illegal transition for step '{self.name}': "
                f"{self.status.value} -> {new_status.value}"
            )
        self.status = new_status

    def mark_running(self) -> None:
        self._move(NodeStatus.RUNNING)
        self.started_at = _utcnow()

    def mark_completed(self, result: Any) -> None:
        self._move(NodeStatus.COMPLETED)
        self.result = result
        self.finished_at = _utcnow()

    def mark_failed(self, error: str) -> None:
        self._move(NodeStatus.FAILED)
        self.error = error
        self.finished_at = _utcnow()

    def mark_skipped(self, reason: str) -> None:
        self._move(NodeStatus.SKIPPED)
        self.error = reason
        self.finished_at = _utcnow()


@dataclass
class ExecutionGraph:
    """Step nodes keyed by step name, in declaration order."""

    nodes: Dict[str, ExecutionNode] = field(default_factory=dict)

    def __getitem__(self, name: str) -> ExecutionNode:
        return self.nodes[name]

    def __contains__(self, name: object) -> bool:
        return name in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def roots(self) -> List[str]:
        """Names of the steps with no dependencies."""
        return [name for name, node in self.nodes.items() if not node.dependencies]

    def is_ready(self, name: str) -> bool:
        """``True`` if *name* is pending and every dependency has completed."""
        node = self.nodes[name]
        if node.status is not NodeStatus.PENDING:
            return False
        return all(self.nodes[dep].status is NodeStatus.COMPLETED for dep in node.dependencies)

    def transitive_dependents(self, name: str) -> List[str]:
        """All nodes reachable through reverse edges from *name*, breadth first."""
        seen: Dict[str, None] = {}
        queue = deque(self.nodes[name].dependents)
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen[current] = None
            queue.extend(self.nodes[current].dependents)
        return list(seen)

    def pending(self) -> List[str]:
        return [name for name, node in self.nodes.items() if node.status is NodeStatus.PENDING]

    def statuses(self) -> Dict[str, NodeStatus]:
        return {name: node.status for name, node in self.nodes.items()}


def build_execution_graph(workflow: WorkflowDefinition) -> ExecutionGraph:
    """Create the runtime graph for a validated *workflow*.

    Every node starts Pending with a copy of its declared dependencies;
    reverse edges are filled in a second pass.
    """
    graph = ExecutionGraph()
    for step in workflow.steps:
        graph.nodes[step.name] = ExecutionNode(step=step, dependencies=list(step.dependencies))

    for name, node in graph.nodes.items():
        for dep in node.dependencies:
            graph.nodes[dep].dependents.append(name)

    logger.debug(
        "Execution graph for '%s' built: %d node(s), %d root(s).",
        workflow.name,
        len(graph),
        len(graph.roots()),
    )
    return graph
