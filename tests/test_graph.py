"""Execution graph construction and node state transitions."""

from __future__ import annotations

import pytest

from review_orchestrator.errors import ExecutionError
from review_orchestrator.workflows.graph import NodeStatus, build_execution_graph
from review_orchestrator.workflows.models import WorkflowDefinition, WorkflowStep


def _graph():
    wf = WorkflowDefinition(
        name="wf",
        steps=[
            WorkflowStep("detect", "a"),
            WorkflowStep("lint", "a", dependencies=["detect"]),
            WorkflowStep("scan", "a", dependencies=["detect"]),
            WorkflowStep("report", "a", dependencies=["lint", "scan"]),
            WorkflowStep("other", "a"),
        ],
    )
    return build_execution_graph(wf)


class TestBuild:
    def test_all_nodes_pending(self):
        graph = _graph()
        assert len(graph) == 5
        assert set(graph.statuses().values()) == {NodeStatus.PENDING}

    def test_reverse_edges(self):
        graph = _graph()
        assert graph["detect"].dependents == ["lint", "scan"]
        assert graph["lint"].dependents == ["report"]
        assert graph["report"].dependents == []

    def test_dependencies_are_copies(self):
        graph = _graph()
        graph["report"].dependencies.append("x")
        assert graph["report"].step.dependencies == ("lint", "scan")

    def test_roots(self):
        assert _graph().roots() == ["detect", "other"]

    def test_contains(self):
        graph = _graph()
        assert "lint" in graph
        assert "missing" not in graph


class TestReadiness:
    def test_ready_only_when_all_dependencies_completed(self):
        graph = _graph()
        assert graph.is_ready("detect")
        assert not graph.is_ready("lint")

        graph["detect"].mark_running()
        graph["detect"].mark_completed({"type": "python"})
        assert graph.is_ready("lint")
        assert not graph.is_ready("report")

        for name in ("lint", "scan"):
            graph[name].mark_running()
        graph["lint"].mark_completed(1)
        assert not graph.is_ready("report")
        graph["scan"].mark_failed("boom")
        assert not graph.is_ready("report")

    def test_running_node_is_not_ready(self):
        graph = _graph()
        graph["detect"].mark_running()
        assert not graph.is_ready("detect")

    def test_transitive_dependents(self):
        graph = _graph()
        assert graph.transitive_dependents("detect") == ["lint", "scan", "report"]
        assert graph.transitive_dependents("other") == []


class TestTransitions:
    def test_happy_path(self):
        node = _graph()["detect"]
        node.mark_running()
        assert node.started_at is not None
        node.mark_completed("ok")
        assert node.status is NodeStatus.COMPLETED
        assert node.result == "ok"
        assert node.finished_at is not None
        assert node.is_terminal

    def test_failed_keeps_error(self):
        node = _graph()["detect"]
        node.mark_running()
        node.mark_failed("boom")
        assert node.status is NodeStatus.FAILED
        assert node.error == "boom"

    def test_skip_from_pending(self):
        node = _graph()["report"]
        node.mark_skipped("dependency 'lint' failed")
        assert node.status is NodeStatus.SKIPPED
        assert node.is_terminal

    @pytest.mark.parametrize(
        "steps",
        [
            ("mark_completed",),
            ("mark_failed",),
            ("mark_running", "mark_running"),
            ("mark_running", "mark_skipped"),
            ("mark_running", "mark_completed", "mark_running"),
            ("mark_skipped", "mark_running"),
        ],
    )
    def test_illegal_transitions(self, steps):
        node = _graph()["detect"]
        *legal, illegal = steps
        for method in legal:
            getattr(node, method)(*(() if method == "mark_running" else ("x",)))
        with pytest.raises(ExecutionError, match="Illegal transition"):
            getattr(node, illegal)(*(() if illegal == "mark_running" else ("x",)))
