"""Workflow model: retry/backoff, step and workflow definitions, context variables."""

from __future__ import annotations

from pathlib import Path

import pytest

from review_orchestrator.errors import ConfigurationError
from review_orchestrator.workflows.models import (
    BackoffStrategy,
    Environment,
    InputKind,
    OutputKind,
    RetryPolicy,
    StepInput,
    StepOutput,
    WorkflowContext,
    WorkflowDefinition,
    WorkflowStep,
    WorkflowVariable,
    resolve_variables,
)


class TestRetryPolicy:
    def test_defaults(self):
        p = RetryPolicy()
        assert p.max_attempts == 3
        assert p.backoff_strategy is BackoffStrategy.EXPONENTIAL
        assert p.max_delay == 60.0

    def test_exponential_sequence(self):
        p = RetryPolicy(max_attempts=8, backoff_strategy=BackoffStrategy.EXPONENTIAL)
        assert [p.delay_for(a) for a in range(1, 8)] == [1, 2, 4, 8, 16, 32, 60]

    def test_exponential_capped(self):
        p = RetryPolicy(backoff_strategy=BackoffStrategy.EXPONENTIAL, max_delay=5)
        assert [p.delay_for(a) for a in range(1, 6)] == [1, 2, 4, 5, 5]

    def test_linear_sequence(self):
        p = RetryPolicy(backoff_strategy=BackoffStrategy.LINEAR)
        assert [p.delay_for(a) for a in range(1, 6)] == [1, 2, 3, 4, 5]

    def test_linear_capped(self):
        p = RetryPolicy(backoff_strategy=BackoffStrategy.LINEAR, max_delay=2.5)
        assert [p.delay_for(a) for a in range(1, 5)] == [1, 2, 2.5, 2.5]

    def test_fixed_is_constant(self):
        p = RetryPolicy(backoff_strategy=BackoffStrategy.FIXED, max_delay=0.5)
        assert {p.delay_for(a) for a in range(1, 10)} == {1.0}

    def test_attempt_numbering_starts_at_one(self):
        with pytest.raises(ValueError):
            RetryPolicy().delay_for(0)

    def test_rejects_zero_attempts(self):
        with pytest.raises(ConfigurationError, match="max_attempts"):
            RetryPolicy(max_attempts=0)

    def test_rejects_negative_max_delay(self):
        with pytest.raises(ConfigurationError, match="max_delay"):
            RetryPolicy(max_delay=-1)


class TestStepInputOutput:
    def test_input_constructors(self):
        assert StepInput.project_path().kind is InputKind.PROJECT_PATH
        assert StepInput.project_info().kind is InputKind.PROJECT_INFO
        assert StepInput.analysis_results().kind is InputKind.ANALYSIS_RESULTS
        assert StepInput.generated_prompt().kind is InputKind.GENERATED_PROMPT
        custom = StepInput.custom({"a": 1})
        assert custom.kind is InputKind.CUSTOM
        assert custom.payload == {"a": 1}

    def test_output_keys(self):
        assert StepOutput.of(OutputKind.PROJECT_INFO).key == "project_info"
        assert StepOutput.of(OutputKind.REPORT).key == "report"
        assert StepOutput.custom("summary").key == "summary"
        assert StepOutput.custom().key == "custom_output"


class TestWorkflowStep:
    def test_dependencies_deduplicated_in_order(self):
        step = WorkflowStep("s", "agent", dependencies=["b", "a", "b"])
        assert step.dependencies == ("b", "a")

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ConfigurationError, match="timeout"):
            WorkflowStep("s", "agent", timeout=0)

    def test_frozen(self):
        step = WorkflowStep("s", "agent")
        with pytest.raises(AttributeError):
            step.name = "other"  # type: ignore[misc]


class TestWorkflowDefinition:
    def _wf(self) -> WorkflowDefinition:
        return WorkflowDefinition(
            name="wf",
            steps=[
                WorkflowStep("detect", "d", output=StepOutput.of(OutputKind.PROJECT_INFO)),
                WorkflowStep("lint", "l", output=StepOutput.of(OutputKind.ANALYSIS_RESULTS)),
                WorkflowStep("scan", "s", output=StepOutput.of(OutputKind.ANALYSIS_RESULTS)),
            ],
        )

    def test_sequences_become_tuples(self):
        wf = self._wf()
        assert isinstance(wf.steps, tuple)
        assert wf.step_names == ("detect", "lint", "scan")

    def test_get_step(self):
        wf = self._wf()
        assert wf.get_step("lint").agent == "l"
        assert wf.get_step("missing") is None

    def test_producers_of(self):
        wf = self._wf()
        assert [s.name for s in wf.producers_of("analysis_results")] == ["lint", "scan"]
        assert wf.producers_of("report") == ()


class TestContextAndVariables:
    def test_context_defaults(self):
        ctx = WorkflowContext()
        assert ctx.project_path == Path(".")
        assert ctx.environment is Environment.DEVELOPMENT

    def test_with_variables_context_wins(self):
        ctx = WorkflowContext(variables={"a": "ctx"})
        merged = ctx.with_variables({"a": "wf", "b": "wf"})
        assert merged.variables == {"a": "ctx", "b": "wf"}
        assert ctx.variables == {"a": "ctx"}

    def test_resolve_variables_value_then_default(self):
        wf = WorkflowDefinition(
            name="wf",
            variables={
                "env": WorkflowVariable("env", value="prod"),
                "depth": WorkflowVariable("depth", default="shallow"),
                "given": WorkflowVariable("given", value="ignored"),
            },
        )
        assert resolve_variables(wf, {"given": "x"}) == {"env": "prod", "depth": "shallow"}

    def test_missing_required_variable(self):
        wf = WorkflowDefinition(
            name="wf",
            variables={"pr_number": WorkflowVariable("pr_number", required=True)},
        )
        with pytest.raises(ConfigurationError, match="pr_number"):
            resolve_variables(wf, {})
        assert resolve_variables(wf, {"pr_number": 7}) == {}

    def test_to_dict(self):
        ctx = WorkflowContext(project_path="/tmp/p", environment=Environment.TESTING)
        d = ctx.to_dict()
        assert d["project_path"] == "/tmp/p"
        assert d["environment"] == "testing"
