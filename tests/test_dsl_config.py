"""Workflow DSL parsing and orchestrator configuration loading."""

from __future__ import annotations

import os
import textwrap

import pytest

from review_orchestrator.config.loader import load_config, read_yaml_mapping
from review_orchestrator.config.migration import expand_env_vars
from review_orchestrator.config.schema import EngineSettings, LoggingSettings
from review_orchestrator.errors import ConfigurationError
from review_orchestrator.workflows.dsl import load_workflow_yaml, parse_workflow
from review_orchestrator.workflows.models import (
    BackoffStrategy,
    InputKind,
    OutputKind,
    TriggerKind,
)

WORKFLOW_YAML = textwrap.dedent(
    """\
    name: quick-review
    version: 1.2
    description: Detect then prompt
    triggers: [pull_request, manual]
    variables:
      environment: ${REVIEW_ENV}
      pr_number: {required: true}
    steps:
      - name: detect
        agent: project_detector
        input: project_path
        output: project_info
        timeout: 30
      - name: prompt
        agent: prompt_generator
        input: project_info
        output: generated_prompt
        depends_on: [detect]
        retry: {max_attempts: 2, backoff: linear, max_delay: 10}
      - name: notify
        agent: notifier
        input: {custom: {channel: "#reviews"}}
        output: {custom: notification}
        depends_on: [prompt]
    outputs: [report, {custom: notification}]
    """
)


def _write(tmp_path, name: str, content: str) -> str:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return str(path)


class TestExpandEnvVars:
    def test_nested(self):
        env = {"A": "1", "B": "two"}
        data = {"x": "${A}", "y": ["${B}-${A}", 3], "z": {"w": "${MISSING}"}}
        assert expand_env_vars(data, env) == {"x": "1", "y": ["two-1", 3], "z": {"w": "${MISSING}"}}

    def test_keys_untouched(self):
        assert expand_env_vars({"${A}": "v"}, {"A": "k"}) == {"${A}": "v"}


class TestParseWorkflow:
    def test_full_document(self, tmp_path, monkeypatch):
        monkeypatch.setenv("REVIEW_ENV", "staging")
        wf = load_workflow_yaml(_write(tmp_path, "wf.yaml", WORKFLOW_YAML), default_timeout=99)

        assert wf.name == "quick-review"
        assert wf.version == "1.2"
        assert wf.triggers == (TriggerKind.PULL_REQUEST, TriggerKind.MANUAL)
        assert wf.variables["environment"].value == "staging"
        assert wf.variables["pr_number"].required

        detect, prompt, notify = wf.steps
        assert detect.input.kind is InputKind.PROJECT_PATH
        assert detect.output.kind is OutputKind.PROJECT_INFO
        assert detect.timeout == 30
        assert prompt.dependencies == ("detect",)
        assert prompt.retry_policy.max_attempts == 2
        assert prompt.retry_policy.backoff_strategy is BackoffStrategy.LINEAR
        assert prompt.retry_policy.max_delay == 10
        assert prompt.timeout == 99
        assert notify.input.kind is InputKind.CUSTOM
        assert notify.input.payload == {"channel": "#reviews"}
        assert notify.output.key == "notification"
        assert [o.key for o in wf.outputs] == ["report", "notification"]

    def test_defaults(self):
        wf = parse_workflow({"name": "w", "steps": [{"name": "a", "agent": "x"}]})
        [step] = wf.steps
        assert step.input.kind is InputKind.CUSTOM
        assert step.input.payload is None
        assert step.output.key == "custom_output"
        assert step.retry_policy.max_attempts == 3
        assert step.retry_policy.backoff_strategy is BackoffStrategy.EXPONENTIAL
        assert step.timeout == 300
        assert wf.triggers == (TriggerKind.MANUAL,)

    def test_all_errors_reported_together(self):
        data = {
            "name": "broken",
            "steps": [
                {"name": "a", "agent": "x", "input": "bogus"},
                {"name": "b", "retry": {"max_attempts": 0}},
            ],
            "outputs": ["nonsense"],
        }
        with pytest.raises(ConfigurationError) as exc_info:
            parse_workflow(data)
        message = str(exc_info.value)
        assert message.startswith("Workflow 'broken' is invalid (4 error(s))")
        assert "unknown input kind 'bogus'" in message
        assert "steps → 1 → agent" in message
        assert "steps → 1 → retry → max_attempts" in message
        assert "unknown output kind 'nonsense'" in message

    def test_unknown_keys_rejected(self):
        with pytest.raises(ConfigurationError, match="tool"):
            parse_workflow({"name": "w", "steps": [{"name": "a", "agent": "x", "tool": "t"}]})

    def test_steps_required(self):
        with pytest.raises(ConfigurationError, match="steps"):
            parse_workflow({"name": "w", "steps": []})

    def test_graph_checks_are_left_to_validator(self):
        wf = parse_workflow(
            {"name": "w", "steps": [{"name": "a", "agent": "x", "depends_on": ["ghost"]}]}
        )
        assert wf.steps[0].dependencies == ("ghost",)

    def test_not_a_mapping(self, tmp_path):
        with pytest.raises(ConfigurationError, match="must be a YAML mapping"):
            load_workflow_yaml(_write(tmp_path, "wf.yml", "- a\n- b\n"))

    def test_bad_extension(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Unsupported workflow file extension"):
            load_workflow_yaml(_write(tmp_path, "wf.json", "{}"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="does not exist"):
            read_yaml_mapping(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Error reading"):
            load_workflow_yaml(_write(tmp_path, "wf.yaml", "name: [unclosed\n"))


class TestConfig:
    def test_defaults_without_file(self):
        config = load_config(None)
        assert config.engine.failure_policy == "fail_fast"
        assert config.engine.max_concurrency is None
        assert config.logging.level == "INFO"

    def test_load(self, tmp_path, monkeypatch):
        monkeypatch.setenv("REVIEW_POLICY", "skip-dependents")
        path = _write(
            tmp_path,
            "config.yaml",
            textwrap.dedent(
                """\
                version: "1"
                engine:
                  failure_policy: ${REVIEW_POLICY}
                  max_concurrency: 3
                  backoff_unit: 0.5
                logging:
                  level: warn
                workflows:
                  - flows/nightly.yaml
                  - /abs/other.yaml
                """
            ),
        )
        config = load_config(path)
        assert config.engine.failure_policy == "skip_dependents"
        assert config.engine.max_concurrency == 3
        assert config.engine.backoff_unit == 0.5
        assert config.logging.level == "WARNING"
        assert config.workflows == [
            os.path.join(str(tmp_path), "flows/nightly.yaml"),
            "/abs/other.yaml",
        ]

    def test_validation_errors(self, tmp_path):
        path = _write(
            tmp_path,
            "config.yaml",
            "engine:\n  failure_policy: retry_forever\n  max_concurrency: 0\n",
        )
        with pytest.raises(ConfigurationError, match=r"Configuration validation failed \(2 error"):
            load_config(path)

    def test_settings_models(self):
        assert EngineSettings(failure_policy="FAIL-FAST").failure_policy == "fail_fast"
        with pytest.raises(ValueError):
            LoggingSettings(level="loud")
