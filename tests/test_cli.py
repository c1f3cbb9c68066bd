"""Command-line entry point: validate, run and presets."""

from __future__ import annotations

import json
import textwrap

import pytest

from review_orchestrator import cli

DETECT_AND_PROMPT = textwrap.dedent(
    """\
    name: detect-and-prompt
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
    outputs: [generated_prompt, project_info]
    """
)

FLAKY_AGENTS = textwrap.dedent(
    """\
    async def _boom(payload):
        raise RuntimeError("scanner offline")


    def register_agents(registry):
        registry.register("scanner", _boom)
    """
)


@pytest.fixture(autouse=True)
def no_log_files(monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda *args, **kwargs: ("", "INFO"))


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    (root / "pyproject.toml").write_text("[project]\nname = 'demo'\n", encoding="utf-8")
    return root


def _workflow_file(tmp_path, content: str) -> str:
    path = tmp_path / "workflow.yaml"
    path.write_text(content, encoding="utf-8")
    return str(path)


class TestValidate:
    def test_valid_file(self, tmp_path, capsys):
        code = cli.main(["validate", _workflow_file(tmp_path, DETECT_AND_PROMPT), "--check-agents"])
        assert code == cli.EXIT_OK
        assert "is valid" in capsys.readouterr().out

    def test_preset(self, capsys):
        assert cli.main(["validate", "--preset", "security-scan"]) == cli.EXIT_OK

    def test_preset_agents_missing(self, capsys):
        code = cli.main(["validate", "--preset", "security-scan", "--check-agents"])
        assert code == cli.EXIT_CONFIG
        assert "not found" in capsys.readouterr().err

    def test_cycle(self, tmp_path, capsys):
        content = textwrap.dedent(
            """\
            name: loop
            steps:
              - {name: a, agent: x, depends_on: [b]}
              - {name: b, agent: x, depends_on: [a]}
            """
        )
        assert cli.main(["validate", _workflow_file(tmp_path, content)]) == cli.EXIT_CONFIG
        assert "Cycle detected" in capsys.readouterr().err

    def test_missing_file(self, tmp_path, capsys):
        assert cli.main(["validate", str(tmp_path / "none.yaml")]) == cli.EXIT_CONFIG

    def test_workflow_or_preset_required(self, capsys):
        assert cli.main(["validate"]) == cli.EXIT_CONFIG
        assert "--preset is required" in capsys.readouterr().err


class TestRun:
    def test_json_result(self, tmp_path, project, capsys):
        code = cli.main(
            [
                "run",
                _workflow_file(tmp_path, DETECT_AND_PROMPT),
                "--project",
                str(project),
                "--json",
            ]
        )
        assert code == cli.EXIT_OK
        result = json.loads(capsys.readouterr().out)
        assert result["success"] is True
        assert result["step_statuses"] == {"detect": "completed", "prompt": "completed"}
        assert result["outputs"]["project_info"]["project_type"] == "python"
        assert "Project Type: python" in result["outputs"]["generated_prompt"]

    def test_failing_agent_from_module(self, tmp_path, project, monkeypatch, capsys):
        (tmp_path / "flaky_agents.py").write_text(FLAKY_AGENTS, encoding="utf-8")
        monkeypatch.syspath_prepend(str(tmp_path))
        content = textwrap.dedent(
            """\
            name: scan
            steps:
              - name: scan
                agent: scanner
                retry: {max_attempts: 1}
            """
        )
        code = cli.main(
            [
                "run",
                _workflow_file(tmp_path, content),
                "--project",
                str(project),
                "--agents",
                "flaky_agents",
                "--json",
            ]
        )
        assert code == cli.EXIT_FAILED
        result = json.loads(capsys.readouterr().out)
        assert result["step_statuses"] == {"scan": "failed"}
        assert "scanner offline" in result["error"]

    def test_unimportable_agents_module(self, tmp_path, capsys):
        code = cli.main(
            ["run", _workflow_file(tmp_path, DETECT_AND_PROMPT), "--agents", "no_such_agents_mod"]
        )
        assert code == cli.EXIT_CONFIG
        assert "Cannot import agents module" in capsys.readouterr().err

    def test_bad_var(self, tmp_path, capsys):
        code = cli.main(["run", _workflow_file(tmp_path, DETECT_AND_PROMPT), "--var", "novalue"])
        assert code == cli.EXIT_CONFIG
        assert "expected KEY=VALUE" in capsys.readouterr().err


class TestPresets:
    def test_lists_presets(self, capsys):
        assert cli.main(["presets"]) == cli.EXIT_OK
        out = capsys.readouterr().out
        assert "pr-review" in out
        assert "prompt_generator" in out

    def test_no_command(self, capsys):
        assert cli.main([]) == cli.EXIT_FAILED

    def test_parse_vars(self):
        assert cli._parse_vars(["a=1", "b=x=y"]) == {"a": "1", "b": "x=y"}
