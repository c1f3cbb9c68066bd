"""Preset workflows and logging setup."""

from __future__ import annotations

import logging
import os

import pytest

from review_orchestrator.display import logging_config
from review_orchestrator.display.logging_config import setup_logging
from review_orchestrator.workflows.graph import build_execution_graph
from review_orchestrator.workflows.models import OutputKind, TriggerKind
from review_orchestrator.workflows.presets import get_preset, pr_review, preset_names
from review_orchestrator.workflows.validator import validate_workflow


class TestPresets:
    @pytest.mark.parametrize("name", preset_names())
    def test_preset_is_valid(self, name):
        wf = get_preset(name, pr_number=7)
        validate_workflow(wf)
        assert [o.kind for o in wf.outputs] == [OutputKind.REPORT]
        assert wf.steps[0].name == "detect_project"
        assert wf.steps[-1].name == "generate_report"

    def test_pr_review_shape(self):
        wf = pr_review(42)
        assert wf.name == "PR Review Workflow - PR #42"
        assert wf.triggers == (TriggerKind.PULL_REQUEST,)
        assert wf.variables["pr_number"].value == 42

        graph = build_execution_graph(wf)
        assert graph.roots() == ["detect_project"]
        assert sorted(graph["detect_project"].dependents) == ["analyze_code_quality", "security_scan"]
        assert graph.transitive_dependents("llm_review") == ["generate_report"]

    def test_fan_out_report_waits_for_all_analyses(self):
        wf = get_preset("full-analysis")
        report = wf.get_step("generate_report")
        assert len(report.dependencies) == 4
        assert report.input.payload["include_coverage"] is True

    def test_unknown(self):
        with pytest.raises(KeyError, match="Available"):
            get_preset("weekly")

    def test_names(self):
        assert preset_names() == [
            "full-analysis",
            "performance-analysis",
            "pr-review",
            "security-scan",
        ]


@pytest.fixture
def restore_logging():
    names = ("", *logging_config._APP_LOGGERS, "asyncio")
    saved = {}
    for name in names:
        lg = logging.getLogger(name)
        saved[name] = (list(lg.handlers), lg.level, lg.propagate)
    yield
    for name, (handlers, level, propagate) in saved.items():
        lg = logging.getLogger(name)
        for handler in lg.handlers:
            if handler not in handlers:
                handler.close()
        lg.handlers[:] = handlers
        lg.setLevel(level)
        lg.propagate = propagate


@pytest.mark.usefixtures("restore_logging")
class TestSetupLogging:
    def test_file_created_with_level(self, tmp_path):
        fpath, level = setup_logging("warn", log_dir=str(tmp_path), quiet=True)
        assert level == "WARNING"
        assert os.path.dirname(fpath) == str(tmp_path)
        assert fpath.endswith("_WARNING.log")

        logging.getLogger("review_orchestrator.workflows.engine").warning("hello file")
        for handler in logging.getLogger("review_orchestrator.workflows").handlers:
            handler.flush()
        with open(fpath, encoding="utf-8") as f:
            assert "hello file" in f.read()

    def test_invalid_level_falls_back(self, tmp_path, capsys):
        _, level = setup_logging("chatty", log_dir=str(tmp_path))
        assert level == "INFO"
        assert "invalid log level" in capsys.readouterr().err

    def test_console_handler(self, tmp_path):
        setup_logging("debug", log_dir=str(tmp_path), console=True, quiet=True)
        handlers = logging.getLogger("review_orchestrator").handlers
        assert any(type(h) is logging.StreamHandler for h in handlers)
        assert logging.getLogger("review_orchestrator").propagate is False
