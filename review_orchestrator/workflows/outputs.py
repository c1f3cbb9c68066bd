"""Output aggregation: project step results onto declared outputs.

Step results are keyed by step name.  Each step also declares the kind of
artifact it produces (``project_info``, ``analysis_results``, ...), and
artifacts are looked up by that conventional name: a kind produced by a
single completed step resolves to that step's result; a kind produced by
several resolves to a mapping of step name to result.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from review_orchestrator.errors import ExecutionError
from review_orchestrator.workflows.models import OutputKind, StepOutput, WorkflowDefinition

logger = logging.getLogger(__name__)

_MISSING = object()

REPORT_TITLE = "Code Review Report"

# Report sections, in display order: (artifact key, heading)
_REPORT_SECTIONS = (
    (OutputKind.PROJECT_INFO.value, "Project Information"),
    (OutputKind.ANALYSIS_RESULTS.value, "Analysis Results"),
    (OutputKind.GENERATED_RESPONSE.value, "Review Response"),
)


def lookup_artifact(
    workflow: WorkflowDefinition,
    results: Mapping[str, Any],
    key: str,
    default: Any = _MISSING,
) -> Any:
    """Return the artifact named *key* from completed *results*.

    Raises :class:`KeyError` when no completed step produced it and no
    *default* is given.
    """
    produced = {s.name: results[s.name] for s in workflow.producers_of(key) if s.name in results}
    if not produced:
        if default is _MISSING:
            raise KeyError(key)
        return default
    if len(produced) == 1:
        return next(iter(produced.values()))
    return produced


def aggregate_outputs(
    workflow: WorkflowDefinition,
    results: Mapping[str, Any],
    *,
    strict: bool = True,
) -> Dict[str, Any]:
    """Build the output map for *workflow* from completed step *results*.

    Raises :class:`ExecutionError` for any declared output that cannot be
    produced.  With ``strict=False`` such outputs are left out instead
    (used for the partial results of failed runs).
    """
    outputs: Dict[str, Any] = {}
    for spec in workflow.outputs:
        try:
            outputs[spec.key] = _project(workflow, results, spec)
        except ExecutionError:
            if strict:
                raise
            logger.debug("Output '%s' unavailable in partial result.", spec.key)
    logger.debug("Workflow '%s': %d output(s) aggregated.", workflow.name, len(outputs))
    return outputs


def _project(workflow: WorkflowDefinition, results: Mapping[str, Any], spec: StepOutput) -> Any:
    if spec.kind is OutputKind.REPORT:
        return generate_report(workflow, results)

    try:
        return lookup_artifact(workflow, results, spec.key)
    except KeyError:
        pass
    # A custom output may also name a step directly.
    if spec.kind is OutputKind.CUSTOM and spec.key in results:
        return results[spec.key]
    label = spec.key.replace("_", " ").capitalize()
    raise ExecutionError(f"{label} not available: no completed step produced '{spec.key}'")


# ── Report ───────────────────────────────────────────────────────────────


def generate_report(workflow: WorkflowDefinition, results: Mapping[str, Any]) -> Dict[str, Any]:
    """Synthesize a report from whichever sections are present."""
    report: Dict[str, Any] = {}
    for key, _heading in _REPORT_SECTIONS:
        value = lookup_artifact(workflow, results, key, default=None)
        if value is not None:
            report[key] = value
    report["summary"] = render_summary(report)
    report["generated_at"] = datetime.now(timezone.utc).isoformat()
    return report


def render_summary(report: Mapping[str, Any]) -> str:
    """Plain-text rendering of the report sections."""
    lines: List[str] = [REPORT_TITLE, "=" * len(REPORT_TITLE), ""]
    for key, heading in _REPORT_SECTIONS:
        if key not in report:
            continue
        lines.append(f"{heading}:")
        value = report[key]
        if key == OutputKind.GENERATED_RESPONSE.value:
            lines.extend(_render_suggestions(value))
        else:
            lines.extend(_render_mapping(value))
        lines.append("")
    return "\n".join(lines)


def _render_mapping(value: Any, indent: int = 2) -> List[str]:
    pad = " " * indent
    if isinstance(value, Mapping):
        return [f"{pad}{k}: {_scalar(v)}" for k, v in value.items()]
    return [f"{pad}{_scalar(value)}"]


def _render_suggestions(value: Any) -> List[str]:
    suggestions: Optional[Any] = value.get("suggestions") if isinstance(value, Mapping) else None
    if isinstance(suggestions, list):
        return [f"  {i}. {_scalar(s)}" for i, s in enumerate(suggestions, start=1)]
    return _render_mapping(value)


def _scalar(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=str, sort_keys=True)


# ── Review prompt ────────────────────────────────────────────────────────


_FOCUS_AREAS = (
    "Code quality and best practices",
    "Security considerations",
    "Performance optimization opportunities",
    "Maintainability and readability",
)


def build_review_prompt(project_info: Mapping[str, Any], variables: Mapping[str, Any]) -> str:
    """Build a code-review request from detected project information."""
    lines = [
        "Project Analysis Request",
        "",
        f"Project Type: {project_info.get('project_type', 'unknown')}",
        f"Language: {project_info.get('language', 'unknown')}",
        f"Framework: {project_info.get('framework') or 'none'}",
        f"Build System: {project_info.get('build_system') or 'none'}",
        "",
        "Please provide a comprehensive code review focusing on:",
    ]
    lines.extend(f"- {area}" for area in _FOCUS_AREAS)
    if "environment" in variables:
        lines.extend(["", f"Environment: {variables['environment']}"])
    if "pr_number" in variables:
        lines.extend(["", f"PR Number: {variables['pr_number']}"])
    return "\n".join(lines) + "\n"
