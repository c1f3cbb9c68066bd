"""Ready-made review workflows.

Each preset detects the project first, fans out to independent analysis
steps, then joins them in a final report step.  Agents other than
``project_detector`` and ``prompt_generator`` must be provided by the
host application.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Tuple

from review_orchestrator.workflows.models import (
    OutputKind,
    StepInput,
    StepOutput,
    TriggerKind,
    WorkflowDefinition,
    WorkflowStep,
    WorkflowVariable,
)

_DETECT = "detect_project"


def _detect_step() -> WorkflowStep:
    return WorkflowStep(
        name=_DETECT,
        agent="project_detector",
        input=StepInput.project_path(),
        output=StepOutput.of(OutputKind.PROJECT_INFO),
        timeout=30.0,
    )


def _analysis_step(name: str, agent: str, timeout: float) -> WorkflowStep:
    return WorkflowStep(
        name=name,
        agent=agent,
        input=StepInput.project_info(),
        output=StepOutput.of(OutputKind.ANALYSIS_RESULTS),
        dependencies=(_DETECT,),
        timeout=timeout,
    )


def _report_step(kind: str, deps: Tuple[str, ...], **flags: bool) -> WorkflowStep:
    return WorkflowStep(
        name="generate_report",
        agent="report_generator",
        input=StepInput.custom({"type": kind, **flags}),
        output=StepOutput.of(OutputKind.REPORT),
        dependencies=deps,
        timeout=120.0,
    )


def _fan_out(
    name: str,
    description: str,
    kind: str,
    analyses: List[Tuple[str, str, float]],
    **report_flags: bool,
) -> WorkflowDefinition:
    steps = [_detect_step()]
    steps.extend(_analysis_step(n, a, t) for n, a, t in analyses)
    steps.append(_report_step(kind, tuple(n for n, _, _ in analyses), **report_flags))
    return WorkflowDefinition(
        name=name,
        description=description,
        triggers=(TriggerKind.MANUAL,),
        steps=tuple(steps),
        outputs=(StepOutput.of(OutputKind.REPORT),),
    )


# ── Presets ──────────────────────────────────────────────────────────────


def pr_review(pr_number: int) -> WorkflowDefinition:
    """PR review: quality + security analysis, prompt, LLM review, report."""
    steps = (
        _detect_step(),
        _analysis_step("analyze_code_quality", "analysis_engine", 300.0),
        _analysis_step("security_scan", "security_scanner", 180.0),
        WorkflowStep(
            name="generate_review_prompt",
            agent="prompt_generator",
            input=StepInput.project_info(),
            output=StepOutput.of(OutputKind.GENERATED_PROMPT),
            dependencies=("analyze_code_quality", "security_scan"),
            timeout=60.0,
        ),
        WorkflowStep(
            name="llm_review",
            agent="review_assistant",
            input=StepInput.generated_prompt(),
            output=StepOutput.of(OutputKind.GENERATED_RESPONSE),
            dependencies=("generate_review_prompt",),
            timeout=600.0,
        ),
        _report_step(
            "pr_review", ("llm_review",), include_analysis=True, include_review=True
        ),
    )
    return WorkflowDefinition(
        name=f"PR Review Workflow - PR #{pr_number}",
        description="PR review with static analysis and an LLM review pass",
        triggers=(TriggerKind.PULL_REQUEST,),
        steps=steps,
        variables={"pr_number": WorkflowVariable("pr_number", value=pr_number)},
        outputs=(StepOutput.of(OutputKind.REPORT),),
    )


def full_analysis() -> WorkflowDefinition:
    return _fan_out(
        "Full Analysis Workflow",
        "Code quality, security, performance and test coverage analysis",
        "full_analysis",
        [
            ("analyze_code_quality", "analysis_engine", 300.0),
            ("security_scan", "security_scanner", 180.0),
            ("performance_analysis", "performance_analyzer", 240.0),
            ("test_coverage_analysis", "test_coverage_analyzer", 180.0),
        ],
        include_quality=True,
        include_security=True,
        include_performance=True,
        include_coverage=True,
    )


def security_scan() -> WorkflowDefinition:
    return _fan_out(
        "Security Scan Workflow",
        "Dependency vulnerability and code security scanning",
        "security_scan",
        [
            ("dependency_vulnerability_scan", "dependency_scanner", 120.0),
            ("code_security_scan", "code_scanner", 180.0),
        ],
        include_dependencies=True,
        include_code_analysis=True,
    )


def performance_analysis() -> WorkflowDefinition:
    return _fan_out(
        "Performance Analysis Workflow",
        "Build, runtime and memory performance analysis",
        "performance_analysis",
        [
            ("build_performance_analysis", "build_analyzer", 180.0),
            ("runtime_performance_analysis", "runtime_analyzer", 240.0),
            ("memory_usage_analysis", "memory_analyzer", 120.0),
        ],
        include_build=True,
        include_runtime=True,
        include_memory=True,
    )


# Presets that take no arguments, by CLI name.
PRESETS: Dict[str, Callable[[], WorkflowDefinition]] = {
    "full-analysis": full_analysis,
    "security-scan": security_scan,
    "performance-analysis": performance_analysis,
}


def get_preset(name: str, *, pr_number: int = 0) -> WorkflowDefinition:
    """Return preset *name*.  ``pr-review`` takes *pr_number*."""
    if name == "pr-review":
        return pr_review(pr_number)
    try:
        return PRESETS[name]()
    except KeyError:
        raise KeyError(f"Unknown preset '{name}'. Available: {', '.join(preset_names())}") from None


def preset_names() -> List[str]:
    return sorted(["pr-review", *PRESETS])
