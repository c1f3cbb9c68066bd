"""Rich rendering of workflow definitions, results and run logs."""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from review_orchestrator.agents.gateway import AgentRegistry
from review_orchestrator.workflows.engine import WorkflowResult
from review_orchestrator.workflows.models import WorkflowDefinition
from review_orchestrator.workflows.recorder import LogLevel

# status / level → rich style
_STATUS_STYLES: Dict[str, str] = {
    "completed": "bold green",
    "failed": "bold red",
    "skipped": "yellow",
    "running": "cyan",
    "pending": "dim",
}

_LEVEL_STYLES: Dict[LogLevel, str] = {
    LogLevel.DEBUG: "dim",
    LogLevel.INFO: "blue",
    LogLevel.WARN: "yellow",
    LogLevel.ERROR: "bold red",
}


def make_console(stream: Optional[Any] = None) -> Console:
    return Console(file=stream, highlight=False)


def render_workflow(console: Console, workflow: WorkflowDefinition) -> None:
    """Print a workflow's steps as a table."""
    table = Table(title=f"{workflow.name} (v{workflow.version})", title_justify="left")
    table.add_column("Step", style="cyan", no_wrap=True)
    table.add_column("Agent")
    table.add_column("Input")
    table.add_column("Output")
    table.add_column("Depends on")
    table.add_column("Retry", justify="right")
    table.add_column("Timeout", justify="right")
    for step in workflow.steps:
        policy = step.retry_policy
        table.add_row(
            step.name,
            step.agent,
            step.input.kind.value,
            step.output.key,
            ", ".join(step.dependencies) or "-",
            f"{policy.max_attempts}x {policy.backoff_strategy.value}",
            f"{step.timeout:g}s",
        )
    console.print(table)
    if workflow.description:
        console.print(Text(workflow.description, style="dim"))


def render_presets(console: Console, presets: Iterable[WorkflowDefinition], keys: Iterable[str]) -> None:
    table = Table(title="Preset workflows", title_justify="left")
    table.add_column("Preset", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Steps", justify="right")
    table.add_column("Agents")
    for key, workflow in zip(keys, presets):
        agents = sorted({s.agent for s in workflow.steps})
        table.add_row(key, workflow.name, str(len(workflow.steps)), ", ".join(agents))
    console.print(table)


def render_agents(console: Console, registry: AgentRegistry) -> None:
    table = Table(title="Registered agents", title_justify="left")
    table.add_column("Agent", style="cyan", no_wrap=True)
    table.add_column("Description")
    for name, description in registry.describe().items():
        table.add_row(name, description or "-")
    console.print(table)


def render_result(console: Console, result: WorkflowResult, *, show_logs: bool = False) -> None:
    """Print step statuses, outcome and (optionally) the run log."""
    table = Table(title=f"Execution {result.execution_id}", title_justify="left")
    table.add_column("Step", style="cyan", no_wrap=True)
    table.add_column("Status")
    for name, status in result.step_statuses.items():
        table.add_row(name, Text(status, style=_STATUS_STYLES.get(status, "")))
    console.print(table)

    if result.success:
        headline = Text(f"Succeeded in {result.execution_time:.2f}s", style="bold green")
    else:
        headline = Text(
            f"Failed after {result.execution_time:.2f}s: {result.error}", style="bold red"
        )
    console.print(headline)

    report = result.outputs.get("report")
    if isinstance(report, dict) and report.get("summary"):
        console.print(Panel(report["summary"], title="Report", expand=False))
    other = {k: v for k, v in result.outputs.items() if k != "report"}
    if other:
        console.print(Panel(json.dumps(other, indent=2, default=str), title="Outputs", expand=False))

    if show_logs:
        log_table = Table(title="Run log", title_justify="left")
        log_table.add_column("Time", style="dim", no_wrap=True)
        log_table.add_column("Level", no_wrap=True)
        log_table.add_column("Message")
        for entry in result.logs:
            log_table.add_row(
                entry.timestamp.strftime("%H:%M:%S.%f")[:-3],
                Text(entry.level.value, style=_LEVEL_STYLES[entry.level]),
                entry.message,
            )
        console.print(log_table)
