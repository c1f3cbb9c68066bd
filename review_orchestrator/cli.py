"""CLI argument parsing and main entry point.

* ``review-orchestrator validate WORKFLOW`` — parse and validate a workflow file.
* ``review-orchestrator run WORKFLOW``      — run a workflow file (or ``--preset``).
* ``review-orchestrator presets``           — list presets and built-in agents.
"""

from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import logging
import sys
from typing import Dict, List, Optional

from review_orchestrator.agents.builtin import default_registry
from review_orchestrator.agents.gateway import AgentRegistry
from review_orchestrator.agents.project_detector import MarkerFileDetector
from review_orchestrator.config.loader import load_config
from review_orchestrator.config.schema import OrchestratorConfig
from review_orchestrator.constants import APP_NAME, APP_VERSION
from review_orchestrator.display.console import (
    make_console,
    render_agents,
    render_presets,
    render_result,
    render_workflow,
)
from review_orchestrator.display.logging_config import setup_logging
from review_orchestrator.errors import ConfigurationError, OrchestratorError
from review_orchestrator.workflows.dsl import load_workflow_yaml
from review_orchestrator.workflows.engine import WorkflowEngine
from review_orchestrator.workflows.models import Environment, WorkflowContext, WorkflowDefinition
from review_orchestrator.workflows.presets import get_preset, preset_names
from review_orchestrator.workflows.validator import validate_workflow

module_logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2

# Hook a module passed with --agents must define.
_AGENTS_HOOK = "register_agents"


# ── Helpers ──────────────────────────────────────────────────────────────


def _parse_vars(pairs: Optional[List[str]]) -> Dict[str, str]:
    variables: Dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ConfigurationError(f"Invalid --var '{pair}': expected KEY=VALUE")
        variables[key.strip()] = value
    return variables


def _build_registry(agent_modules: Optional[List[str]]) -> AgentRegistry:
    """Built-in agents plus those registered by each ``--agents`` module."""
    registry = default_registry(MarkerFileDetector())
    for mod_name in agent_modules or []:
        try:
            module = importlib.import_module(mod_name)
        except ImportError as exc:
            raise ConfigurationError(f"Cannot import agents module '{mod_name}': {exc}") from exc
        hook = getattr(module, _AGENTS_HOOK, None)
        if not callable(hook):
            raise ConfigurationError(
                f"Agents module '{mod_name}' does not define {_AGENTS_HOOK}(registry)"
            )
        hook(registry)
        module_logger.info("Agents registered from module '%s'.", mod_name)
    return registry


def _load_definition(args: argparse.Namespace, config: OrchestratorConfig) -> WorkflowDefinition:
    if getattr(args, "preset", None):
        try:
            return get_preset(args.preset, pr_number=args.pr_number or 0)
        except KeyError as exc:
            raise ConfigurationError(str(exc.args[0])) from exc
    if not args.workflow:
        raise ConfigurationError("A workflow file or --preset is required")
    return load_workflow_yaml(args.workflow, default_timeout=config.engine.default_step_timeout)


def _init(args: argparse.Namespace) -> OrchestratorConfig:
    config = load_config(args.config)
    level = args.log_level or config.logging.level
    setup_logging(level, log_dir=config.logging.directory, console=args.verbose, quiet=True)
    module_logger.info("---- %s v%s: %s ----", APP_NAME, APP_VERSION, args.command)
    return config


# ── ``review-orchestrator validate`` ────────────────────────────────────


def _cmd_validate(args: argparse.Namespace) -> int:
    console = make_console()
    config = _init(args)
    definition = _load_definition(args, config)
    gateway = _build_registry(args.agents) if args.check_agents else None
    validate_workflow(definition, gateway)
    render_workflow(console, definition)
    console.print(f"[bold green]Workflow '{definition.name}' is valid.[/]")
    return EXIT_OK


# ── ``review-orchestrator run`` ─────────────────────────────────────────


def _cmd_run(args: argparse.Namespace) -> int:
    console = make_console()
    config = _init(args)
    definition = _load_definition(args, config)
    registry = _build_registry(args.agents)

    variables: Dict[str, object] = dict(_parse_vars(args.var))
    if args.pr_number is not None:
        variables["pr_number"] = args.pr_number
    context = WorkflowContext(
        project_path=args.project,
        environment=Environment(args.env),
        variables=variables,
        metadata={"source": args.preset or args.workflow},
    )

    engine = WorkflowEngine(
        registry,
        project_detector=MarkerFileDetector(),
        settings=config.engine,
    )
    result = asyncio.run(engine.execute(definition, context))

    if args.json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        render_result(console, result, show_logs=args.show_logs)
    return EXIT_OK if result.success else EXIT_FAILED


# ── ``review-orchestrator presets`` ─────────────────────────────────────


def _cmd_presets(args: argparse.Namespace) -> int:
    console = make_console()
    keys = preset_names()
    render_presets(console, [get_preset(k) for k in keys], keys)
    render_agents(console, default_registry())
    return EXIT_OK


# ── CLI parser construction ──────────────────────────────────────────────


def _add_common(sp: argparse.ArgumentParser) -> None:
    sp.add_argument(
        "workflow",
        nargs="?",
        default=None,
        metavar="WORKFLOW",
        help="Path to a workflow file (YAML)",
    )
    sp.add_argument(
        "--preset",
        type=str,
        default=None,
        choices=preset_names(),
        help="Use a preset workflow instead of a file",
    )
    sp.add_argument(
        "--pr-number",
        type=int,
        default=None,
        help="PR number (pr-review preset; also set as the 'pr_number' variable)",
    )
    sp.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help="Path to the orchestrator configuration file (YAML)",
    )
    sp.add_argument(
        "--agents",
        action="append",
        default=None,
        metavar="MODULE",
        help=f"Import MODULE and call its {_AGENTS_HOOK}(registry). Repeatable.",
    )
    sp.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["debug", "info", "warning", "error", "critical"],
        help="File logging level (default: from config, else info)",
    )
    sp.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Also log to stderr",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser with validate/run/presets subcommands."""
    parser = argparse.ArgumentParser(
        prog="review-orchestrator",
        description=f"{APP_NAME} v{APP_VERSION}",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")

    subparsers = parser.add_subparsers(dest="command")

    # ── validate ────────────────────────────────────────────────
    sp_validate = subparsers.add_parser("validate", help="Parse and validate a workflow")
    _add_common(sp_validate)
    sp_validate.add_argument(
        "--check-agents",
        action="store_true",
        default=False,
        help="Also check that every step's agent is registered",
    )
    sp_validate.set_defaults(func=_cmd_validate)

    # ── run ─────────────────────────────────────────────────────
    sp_run = subparsers.add_parser("run", help="Run a workflow")
    _add_common(sp_run)
    sp_run.add_argument(
        "--project",
        type=str,
        default=".",
        metavar="PATH",
        help="Project directory (default: current directory)",
    )
    sp_run.add_argument(
        "--env",
        type=str,
        default=Environment.DEVELOPMENT.value,
        choices=[e.value for e in Environment],
        help="Environment tag for the run",
    )
    sp_run.add_argument(
        "--var",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Workflow variable. Repeatable.",
    )
    sp_run.add_argument("--show-logs", action="store_true", help="Print the run log")
    sp_run.add_argument("--json", action="store_true", help="Print the result as JSON")
    sp_run.set_defaults(func=_cmd_run)

    # ── presets ─────────────────────────────────────────────────
    sp_presets = subparsers.add_parser("presets", help="List preset workflows and built-in agents")
    sp_presets.set_defaults(func=_cmd_presets)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Program entry point: parse arguments and dispatch to subcommand."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return EXIT_FAILED

    try:
        return args.func(args)
    except ConfigurationError as exc:
        module_logger.error("Configuration error: %s", exc)
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except OrchestratorError as exc:
        module_logger.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILED
    except KeyboardInterrupt:
        module_logger.info("%s interrupted by KeyboardInterrupt.", APP_NAME)
        return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
