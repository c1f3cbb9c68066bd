"""
Review Orchestrator - dependency-graph workflow engine for code-review agents.

Workflows are DAGs of named steps, each bound to a pluggable agent.  The
engine validates a workflow, runs independent steps concurrently with
per-step retry/backoff and timeouts, records every execution, and projects
step results onto the workflow's declared outputs.
"""

from review_orchestrator.constants import APP_NAME, APP_VERSION

__version__ = APP_VERSION
__app_name__ = APP_NAME

__all__ = [
    "APP_NAME",
    "APP_VERSION",
    "__version__",
    "__app_name__",
]
