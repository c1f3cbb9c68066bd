"""
Defines project-specific exception classes.
"""
from typing import List, Optional


class OrchestratorError(Exception):
    """Base class for all custom exceptions in Review Orchestrator."""
    pass


class ConfigurationError(OrchestratorError):
    """Raised when a workflow definition or configuration file is invalid.

    Always raised before any step executes and never retried.
    """
    pass


class CycleError(ConfigurationError):
    """Raised when the dependency relation of a workflow contains a cycle."""

    def __init__(self, workflow_name: str, cycle: List[str]):
        self.workflow_name = workflow_name
        self.cycle = list(cycle)
        path = " -> ".join(self.cycle)
        super().__init__(f"Cycle detected in workflow '{workflow_name}': {path}")


class ExecutionError(OrchestratorError):
    """Raised when a run cannot proceed (missing input, missing output, ...)."""
    pass


class StepTimeoutError(ExecutionError):
    """Raised when a single attempt of a step exceeds its timeout."""

    def __init__(self, step_name: str, timeout: float, attempt: int, max_attempts: int):
        self.step_name = step_name
        self.timeout = timeout
        self.attempt = attempt
        self.max_attempts = max_attempts
        super().__init__(
            f"Step '{step_name}' timed out after {timeout:g}s "
            f"(attempt {attempt}/{max_attempts})"
        )


class WorkflowCancelledError(ExecutionError):
    """Raised inside step tasks when their run has been cancelled."""
    pass


class AgentError(OrchestratorError):
    """
    Raised when an agent reports a failure, or when an agent raises
    an exception that is not an orchestrator error.
    """

    def __init__(self,
                 message: str,
                 agent_name: Optional[str] = None,
                 orig_exc: Optional[BaseException] = None):
        self.agent_name = agent_name
        self.orig_exc = orig_exc

        full_msg = "Agent error"
        if agent_name:
            full_msg += f" (agent: {agent_name})"
        full_msg += f": {message}"
        if orig_exc:
            full_msg += f" (original error: {type(orig_exc).__name__})"
        super().__init__(full_msg)
