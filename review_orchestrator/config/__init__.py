"""Configuration loading and validation for Review Orchestrator."""

from review_orchestrator.config.loader import (
    format_validation_errors,
    load_config,
    read_yaml_mapping,
)
from review_orchestrator.config.migration import expand_env_vars
from review_orchestrator.config.schema import (
    EngineSettings,
    LoggingSettings,
    OrchestratorConfig,
    RetryDocument,
    StepDocument,
    VariableDocument,
    WorkflowDocument,
)

__all__ = [
    "EngineSettings",
    "LoggingSettings",
    "OrchestratorConfig",
    "RetryDocument",
    "StepDocument",
    "VariableDocument",
    "WorkflowDocument",
    "expand_env_vars",
    "format_validation_errors",
    "load_config",
    "read_yaml_mapping",
]
