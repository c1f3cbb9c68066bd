"""Configuration file loading and validation.

Loads a YAML configuration file, expands ``${ENV_VAR}`` placeholders,
and validates against Pydantic models defined in :mod:`schema`.

The public API is :func:`load_config`, returning an
:class:`OrchestratorConfig`.  :func:`read_yaml_mapping` and
:func:`format_validation_errors` are shared with the workflow DSL.
"""

import logging
import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from review_orchestrator.config.migration import expand_env_vars
from review_orchestrator.config.schema import OrchestratorConfig
from review_orchestrator.errors import ConfigurationError

logger = logging.getLogger(__name__)

_YAML_EXTS = frozenset({".yaml", ".yml"})


def read_yaml_mapping(fpath: str, what: str = "configuration") -> Dict[str, Any]:
    """Read and parse a YAML file whose top level must be a mapping.

    Raises :class:`ConfigurationError` on I/O or parse errors.
    """
    ext = os.path.splitext(fpath)[1].lower()
    if ext not in _YAML_EXTS:
        raise ConfigurationError(
            f"Unsupported {what} file extension '{ext}'. "
            "Only YAML files (.yaml, .yml) are supported."
        )
    if not os.path.exists(fpath):
        raise ConfigurationError(f"{what.capitalize()} file does not exist: {fpath}")

    try:
        with open(fpath, "r", encoding="utf-8") as f:
            raw_data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Error reading {what} file: {fpath}\n  {exc}") from exc

    if not isinstance(raw_data, dict):
        raise ConfigurationError(
            f"Top-level {what} content must be a YAML mapping (dictionary): {fpath}"
        )
    return raw_data


def format_validation_errors(exc: ValidationError) -> str:
    """Format Pydantic validation errors into a readable multi-line string."""
    lines: List[str] = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"]) or "(root)"
        lines.append(f"  • {loc}: {err['msg']}")
    return "\n".join(lines)


# ── Public API ───────────────────────────────────────────────────────────


def load_config(cfg_fpath: Optional[str] = None) -> OrchestratorConfig:
    """Load, expand and validate the orchestrator configuration.

    Without *cfg_fpath* the defaults are returned.  Workflow paths are
    made absolute relative to the configuration file's directory.

    Raises:
        ConfigurationError: On file I/O errors, parse errors, or
            validation failures (all errors reported at once).
    """
    if cfg_fpath is None:
        logger.debug("No configuration file given; using defaults.")
        return OrchestratorConfig()

    logger.debug("Loading configuration file: %s", cfg_fpath)
    raw_data = read_yaml_mapping(cfg_fpath)
    raw_data = expand_env_vars(raw_data)

    try:
        config = OrchestratorConfig.model_validate(raw_data)
    except ValidationError as exc:
        error_summary = format_validation_errors(exc)
        raise ConfigurationError(
            f"Configuration validation failed ({len(exc.errors())} error(s)):\n{error_summary}"
        ) from exc

    base_dir = os.path.dirname(os.path.abspath(cfg_fpath))
    config.workflows = [
        p if os.path.isabs(p) else os.path.join(base_dir, p) for p in config.workflows
    ]

    logger.info(
        "Configuration '%s' loaded (v%s). failure_policy=%s, %d workflow file(s).",
        cfg_fpath,
        config.version,
        config.engine.failure_policy,
        len(config.workflows),
    )
    return config
