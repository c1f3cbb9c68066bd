"""Logging configuration setup."""

import copy
import logging
import logging.config
import os
import sys
from datetime import datetime
from typing import Optional, Tuple

from review_orchestrator.constants import LOG_DIR

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Package loggers whose level follows the configured level.
_APP_LOGGERS = (
    "review_orchestrator",
    "review_orchestrator.workflows",
    "review_orchestrator.agents",
    "review_orchestrator.config",
)

BASE_LOG_CFG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple_file": {
            "format": ("%(asctime)s - %(name)32s:%(lineno)-4d - %(levelname)-7s - %(message)s"),
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "console": {
            "format": "%(levelname)-7s %(message)s",
        },
    },
    "handlers": {
        "file_handler": {
            "class": "logging.FileHandler",
            "level": "DEBUG",
            "formatter": "simple_file",
            "filename": "temp_log_name.log",
            "encoding": "utf-8",
        },
    },
    "loggers": {
        "review_orchestrator": {
            "handlers": ["file_handler"],
            "propagate": False,
            "level": "INFO",
        },
        "asyncio": {
            "handlers": ["file_handler"],
            "propagate": False,
            "level": "WARNING",
        },
    },
    "root": {
        "handlers": ["file_handler"],
        "level": "WARNING",
    },
}


def setup_logging(
    log_lvl_str: str,
    *,
    log_dir: Optional[str] = None,
    console: bool = False,
    quiet: bool = False,
) -> Tuple[str, str]:
    """
    Set up the logging system.

    Logs go to a timestamped file in *log_dir*.  With *console* set,
    package records are also echoed to stderr.

    Args:
        log_lvl_str: The desired log level string (e.g., 'debug', 'info').
        log_dir: Directory for log files (default: ``logs``).
        console: Also log to stderr.
        quiet: If *True*, suppress the start-up ``print()`` output.

    Returns:
        A tuple of (log_file_path, validated_log_level).
    """
    log_lvl_valid = log_lvl_str.upper()
    if log_lvl_valid == "WARN":
        log_lvl_valid = "WARNING"
    if log_lvl_valid not in _VALID_LEVELS:
        if not quiet:
            print(f"Warning: invalid log level '{log_lvl_str}'. Using 'INFO'.", file=sys.stderr)
        log_lvl_valid = "INFO"

    log_dir = log_dir or LOG_DIR
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    os.makedirs(log_dir, exist_ok=True)
    log_fpath = os.path.join(log_dir, f"orchestrator_{ts}_{log_lvl_valid}.log")

    log_cfg: dict = copy.deepcopy(BASE_LOG_CFG)
    log_cfg["handlers"]["file_handler"]["filename"] = log_fpath

    handlers = ["file_handler"]
    if console:
        log_cfg["handlers"]["console_handler"] = {
            "class": "logging.StreamHandler",
            "level": log_lvl_valid,
            "formatter": "console",
            "stream": "ext://sys.stderr",
        }
        handlers.append("console_handler")

    for name in _APP_LOGGERS:
        log_cfg["loggers"][name] = {
            "handlers": handlers,
            "propagate": False,
            "level": log_lvl_valid,
        }
    log_cfg["root"]["level"] = log_lvl_valid if log_lvl_valid == "DEBUG" else "WARNING"

    try:
        logging.config.dictConfig(log_cfg)
        if not quiet:
            print(
                f"Logging initialized. File log level: {log_lvl_valid}, log file: {log_fpath}",
                file=sys.stderr,
            )
    except (ValueError, TypeError, AttributeError, ImportError) as e_log_cfg:
        print(f"Error applying logging configuration: {e_log_cfg}", file=sys.stderr)

    return log_fpath, log_lvl_valid
