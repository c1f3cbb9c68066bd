"""Shared constants for Review Orchestrator."""

APP_NAME = "Review Orchestrator"
APP_VERSION = "0.1.0"

# Logging defaults
LOG_DIR = "logs"
DEFAULT_LOG_LEVEL = "INFO"

# Engine defaults
DEFAULT_STEP_TIMEOUT = 300.0  # seconds
DEFAULT_BACKOFF_UNIT = 1.0  # seconds per backoff time unit
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MAX_DELAY = 60.0  # backoff time units

# Project detection
DETECTION_MAX_DEPTH = 3
