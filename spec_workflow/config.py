"""Spec Workflow configuration."""
import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default

# Workflow layout (relative to the project root)
SPEC_WORKFLOW_DIR_NAME = os.getenv("SPEC_WORKFLOW_DIR", ".spec-workflow")
SPECS_DIR_NAME = "specs"
STEERING_DIR_NAME = "steering"
APPROVALS_DIR_NAME = "approvals"

# Phase and steering documents, in workflow order
PHASE_DOCUMENTS = ("requirements", "design", "tasks")
STEERING_DOCUMENTS = ("product", "tech", "structure")

# User-facing text
DEFAULT_LANG = os.getenv("SPEC_WORKFLOW_LANG", "en")

# Logging
LOG_LEVEL = os.getenv("SPEC_WORKFLOW_LOG_LEVEL", "INFO").upper()

# File watcher tuning
WATCHER_DEBOUNCE_MS = _env_int("SPEC_WORKFLOW_WATCHER_DEBOUNCE_MS", 300)
WATCHER_STEP_MS = _env_int("SPEC_WORKFLOW_WATCHER_STEP_MS", 50)
WATCHER_FORCE_POLLING = _env_bool("SPEC_WORKFLOW_WATCHER_FORCE_POLLING", False)
WATCHER_POLL_DELAY_MS = _env_int("SPEC_WORKFLOW_WATCHER_POLL_DELAY_MS", 300)
WATCHER_READY_TIMEOUT_MS = _env_int("SPEC_WORKFLOW_WATCHER_READY_TIMEOUT_MS", 100)

# Observability
OTEL_ENABLED = _env_bool("SPEC_WORKFLOW_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("SPEC_WORKFLOW_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("SPEC_WORKFLOW_OTEL_SERVICE_NAME", "spec-workflow")
