"""Observability helpers."""

from spec_workflow.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_approval_transition,
    record_parser_failure,
    record_watcher_event,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_approval_transition",
    "record_parser_failure",
    "record_watcher_event",
]
