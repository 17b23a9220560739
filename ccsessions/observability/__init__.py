"""Observability helpers."""

from ccsessions.observability.otel import (
    initialize,
    shutdown,
    start_span,
    record_scan,
    record_parser_failure,
    record_remote_sync,
)

__all__ = [
    "initialize",
    "shutdown",
    "start_span",
    "record_scan",
    "record_parser_failure",
    "record_remote_sync",
]
