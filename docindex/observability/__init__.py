"""Observability module for metrics and monitoring."""

from docindex.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    track_index_operation,
    track_search_request,
    update_index_entries,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "track_index_operation",
    "track_search_request",
    "update_index_entries",
]
