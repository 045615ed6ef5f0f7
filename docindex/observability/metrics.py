"""Prometheus metrics for docindex.

Provides metrics instrumentation for:
- HTTP request latency and counts
- Index administration (create, drop, rebuild)
- Vector search latency and result counts
- Indexed vector counts per index
"""

import time
from collections.abc import Awaitable, Callable
from contextlib import suppress

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from docindex.logging_config import get_logger

logger = get_logger(__name__)

# HTTP Request Metrics
HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# Index Administration Metrics
INDEX_OPERATION_DURATION = Histogram(
    "index_operation_duration_seconds",
    "Index administration duration in seconds",
    ["operation", "status"],
    buckets=[0.001, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0, 120.0],
)

INDEX_OPERATION_TOTAL = Counter(
    "index_operations_total",
    "Total index administration operations",
    ["operation", "status"],
)

INDEX_ENTRIES = Gauge(
    "index_entries",
    "Documents held by an index",
    ["collection", "index"],
)

# Search Metrics
SEARCH_DURATION = Histogram(
    "vector_search_duration_seconds",
    "Vector search duration in seconds",
    ["collection", "status"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)

SEARCH_TOTAL = Counter(
    "vector_searches_total",
    "Total vector searches",
    ["collection", "status"],
)

SEARCH_HITS_RETURNED = Histogram(
    "vector_search_hits_returned",
    "Number of hits returned per search",
    buckets=[0, 1, 2, 3, 5, 10, 20, 50, 100],
)

SEARCH_TOP_SCORE = Histogram(
    "vector_search_top_score",
    "Top similarity score per search",
    buckets=[-1.0, 0.0, 0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    def __init__(self, app: ASGIApp) -> None:
        """Initialize the middleware."""
        super().__init__(app)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and collect metrics."""
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()

        response = await call_next(request)

        duration = time.perf_counter() - start_time

        # Normalize endpoint for cardinality control
        endpoint = self._normalize_endpoint(request.url.path)

        HTTP_REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).observe(duration)

        HTTP_REQUEST_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce cardinality."""
        # Group health endpoints
        if path.startswith("/health"):
            return "/health"
        # Keep API versioned paths
        if path.startswith("/api/v1/"):
            parts = path.split("/")
            if len(parts) >= 4:
                return f"/api/v1/{parts[3]}"
        return path


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_index_operation(
    operation: str,
    duration: float,
    success: bool = True,
) -> None:
    """Track an index administration call.

    Args:
        operation: Operation name (create, drop, drop_collection, rebuild, restore).
        duration: Duration in seconds.
        success: Whether the operation succeeded.
    """
    status = "success" if success else "error"

    INDEX_OPERATION_DURATION.labels(operation=operation, status=status).observe(duration)
    INDEX_OPERATION_TOTAL.labels(operation=operation, status=status).inc()


def update_index_entries(collection: str, index: str, entries: int | None) -> None:
    """Set (or clear, with None) the entry gauge of an index."""
    if entries is None:
        with suppress(KeyError):
            INDEX_ENTRIES.remove(collection, index)
        return
    INDEX_ENTRIES.labels(collection=collection, index=index).set(entries)


def track_search_request(
    collection: str,
    duration: float,
    hits_returned: int,
    top_score: float | None,
    success: bool = True,
) -> None:
    """Track a vector search.

    Args:
        collection: Searched collection.
        duration: Duration in seconds.
        hits_returned: Number of hits returned.
        top_score: Best score, None when there were no hits.
        success: Whether the search succeeded.
    """
    status = "success" if success else "error"

    SEARCH_DURATION.labels(collection=collection, status=status).observe(duration)
    SEARCH_TOTAL.labels(collection=collection, status=status).inc()

    if success:
        SEARCH_HITS_RETURNED.observe(hits_returned)
        if top_score is not None:
            SEARCH_TOP_SCORE.observe(top_score)
