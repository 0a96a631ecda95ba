"""Prometheus metrics for the resonance engine.

Provides metrics instrumentation for:
- HTTP request latency and counts
- Discovery run latency, outcome and candidate volume
- Link lifecycle (created, updated, retired)
- Scheduler backlog and event coalescing
"""

import time
from collections.abc import Awaitable, Callable

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

from resonance.logging_config import get_logger

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

# Discovery Run Metrics
DISCOVERY_RUN_DURATION = Histogram(
    "discovery_run_duration_seconds",
    "Discovery pipeline run duration in seconds",
    ["kind", "status"],
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

DISCOVERY_RUN_TOTAL = Counter(
    "discovery_runs_total",
    "Total discovery pipeline runs",
    ["kind", "status"],  # "kind" label values: analyze, remove
)

DISCOVERY_CANDIDATES = Histogram(
    "discovery_candidates",
    "Candidates scored per discovery run",
    buckets=[0, 1, 5, 10, 50, 100, 500, 1000, 5000, 20000],
)

PAIRS_SCORED_TOTAL = Counter(
    "pairs_scored_total",
    "Total pairs passed through the scorer",
)

# Link Metrics
LINK_CHANGES_TOTAL = Counter(
    "link_changes_total",
    "Link lifecycle transitions",
    ["action"],  # "action" label values: created, updated, retired
)

ACTIVE_LINKS = Gauge(
    "active_links",
    "Current number of similarity links",
)

# Scheduler Metrics
SCHEDULER_BACKLOG = Gauge(
    "scheduler_backlog",
    "Photos pending or in flight",
)

COALESCED_EVENTS_TOTAL = Counter(
    "coalesced_events_total",
    "Photo events folded into an already scheduled run",
    ["kind"],
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
        if path.startswith("/health"):
            return "/health"
        # Photo and link ids would explode cardinality
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


def track_discovery_run(
    kind: str,
    duration: float,
    candidates: int = 0,
    success: bool = True,
) -> None:
    """Track one discovery pipeline run.

    Args:
        kind: Run kind ("analyze" or "remove").
        duration: Run duration in seconds.
        candidates: Number of candidates scored.
        success: Whether the run completed.
    """
    status = "success" if success else "error"

    DISCOVERY_RUN_DURATION.labels(kind=kind, status=status).observe(duration)
    DISCOVERY_RUN_TOTAL.labels(kind=kind, status=status).inc()

    if success and kind == "analyze":
        DISCOVERY_CANDIDATES.observe(candidates)
        PAIRS_SCORED_TOTAL.inc(candidates)


def track_link_changes(
    created: int = 0,
    updated: int = 0,
    retired: int = 0,
    active: int | None = None,
) -> None:
    """Track link lifecycle transitions.

    Args:
        created: Links created.
        updated: Links updated in place.
        retired: Links deleted.
        active: Current link count, if known.
    """
    for action, count in (("created", created), ("updated", updated), ("retired", retired)):
        if count:
            LINK_CHANGES_TOTAL.labels(action=action).inc(count)

    if active is not None:
        ACTIVE_LINKS.set(active)


def track_scheduler_backlog(backlog: int) -> None:
    """Record the number of photos pending or in flight."""
    SCHEDULER_BACKLOG.set(backlog)


def track_coalesced_event(kind: str) -> None:
    """Record an event folded into an existing scheduled run."""
    COALESCED_EVENTS_TOTAL.labels(kind=kind).inc()
