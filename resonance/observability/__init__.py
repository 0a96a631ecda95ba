"""Observability module for metrics and monitoring."""

from resonance.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    track_coalesced_event,
    track_discovery_run,
    track_link_changes,
    track_scheduler_backlog,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "track_coalesced_event",
    "track_discovery_run",
    "track_link_changes",
    "track_scheduler_backlog",
]
