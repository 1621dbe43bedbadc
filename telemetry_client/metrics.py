"""Prometheus metrics for the telemetry client.

All names are prefixed with ``telemetry_`` and registered on the default
registry; exposing it is left to the host application.
"""

from __future__ import annotations

import re

from prometheus_client import Counter, Gauge, Histogram

PREFIX = "telemetry"
_NAME_RE = re.compile(r"^[a-z_][a-z0-9_]*$")


def metric_name(name: str) -> str:
    """Return the prefixed metric name, rejecting anything not snake_case."""
    full = name if name.startswith(PREFIX + "_") else f"{PREFIX}_{name}"
    if not _NAME_RE.match(full):
        raise ValueError(f"invalid metric name {full!r}")
    return full


REQUESTS_ENQUEUED = Counter(
    metric_name("requests_enqueued_total"), "Requests appended to the outbound queue"
)
REQUESTS_DELIVERED = Counter(
    metric_name("requests_delivered_total"), "Requests acknowledged by the collector"
)
REQUESTS_DROPPED = Counter(
    metric_name("requests_dropped_total"), "Requests rejected before enqueue"
)
DELIVERY_FAILURES = Counter(
    metric_name("delivery_failures_total"), "Failed delivery attempts (requeued)"
)
EVENTS_RECORDED = Counter(
    metric_name("events_recorded_total"), "Events accepted into the batcher"
)
STORE_WRITE_ERRORS = Counter(
    metric_name("store_write_errors_total"), "Failed writes of the local state file"
)

QUEUE_DEPTH = Gauge(metric_name("queue_depth"), "Requests waiting for delivery")

# Collector round trips; the upper buckets cover the default 10 s timeout.
DELIVERY_LATENCY = Histogram(
    metric_name("delivery_latency_seconds"),
    "Time spent delivering one request to the collector",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)


__all__ = [
    "metric_name",
    "REQUESTS_ENQUEUED",
    "REQUESTS_DELIVERED",
    "REQUESTS_DROPPED",
    "DELIVERY_FAILURES",
    "EVENTS_RECORDED",
    "STORE_WRITE_ERRORS",
    "QUEUE_DEPTH",
    "DELIVERY_LATENCY",
]
