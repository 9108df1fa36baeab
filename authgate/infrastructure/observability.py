# SPDX-License-Identifier: Apache-2.0
# Copyright 2025 Vova Orig

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_LATENCY = Histogram(
    "authgate_request_latency_seconds",
    "Request latency",
    labelnames=("endpoint",),
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)
REQUEST_COUNTER = Counter(
    "authgate_requests_total",
    "Number of processed requests",
    labelnames=("endpoint", "status"),
)
AUTH_EVENTS = Counter(
    "authgate_auth_events_total",
    "Audited authentication events",
    labelnames=("action", "success"),
)
NOTIFICATIONS = Counter(
    "authgate_notifications_total",
    "Notification delivery outcomes",
    labelnames=("template", "outcome"),
)


def observe_request(endpoint: str, status: int, duration: float) -> None:
    REQUEST_LATENCY.labels(endpoint=endpoint).observe(duration)
    REQUEST_COUNTER.labels(endpoint=endpoint, status=str(status)).inc()


__all__ = [
    "AUTH_EVENTS",
    "NOTIFICATIONS",
    "REQUEST_COUNTER",
    "REQUEST_LATENCY",
    "observe_request",
]
