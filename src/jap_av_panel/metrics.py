"""Prometheus metrics helpers."""

from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

METRICS_CONTENT_TYPE = CONTENT_TYPE_LATEST

_REGISTRY = CollectorRegistry()

REQUEST_LATENCY = Histogram(
    "jap_api_request_duration_seconds",
    "Time spent processing API requests",
    ["method", "path", "status"],
    registry=_REGISTRY,
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10],
)
REQUEST_COUNT = Counter(
    "jap_api_requests_total",
    "HTTP requests processed by the API",
    ["method", "path", "status"],
    registry=_REGISTRY,
)
DEVICE_CALLS = Counter(
    "jap_device_calls_total",
    "Receiver API calls by endpoint and result",
    ["endpoint", "result"],
    registry=_REGISTRY,
)
DEVICE_CALL_DURATION = Histogram(
    "jap_device_call_duration_seconds",
    "Round-trip time of receiver API calls",
    ["endpoint"],
    registry=_REGISTRY,
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10],
)
CONTROL_SUBMISSIONS = Counter(
    "jap_control_submissions_total",
    "Operator submissions by final outcome",
    ["outcome"],
    registry=_REGISTRY,
)


def latest_metrics() -> bytes:
    """Render the latest metrics payload for scraping."""

    return generate_latest(_REGISTRY)


def observe_request(method: str, path: str, status: int, duration_seconds: float) -> None:
    """Record API request metrics."""

    status_str = str(status)
    REQUEST_COUNT.labels(method=method, path=path, status=status_str).inc()
    REQUEST_LATENCY.labels(method=method, path=path, status=status_str).observe(duration_seconds)


def observe_device_call(endpoint: str, result: str, duration_seconds: float) -> None:
    """Record the outcome and latency of one receiver call."""

    DEVICE_CALLS.labels(endpoint=endpoint, result=result).inc()
    DEVICE_CALL_DURATION.labels(endpoint=endpoint).observe(duration_seconds)


def record_submission(outcome: str) -> None:
    CONTROL_SUBMISSIONS.labels(outcome=outcome).inc()
