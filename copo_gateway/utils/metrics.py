"""
Prometheus metrics for observability
"""

import re
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from prometheus_client.core import CollectorRegistry

__all__ = [
    "CONTENT_TYPE_LATEST",
    "get_metrics_output",
    "record_callback_received",
    "record_callback_rejected",
    "record_http_request",
    "record_provider_request",
    "record_settlement",
]

# Create a custom registry to avoid conflicts
metrics_registry = CollectorRegistry()

# HTTP request metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["path", "method", "status"],
    registry=metrics_registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["path", "method"],
    registry=metrics_registry,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

# Callback metrics
copo_callback_received_total = Counter(
    "copo_callback_received_total",
    "Total Copo callbacks received",
    ["direction"],  # deposit, withdraw
    registry=metrics_registry,
)

copo_callback_rejected_total = Counter(
    "copo_callback_rejected_total",
    "Total Copo callbacks rejected",
    ["reason"],  # signature_invalid, order_not_found
    registry=metrics_registry,
)

copo_settlements_total = Counter(
    "copo_settlements_total",
    "Callback outcomes per transaction direction",
    ["direction", "outcome"],  # SUCCESS, FAILED, already_settled, processing, unknown_status
    registry=metrics_registry,
)

# Outbound provider metrics
copo_provider_requests_total = Counter(
    "copo_provider_requests_total",
    "Total requests sent to Copo",
    ["endpoint", "outcome"],  # accepted, rejected, upstream_error, answered
    registry=metrics_registry,
)


def record_http_request(
    path: str,
    method: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """
    Record HTTP request metrics.

    Args:
        path: Request path (normalized)
        method: HTTP method
        status_code: Response status code
        duration_seconds: Request duration in seconds
    """
    normalized_path = _normalize_path(path)

    http_requests_total.labels(
        path=normalized_path,
        method=method.upper(),
        status=str(status_code),
    ).inc()

    http_request_duration_seconds.labels(
        path=normalized_path,
        method=method.upper(),
    ).observe(duration_seconds)


def record_callback_received(direction: str) -> None:
    """Record callback received"""
    copo_callback_received_total.labels(direction=direction).inc()


def record_callback_rejected(reason: str) -> None:
    """Record callback rejection (signature_invalid, order_not_found)"""
    copo_callback_rejected_total.labels(reason=reason).inc()


def record_settlement(direction: str, outcome: str) -> None:
    """Record how a verified callback was applied"""
    copo_settlements_total.labels(direction=direction, outcome=outcome).inc()


def record_provider_request(endpoint: str, outcome: str) -> None:
    """Record an outbound Copo call"""
    copo_provider_requests_total.labels(endpoint=endpoint, outcome=outcome).inc()


def _normalize_path(path: str) -> str:
    """
    Normalize path for metrics (replace UUIDs and IDs with placeholders).

    Examples:
        /payment/deposit -> /payment/deposit
        /withdraw/site1/123e4567-... -> /withdraw/site1/{id}
    """
    path = re.sub(
        r'[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}',
        '{id}',
        path,
        flags=re.IGNORECASE,
    )
    path = re.sub(r'/\d+', '/{id}', path)
    return path


def get_metrics_output() -> bytes:
    """Get Prometheus metrics output"""
    return generate_latest(metrics_registry)
