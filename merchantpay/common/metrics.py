"""Prometheus metric definitions for the payments service."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


payments_created_total = Counter("payments_created_total", "Total payments created", ["service"])
payment_transitions_total = Counter(
    "payment_transitions_total",
    "Payment status transitions applied",
    ["service", "to_status"],
)
payment_transition_rejected_total = Counter(
    "payment_transition_rejected_total",
    "Payment status transitions rejected by the state machine",
    ["service", "operation"],
)
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
