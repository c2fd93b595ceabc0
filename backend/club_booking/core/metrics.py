"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total book/cancel attempts by outcome',
    ['operation', 'outcome']  # book/cancel, ok or a rejection code
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Book/cancel transaction latency',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Database metrics
db_transient_errors = Counter(
    'db_transient_errors_total',
    'Store faults surfaced to callers as retryable',
    ['operation']
)

# Subscription lifecycle
subscriptions_superseded = Counter(
    'subscriptions_superseded_total',
    'ACTIVE subscriptions cancelled because a newer one was activated'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(operation: str, outcome: str):
    """Record a book/cancel outcome. Outcome: ok or a BookingError value."""
    booking_attempts.labels(operation=operation, outcome=outcome).inc()


def record_transient_error(operation: str):
    db_transient_errors.labels(operation=operation).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
