"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'hushryd_booking_attempts_total',
    'Total booking create attempts',
    ['status']  # success, no_capacity, not_found, offer_rejected, error
)

booking_latency = Histogram(
    'hushryd_booking_latency_seconds',
    'Booking create latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

seats_released = Counter(
    'hushryd_seats_released_total',
    'Seats returned to rides',
    ['reason']  # cancel, delete
)

# Cache metrics
cache_operations = Counter(
    'hushryd_cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, no_capacity, not_found, offer_rejected, error"""
    booking_attempts.labels(status=status).inc()


def record_seats_released(reason: str, seats: int):
    seats_released.labels(reason=reason).inc(seats)


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
