"""
Prometheus metrics for the booking path and the event list cache.
Exposed at GET /metrics.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['outcome']  # success, replayed, insufficient, not_found, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking transaction latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

seats_reserved = Counter(
    'seats_reserved_total',
    'Seats taken out of inventory by confirmed bookings'
)

booking_cancellations = Counter(
    'booking_cancellations_total',
    'Bookings canceled and seats released'
)

cache_operations = Counter(
    'cache_operations_total',
    'Event list cache operations',
    ['operation', 'result']  # get/set/invalidate, hit/miss/error
)


def metrics_endpoint() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(outcome: str):
    """Outcome: success, replayed, insufficient, not_found, error"""
    booking_attempts.labels(outcome=outcome).inc()


def record_cache_operation(operation: str, result: str):
    cache_operations.labels(operation=operation, result=result).inc()
