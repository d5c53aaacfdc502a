"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Ledger metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total placeBooking attempts',
    ['outcome']  # attending, waiting, replayed, rejected
)

booking_cancellations = Counter(
    'booking_cancellations_total',
    'Total cancelled bookings',
    ['previous_status']  # attending, waiting
)

booking_promotions = Counter(
    'booking_promotions_total',
    'Waiting bookings promoted to attending'
)

ledger_retries = Counter(
    'ledger_retry_attempts_total',
    'Ledger retry attempts due to event version conflicts',
    ['operation']  # place, cancel
)

ledger_latency = Histogram(
    'ledger_operation_latency_seconds',
    'Ledger operation latency',
    ['operation'],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

# Notification metrics
notification_dispatches = Counter(
    'notification_dispatch_total',
    'Notification dispatch results',
    ['type', 'result']  # confirmed/waiting/promoted, sent/failed
)

# Redis metrics
redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(outcome: str):
    """Outcome: attending, waiting, replayed, rejected"""
    booking_attempts.labels(outcome=outcome).inc()


def record_cancellation(previous_status: str, promoted: int):
    booking_cancellations.labels(previous_status=previous_status).inc()
    if promoted:
        booking_promotions.inc(promoted)


def record_ledger_retry(operation: str):
    ledger_retries.labels(operation=operation).inc()


def record_notification(notification_type: str, sent: bool):
    result = "sent" if sent else "failed"
    notification_dispatches.labels(type=notification_type, result=result).inc()
