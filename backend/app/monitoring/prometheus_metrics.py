"""
Prometheus metrics for the studio reservation core.

Service timings come from the @measure_operation decorator; domain helpers
record booking transitions, refund outcomes, cache traffic, studio locks and
notification delivery. Everything lives on a private registry.
"""

from threading import Lock
from time import monotonic
from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

http_request_duration_seconds = Histogram(
    "studio_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

service_operation_duration_seconds = Histogram(
    "studio_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "studio_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "studio_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_transitions_total = Counter(
    "studio_booking_transitions_total",
    "Booking state machine events by outcome",
    ["event", "outcome"],
    registry=REGISTRY,
)

refund_outcomes_total = Counter(
    "studio_refund_outcomes_total",
    "Refund decisions and gateway outcomes",
    ["policy", "outcome"],
    registry=REGISTRY,
)

cache_operations_total = Counter(
    "studio_cache_operations_total",
    "Response cache hits, misses and invalidations",
    ["backend", "result"],
    registry=REGISTRY,
)

booking_lock_total = Counter(
    "studio_booking_lock_total",
    "Per-studio reservation lock operations",
    ["action", "outcome"],
    registry=REGISTRY,
)

notifications_outbox_total = Counter(
    "studio_notifications_outbox_total",
    "Total notification outbox entries by terminal status",
    ["status", "notification_type"],
    registry=REGISTRY,
)

notifications_outbox_attempt_total = Counter(
    "studio_notifications_outbox_attempt_total",
    "Number of notification outbox delivery attempts",
    ["notification_type"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

    @staticmethod
    def record_http_request(method: str, endpoint: str, duration: float, status_code: int) -> None:
        http_request_duration_seconds.labels(
            method=method, endpoint=endpoint, status_code=str(status_code)
        ).observe(duration)

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingService')
            operation: Operation/method name (e.g., 'create_booking')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_booking_transition(event: str, outcome: str) -> None:
        booking_transitions_total.labels(event=event, outcome=outcome).inc()

    @staticmethod
    def record_refund(policy: str, outcome: str) -> None:
        refund_outcomes_total.labels(policy=policy, outcome=outcome).inc()

    @staticmethod
    def record_cache(backend: str, result: str) -> None:
        cache_operations_total.labels(backend=backend, result=result).inc()

    @staticmethod
    def record_booking_lock(action: str, outcome: str) -> None:
        booking_lock_total.labels(action=action, outcome=outcome).inc()

    @staticmethod
    def record_notification_attempt(notification_type: str) -> None:
        """Increment attempt counter for notification outbox delivery."""
        notifications_outbox_attempt_total.labels(notification_type=notification_type).inc()

    @staticmethod
    def record_notification_outcome(notification_type: str, status: str) -> None:
        """Record terminal outcome for notification outbox delivery."""
        notifications_outbox_total.labels(
            status=status, notification_type=notification_type
        ).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Metrics in Prometheus text format, cached briefly between scrapes."""
        now = monotonic()
        with PrometheusMetrics._cache_lock:
            payload = PrometheusMetrics._cache_payload
            ts = PrometheusMetrics._cache_ts
            if payload is None or ts is None or (now - ts) > PrometheusMetrics._cache_ttl_seconds:
                payload = cast(bytes, generate_latest(REGISTRY))
                PrometheusMetrics._cache_payload = payload
                PrometheusMetrics._cache_ts = now
        return payload

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
