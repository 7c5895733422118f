"""
Prometheus metrics for the Agenda booking engine.

Service timings come from ``@measure_operation``; booking outcomes are
counted by the appointment service so conflict rates per channel are visible
without scraping logs.
"""

from typing import Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

http_request_duration_seconds = Histogram(
    "agenda_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

http_requests_total = Counter(
    "agenda_http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status_code"],
    registry=REGISTRY,
)

http_requests_in_progress = Gauge(
    "agenda_http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method", "endpoint"],
    registry=REGISTRY,
)

service_operation_duration_seconds = Histogram(
    "agenda_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "agenda_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "agenda_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

# Domain counters
booking_attempts_total = Counter(
    "agenda_booking_attempts_total",
    "Appointment create attempts by channel and outcome code",
    ["source", "outcome"],  # outcome: created | <ErrorCode>
    registry=REGISTRY,
)

booking_commit_retries_total = Counter(
    "agenda_booking_commit_retries_total",
    "Commit-time slot collisions that triggered a fresh availability check",
    ["operation"],
    registry=REGISTRY,
)

appointment_transitions_total = Counter(
    "agenda_appointment_transitions_total",
    "Applied appointment status transitions",
    ["from_status", "to_status"],
    registry=REGISTRY,
)

coupon_redemptions_total = Counter(
    "agenda_coupon_redemptions_total",
    "Coupon evaluations by outcome",
    ["outcome"],  # applied | <ErrorCode>
    registry=REGISTRY,
)

outbox_events_total = Counter(
    "agenda_outbox_events_total",
    "Notification events written to the outbox",
    ["event_type"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    @staticmethod
    def record_http_request(method: str, endpoint: str, duration: float, status_code: int) -> None:
        """Record HTTP request metrics."""
        labels = {"method": method, "endpoint": endpoint, "status_code": str(status_code)}
        http_request_duration_seconds.labels(**labels).observe(duration)
        http_requests_total.labels(**labels).inc()

    @staticmethod
    def track_http_request_start(method: str, endpoint: str) -> None:
        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()

    @staticmethod
    def track_http_request_end(method: str, endpoint: str) -> None:
        http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from the @measure_operation decorator.

        Args:
            service: Service name (e.g., 'AppointmentService')
            operation: Operation/method name (e.g., 'create_appointment')
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
    def record_booking_attempt(source: str, outcome: str) -> None:
        booking_attempts_total.labels(source=source, outcome=outcome).inc()

    @staticmethod
    def record_commit_retry(operation: str) -> None:
        booking_commit_retries_total.labels(operation=operation).inc()

    @staticmethod
    def record_transition(from_status: str, to_status: str) -> None:
        appointment_transitions_total.labels(from_status=from_status, to_status=to_status).inc()

    @staticmethod
    def record_coupon_outcome(outcome: str) -> None:
        coupon_redemptions_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_outbox_event(event_type: str) -> None:
        outbox_events_total.labels(event_type=event_type).inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)


# Singleton instance
prometheus_metrics = PrometheusMetrics()
