"""
Prometheus metrics for the referral engine.

Service timings come from the ``@BaseService.measure_operation`` decorator;
the domain counters track settlement outcomes that matter for payouts.
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

# Custom registry keeps these series apart from the process default registry
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "referral_engine_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "referral_engine_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "referral_engine_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

rewards_issued_total = Counter(
    "referral_engine_rewards_issued_total",
    "Rewards created by settlement",
    ["reward_type"],
    registry=REGISTRY,
)

reward_credit_attempts_total = Counter(
    "referral_engine_reward_credit_attempts_total",
    "Credit ledger calls by outcome",
    ["outcome"],  # credited | ledger_failed | lost_race
    registry=REGISTRY,
)

sweep_transitions_total = Counter(
    "referral_engine_sweep_transitions_total",
    "Records moved to expired by the housekeeping sweeps",
    ["entity"],  # referral | reward
    registry=REGISTRY,
)

notifications_enqueued_total = Counter(
    "referral_engine_notifications_enqueued_total",
    "Notification enqueue attempts by outcome",
    ["notification_type", "status"],
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

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
            service: Service name (e.g., 'RewardService')
            operation: Operation name (e.g., 'rewards.credit')
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
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_reward_issued(reward_type: str) -> None:
        rewards_issued_total.labels(reward_type=reward_type).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_credit_attempt(outcome: str) -> None:
        reward_credit_attempts_total.labels(outcome=outcome).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def inc_sweep_transitions(entity: str, count: int) -> None:
        if count > 0:
            sweep_transitions_total.labels(entity=entity).inc(count)
            PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_notification_enqueue(notification_type: str, status: str) -> None:
        notifications_enqueued_total.labels(
            notification_type=notification_type, status=status
        ).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """
        Generate Prometheus metrics in exposition format.

        Returns:
            Metrics data in Prometheus text format
        """
        now = monotonic()
        payload = PrometheusMetrics._cache_payload
        ts = PrometheusMetrics._cache_ts
        ttl = PrometheusMetrics._cache_ttl_seconds

        if payload is not None and ts is not None and (now - ts) <= ttl:
            return payload

        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_payload = cast(bytes, generate_latest(REGISTRY))
            PrometheusMetrics._cache_ts = monotonic()
            payload = PrometheusMetrics._cache_payload

        return cast(bytes, payload)

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)

    @staticmethod
    def _invalidate_cache() -> None:
        """Invalidate cached metrics so next scrape refreshes."""

        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_ts = None
            PrometheusMetrics._cache_payload = None


# Singleton instance
prometheus_metrics = PrometheusMetrics()
