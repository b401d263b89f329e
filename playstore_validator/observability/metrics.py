"""
Metrics Collection with Prometheus.

Counts verification outcomes and times the Google Play lookup.
"""

import time
from enum import Enum

from prometheus_client import Counter, Histogram, Info

from playstore_validator.config import Settings, get_settings


class VerificationOutcome(str, Enum):
    """Outcome label values for verification metrics."""

    VERIFIED = "verified"
    INVALID_RECEIPT = "invalid_receipt"
    NOT_FOUND = "not_found"
    INVALID_RESPONSE = "invalid_response"
    CREDENTIAL_ERROR = "credential_error"
    UPSTREAM_ERROR = "upstream_error"


class ValidatorMetrics:
    """Centralized metrics for the receipt validator."""

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""
        settings = get_settings()

        self.service_info = Info(
            "playstore_validator",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.service_version,
                "service_name": settings.service_name,
            }
        )

        self.verifications_total = Counter(
            "playstore_validator_verifications_total",
            "Total receipt verifications by outcome",
            ["outcome"],
        )

        self.lookup_duration_seconds = Histogram(
            "playstore_validator_lookup_duration_seconds",
            "Google Play purchase lookup duration in seconds",
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

    def record_verification(
        self, outcome: VerificationOutcome, settings: Settings | None = None
    ) -> None:
        """Record a verification outcome."""
        if not (settings or get_settings()).metrics_enabled:
            return
        self.verifications_total.labels(outcome=outcome.value).inc()

    def record_lookup(self, duration: float, settings: Settings | None = None) -> None:
        """Record lookup latency."""
        if not (settings or get_settings()).metrics_enabled:
            return
        self.lookup_duration_seconds.observe(duration)


# Global metrics instance
metrics = ValidatorMetrics()


class track_lookup:
    """
    Context manager timing a Google Play lookup.

    Usage:
        with track_lookup(settings):
            result = request.execute()
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings
        self.start_time: float = 0.0

    def __enter__(self) -> "track_lookup":
        """Start timing."""
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Record duration, including failed lookups."""
        metrics.record_lookup(time.perf_counter() - self.start_time, self.settings)
