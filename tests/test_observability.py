"""
Tests for logging, metrics and tracing helpers.
"""

from unittest.mock import patch

import pytest
import structlog
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
from prometheus_client import REGISTRY

from playstore_validator.config import Settings
from playstore_validator.observability import logging as validator_logging
from playstore_validator.observability import tracing
from playstore_validator.observability.metrics import VerificationOutcome, metrics, track_lookup


@pytest.fixture
def span_exporter():
    """Route trace_operation spans to an in-memory exporter."""
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))

    with (
        patch.object(tracing, "get_tracer", side_effect=provider.get_tracer),
        patch.object(tracing, "get_settings", return_value=Settings(tracing_enabled=True)),
    ):
        yield exporter


class TestLogContext:
    """Tests for log_context."""

    def test_binds_and_unbinds(self):
        """Context variables exist only inside the block."""
        with validator_logging.log_context(package_name="com.example.game"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["package_name"] == "com.example.game"

        assert "package_name" not in structlog.contextvars.get_contextvars()

    def test_unbinds_on_error(self):
        """Context variables are cleared when the block raises."""
        with pytest.raises(RuntimeError):
            with validator_logging.log_context(product_id="coins_100"):
                raise RuntimeError("boom")

        assert "product_id" not in structlog.contextvars.get_contextvars()


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_app_context(self):
        """Service name and version come from the settings passed in."""
        processor = validator_logging.app_context(
            Settings(service_name="receipts-api", service_version="2.1.0")
        )

        event = processor(None, "info", {"event": "x"})

        assert event["service"] == "receipts-api"
        assert event["version"] == "2.1.0"

    @pytest.mark.parametrize("log_format", ["json", "console"])
    def test_configures_structlog(self, log_format):
        """setup_logging configures structlog for either renderer."""
        try:
            validator_logging.setup_logging(Settings(log_format=log_format))
            assert structlog.is_configured()
        finally:
            structlog.reset_defaults()


class TestMetrics:
    """Tests for ValidatorMetrics."""

    def test_record_verification(self):
        """Outcomes increment the labelled counter."""
        labels = {"outcome": VerificationOutcome.VERIFIED.value}
        before = REGISTRY.get_sample_value("playstore_validator_verifications_total", labels) or 0

        metrics.record_verification(VerificationOutcome.VERIFIED)

        after = REGISTRY.get_sample_value("playstore_validator_verifications_total", labels)
        assert after == before + 1

    def test_track_lookup_records_on_error(self):
        """Lookup duration is observed even when the lookup fails."""
        name = "playstore_validator_lookup_duration_seconds_count"
        before = REGISTRY.get_sample_value(name) or 0

        with pytest.raises(TimeoutError):
            with track_lookup():
                raise TimeoutError

        assert REGISTRY.get_sample_value(name) == before + 1

    def test_disabled(self):
        """Nothing is recorded when metrics are disabled."""
        labels = {"outcome": VerificationOutcome.NOT_FOUND.value}
        before = REGISTRY.get_sample_value("playstore_validator_verifications_total", labels) or 0

        with patch(
            "playstore_validator.observability.metrics.get_settings",
            return_value=Settings(metrics_enabled=False),
        ):
            metrics.record_verification(VerificationOutcome.NOT_FOUND)

        after = REGISTRY.get_sample_value("playstore_validator_verifications_total", labels) or 0
        assert after == before

    def test_disabled_by_explicit_settings(self):
        """Explicit settings take precedence over the global settings."""
        labels = {"outcome": VerificationOutcome.NOT_FOUND.value}
        before = REGISTRY.get_sample_value("playstore_validator_verifications_total", labels) or 0

        metrics.record_verification(VerificationOutcome.NOT_FOUND, Settings(metrics_enabled=False))

        after = REGISTRY.get_sample_value("playstore_validator_verifications_total", labels) or 0
        assert after == before

    def test_track_lookup_disabled_by_explicit_settings(self):
        """Lookup duration is not observed when the passed settings disable metrics."""
        name = "playstore_validator_lookup_duration_seconds_count"
        before = REGISTRY.get_sample_value(name) or 0

        with track_lookup(Settings(metrics_enabled=False)):
            pass

        assert (REGISTRY.get_sample_value(name) or 0) == before


class TestTraceOperation:
    """Tests for trace_operation."""

    def test_records_span_with_attributes(self, span_exporter):
        """Span carries the operation name and attributes."""
        with tracing.trace_operation("google_play.verify_purchase", product_id="coins_100"):
            pass

        (span,) = span_exporter.get_finished_spans()
        assert span.name == "google_play.verify_purchase"
        assert span.attributes["product_id"] == "coins_100"

    def test_records_error(self, span_exporter):
        """Exceptions mark the span as failed and propagate."""
        with pytest.raises(ValueError):
            with tracing.trace_operation("google_play.verify_purchase"):
                raise ValueError("bad record")

        (span,) = span_exporter.get_finished_spans()
        assert span.status.status_code == StatusCode.ERROR

    def test_disabled_yields_non_recording_span(self):
        """No span is recorded when tracing is disabled."""
        with patch.object(tracing, "get_settings", return_value=Settings(tracing_enabled=False)):
            with tracing.trace_operation("google_play.verify_purchase") as span:
                assert span.is_recording() is False

    def test_disabled_by_explicit_settings(self, span_exporter):
        """Explicit settings take precedence over the global settings."""
        with tracing.trace_operation(
            "google_play.verify_purchase", Settings(tracing_enabled=False)
        ) as span:
            assert span.is_recording() is False

        assert span_exporter.get_finished_spans() == ()
