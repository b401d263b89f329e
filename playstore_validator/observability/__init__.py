"""
Observability module - Logging, Metrics, and Tracing.
"""

from playstore_validator.observability.logging import get_logger, log_context, setup_logging
from playstore_validator.observability.metrics import metrics
from playstore_validator.observability.tracing import setup_tracing, trace_operation

__all__ = [
    "get_logger",
    "log_context",
    "setup_logging",
    "metrics",
    "setup_tracing",
    "trace_operation",
]
