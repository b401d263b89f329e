"""
Structured Logging with Structlog.

Provides JSON-formatted logs with context bound per verification.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from playstore_validator.config import Settings, get_settings


def app_context(settings: Settings) -> Processor:
    """Build a processor adding service-level context to all log entries."""

    def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict["service"] = settings.service_name
        event_dict["version"] = settings.service_version
        return event_dict

    return add_app_context


def setup_logging(settings: Settings | None = None) -> None:
    """
    Configure structured logging with structlog.

    Logs are formatted as JSON for machine parsing with the following structure:
    {
        "event": "google_play_purchase_verified",
        "level": "info",
        "timestamp": "2025-01-08T12:00:00.123456Z",
        "logger": "playstore_validator.services.google_play_verifier",
        "service": "playstore-validator",
        "version": "0.1.0",
        "package_name": "com.example.app",
        ...additional context
    }
    """
    settings = settings or get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        app_context(settings),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.log_level.upper() == "DEBUG":
        processors.append(structlog.processors.ExceptionRenderer())
    else:
        processors.append(structlog.processors.format_exc_info)

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("google_play_purchase_verified", order_id=order_id)
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]


class log_context:
    """
    Context manager for adding structured logging context.

    Usage:
        with log_context(package_name="com.example.app", product_id="coins_100"):
            logger.info("verifying_google_play_purchase")
    """

    def __init__(self, **kwargs: Any) -> None:
        self.context = kwargs

    def __enter__(self) -> None:
        """Enter context - bind context variables."""
        structlog.contextvars.bind_contextvars(**self.context)

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit context - clear context variables."""
        structlog.contextvars.unbind_contextvars(*self.context.keys())
