"""
Observability Infrastructure

Structured logging and operation metrics for the record store. Every
public store operation runs inside ``track_operation`` so that its
outcome and duration are logged and exported the same way.
"""

import contextlib
import contextvars
import logging
import sys
import time
import uuid
from collections.abc import Iterator
from typing import Any

import structlog
from prometheus_client import Counter, Histogram

from .config import settings

# Context variables for correlation tracking
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "correlation_id", default=""
)

# Prometheus metrics
STORE_OPERATIONS = Counter(
    "record_store_operations_total",
    "Record store operations",
    ["operation", "record_type", "status"],
)

STORE_OPERATION_DURATION = Histogram(
    "record_store_operation_duration_seconds",
    "Record store operation duration",
    ["operation", "record_type"],
)

SKIPPED_OVERRIDES = Counter(
    "record_store_skipped_overrides_total",
    "Relationship overrides ignored because the relation is unknown or empty",
    ["record_type", "reason"],
)


class CorrelationIdProcessor:
    """Structlog processor to add correlation ID to all log entries."""

    def __call__(
        self, logger: Any, name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        correlation_id = correlation_id_var.get("")
        if correlation_id:
            event_dict["correlation_id"] = correlation_id
        return event_dict


def add_service_name(
    logger: Any, name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    event_dict.setdefault("service", settings.PROJECT_NAME)
    return event_dict


def setup_structured_logging() -> None:
    """Configure structured logging with JSON output and correlation tracking."""

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        CorrelationIdProcessor(),
        add_service_name,
        structlog.processors.TimeStamper(fmt="ISO"),
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
    ]

    if settings.LOG_FORMAT == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(colors=settings.ENVIRONMENT == "local")
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    if settings.LOG_SQL:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
    else:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Set correlation ID for request tracking."""
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    correlation_id_var.set(correlation_id)
    return correlation_id


def get_correlation_id() -> str:
    """Get current correlation ID."""
    return correlation_id_var.get("")


def record_skipped_override(record_type: str, reason: str) -> None:
    if settings.ENABLE_METRICS:
        SKIPPED_OVERRIDES.labels(record_type=record_type, reason=reason).inc()


@contextlib.contextmanager
def track_operation(operation: str, record_type: str) -> Iterator[None]:
    """
    Log and measure a single store operation.

    The wrapped block's exception, if any, is re-raised unchanged after
    the failure has been recorded.
    """
    logger = get_logger("record_store.operations")
    start_time = time.perf_counter()
    status = "success"

    try:
        yield
    except Exception as e:
        status = "error"
        logger.warning(
            "Store operation failed",
            operation=operation,
            record_type=record_type,
            error_type=type(e).__name__,
            error=str(e),
        )
        raise
    finally:
        duration = time.perf_counter() - start_time
        if settings.ENABLE_METRICS:
            STORE_OPERATIONS.labels(
                operation=operation, record_type=record_type, status=status
            ).inc()
            STORE_OPERATION_DURATION.labels(
                operation=operation, record_type=record_type
            ).observe(duration)
        logger.debug(
            "Store operation finished",
            operation=operation,
            record_type=record_type,
            status=status,
            duration_ms=round(duration * 1000, 2),
        )
