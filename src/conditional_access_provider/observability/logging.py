"""
Structured logging utilities for the Conditional Access provider.

This module provides correlation ID tracking, structured log formatting,
and lifecycle operation logging for better production troubleshooting.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime

# Context variable for tracking correlation IDs across async operations
correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")

STRUCTURED_FIELDS = (
    "resource_type",
    "resource_id",
    "operation",
    "duration",
    "error_type",
    "http_method",
    "http_status",
    "entity",
    "attempt",
    "poll_state",
    "probe_count",
    "response_body",
)


class CorrelationIDFilter(logging.Filter):
    """Logging filter that adds correlation ID to log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        # Get correlation ID from context, or generate a new one
        current_correlation_id = correlation_id.get()
        if not current_correlation_id:
            current_correlation_id = generate_correlation_id()
            correlation_id.set(current_correlation_id)

        record.correlation_id = current_correlation_id
        return True


class StructuredFormatter(logging.Formatter):
    """
    Structured JSON formatter for logs with correlation ID support.

    Formats log records as structured JSON for better parsing and analysis
    in log aggregation systems.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", ""),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Extra fields are set as attributes on the record
        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        return json.dumps(log_data, default=str)


def generate_correlation_id() -> str:
    """Generate a short 8-character correlation ID."""
    return str(uuid.uuid4())[:8]


def set_correlation_id(corr_id: str) -> str:
    """Set the correlation ID for the current context and return it."""
    correlation_id.set(corr_id)
    return corr_id


def get_correlation_id() -> str:
    """Get the current correlation ID, or empty string if none set."""
    return correlation_id.get("")


def setup_structured_logging(
    log_level: str = "INFO",
    enable_json_formatting: bool = True,
    correlation_id_enabled: bool = True,
) -> None:
    """
    Set up structured logging for the provider.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        enable_json_formatting: Whether to use JSON formatting
        correlation_id_enabled: Whether to enable correlation ID tracking
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()

    if enable_json_formatting:
        formatter: logging.Formatter = StructuredFormatter()
    elif correlation_id_enabled:
        formatter = logging.Formatter(
            "%(asctime)s - %(correlation_id)s - %(name)s - %(levelname)s - %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler.setFormatter(formatter)

    if correlation_id_enabled:
        handler.addFilter(CorrelationIDFilter())

    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Third-party libraries are noisy at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class ProviderLogger:
    """
    Logger for resource lifecycle operations with structured logging support.

    Provides convenient methods for logging lifecycle events with proper
    correlation ID tracking and structured data.
    """

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def log_operation_start(
        self,
        resource_type: str,
        operation: str,
        resource_id: str | None,
        correlation_id: str | None = None,
    ) -> str:
        """
        Log the start of a lifecycle operation.

        Returns:
            The correlation ID used for this operation
        """
        if correlation_id is None:
            correlation_id = generate_correlation_id()

        set_correlation_id(correlation_id)

        self.logger.info(
            f"Starting {operation} for {resource_type} {resource_id or '(new)'}",
            extra={
                "resource_type": resource_type,
                "resource_id": resource_id,
                "operation": operation,
            },
        )

        return correlation_id

    def log_operation_success(
        self,
        resource_type: str,
        operation: str,
        resource_id: str | None,
        duration: float,
    ) -> None:
        self.logger.info(
            f"Completed {operation} for {resource_type} {resource_id or '(new)'}",
            extra={
                "resource_type": resource_type,
                "resource_id": resource_id,
                "operation": operation,
                "duration": duration,
            },
        )

    def log_operation_error(
        self,
        resource_type: str,
        operation: str,
        resource_id: str | None,
        error: Exception,
        duration: float,
    ) -> None:
        self.logger.error(
            f"{operation.capitalize()} failed for {resource_type} "
            f"{resource_id or '(new)'}: {error}",
            extra={
                "resource_type": resource_type,
                "resource_id": resource_id,
                "operation": operation,
                "error_type": type(error).__name__,
                "duration": duration,
            },
            exc_info=True,
        )

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message with extra data."""
        self.logger.debug(message, extra=kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message with extra data."""
        self.logger.info(message, extra=kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message with extra data."""
        self.logger.warning(message, extra=kwargs)
