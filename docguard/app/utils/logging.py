"""
Structured logging system for the DocGuard validation engine.

This module provides:
- Structured JSON logging with correlation IDs
- Console-friendly output for development through Rich
- Performance timing for validation calls
- The validation audit sink, an optional observer of every validation
  call's inputs and outcome
"""

import json
import logging
import sys
import threading
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from rich.console import Console
from rich.logging import RichHandler

from docguard.config.settings import LoggingSettings, get_settings


# Thread-local storage for correlation ID
_local = threading.local()

# Rich console for enhanced output
console = Console(stderr=True)


class CorrelationIDProcessor:
    """Structlog processor to add correlation IDs to log records."""

    def __call__(self, logger, method_name, event_dict):
        """Add correlation ID to the log event."""
        correlation_id = get_correlation_id()
        if correlation_id:
            event_dict["correlation_id"] = correlation_id
        return event_dict


class TimestampProcessor:
    """Structlog processor to add ISO timestamps to log records."""

    def __call__(self, logger, method_name, event_dict):
        """Add ISO timestamp to the log event."""
        event_dict["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        return event_dict


class DocGuardLogFormatter:
    """
    Custom log formatter for structured JSON output with rich console support.

    Provides both machine-readable JSON logs and human-readable console output
    for development convenience.
    """

    def __init__(self, use_json: bool = False):
        self.use_json = use_json

    def __call__(self, _, __, event_dict):
        """Format the log event for output."""
        if self.use_json:
            return json.dumps(event_dict, default=str)
        return self._format_console_output(event_dict)

    def _format_console_output(self, event_dict: Dict[str, Any]) -> str:
        """Format log event for console output."""
        timestamp = event_dict.get("timestamp", "")
        level = event_dict.get("level", "info").upper()
        logger_name = event_dict.get("logger", "")
        correlation_id = event_dict.get("correlation_id", "")
        event = event_dict.get("event", "")

        parts = []
        if timestamp:
            parts.append(timestamp[:19])
        parts.append(f"{level:8}")
        if logger_name:
            parts.append(logger_name)
        if correlation_id:
            parts.append(correlation_id[:8])
        parts.append(str(event))

        context_fields = {
            k: v for k, v in event_dict.items()
            if k not in {"timestamp", "level", "logger", "correlation_id", "event"}
        }
        if context_fields:
            parts.append(" ".join(f"{k}={v}" for k, v in context_fields.items()))

        return " ".join(parts)


def setup_logging(
    level: str = "INFO",
    use_json: bool = False,
    log_file: Optional[Path] = None,
    enable_correlation_ids: bool = True
) -> None:
    """
    Setup structured logging for the engine.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_json: Output structured JSON logs
        log_file: Optional file path for log output
        enable_correlation_ids: Enable correlation ID tracking
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        TimestampProcessor(),
    ]

    if enable_correlation_ids:
        processors.append(CorrelationIDProcessor())

    if use_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(DocGuardLogFormatter(use_json=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    if not use_json:
        rich_handler = RichHandler(
            console=console,
            show_time=False,  # timestamp comes from structlog
            show_path=False,
            rich_tracebacks=True,
            markup=False
        )
        rich_handler.setLevel(numeric_level)
        root_logger.addHandler(rich_handler)
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(numeric_level)
        root_logger.addHandler(handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter('%(message)s'))
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog bound logger
    """
    return structlog.get_logger(name)


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set correlation ID for the current thread.

    Args:
        correlation_id: Optional correlation ID, generates UUID if None

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())

    _local.correlation_id = correlation_id
    return correlation_id


def get_correlation_id() -> Optional[str]:
    """Get the correlation ID for the current thread, if any."""
    return getattr(_local, 'correlation_id', None)


def clear_correlation_id() -> None:
    """Clear the correlation ID for the current thread."""
    if hasattr(_local, 'correlation_id'):
        delattr(_local, 'correlation_id')


@contextmanager
def correlation_context(correlation_id: Optional[str] = None):
    """
    Context manager for correlation ID scoping.

    Usage:
        with correlation_context("upload-123"):
            validator.validate(...)
    """
    old_id = get_correlation_id()
    new_id = set_correlation_id(correlation_id)
    try:
        yield new_id
    finally:
        if old_id:
            set_correlation_id(old_id)
        else:
            clear_correlation_id()


@contextmanager
def performance_context(operation: str, **context: Any):
    """
    Context manager that logs the duration of an operation at debug level.

    Usage:
        with performance_context("file_validation", file_name="brief.pdf"):
            ...
    """
    logger = get_logger("performance")
    start_time = time.perf_counter()
    try:
        yield context
    except Exception as e:
        logger.error(
            "Operation failed",
            operation=operation,
            duration_ms=(time.perf_counter() - start_time) * 1000,
            error=str(e),
            **context
        )
        raise
    else:
        logger.debug(
            "Operation completed",
            operation=operation,
            duration_ms=(time.perf_counter() - start_time) * 1000,
            **context
        )


class ValidationAuditLogger:
    """
    Audit sink for validation calls.

    Observes the inputs and results of each validation call. It is purely
    additive: validators always return their outcome to the caller whether
    or not an audit logger is attached.
    """

    def __init__(self, logger_name: str = "docguard.audit"):
        self.logger = get_logger(logger_name)

    def file_validated(
        self,
        file_name: Optional[str],
        extension: Optional[str],
        size: int,
        mime_type: Optional[str],
        has_content: bool,
        is_valid: bool,
        errors: List[str],
        warnings: List[str],
        detected_mime_type: Optional[str] = None
    ) -> None:
        """Record a completed file validation."""
        log_method = self.logger.info if is_valid else self.logger.warning
        log_method(
            "File validation audited",
            file_name=file_name,
            extension=extension,
            size=size,
            mime_type=mime_type,
            has_content=has_content,
            detected_mime_type=detected_mime_type,
            is_valid=is_valid,
            error_count=len(errors),
            warning_count=len(warnings),
            errors=errors,
            warnings=warnings
        )

    def revision_validated(
        self,
        operation: str,
        is_valid: bool,
        **context: Any
    ) -> None:
        """Record a revision number or temporal validation."""
        log_method = self.logger.info if is_valid else self.logger.warning
        log_method(
            "Revision validation audited",
            operation=operation,
            is_valid=is_valid,
            **context
        )

    def collection_validated(
        self,
        property_name: str,
        item_count: Optional[int],
        result_count: int
    ) -> None:
        """Record a collection validation."""
        self.logger.info(
            "Collection validation audited",
            property_name=property_name,
            item_count=item_count,
            result_count=result_count,
            is_valid=result_count == 0
        )


_audit_logger: Optional[ValidationAuditLogger] = None


def get_validation_audit_logger() -> Optional[ValidationAuditLogger]:
    """Get the shared audit logger, or None when audit logging is disabled."""
    global _audit_logger
    if not get_settings().logging.enable_audit_logging:
        return None
    if _audit_logger is None:
        _audit_logger = ValidationAuditLogger()
    return _audit_logger


def initialize_logging_from_settings(logging_settings: Optional[LoggingSettings] = None) -> None:
    """Configure logging from the given logging section, or the loaded settings."""
    logging_settings = logging_settings or get_settings().logging
    setup_logging(
        level=logging_settings.level,
        use_json=logging_settings.format == "json",
        log_file=Path(logging_settings.log_file_path) if logging_settings.log_file_path else None,
        enable_correlation_ids=logging_settings.enable_correlation_ids
    )
