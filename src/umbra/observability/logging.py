"""
Structured logging configuration for Mantissa Umbra.

Provides consistent logging across the engine, with a JSON formatter for
log pipelines and a human-readable formatter for the CLI.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

# LogRecord attributes that are not user-supplied extra fields
_RECORD_ATTRIBUTES = frozenset({
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "exc_info",
    "exc_text",
    "thread",
    "threadName",
    "taskName",
    "message",
})

LOG_FORMATS = ("human", "json")


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs one JSON object per log record.

    Extra fields passed through ``extra=`` (such as event_type or
    analysis_id) are included at the top level.
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_location: bool = False,
        extra_fields: dict[str, Any] | None = None,
    ):
        """
        Initialize structured formatter.

        Args:
            include_timestamp: Include timestamp in output
            include_level: Include log level in output
            include_logger: Include logger name in output
            include_location: Include file/line location
            extra_fields: Additional fields to include in every log
        """
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_location = include_location
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {}

        if self.include_timestamp:
            log_data["timestamp"] = datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat()

        if self.include_level:
            log_data["level"] = record.levelname.lower()

        if self.include_logger:
            log_data["logger"] = record.name

        log_data["message"] = record.getMessage()

        if self.include_location:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES:
                log_data[key] = value

        log_data.update(self.extra_fields)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Formatter that outputs human-readable logs.

    Used for local runs and CLI usage.
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(
        self,
        use_colors: bool = True,
        include_timestamp: bool = True,
        include_level: bool = True,
    ):
        """
        Initialize human-readable formatter.

        Args:
            use_colors: Use ANSI colors when writing to a terminal
            include_timestamp: Include timestamp in output
            include_level: Include log level in output
        """
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()
        self.include_timestamp = include_timestamp
        self.include_level = include_level

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as human-readable text."""
        parts = []

        if self.include_timestamp:
            timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
            parts.append(f"[{timestamp.strftime('%Y-%m-%d %H:%M:%S')}]")

        if self.include_level:
            level = record.levelname
            if self.use_colors and level in self.COLORS:
                level = f"{self.COLORS[level]}{level}{self.RESET}"
            parts.append(f"{level:>8}")

        parts.append(f"{record.name}:")
        parts.append(record.getMessage())

        output = " ".join(parts)

        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)

        return output


class UmbraLogger:
    """
    Wrapper around Python logging for engine events.

    Adds persistent context fields and helpers for the analysis lifecycle.
    """

    def __init__(self, name: str, level: int | None = None):
        """
        Initialize Umbra logger.

        Args:
            name: Logger name
            level: Log level (inherits from the umbra logger if omitted)
        """
        self.logger = logging.getLogger(name)
        if level is not None:
            self.logger.setLevel(level)
        self._context: dict[str, Any] = {}

    @property
    def context(self) -> dict[str, Any]:
        """Get a copy of the persistent context fields."""
        return dict(self._context)

    def set_context(self, **kwargs: Any) -> None:
        """Set persistent context fields for all logs."""
        self._context.update(kwargs)

    def clear_context(self) -> None:
        """Clear context fields."""
        self._context.clear()

    def _log(
        self,
        level: int,
        message: str,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        extra = {**self._context, **kwargs}
        self.logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Log error message."""
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def analysis_started(self, analysis_id: str, entity_count: int) -> None:
        """Log analysis start event."""
        self.info(
            "Analysis started",
            event_type="analysis.started",
            analysis_id=analysis_id,
            entity_count=entity_count,
        )

    def analysis_completed(
        self,
        analysis_id: str,
        entity_count: int,
        finding_count: int,
        overall_score: float,
        duration_seconds: float,
    ) -> None:
        """Log analysis completion event."""
        self.info(
            "Analysis completed",
            event_type="analysis.completed",
            analysis_id=analysis_id,
            entity_count=entity_count,
            finding_count=finding_count,
            overall_score=overall_score,
            duration_seconds=duration_seconds,
        )

    def analysis_failed(self, analysis_id: str, error: str) -> None:
        """Log analysis failure event."""
        self.error(
            "Analysis failed",
            event_type="analysis.failed",
            analysis_id=analysis_id,
            error=error,
        )

    def finding_detected(
        self,
        finding_id: str,
        severity: str,
        shadow_type: str,
        entity_name: str,
    ) -> None:
        """Log shadow finding event."""
        self.debug(
            "Shadow permission detected",
            event_type="finding.detected",
            finding_id=finding_id,
            severity=severity,
            shadow_type=shadow_type,
            entity_name=entity_name,
        )


def configure_logging(
    level: str = "INFO",
    format: str = "human",
    output: str = "stderr",
    extra_fields: dict[str, Any] | None = None,
) -> None:
    """
    Configure logging for Umbra.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format (human, json)
        output: Output destination (stderr, stdout)
        extra_fields: Extra fields to include in structured logs
    """
    root_logger = logging.getLogger("umbra")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers.clear()

    if output == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.StreamHandler(sys.stderr)

    if format == "json":
        formatter: logging.Formatter = StructuredFormatter(extra_fields=extra_fields)
    else:
        formatter = HumanReadableFormatter()

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def get_logger(name: str) -> UmbraLogger:
    """
    Get an Umbra logger instance.

    Args:
        name: Logger name (module name, with or without the umbra prefix)

    Returns:
        UmbraLogger instance
    """
    if name != "umbra" and not name.startswith("umbra."):
        name = f"umbra.{name}"
    return UmbraLogger(name)


# Configure logging from environment on import
configure_logging(
    level=os.getenv("UMBRA_LOG_LEVEL", "WARNING"),
    format=os.getenv("UMBRA_LOG_FORMAT", "human"),
)
