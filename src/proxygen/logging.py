"""Structured logging for proxygen.

Modules log through ``logging.getLogger(__name__)`` so everything lands under
the ``proxygen`` logger hierarchy. This module adds a context-carrying wrapper
used for timing pipeline steps, plus text and JSON formatters for
applications that want to route proxygen output.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

ROOT_LOGGER = "proxygen"


class LogFormat(Enum):
    """Log output format."""

    TEXT = "text"
    JSON = "json"


@dataclass
class LogContext:
    """Context information for structured logging."""

    component: str = ""
    operation: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    def with_extra(self, **kwargs: Any) -> "LogContext":
        """Create new context with additional fields."""
        return LogContext(
            component=self.component,
            operation=self.operation,
            extra={**self.extra, **kwargs},
        )


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs structured JSON logs."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        ctx = getattr(record, "context", None)
        if isinstance(ctx, LogContext):
            if ctx.component:
                log_data["component"] = ctx.component
            if ctx.operation:
                log_data["operation"] = ctx.operation
            log_data.update(ctx.extra)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Formatter that outputs human-readable logs with context."""

    def format(self, record: logging.LogRecord) -> str:
        prefix_parts = []

        ctx = getattr(record, "context", None)
        if isinstance(ctx, LogContext):
            if ctx.component:
                prefix_parts.append(f"[{ctx.component}]")
            if ctx.operation:
                prefix_parts.append(f"({ctx.operation})")

        prefix = " ".join(prefix_parts)
        if prefix:
            prefix = f"{prefix} "

        base = super().format(record)

        extra_str = ""
        if isinstance(ctx, LogContext) and ctx.extra:
            extra_str = " " + " ".join(f"{k}={v}" for k, v in ctx.extra.items())

        return f"{prefix}{base}{extra_str}"


def _make_handler(level: int, log_format: LogFormat) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if log_format == LogFormat.JSON:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(TextFormatter("%(asctime)s %(levelname)s %(message)s"))
    return handler


class ProxyLogger:
    """Structured logger for proxygen components.

    Wraps a standard logger named ``proxygen.<name>`` and attaches a
    ``LogContext`` to every record it emits.
    """

    def __init__(self, name: str):
        self._logger = logging.getLogger(f"{ROOT_LOGGER}.{name}")
        self._context = LogContext(component=name)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def _log(self, level: int, msg: str, operation: str = "", **kwargs: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        record = self._logger.makeRecord(
            self._logger.name, level, "(unknown file)", 0, msg, (), None
        )
        context = self._context.with_extra(**kwargs)
        if operation:
            context.operation = operation
        record.context = context
        self._logger.handle(record)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, **kwargs)

    @contextmanager
    def timed(self, operation: str, **kwargs: Any):
        """Context manager for timing operations.

        Args:
            operation: Name of the operation being timed
            **kwargs: Additional context fields

        Yields:
            Dict where 'elapsed_ms' will be set after completion
        """
        start = time.perf_counter()
        result: dict[str, Any] = {}
        try:
            yield result
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            result["elapsed_ms"] = elapsed_ms
            self.debug(
                f"{operation} completed",
                operation=operation,
                elapsed_ms=f"{elapsed_ms:.2f}",
                **kwargs,
            )


_loggers: dict[str, ProxyLogger] = {}


def get_logger(name: str) -> ProxyLogger:
    """Get or create a structured logger for a component."""
    if name not in _loggers:
        _loggers[name] = ProxyLogger(name)
    return _loggers[name]


def configure_logging(
    level: int | str = logging.WARNING,
    log_format: LogFormat | str = LogFormat.TEXT,
) -> None:
    """Attach a single stderr handler to the ``proxygen`` logger.

    Args:
        level: Logging level (number or name)
        log_format: Output format (TEXT or JSON)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    if isinstance(log_format, str):
        log_format = LogFormat(log_format.lower())

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(_make_handler(level, log_format))
