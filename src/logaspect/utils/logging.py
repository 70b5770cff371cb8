"""
Structured logging framework for logaspect.

This module provides the structlog-backed logger the invocation aspect writes
through: level checks against the standard library, templated records whose
placeholders become structured fields, and ambient scopes kept in
``structlog.contextvars`` so they follow the current thread or task.
"""

import logging
import logging.config
import os
import structlog
from structlog import contextvars as structlog_contextvars
from typing import Any, ContextManager, Dict, Iterable, Mapping, Optional, Tuple, Union, List, Protocol
from datetime import datetime, timezone
from enum import Enum
import sys
import types
from pathlib import Path
import time

from logaspect.templates import Template, TemplateLike, render_template, template_properties
from logaspect.utils.errors import ConfigurationError

TRACE_LEVEL = 5

SCOPE_KEY = "scope"
MESSAGE_TEMPLATE_KEY = "message_template"

# Placeholder fields never override these record keys.
RESERVED_KEYS = frozenset(
    {
        "event",
        "timestamp",
        "level",
        "log_level",
        "logger",
        "exc_info",
        "stack_info",
        "component",
        "error_type",
        "error_message",
        SCOPE_KEY,
        MESSAGE_TEMPLATE_KEY,
    }
)


class LogLevel(str, Enum):
    """Log levels, including TRACE below DEBUG."""

    TRACE = "TRACE"
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @property
    def numeric(self) -> int:
        """Standard library level number."""
        if self is LogLevel.TRACE:
            return TRACE_LEVEL
        return getattr(logging, self.value)

    @classmethod
    def coerce(cls, value: Union["LogLevel", str, int]) -> "LogLevel":
        """
        Accept a level name, a stdlib level number, or a LogLevel.

        Raises:
            ConfigurationError: If the value names no known level
        """
        if isinstance(value, LogLevel):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            for level in cls:
                if level.numeric == value:
                    return level
        elif isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise ConfigurationError(
            f"Unknown log level: {value!r}",
            config_key="log_level",
            value=value,
            help_text=f"Use one of: {', '.join(level.value for level in cls)}",
        )


class LogFormat(str, Enum):
    """Log output formats."""

    STRUCTURED = "structured"
    SIMPLE = "simple"
    JSON = "json"
    CONSOLE = "console"


class ContextKeys:
    """Context keys shared by every record."""

    COMPONENT = "component"
    OPERATION = "operation"
    DURATION_MS = "duration_ms"
    ERROR_TYPE = "error_type"


class AspectLogger(Protocol):
    """What the invocation aspect needs from a logger."""

    def is_enabled(self, level: Union[LogLevel, str, int]) -> bool: ...

    def log(self, level: Union[LogLevel, str, int], template: TemplateLike, *values: Any) -> None: ...

    def begin_scope(
        self,
        state: Union[TemplateLike, Mapping[str, Any], Iterable[Tuple[str, Any]]],
        *values: Any,
    ) -> ContextManager[None]: ...


class StructuredLogger:
    """
    Structured logger with level checks, templated records and scopes.

    Provides consistent logging across logaspect components and is the default
    :class:`AspectLogger` handed to the invocation aspect.
    """

    def __init__(
        self,
        component: str,
        *,
        logger_name: Optional[str] = None,
        base_context: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize structured logger for component.

        Args:
            component: Component name (e.g., "aspect", "extraction", "orders")
            logger_name: Optional logger name (defaults to ``logaspect.<component>``)
            base_context: Base context added to all log messages
        """
        self.component = component
        self.logger_name = logger_name or f"logaspect.{component}"
        self.base_context = dict(base_context or {})

        self._logger = structlog.get_logger(self.logger_name)
        self._stdlib_logger = logging.getLogger(self.logger_name)

        self.base_context[ContextKeys.COMPONENT] = component

    def is_enabled(self, level: Union[LogLevel, str, int]) -> bool:
        """Check the underlying stdlib logger's effective level."""
        return self._stdlib_logger.isEnabledFor(LogLevel.coerce(level).numeric)

    def _log_with_context(
        self,
        level: LogLevel,
        message: str,
        *,
        extra_context: Optional[Dict[str, Any]] = None,
        exception: Optional[Exception] = None,
    ) -> None:
        """
        Internal logging method with context management.

        Args:
            level: Log level
            message: Log message
            extra_context: Additional context for this log entry
            exception: Exception to include in log
        """
        if not self.is_enabled(level):
            return

        context = self.base_context.copy()

        if extra_context:
            context.update(extra_context)
            context.pop("event", None)

        if exception:
            context.update(
                {
                    ContextKeys.ERROR_TYPE: type(exception).__name__,
                    "error_message": str(exception),
                }
            )

        context["timestamp"] = datetime.now(timezone.utc).isoformat()

        if level is LogLevel.TRACE:
            # structlog has no TRACE method
            message = f"[TRACE] {message}"
            log_method = self._logger.debug
        else:
            log_method = getattr(self._logger, level.value.lower())

        log_method(message, **context)

    def log(self, level: Union[LogLevel, str, int], template: TemplateLike, *values: Any) -> None:
        """
        Emit a templated record.

        Placeholders are filled positionally from ``values`` and also attached
        as structured fields under their placeholder names. Placeholders named
        like a reserved record key or a base-context key only appear in the
        rendered message.
        """
        resolved = LogLevel.coerce(level)
        if not self.is_enabled(resolved):
            return

        text = str(template)
        context = {
            name: value
            for name, value in template_properties(text, values).items()
            if name not in RESERVED_KEYS and name not in self.base_context
        }
        context[MESSAGE_TEMPLATE_KEY] = text
        self._log_with_context(resolved, render_template(text, values), extra_context=context)

    def begin_scope(
        self,
        state: Union[TemplateLike, Mapping[str, Any], Iterable[Tuple[str, Any]]],
        *values: Any,
    ) -> ContextManager[None]:
        """
        Open an ambient logging scope.

        A mapping (or sequence of key/value pairs) binds its items for every
        record logged inside the scope. A template string is rendered with
        ``values`` and appended to the nested ``scope`` tuple.

        Returns:
            Context manager that releases the scope on exit
        """
        if isinstance(state, (str, Template)):
            rendered = render_template(str(state), values)
            current = structlog_contextvars.get_contextvars().get(SCOPE_KEY, ())
            return structlog_contextvars.bound_contextvars(**{SCOPE_KEY: (*current, rendered)})

        return structlog_contextvars.bound_contextvars(**dict(state))

    def trace(self, message: str, *, extra_context: Optional[Dict[str, Any]] = None) -> None:
        """Log trace message (very detailed debugging)."""
        self._log_with_context(LogLevel.TRACE, message, extra_context=extra_context)

    def debug(self, message: str, *, extra_context: Optional[Dict[str, Any]] = None) -> None:
        """Log debug message."""
        self._log_with_context(LogLevel.DEBUG, message, extra_context=extra_context)

    def info(self, message: str, *, extra_context: Optional[Dict[str, Any]] = None) -> None:
        """Log info message."""
        self._log_with_context(LogLevel.INFO, message, extra_context=extra_context)

    def warning(
        self,
        message: str,
        *,
        extra_context: Optional[Dict[str, Any]] = None,
        exception: Optional[Exception] = None,
    ) -> None:
        """Log warning message."""
        self._log_with_context(
            LogLevel.WARNING, message, extra_context=extra_context, exception=exception
        )

    def error(
        self,
        message: str,
        *,
        extra_context: Optional[Dict[str, Any]] = None,
        exception: Optional[Exception] = None,
    ) -> None:
        """Log error message."""
        self._log_with_context(
            LogLevel.ERROR, message, extra_context=extra_context, exception=exception
        )

    def critical(
        self,
        message: str,
        *,
        extra_context: Optional[Dict[str, Any]] = None,
        exception: Optional[Exception] = None,
    ) -> None:
        """Log critical message."""
        self._log_with_context(
            LogLevel.CRITICAL, message, extra_context=extra_context, exception=exception
        )

    def performance_timer(
        self, operation: str, *, threshold_ms: Optional[float] = None
    ) -> "PerformanceTimer":
        """
        Create performance timer for operation.

        Args:
            operation: Operation name for timing
            threshold_ms: Only log if duration exceeds threshold

        Returns:
            Performance timer context manager
        """
        return PerformanceTimer(self, operation, threshold_ms=threshold_ms)


class PerformanceTimer:
    """Times a block and logs its duration on exit, optionally above a threshold."""

    def __init__(
        self,
        logger: StructuredLogger,
        operation: str,
        *,
        threshold_ms: Optional[float] = None,
        log_level: LogLevel = LogLevel.DEBUG,
    ):
        self.logger = logger
        self.operation = operation
        self.threshold_ms = threshold_ms
        self.log_level = log_level
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    def __enter__(self) -> "PerformanceTimer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[types.TracebackType],
    ) -> None:
        self.end_time = time.perf_counter()

        if self.start_time is not None:
            duration_ms = (self.end_time - self.start_time) * 1000

            if self.threshold_ms is None or duration_ms >= self.threshold_ms:
                self.logger._log_with_context(
                    self.log_level,
                    f"Operation '{self.operation}' completed",
                    extra_context={
                        ContextKeys.OPERATION: self.operation,
                        ContextKeys.DURATION_MS: round(duration_ms, 2),
                    },
                )

    @property
    def duration_ms(self) -> Optional[float]:
        """Elapsed milliseconds, once the block has exited."""
        if self.start_time is not None and self.end_time is not None:
            return (self.end_time - self.start_time) * 1000
        return None


class LoggerFactory:
    """Configures structlog and the stdlib root logger; hands out cached component loggers."""

    _loggers: Dict[str, StructuredLogger] = {}
    _configured: bool = False

    @classmethod
    def configure_logging(
        cls,
        level: Union[LogLevel, str] = LogLevel.INFO,
        format_type: str = "structured",
        log_file: Optional[Path] = None,
        enable_console: bool = True,
    ) -> None:
        """
        Configure global logging settings.

        Args:
            level: Minimum log level (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL)
            format_type: Log format (structured, simple, json, console)
            log_file: Optional log file path
            enable_console: Enable console output
        """
        resolved = LogLevel.coerce(level)
        logging.addLevelName(TRACE_LEVEL, LogLevel.TRACE.value)

        processors: List[Any] = [
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
        ]

        if format_type == LogFormat.JSON.value:
            processors.append(structlog.processors.JSONRenderer())
        elif format_type == LogFormat.CONSOLE.value:
            processors.append(structlog.dev.ConsoleRenderer(colors=True))
        else:
            processors.append(structlog.processors.KeyValueRenderer())

        structlog.configure(
            processors=processors,
            wrapper_class=structlog.make_filtering_bound_logger(resolved.numeric),
            logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
            cache_logger_on_first_use=True,
        )

        logging_config: Dict[str, Any] = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structured": {
                    "format": "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
                },
                "simple": {"format": "%(levelname)s: %(message)s"},
                "console": {
                    "format": "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
                },
            },
            "handlers": {},
            "root": {
                "level": resolved.value,
                "handlers": [],
            },
        }

        stdlib_format = format_type if format_type != LogFormat.JSON.value else "structured"

        if enable_console:
            logging_config["handlers"]["console"] = {
                "class": "logging.StreamHandler",
                "formatter": stdlib_format,
                "level": resolved.value,
                "stream": "ext://sys.stderr",
            }
            logging_config["root"]["handlers"].append("console")

        if log_file:
            logging_config["handlers"]["file"] = {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": stdlib_format,
                "level": resolved.value,
                "filename": str(log_file),
                "maxBytes": 10 * 1024 * 1024,  # 10MB
                "backupCount": 5,
            }
            logging_config["root"]["handlers"].append("file")

        logging.config.dictConfig(logging_config)
        cls._configured = True

    @classmethod
    def configure_from_env(cls, prefix: str = "LOGASPECT_") -> None:
        """
        Configure logging from ``<prefix>LOG_LEVEL``, ``<prefix>LOG_FORMAT``
        and ``<prefix>LOG_FILE``.
        """
        log_file = os.getenv(f"{prefix}LOG_FILE")
        cls.configure_logging(
            level=os.getenv(f"{prefix}LOG_LEVEL", LogLevel.INFO.value),
            format_type=os.getenv(f"{prefix}LOG_FORMAT", LogFormat.STRUCTURED.value),
            log_file=Path(log_file) if log_file else None,
        )

    @classmethod
    def get_logger(
        cls,
        component: str,
        *,
        logger_name: Optional[str] = None,
        base_context: Optional[Dict[str, Any]] = None,
    ) -> StructuredLogger:
        """
        Get or create logger for component.

        Args:
            component: Component name
            logger_name: Optional logger name
            base_context: Base context for all log messages

        Returns:
            StructuredLogger instance for component
        """
        cache_key = f"{component}:{logger_name or component}"

        logger = cls._loggers.get(cache_key)
        if logger is None:
            logger = cls._loggers.setdefault(
                cache_key,
                StructuredLogger(
                    component,
                    logger_name=logger_name,
                    base_context=base_context,
                ),
            )

        return logger


__all__ = [
    "AspectLogger",
    "ContextKeys",
    "LogFormat",
    "LogLevel",
    "LoggerFactory",
    "PerformanceTimer",
    "RESERVED_KEYS",
    "SCOPE_KEY",
    "StructuredLogger",
    "TRACE_LEVEL",
]
