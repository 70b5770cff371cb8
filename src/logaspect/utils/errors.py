"""Unified error handling for logaspect with structured context."""

from typing import Any, Dict, Optional
from datetime import datetime, timezone
from enum import Enum


class ErrorSeverity(str, Enum):
    """Error severity levels for classification and handling."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Error categories for structured handling."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    INTROSPECTION = "introspection"
    RUNTIME = "runtime"


class LogAspectError(Exception):
    """
    Base exception for logaspect.

    Carries a context dict that is logged alongside the failure, so plan and
    configuration errors show up with the type, member or variable involved.
    """

    def __init__(
        self,
        message: str,
        *,
        context: Optional[Dict[str, Any]] = None,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        category: ErrorCategory = ErrorCategory.RUNTIME,
        operation: Optional[str] = None,
        component: Optional[str] = None,
        user_message: Optional[str] = None,
        help_text: Optional[str] = None,
    ):
        """
        Args:
            message: What went wrong
            context: Extra fields for the log record
            operation: Failing operation, e.g. "build_plan" or "from_env"
            component: Failing component, e.g. "extraction" or "options"
            user_message: Short summary for CLI output; defaults to ``message``
            help_text: How to fix it
        """
        super().__init__(message)

        self.message = message
        self.context = context or {}
        self.severity = severity
        self.category = category
        self.operation = operation
        self.component = component
        self.user_message = user_message or message
        self.help_text = help_text
        self.timestamp = datetime.now(timezone.utc)

        self.context.update(
            {
                "timestamp": self.timestamp.isoformat(),
                "severity": self.severity.value,
                "category": self.category.value,
            }
        )

        if self.operation:
            self.context["operation"] = self.operation
        if self.component:
            self.context["component"] = self.component

    def __str__(self) -> str:
        if self.operation and self.component:
            return f"[{self.component.upper()}] {self.operation} failed: {self.message}"
        elif self.operation:
            return f"Operation '{self.operation}' failed: {self.message}"
        return self.message

    def get_context_for_logging(self) -> Dict[str, Any]:
        """Fields for ``extra_context`` when the error is logged."""
        log_context = self.context.copy()
        log_context.update(
            {
                "error_type": self.__class__.__name__,
                "error_message": self.message,
                "user_message": self.user_message,
            }
        )

        if self.help_text:
            log_context["help_text"] = self.help_text

        return log_context

    def with_context(self, **additional_context: Any) -> "LogAspectError":
        """Add context in place and return the error for re-raising."""
        self.context.update(additional_context)
        return self

    def is_user_error(self) -> bool:
        """Misconfiguration or a misused marker, as opposed to a runtime fault."""
        return self.category in [
            ErrorCategory.VALIDATION,
            ErrorCategory.CONFIGURATION,
        ]


class ConfigurationError(LogAspectError):
    """Configuration-related errors."""

    def __init__(
        self,
        message: str,
        *,
        config_key: Optional[str] = None,
        value: Any = None,
        user_message: Optional[str] = None,
        help_text: Optional[str] = None,
        **kwargs: Any,  # Justified: kwargs can contain arbitrary structured data
    ) -> None:
        super().__init__(
            message,
            component="options",
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.ERROR,
            user_message=user_message or "Configuration error",
            help_text=help_text
            or "Check the logging aspect options and environment variables",
            **kwargs,
        )

        if config_key:
            self.context["config_key"] = config_key
        if value is not None:
            self.context["invalid_value"] = str(value)


class MarkerError(LogAspectError):
    """A logging marker was applied to something it cannot describe."""

    def __init__(
        self,
        message: str,
        *,
        target: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            component="markers",
            category=ErrorCategory.VALIDATION,
            user_message="Invalid logging marker",
            help_text="@loggable only decorates classes; omit/replace name existing members",
            **kwargs,
        )

        if target:
            self.context["target"] = target


class ExtractionPlanError(LogAspectError):
    """
    Building the extraction plan for a type failed.

    Raised from the first extraction that touches the type and re-raised from
    every later one. It points at a malformed loggable type, not a runtime
    condition.
    """

    def __init__(
        self,
        message: str,
        *,
        type_name: str,
        member: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(
            message,
            operation="build_plan",
            component="extraction",
            category=ErrorCategory.INTROSPECTION,
            severity=ErrorSeverity.CRITICAL,
            user_message=f"Cannot build a loggable plan for {type_name}",
            **kwargs,
        )

        self.context["type_name"] = type_name
        if member:
            self.context["member"] = member
