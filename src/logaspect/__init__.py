"""logaspect: method-invocation logging with structured scopes.

Wraps calls with "executing"/"executed" records, attaches key/value scopes
extracted from ``@loggable`` parameters and results, and keeps those scopes
in ``structlog.contextvars`` so nested log calls inherit them.
"""

from logaspect.aspect import (
    LoggingAspect,
    clear_method_names,
    create_logging_aspect,
    logged,
    resolve_method_names,
)
from logaspect.extraction import (
    LoggableStateExtractor,
    TypeExtractionPlan,
    default_extractor,
    parse_loggable,
)
from logaspect.markers import Omit, Replace, is_loggable, loggable, omitted, replaced
from logaspect.options import LoggingAspectOptions
from logaspect.templates import Template, TemplateOrderResolver, default_resolver, order_names
from logaspect.utils.errors import (
    ConfigurationError,
    ExtractionPlanError,
    LogAspectError,
    MarkerError,
)
from logaspect.utils.logging import LoggerFactory, LogLevel, StructuredLogger


def clear_caches() -> None:
    """Drop every process-wide cache (extraction plans, template offsets, method names)."""
    default_extractor().clear()
    default_resolver().clear()
    clear_method_names()


__all__ = [
    "ConfigurationError",
    "ExtractionPlanError",
    "LogAspectError",
    "LogLevel",
    "LoggableStateExtractor",
    "LoggerFactory",
    "LoggingAspect",
    "LoggingAspectOptions",
    "MarkerError",
    "Omit",
    "Replace",
    "StructuredLogger",
    "Template",
    "TemplateOrderResolver",
    "TypeExtractionPlan",
    "clear_caches",
    "create_logging_aspect",
    "is_loggable",
    "loggable",
    "logged",
    "omitted",
    "order_names",
    "parse_loggable",
    "replaced",
    "resolve_method_names",
]
