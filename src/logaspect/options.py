"""
Options for the logging aspect.

Defaults mirror the library's documented templates. Values can be overridden
in code or read from ``LOGASPECT_*`` environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional, Union

from logaspect.templates import Template, TemplateLike
from logaspect.utils.errors import ConfigurationError
from logaspect.utils.logging import LoggerFactory, LogLevel

logger = LoggerFactory.get_logger("options")

DEFAULT_EXECUTING_TEMPLATE = "Executing method {MethodName} on class {ClassName} in assembly {AssemblyName}."
DEFAULT_EXECUTED_TEMPLATE = "Executed method {MethodName} on class {ClassName} in assembly {AssemblyName}."
DEFAULT_SCOPE_TEMPLATE = "{ClassName}.{MethodName} ({AssemblyName})"

ENV_PREFIX = "LOGASPECT_"


@dataclass(frozen=True)
class LoggingAspectOptions:
    """Templates and levels used by :class:`~logaspect.aspect.LoggingAspect`."""

    execution_log_level: LogLevel = LogLevel.DEBUG
    state_items_log_level: LogLevel = LogLevel.TRACE
    method_executing_template: TemplateLike = Template.of(DEFAULT_EXECUTING_TEMPLATE)
    method_executed_template: TemplateLike = Template.of(DEFAULT_EXECUTED_TEMPLATE)
    scope_template: TemplateLike = Template.of(DEFAULT_SCOPE_TEMPLATE)

    def __post_init__(self) -> None:
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "execution_log_level", LogLevel.coerce(self.execution_log_level))
        object.__setattr__(self, "state_items_log_level", LogLevel.coerce(self.state_items_log_level))
        for name in ("method_executing_template", "method_executed_template", "scope_template"):
            value = getattr(self, name)
            if not isinstance(value, (str, Template)):
                raise ConfigurationError(
                    f"{name} must be a string template",
                    config_key=name,
                    value=value,
                )
            object.__setattr__(self, name, Template.of(value))

    def with_overrides(self, **changes: Any) -> "LoggingAspectOptions":
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "LoggingAspectOptions":
        """
        Build options from environment variables.

        Recognised variables (with the default prefix):
            LOGASPECT_EXECUTION_LOG_LEVEL, LOGASPECT_STATE_ITEMS_LOG_LEVEL,
            LOGASPECT_EXECUTING_TEMPLATE, LOGASPECT_EXECUTED_TEMPLATE,
            LOGASPECT_SCOPE_TEMPLATE

        Raises:
            ConfigurationError: If a level variable names no known level
        """
        overrides: Dict[str, Union[LogLevel, str]] = {}

        for field_name, suffix in (
            ("execution_log_level", "EXECUTION_LOG_LEVEL"),
            ("state_items_log_level", "STATE_ITEMS_LOG_LEVEL"),
        ):
            raw = _env(prefix + suffix)
            if raw is not None:
                try:
                    overrides[field_name] = LogLevel.coerce(raw)
                except ConfigurationError as exc:
                    raise exc.with_context(variable=prefix + suffix)

        for field_name, suffix in (
            ("method_executing_template", "EXECUTING_TEMPLATE"),
            ("method_executed_template", "EXECUTED_TEMPLATE"),
            ("scope_template", "SCOPE_TEMPLATE"),
        ):
            raw = _env(prefix + suffix)
            if raw is not None:
                overrides[field_name] = raw

        if overrides:
            logger.info(
                "Logging aspect options overridden from environment",
                extra_context={"fields": sorted(overrides)},
            )

        return cls(**overrides)  # type: ignore[arg-type]


def _env(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value


__all__ = [
    "DEFAULT_EXECUTED_TEMPLATE",
    "DEFAULT_EXECUTING_TEMPLATE",
    "DEFAULT_SCOPE_TEMPLATE",
    "ENV_PREFIX",
    "LoggingAspectOptions",
]
