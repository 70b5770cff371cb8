"""Shared fixtures: a recording logger and structlog capture."""

from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Optional, Tuple

import pytest
import structlog
from structlog.testing import LogCapture

from logaspect.templates import Template, render_template
from logaspect.utils.logging import LogLevel


class RecordingLogger:
    """AspectLogger that records levels, records and scope enter/exit events."""

    def __init__(self, enabled: Iterable[LogLevel] = (LogLevel.TRACE, LogLevel.DEBUG)):
        self.enabled = set(enabled)
        self.events: List[Tuple[Any, ...]] = []
        self.active: List[Any] = []

    def is_enabled(self, level: Any) -> bool:
        return LogLevel.coerce(level) in self.enabled

    def log(self, level: Any, template: Any, *values: Any) -> None:
        self.events.append(("log", LogLevel.coerce(level), str(template), values, tuple(self.active)))

    @contextmanager
    def begin_scope(self, state: Any, *values: Any) -> Iterator[None]:
        if isinstance(state, (str, Template)):
            label: Any = render_template(str(state), values)
        else:
            label = tuple(state)

        self.active.append(label)
        self.events.append(("enter", label))
        try:
            yield
        finally:
            self.active.pop()
            self.events.append(("exit", label))

    def records(self) -> List[Tuple[Any, ...]]:
        return [event for event in self.events if event[0] == "log"]

    def entered(self) -> List[Any]:
        return [event[1] for event in self.events if event[0] == "enter"]

    def exited(self) -> List[Any]:
        return [event[1] for event in self.events if event[0] == "exit"]


@pytest.fixture
def recording_logger():
    """Factory for recording loggers with the given levels enabled."""

    def _make(enabled: Optional[Iterable[LogLevel]] = None) -> RecordingLogger:
        if enabled is None:
            return RecordingLogger()
        return RecordingLogger(enabled)

    return _make


@pytest.fixture
def log_capture():
    """Route structlog output into a LogCapture, merging context variables."""
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    capture = LogCapture()
    structlog.configure(processors=[structlog.contextvars.merge_contextvars, capture])
    yield capture
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
