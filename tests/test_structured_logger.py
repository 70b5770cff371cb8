"""Tests for the structlog-backed logger, its scopes and the factory."""

import logging
from dataclasses import dataclass

import pytest
import structlog

from logaspect.aspect import LoggingAspect
from logaspect.markers import loggable
from logaspect.utils.errors import ConfigurationError
from logaspect.utils.logging import (
    MESSAGE_TEMPLATE_KEY,
    SCOPE_KEY,
    TRACE_LEVEL,
    LoggerFactory,
    LogLevel,
    StructuredLogger,
)

LOGGER_NAME = "logaspect.test.structured"
ASSEMBLY = __name__.split(".", 1)[0]


@loggable
@dataclass
class Invoice:
    number: str


class Billing:
    def issue(self, invoice):
        return Invoice(number=f"{invoice.number}-final")


@pytest.fixture
def stdlib_level():
    """Set the test logger's stdlib level; restored afterwards."""
    stdlib_logger = logging.getLogger(LOGGER_NAME)
    previous = stdlib_logger.level

    def _set(level: int) -> None:
        stdlib_logger.setLevel(level)

    yield _set
    stdlib_logger.setLevel(previous)


@pytest.fixture
def logger(log_capture, stdlib_level):
    stdlib_level(TRACE_LEVEL)
    return StructuredLogger("test", logger_name=LOGGER_NAME)


class TestLogLevel:
    def test_numeric(self):
        assert LogLevel.TRACE.numeric == TRACE_LEVEL
        assert LogLevel.DEBUG.numeric == logging.DEBUG
        assert LogLevel.CRITICAL.numeric == logging.CRITICAL

    def test_coerce(self):
        assert LogLevel.coerce("warning") is LogLevel.WARNING
        assert LogLevel.coerce(logging.ERROR) is LogLevel.ERROR
        assert LogLevel.coerce(LogLevel.INFO) is LogLevel.INFO

    @pytest.mark.parametrize("value", ["verbose", 7, True, None])
    def test_coerce_rejects(self, value):
        with pytest.raises(ConfigurationError):
            LogLevel.coerce(value)


class TestStructuredLogger:
    def test_is_enabled_follows_stdlib_level(self, logger, stdlib_level):
        stdlib_level(logging.INFO)

        assert logger.is_enabled(LogLevel.INFO)
        assert not logger.is_enabled(LogLevel.DEBUG)
        assert not logger.is_enabled("TRACE")

    def test_templated_record(self, logger, log_capture):
        logger.log(LogLevel.DEBUG, "Executing {MethodName} on {ClassName}", "run", "Job")

        [entry] = log_capture.entries
        assert entry["event"] == "Executing run on Job"
        assert entry["MethodName"] == "run"
        assert entry["ClassName"] == "Job"
        assert entry[MESSAGE_TEMPLATE_KEY] == "Executing {MethodName} on {ClassName}"
        assert entry["component"] == "test"
        assert entry["log_level"] == "debug"

    def test_reserved_placeholders_stay_in_message(self, logger, log_capture):
        logger.log(
            LogLevel.INFO,
            "{event} at {timestamp} by {component} for {Who}",
            "deploy",
            "noon",
            "ops",
            "ada",
        )

        [entry] = log_capture.entries
        assert entry["event"] == "deploy at noon by ops for ada"
        assert entry["component"] == "test"
        assert entry.get("timestamp") != "noon"
        assert entry["Who"] == "ada"

    def test_trace_goes_through_debug(self, logger, log_capture):
        logger.log(LogLevel.TRACE, "fine detail")

        [entry] = log_capture.entries
        assert entry["event"] == "[TRACE] fine detail"
        assert entry["log_level"] == "debug"

    def test_disabled_level_writes_nothing(self, logger, log_capture, stdlib_level):
        stdlib_level(logging.WARNING)

        logger.log(LogLevel.DEBUG, "hidden")
        logger.info("also hidden")

        assert log_capture.entries == []

    def test_mapping_scope(self, logger, log_capture):
        with logger.begin_scope([("Order_id", 7), ("Order_state", "open")]):
            logger.info("inside")
        logger.info("outside")

        inside, outside = log_capture.entries
        assert inside["Order_id"] == 7
        assert inside["Order_state"] == "open"
        assert "Order_id" not in outside

    def test_template_scopes_nest(self, logger, log_capture):
        with logger.begin_scope("{ClassName}.{MethodName}", "Svc", "run"):
            with logger.begin_scope("inner"):
                logger.info("deep")
            logger.info("shallow")
        logger.info("top")

        deep, shallow, top = log_capture.entries
        assert deep[SCOPE_KEY] == ("Svc.run", "inner")
        assert shallow[SCOPE_KEY] == ("Svc.run",)
        assert SCOPE_KEY not in top

    def test_error_includes_exception(self, logger, log_capture):
        logger.error("failed", exception=ValueError("bad input"))

        [entry] = log_capture.entries
        assert entry["error_type"] == "ValueError"
        assert entry["error_message"] == "bad input"

    def test_performance_timer(self, logger, log_capture):
        with logger.performance_timer("checkout") as timer:
            pass

        [entry] = log_capture.entries
        assert entry["operation"] == "checkout"
        assert timer.duration_ms is not None
        assert entry["duration_ms"] >= 0

    def test_aspect_records_carry_scopes(self, logger, log_capture):
        LoggingAspect(logger).invoke(Billing().issue, Invoice(number="A-1"))

        executing, executed = log_capture.entries
        assert executing["event"] == f"Executing method issue on class Billing in assembly {ASSEMBLY}."
        assert executing["Invoice_number"] == "A-1"
        assert SCOPE_KEY not in executing
        assert executed["event"] == f"Executed method issue on class Billing in assembly {ASSEMBLY}."
        assert executed["Invoice_number"] == "A-1-final"


class TestLoggerFactory:
    def test_get_logger_cached(self):
        first = LoggerFactory.get_logger("factory-test")

        assert LoggerFactory.get_logger("factory-test") is first
        assert first.logger_name == "logaspect.factory-test"
        assert first.base_context["component"] == "factory-test"

    def test_logger_name_distinguishes(self):
        default = LoggerFactory.get_logger("factory-test")
        named = LoggerFactory.get_logger("factory-test", logger_name="custom.name")

        assert named is not default
        assert named.logger_name == "custom.name"

    def test_configure_logging(self, tmp_path):
        root = logging.getLogger()
        previous_level, previous_handlers = root.level, root.handlers[:]
        try:
            LoggerFactory.configure_logging(
                level="TRACE",
                format_type="json",
                log_file=tmp_path / "aspect.log",
                enable_console=False,
            )

            assert logging.getLevelName(TRACE_LEVEL) == "TRACE"
            assert root.level == TRACE_LEVEL
            assert (tmp_path / "aspect.log").exists()
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers = previous_handlers
            root.setLevel(previous_level)
            structlog.reset_defaults()

    def test_configure_from_env(self, monkeypatch):
        monkeypatch.setenv("LOGASPECT_LOG_LEVEL", "bogus")

        with pytest.raises(ConfigurationError):
            LoggerFactory.configure_from_env()
