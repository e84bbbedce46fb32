"""Tests for logging configuration and formatters."""

import io
import json
import logging

import pytest

from autoapply.logging import ComponentLoggerAdapter, get_logger
from autoapply.logging.config import (
    SERVICE_NAME,
    ContextualFilter,
    JSONFormatter,
    KeyValueFormatter,
    configure_logging,
)
from autoapply.logging.context import clear_log_context, log_context


@pytest.fixture(autouse=True)
def clean_context():
    """Clear logging context before and after each test."""
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def logger():
    """A throwaway logger for building records."""
    test_logger = logging.getLogger("test_logger")
    test_logger.setLevel(logging.DEBUG)
    test_logger.handlers.clear()

    yield test_logger

    test_logger.handlers.clear()


@pytest.fixture
def restore_root_logger():
    """configure_logging() replaces root handlers; put the originals back."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_json_formatter_basic(logger):
    """JSONFormatter produces valid JSON with the mandatory fields."""
    record = logger.makeRecord("test", logging.INFO, "test.py", 1, "Test message", (), None)

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["level"] == "INFO"
    assert log_obj["message"] == "Test message"
    assert log_obj["logger"] == "test"
    assert "timestamp" in log_obj


def test_json_formatter_with_extra_fields(logger):
    record = logger.makeRecord(
        "test",
        logging.INFO,
        "test.py",
        1,
        "Application submitted",
        (),
        None,
        extra={"event": "application.submitted", "match_score": 91, "auto_applied": True},
    )

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["event"] == "application.submitted"
    assert log_obj["match_score"] == 91
    assert log_obj["auto_applied"] is True


def test_json_formatter_converts_tuples_and_objects(logger):
    record = logger.makeRecord(
        "test",
        logging.INFO,
        "test.py",
        1,
        "msg",
        (),
        None,
        extra={"tables": ("applications", "runs"), "obj": object()},
    )

    log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["tables"] == ["applications", "runs"]
    assert isinstance(log_obj["obj"], str)


def test_contextual_filter_adds_static_fields(logger):
    record = logger.makeRecord("test", logging.INFO, "test.py", 1, "msg", (), None)

    ContextualFilter(service="test-service", environment="test").filter(record)

    assert record.service == "test-service"
    assert record.environment == "test"


def test_contextual_filter_defaults_to_service_name(logger):
    record = logger.makeRecord("test", logging.INFO, "test.py", 1, "msg", (), None)

    ContextualFilter().filter(record)

    assert record.service == SERVICE_NAME


def test_contextual_filter_adds_context_fields(logger):
    with log_context(run_id="run-1", candidate_id="cand-42"):
        record = logger.makeRecord("test", logging.INFO, "test.py", 1, "msg", (), None)
        ContextualFilter().filter(record)

    assert record.run_id == "run-1"
    assert record.candidate_id == "cand-42"


def test_contextual_filter_does_not_override_extra(logger):
    """A field passed through extra wins over the same key in the context."""
    with log_context(candidate_id="from-context"):
        record = logger.makeRecord(
            "test", logging.INFO, "test.py", 1, "msg", (), None,
            extra={"candidate_id": "from-extra"},
        )
        ContextualFilter().filter(record)

    assert record.candidate_id == "from-extra"


def test_json_formatter_with_context(logger):
    """Context + filter + JSON formatter together."""
    with log_context(run_id="run-1", candidate_id="cand-42"):
        record = logger.makeRecord(
            "test", logging.INFO, "test.py", 1, "Candidate evaluated", (), None,
            extra={"event": "candidate.evaluated"},
        )
        ContextualFilter(service="auto-apply", environment="test").filter(record)
        log_obj = json.loads(JSONFormatter().format(record))

    assert log_obj["event"] == "candidate.evaluated"
    assert log_obj["service"] == "auto-apply"
    assert log_obj["environment"] == "test"
    assert log_obj["run_id"] == "run-1"
    assert log_obj["candidate_id"] == "cand-42"


def test_key_value_formatter_with_extras(logger):
    formatter = KeyValueFormatter("[%(levelname)s] %(name)s: %(message)s")
    record = logger.makeRecord(
        "test", logging.INFO, "test.py", 1, "Run completed", (), None,
        extra={
            "event": "pipeline.run.completed",
            "applications_submitted": 3,
            "had_errors": False,
            "error": None,
            "reason": "daily limit",
        },
    )

    output = formatter.format(record)

    assert output.startswith("[INFO] test: Run completed")
    assert "event=pipeline.run.completed" in output
    assert "applications_submitted=3" in output
    assert "had_errors=false" in output
    assert "error=null" in output
    assert 'reason="daily limit"' in output


def test_key_value_formatter_skips_static_labels(logger):
    formatter = KeyValueFormatter("%(message)s")
    record = logger.makeRecord("test", logging.INFO, "test.py", 1, "msg", (), None)
    ContextualFilter(environment="production").filter(record)

    output = formatter.format(record)

    assert "service=" not in output
    assert "environment=" not in output
    assert output == "msg"


def test_configure_logging_invalid_level():
    with pytest.raises(ValueError, match="Invalid log level"):
        configure_logging(level="INVALID")


def test_configure_logging_invalid_format():
    with pytest.raises(ValueError, match="Invalid log format"):
        configure_logging(format_type="xml")


def test_configure_logging_json_writes_to_stream(restore_root_logger):
    stream = io.StringIO()
    configure_logging(level="INFO", format_type="json", environment="test", stream=stream)

    handler = logging.getLogger().handlers[0]
    assert isinstance(handler.formatter, JSONFormatter)

    logging.getLogger("autoapply.test").info("hello", extra={"event": "test.event"})

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert lines[-1]["message"] == "hello"
    assert lines[-1]["event"] == "test.event"
    assert lines[-1]["environment"] == "test"


def test_configure_logging_key_value(restore_root_logger):
    configure_logging(level="DEBUG", format_type="key-value", stream=io.StringIO())

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, KeyValueFormatter)


def test_configure_logging_quiets_apscheduler(restore_root_logger):
    configure_logging(level="INFO", stream=io.StringIO())

    assert logging.getLogger("apscheduler").level == logging.WARNING


def test_timestamp_format_in_json(logger):
    record = logger.makeRecord("test", logging.INFO, "test.py", 1, "msg", (), None)

    timestamp = json.loads(JSONFormatter().format(record))["timestamp"]

    assert timestamp.endswith("Z")
    assert len(timestamp) == 24  # 2025-11-04T10:30:00.123Z


def test_get_logger_with_component_merges_extra():
    adapter = get_logger("autoapply.test", component="pipeline")
    assert isinstance(adapter, ComponentLoggerAdapter)

    _, kwargs = adapter.process("msg", {"extra": {"event": "x"}})
    assert kwargs["extra"] == {"component": "pipeline", "event": "x"}

    _, kwargs = adapter.process("msg", {"extra": {"component": "override"}})
    assert kwargs["extra"]["component"] == "override"


def test_get_logger_without_component_returns_logger():
    assert isinstance(get_logger("autoapply.test"), logging.Logger)
