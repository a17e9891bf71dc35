"""
pdbconf — unit tests for observability logging

File: tests/unit/observability/test_logging.py
Last updated: 2026-10-17

Purpose
- Validate JSON and text logging with redaction and clean shutdown.

What this test file should cover
- JSON line validity and redaction of message text and structured fields.
- Text lines carry the section context.
- Shutdown restores the logger so later records propagate again.

Non-functional requirements
- Deterministic and non-flaky.
"""

from __future__ import annotations

import io
import json
import logging
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from pdbconf.observability.logging import (
    LoggingConfig,
    default_log_redactor,
    get_active_logging_handle,
    setup_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    shutdown_logging()


def _logger_name() -> str:
    return f"pdbconf.tests.logging.{uuid4().hex}"


@pytest.mark.unit
def test_json_logging_redacts_message_and_fields() -> None:
    stream = io.StringIO()
    logger_name = _logger_name()
    setup_logging(LoggingConfig(level="INFO", log_format="json", logger_name=logger_name, stream=stream))

    logging.getLogger(logger_name).warning(
        "connecting with password=hunter2",
        extra={"section": "database", "migrator-password": "m1", "nested": {"token": "t", "safe": "ok"}},
    )
    shutdown_logging()

    (line,) = stream.getvalue().splitlines()
    event = json.loads(line)
    assert event["level"] == "WARNING"
    assert event["logger"] == logger_name
    assert event["message"] == "connecting with password=***REDACTED***"
    assert event["fields"]["section"] == "database"
    assert event["fields"]["migrator-password"] == "***REDACTED***"
    assert event["fields"]["nested"] == {"token": "***REDACTED***", "safe": "ok"}
    assert event["timestamp"].endswith("Z")


@pytest.mark.unit
def test_text_logging_includes_section_prefix() -> None:
    stream = io.StringIO()
    logger_name = _logger_name()
    setup_logging(LoggingConfig(level="WARNING", logger_name=logger_name, stream=stream))
    logger = logging.getLogger(logger_name)

    logger.info("hidden")
    logger.warning("retired option", extra={"section": "global"})
    logger.warning("no section")
    shutdown_logging()

    assert stream.getvalue().splitlines() == [
        "WARNING [global] retired option",
        "WARNING no section",
    ]


@pytest.mark.unit
def test_log_file_receives_records(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "pdbconf.jsonl"
    logger_name = _logger_name()
    setup_logging(
        LoggingConfig(
            log_format="json",
            logger_name=logger_name,
            stream=io.StringIO(),
            log_file=log_file,
        )
    )

    logging.getLogger(logger_name).error("boom")
    shutdown_logging()

    assert json.loads(log_file.read_text(encoding="utf-8"))["message"] == "boom"


@pytest.mark.unit
def test_shutdown_restores_propagation_and_clears_active_handle() -> None:
    logger_name = _logger_name()
    logger = logging.getLogger(logger_name)
    handle = setup_logging(LoggingConfig(logger_name=logger_name, stream=io.StringIO()))

    assert logger.propagate is False
    assert get_active_logging_handle() is handle

    shutdown_logging(handle)

    assert handle.is_shutdown
    assert logger.propagate is True
    assert logger.handlers == []
    assert get_active_logging_handle() is None


@pytest.mark.unit
def test_setup_replaces_previous_handle() -> None:
    first = setup_logging(LoggingConfig(logger_name=_logger_name(), stream=io.StringIO()))
    second = setup_logging(LoggingConfig(logger_name=_logger_name(), stream=io.StringIO()))

    assert first.is_shutdown
    assert get_active_logging_handle() is second


@pytest.mark.unit
@pytest.mark.parametrize(
    "config",
    [
        LoggingConfig(level="LOUD"),
        LoggingConfig(log_format="xml"),  # type: ignore[arg-type]
        LoggingConfig(logger_name="  "),
    ],
)
def test_invalid_logging_config_is_rejected(config: LoggingConfig) -> None:
    with pytest.raises(ValueError):
        setup_logging(config)


@pytest.mark.unit
def test_default_redactor_handles_key_value_text() -> None:
    assert default_log_redactor("user=pdb migrator-password: abc") == "user=pdb migrator-password:***REDACTED***"
    assert default_log_redactor({"passwd": "x", "list": ["token=abc"]}) == {
        "passwd": "***REDACTED***",
        "list": ["token=***REDACTED***"],
    }
