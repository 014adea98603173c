"""Unit tests for the logging utility."""

from __future__ import annotations

import json
import logging

from sessionkeeper.core.logger import JSONFormatter, configure_logging


def test_configure_logging_sets_level() -> None:
    """``configure_logging`` should set the root logger level."""

    # Act
    configure_logging("DEBUG")

    # Assert
    assert logging.getLogger().level == logging.DEBUG


def test_json_formatter_copies_structured_extras() -> None:
    """Known ``extra=`` keys are rendered as top-level JSON fields."""

    # Arrange
    record = logging.LogRecord(
        "sessionkeeper.test", logging.INFO, __file__, 1, "Login", None, None
    )
    record.event = "login"
    record.user_id = "u-1"
    record.refresh_token = "must-not-leak"

    # Act
    payload = json.loads(JSONFormatter().format(record))

    # Assert
    assert payload["message"] == "Login"
    assert payload["level"] == "INFO"
    assert payload["event"] == "login"
    assert payload["user_id"] == "u-1"
    assert "refresh_token" not in payload
