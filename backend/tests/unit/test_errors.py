# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for API errors and logger setup
"""

import json
import logging

import pytest

from chatflow.core import errors
from chatflow.core.errors import (
    ConfigurationError,
    ConflictError,
    NotFoundError,
    SessionNotFoundError,
    ValidationError,
    WorkflowNotActiveError,
    sanitize_error_for_user,
)
from chatflow.core.logging import JSONFormatter, get_logger, log_event
from chatflow.engine.exceptions import NodeTimeoutException


@pytest.mark.parametrize("error,status", [
    (NotFoundError("Workflow", "wf_1"), 404),
    (SessionNotFoundError("s1"), 404),
    (WorkflowNotActiveError("wf_1"), 404),
    (ValidationError("Message is required", field="message"), 400),
    (ConflictError("Workflow 'wf_1' already exists"), 409),
    (ConfigurationError("bad policy", config_file="configs/chatflow.yaml"), 500),
])
def test_status_codes(error, status):
    assert error.status_code == status


def test_to_dict():
    assert SessionNotFoundError("s1").to_dict() == {"error": "Session not found: s1", "details": {}}
    assert ConfigurationError("bad", config_file="c.yaml").to_dict()["details"] == {"configFile": "c.yaml"}


def test_only_raised_errors_are_defined():
    assert not hasattr(errors, "ExecutionError")
    assert not hasattr(errors, "ServiceUnavailableError")


def test_sanitize_keeps_first_line_and_caps_length():
    assert sanitize_error_for_user(RuntimeError("boom\nTraceback ...")) == "RuntimeError: boom"
    assert sanitize_error_for_user(ValueError("x" * 600), include_type=False) == "x" * 500 + "..."


def test_timeout_message():
    error = NodeTimeoutException("slow", 60.0)
    assert str(error) == "Execution exceeded timeout (60.0s)"
    assert error.node_id == "slow"


def test_get_logger_has_one_stdout_handler():
    get_logger("chatflow.test.handlers", log_level="DEBUG", log_format="text")
    logger = get_logger("chatflow.test.handlers", log_level="WARNING", log_format="json")

    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)
    assert isinstance(logger.handlers[0].formatter, JSONFormatter)
    assert logger.level == logging.WARNING


def test_log_event_fields_are_top_level_keys():
    logger = get_logger("chatflow.test.events", log_level="INFO", log_format="json")
    records = []
    handler = logging.Handler()
    handler.emit = records.append
    logger.addHandler(handler)

    log_event(logger, "node_failed", level="WARNING", node_id="a", duration_ms=1.5)

    entry = json.loads(JSONFormatter().format(records[0]))
    assert entry["level"] == "WARNING"
    assert entry["message"] == "node_failed"
    assert entry["event"] == "node_failed"
    assert entry["node_id"] == "a"
    assert entry["duration_ms"] == 1.5
    assert "levelno" not in entry
