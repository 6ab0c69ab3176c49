"""Tests for structured logging helpers."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from pkgscope.logging import JsonFormatter, get_logger, with_fields


def test_status_is_inferred_from_level(caplog: pytest.LogCaptureFixture) -> None:
    logger = get_logger("pkgscope.tests.status")
    with caplog.at_level(logging.INFO, logger="pkgscope.tests.status"):
        logger.info("done")
        logger.warning("careful")
        logger.error("failed")
        logger.info("explicit", extra={"status": "started"})
    statuses = [record.status for record in caplog.records]
    assert statuses == ["success", "warning", "error", "started"]
    assert all(record.operation == "unknown" for record in caplog.records)


def test_with_fields_binds_context(caplog: pytest.LogCaptureFixture) -> None:
    logger = get_logger("pkgscope.tests.bound")
    with caplog.at_level(logging.INFO, logger="pkgscope.tests.bound"):
        with with_fields(logger, operation="update_db", platform="osx64") as log:
            log.info("merged", extra={"platform": "linux64", "package": "zlib"})
    (record,) = caplog.records
    assert record.operation == "update_db"
    assert record.platform == "linux64"
    assert record.package == "zlib"


def test_json_formatter_keeps_structured_fields() -> None:
    record = logging.LogRecord(
        "pkgscope.x", logging.WARNING, __file__, 1, "hello %s", ("you",), None
    )
    record.operation = "trace"
    record.module_name = "glue"
    record.payload = object()
    data = json.loads(JsonFormatter().format(record))
    assert data["message"] == "hello you"
    assert data["level"] == "WARNING"
    assert data["operation"] == "trace"
    assert data["module_name"] == "glue"
    assert "payload" not in data
    assert "lineno" not in data


def test_json_formatter_includes_exception() -> None:
    try:
        raise ValueError("bad")
    except ValueError:
        exc_info = sys.exc_info()
    record = logging.LogRecord("pkgscope.x", logging.ERROR, __file__, 1, "failed", (), exc_info)
    data = json.loads(JsonFormatter().format(record))
    assert "ValueError: bad" in data["exc_info"]
