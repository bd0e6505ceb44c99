"""Tests for structured error codes and per-file error records."""

import logging

from changegraph.modules.core.errors import (
    ERR_READ,
    ContentReadError,
    FileError,
    log_and_return_empty,
    make_error,
    make_read_error,
)


def test_make_error_shape():
    err = make_error(ERR_READ, "boom", path="/x")
    assert err == {"error": True, "code": ERR_READ, "message": "boom", "details": {"path": "/x"}}


def test_read_error_record():
    record = make_read_error("/r/a.go", "permission denied")
    assert isinstance(record, FileError)
    assert record.code == ERR_READ
    assert record.to_dict()["path"] == "/r/a.go"


def test_content_read_error_is_oserror():
    exc = ContentReadError("/r/a.go", "gone")
    assert isinstance(exc, OSError)
    assert exc.path == "/r/a.go"
    assert "gone" in str(exc)


def test_log_and_return_empty_logs(caplog):
    logger = logging.getLogger("changegraph.test")
    with caplog.at_level(logging.DEBUG, logger="changegraph.test"):
        result = log_and_return_empty(logger, logging.DEBUG, "fallback", ValueError("x"))
    assert result == []
    assert "fallback: x" in caplog.text


def test_log_and_return_empty_custom_value():
    logger = logging.getLogger("changegraph.test")
    assert log_and_return_empty(logger, logging.DEBUG, "m", return_value={"a": 1}) == {"a": 1}
