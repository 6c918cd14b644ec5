"""
Unit tests for structured JSON logging and correlation ids.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest

from profile_search.core.logging import (
    CorrelationIdFilter,
    JSONFormatter,
    clear_correlation_id,
    get_correlation_id,
    get_log_level_from_env,
    set_correlation_id,
    setup_structured_logging,
)

_TEST_LOGGER = "profile_search_logging_test"


def _record(message: str, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        name="profile_search.search.hybrid",
        level=level,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )


class TestCorrelationId:
    def test_set_get_clear(self) -> None:
        set_correlation_id("req-1")
        assert get_correlation_id() == "req-1"
        clear_correlation_id()
        assert get_correlation_id() is None

    def test_filter_injects_id(self) -> None:
        record = _record("hello")
        set_correlation_id("req-2")
        try:
            CorrelationIdFilter().filter(record)
        finally:
            clear_correlation_id()
        assert record.correlation_id == "req-2"

    def test_filter_uses_dash_without_id(self) -> None:
        record = _record("hello")
        CorrelationIdFilter().filter(record)
        assert record.correlation_id == "-"


class TestJSONFormatter:
    def test_standard_fields(self) -> None:
        record = _record("Hybrid search completed")
        CorrelationIdFilter().filter(record)

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["service"] == "profile-search"
        assert data["logger"] == "profile_search.search.hybrid"
        assert data["message"] == "Hybrid search completed"
        assert data["correlation_id"] == "-"
        assert "timestamp" in data
        assert "exception" not in data

    def test_exception_included(self) -> None:
        try:
            raise ValueError("bad vector")
        except ValueError:
            record = logging.LogRecord(
                name="x",
                level=logging.ERROR,
                pathname=__file__,
                lineno=1,
                msg="failed",
                args=(),
                exc_info=sys.exc_info(),
            )
        data = json.loads(JSONFormatter().format(record))
        assert "ValueError: bad vector" in data["exception"]


class TestSetup:
    def test_level_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PROFILE_SEARCH_LOG_LEVEL", "debug")
        assert get_log_level_from_env() == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PROFILE_SEARCH_LOG_LEVEL", "chatty")
        assert get_log_level_from_env() == logging.INFO

    def test_file_handler_writes_json_lines(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "search.log"
        logger = setup_structured_logging(
            logger_name=_TEST_LOGGER,
            log_file_path=str(log_file),
            log_level=logging.INFO,
        )
        try:
            logger.info("indexed %d profiles", 3)
            for handler in logger.handlers:
                handler.flush()

            line = log_file.read_text(encoding="utf-8").strip().splitlines()[-1]
            assert json.loads(line)["message"] == "indexed 3 profiles"
            assert logger.propagate is False
            assert len(logger.handlers) == 2
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
