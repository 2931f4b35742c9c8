"""Tests for truthseeker.utils.logging."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from truthseeker.utils.logging import (
    LogBuffer,
    LogContext,
    get_logger,
    log_context,
    set_level,
    setup_logging,
)


def test_setup_logging_writes_file(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "truthseeker.log"
    setup_logging(level="DEBUG", log_file=log_file)

    get_logger("tests").info("case file loaded")

    assert "case file loaded" in log_file.read_text(encoding="utf-8")
    assert logging.getLogger("truthseeker").propagate is False


def test_quiet_third_party() -> None:
    setup_logging(level="DEBUG", quiet_third_party=True)
    assert logging.getLogger("httpx").level == logging.WARNING


def test_get_logger_namespaces() -> None:
    assert get_logger("report").name == "truthseeker.report"
    assert get_logger("truthseeker.ai").name == "truthseeker.ai"


def test_set_level() -> None:
    setup_logging(level="WARNING")
    set_level("debug")
    logger = logging.getLogger("truthseeker")
    assert logger.level == logging.DEBUG
    assert all(h.level == logging.DEBUG for h in logger.handlers)


class TestLogBuffer:
    def test_keeps_recent_records(self) -> None:
        buffer = LogBuffer(capacity=2)
        setup_logging(level="INFO", buffer=buffer)
        logger = get_logger("tests")

        for n in range(3):
            logger.info(f"message {n}")

        entries = buffer.entries()
        assert [e["message"] for e in entries] == ["message 1", "message 2"]
        assert entries[0]["level"] == "INFO"
        assert entries[0]["context"] == "truthseeker.tests"

    def test_clear(self) -> None:
        buffer = LogBuffer()
        buffer.emit(logging.LogRecord("truthseeker", logging.INFO, __file__, 1, "x", None, None))
        buffer.clear()
        assert buffer.entries() == []


class TestLogContext:
    def test_logs_completion(self, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="truthseeker"):
            with LogContext("Rendering report") as ctx:
                pass
        assert "Rendering report completed in" in caplog.text
        assert ctx.elapsed >= 0

    def test_logs_failure(self, caplog) -> None:
        with caplog.at_level(logging.INFO, logger="truthseeker"):
            with pytest.raises(RuntimeError):
                with log_context("Loading case"):
                    raise RuntimeError("disk full")
        assert "Loading case failed after" in caplog.text
        assert "disk full" in caplog.text
